"""Bridge configuration dataclasses.

Example YAML file:

    endpoint: 192.168.1.20:9090
    namespace: /ipad
    send_queue_size: 64
    rate_limits:
      min: 0.5
      max: 20.0
    streams:
      transforms: {rate: 15.0}
      depth: {topic: /ipad/depth, rate: 10.0}
      point_cloud: {enabled: false}
      camera: {rate: 5.0}

Every key is optional.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .topics import DEFAULT_NAMESPACE, StreamKey, default_topics

DEFAULT_RATE = 10.0  # Hz
RATE_MIN = 0.5
RATE_MAX = 20.0
DEFAULT_SEND_QUEUE_SIZE = 64

DEFAULT_RATES: dict[StreamKey, float] = {
    StreamKey.TRANSFORMS: 15.0,
    StreamKey.DEPTH: DEFAULT_RATE,
    StreamKey.POINT_CLOUD: DEFAULT_RATE,
    StreamKey.CAMERA: DEFAULT_RATE,
}


def rate_in_range(rate: float, *, rate_min: float = RATE_MIN, rate_max: float = RATE_MAX) -> bool:
    try:
        value = float(rate)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and rate_min <= value <= rate_max


@dataclass
class StreamConfig:
    """Configuration for one stream."""

    topic: str | None = None  # None = namespace default
    rate: float = DEFAULT_RATE  # Hz
    enabled: bool = True


def _default_streams() -> dict[StreamKey, StreamConfig]:
    return {key: StreamConfig(rate=rate) for key, rate in DEFAULT_RATES.items()}


@dataclass
class BridgeConfig:
    """Configuration for the publishing bridge."""

    endpoint: str | None = None  # host:port of the rosbridge server, no scheme
    namespace: str = DEFAULT_NAMESPACE
    streams: dict[StreamKey, StreamConfig] = field(default_factory=_default_streams)
    rate_min: float = RATE_MIN
    rate_max: float = RATE_MAX
    send_queue_size: int = DEFAULT_SEND_QUEUE_SIZE

    def __post_init__(self) -> None:
        if self.rate_min <= 0 or self.rate_min > self.rate_max:
            raise ValueError(f"invalid rate limits: min={self.rate_min}, max={self.rate_max}")
        if self.send_queue_size <= 0:
            raise ValueError("send_queue_size must be > 0")
        for key in StreamKey:
            self.streams.setdefault(key, StreamConfig(rate=DEFAULT_RATES[key]))
        for key, stream in self.streams.items():
            self.check_rate(key, stream.rate)

    def check_rate(self, key: StreamKey, rate: float) -> None:
        if not rate_in_range(rate, rate_min=self.rate_min, rate_max=self.rate_max):
            raise ValueError(
                f"rate for {key.value} must be within [{self.rate_min}, {self.rate_max}] Hz, got {rate}"
            )

    def topic_for(self, key: StreamKey) -> str:
        topic = self.streams[key].topic
        return topic if topic else default_topics(self.namespace)[key]

    def rates(self) -> dict[StreamKey, float]:
        return {key: float(stream.rate) for key, stream in self.streams.items()}

    def enabled_streams(self) -> list[StreamKey]:
        return [key for key in StreamKey if self.streams[key].enabled]

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BridgeConfig:
        data = data or {}
        limits = data.get("rate_limits", {}) or {}

        streams = _default_streams()
        for name, raw in (data.get("streams", {}) or {}).items():
            key = StreamKey.parse(name)
            raw = raw or {}
            streams[key] = StreamConfig(
                topic=raw.get("topic"),
                rate=float(raw.get("rate", DEFAULT_RATES[key])),
                enabled=bool(raw.get("enabled", True)),
            )

        endpoint = data.get("endpoint")
        return cls(
            endpoint=str(endpoint) if endpoint is not None else None,
            namespace=str(data.get("namespace", DEFAULT_NAMESPACE)),
            streams=streams,
            rate_min=float(limits.get("min", RATE_MIN)),
            rate_max=float(limits.get("max", RATE_MAX)),
            send_queue_size=int(data.get("send_queue_size", DEFAULT_SEND_QUEUE_SIZE)),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> BridgeConfig:
        """Load config from a YAML file."""
        with open(yaml_path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "namespace": self.namespace,
            "send_queue_size": self.send_queue_size,
            "rate_limits": {"min": self.rate_min, "max": self.rate_max},
            "streams": {
                key.value: {
                    "topic": self.topic_for(key),
                    "rate": self.streams[key].rate,
                    "enabled": self.streams[key].enabled,
                }
                for key in StreamKey
            },
        }
