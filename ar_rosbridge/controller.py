"""Publishing controller: the single authority over what gets published.

IMPORTANT: the controller is shared between the per-stream publish loops and
the control surface (UI, CLI, app lifecycle). Every public method takes the
controller lock, and the lock order is controller -> connection.

Master switch vs. stream switches:
- `enable()`/`disable()` connect/disconnect the transport. Disabling does not
  touch the per-stream flags, so re-enabling resumes every stream that was on.
- `pause()`/`resume()` are for app backgrounding: the transport goes down but
  the master flag stays set, and `resume()` reconnects to the last endpoint.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from . import conversions
from .config import DEFAULT_RATES, RATE_MAX, RATE_MIN, BridgeConfig, rate_in_range
from .connection import Connection
from .errors import StreamKeyUnknown
from .messages import Image, PointCloud2, TFMessage, message_type
from .publisher import ControlledPublisher, ControlledStaticPublisher
from .topics import TF_STATIC, StreamKey

if TYPE_CHECKING:
    from .sources import Sample

log = logging.getLogger(__name__)

# Build the message for one publisher from a sample; None = nothing to send.
Converter = Callable[["Sample"], Any]


@dataclass(frozen=True)
class PubEntry:
    publisher: ControlledPublisher
    convert: Converter


# -------------------- sample slice converters --------------------


def convert_transforms(sample: Sample) -> TFMessage | None:
    if sample.camera_transform is None:
        return None
    return conversions.tf_to_tf_msg(sample.timestamp, sample.camera_transform)


def convert_static_transforms(sample: Sample) -> TFMessage:
    return conversions.get_tf_static_msg(sample.timestamp)


def convert_depth(sample: Sample) -> Image | None:
    if sample.depth_map is None:
        return None
    return conversions.depth_map_to_image(sample.timestamp, sample.depth_map)


def convert_point_cloud(sample: Sample) -> PointCloud2 | None:
    if sample.points is None:
        return None
    return conversions.points_to_point_cloud2(sample.timestamp, sample.points)


def convert_camera(sample: Sample) -> Image | None:
    if sample.camera_image is None:
        return None
    return conversions.camera_image_to_image(sample.timestamp, sample.camera_image)


class PubController:
    """Master enable state, the shared connection and all controlled publishers."""

    def __init__(
        self,
        connection: Connection,
        streams: dict[StreamKey, list[PubEntry]],
        *,
        rates: dict[StreamKey, float] | None = None,
        rate_min: float = RATE_MIN,
        rate_max: float = RATE_MAX,
    ) -> None:
        self._lock = threading.RLock()
        self._connection = connection
        self._streams = {key: list(entries) for key, entries in streams.items()}
        self._rate_min = rate_min
        self._rate_max = rate_max

        self._rates: dict[StreamKey, float] = {key: DEFAULT_RATES.get(key, RATE_MIN) for key in self._streams}
        for key, rate in (rates or {}).items():
            if key in self._rates:
                self._rates[key] = float(rate)

        self._enabled = False
        self._endpoint: str | None = None

    @classmethod
    def from_config(cls, config: BridgeConfig, connection: Connection | None = None) -> PubController:
        """Default wiring: one publisher per stream, transforms also on /tf_static."""
        conn = connection or Connection(send_queue_size=config.send_queue_size)
        tf_type = message_type(TFMessage)
        image_type = message_type(Image)
        streams = {
            StreamKey.TRANSFORMS: [
                PubEntry(
                    ControlledStaticPublisher(conn, tf_type, config.topic_for(StreamKey.TRANSFORMS)),
                    convert_transforms,
                ),
                PubEntry(ControlledStaticPublisher(conn, tf_type, TF_STATIC), convert_static_transforms),
            ],
            StreamKey.DEPTH: [PubEntry(ControlledPublisher(conn, image_type), convert_depth)],
            StreamKey.POINT_CLOUD: [
                PubEntry(ControlledPublisher(conn, message_type(PointCloud2)), convert_point_cloud)
            ],
            StreamKey.CAMERA: [PubEntry(ControlledPublisher(conn, image_type), convert_camera)],
        }
        return cls(
            conn,
            streams,
            rates=config.rates(),
            rate_min=config.rate_min,
            rate_max=config.rate_max,
        )

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._enabled

    @property
    def endpoint(self) -> str | None:
        with self._lock:
            return self._endpoint

    @property
    def stream_keys(self) -> list[StreamKey]:
        return list(self._streams)

    # -------------------- master state --------------------

    def enable(self, endpoint: str | None = None) -> bool:
        """Enable and connect, to `endpoint` or else the last known one."""
        with self._lock:
            log.debug("enable")
            self._enabled = True
            return self._update_connection(endpoint)

    def resume(self) -> bool:
        """Reconnect after `pause()`. False (no-op) if not enabled."""
        with self._lock:
            log.debug("resume")
            if not self._enabled:
                return False
            return self._update_connection(None)

    def pause(self) -> None:
        """Disconnect but keep the master and stream flags for `resume()`."""
        with self._lock:
            log.debug("pause")
            self._connection.disconnect()

    def disable(self) -> None:
        with self._lock:
            log.debug("disable")
            self._enabled = False
            self._connection.disconnect()

    def _update_connection(self, endpoint: str | None) -> bool:
        """Remember `endpoint` if given, then (re)connect; disable on failure."""
        log.debug("update connection (%s)", endpoint or "last endpoint")
        if endpoint is not None:
            self._endpoint = endpoint
        if self._endpoint is not None and self._connection.connect(self._endpoint):
            return True
        if self._endpoint is None:
            log.error("no endpoint to connect to")
        self.disable()
        return False

    # -------------------- per-stream control --------------------

    def _entries(self, key: StreamKey | str) -> list[PubEntry]:
        stream = StreamKey.parse(key)
        entries = self._streams.get(stream)
        if entries is None:
            raise StreamKeyUnknown(f"no publishers for stream: {stream.value}")
        return entries

    def enable_pub(self, key: StreamKey | str, topic_name: str | None = None) -> bool:
        with self._lock:
            try:
                entries = self._entries(key)
            except StreamKeyUnknown as e:
                log.warning("%s", e)
                return False
            result = True
            for entry in entries:
                result = entry.publisher.enable(topic_name) and result
            return result

    def disable_pub(self, key: StreamKey | str) -> None:
        with self._lock:
            try:
                entries = self._entries(key)
            except StreamKeyUnknown as e:
                log.warning("%s", e)
                return
            for entry in entries:
                entry.publisher.disable()

    def update_pub_topic(self, key: StreamKey | str, topic_name: str | None) -> bool:
        with self._lock:
            try:
                entries = self._entries(key)
            except StreamKeyUnknown as e:
                log.warning("%s", e)
                return False
            result = True
            for entry in entries:
                result = entry.publisher.update_topic(topic_name) and result
            return result

    def is_pub_enabled(self, key: StreamKey | str) -> bool:
        with self._lock:
            try:
                entries = self._entries(key)
            except StreamKeyUnknown:
                return False
            return any(entry.publisher.enabled for entry in entries)

    def get_pub_topics(self, key: StreamKey | str) -> list[str | None]:
        with self._lock:
            try:
                entries = self._entries(key)
            except StreamKeyUnknown:
                return []
            return [entry.publisher.topic_name for entry in entries]

    # -------------------- rates --------------------

    def update_pub_rate(self, key: StreamKey | str, rate: float) -> bool:
        with self._lock:
            try:
                stream = StreamKey.parse(key)
            except StreamKeyUnknown as e:
                log.warning("%s", e)
                return False
            if stream not in self._rates:
                log.warning("no rate for stream: %s", stream.value)
                return False
            if not rate_in_range(rate, rate_min=self._rate_min, rate_max=self._rate_max):
                log.warning(
                    "rate %s for %s outside [%s, %s] Hz", rate, stream.value, self._rate_min, self._rate_max
                )
                return False
            self._rates[stream] = float(rate)
            return True

    def get_pub_rate(self, key: StreamKey | str) -> float | None:
        with self._lock:
            try:
                return self._rates.get(StreamKey.parse(key))
            except StreamKeyUnknown:
                return None

    # -------------------- publishing --------------------

    def update(self, sample: Sample) -> None:
        """Publish every enabled stream from one full sample."""
        if not self.enabled:
            return
        for key in self._streams:
            self.publish_stream(key, sample)

    def publish_stream(self, key: StreamKey | str, sample: Sample) -> bool:
        """Convert and publish one stream's slice of `sample`.

        Returns False if a conversion or a send failed. Conversion runs
        outside the lock so slow encodes do not stall the control surface.
        """
        with self._lock:
            if not self._enabled:
                return True
            try:
                stream = StreamKey.parse(key)
                entries = [e for e in self._entries(stream) if e.publisher.enabled]
            except StreamKeyUnknown as e:
                log.warning("%s", e)
                return False

        result = True
        outgoing: list[tuple[ControlledPublisher, Any]] = []
        for entry in entries:
            try:
                msg = entry.convert(sample)
            except (ValueError, TypeError) as e:
                log.error("could not convert %s sample for %s: %s", stream.value, entry.publisher.topic_name, e)
                result = False
                continue
            if msg is not None:
                outgoing.append((entry.publisher, msg))

        with self._lock:
            if not self._enabled:
                return True
            for publisher, msg in outgoing:
                result = publisher.publish(msg) and result
        return result
