from __future__ import annotations

# The PubManager ties the bridge together for one app/process.
#
# IMPORTANT: This file contains two layers:
# 1) `PubManager` (controller + scheduler + lifecycle hooks, easy to unit test
#    with a fake transport and a fake sample source)
# 2) `main()` (headless runner with a synthetic sample source)
#
# App lifecycle mapping:
# - going to background -> pause()
# - back to foreground  -> resume()
# - terminating         -> disable()

import argparse
import logging
import time

from .config import BridgeConfig
from .connection import Connection, TransportState
from .controller import PubController
from .errors import BridgeError, ErrorResponse
from .scheduler import PubScheduler
from .sources import SampleSource, SyntheticSampleSource
from .topics import StreamKey

log = logging.getLogger(__name__)


class PubManager:
    """Owns the controller and the scheduler for one sample source."""

    def __init__(
        self,
        config: BridgeConfig,
        *,
        source: SampleSource | None = None,
        connection: Connection | None = None,
        idle_interval: float = 0.1,
    ) -> None:
        self.config = config
        self.source = source or SyntheticSampleSource()
        self.controller = PubController.from_config(config, connection)
        self.scheduler = PubScheduler(self.controller, self.source, idle_interval=idle_interval)
        self._started = False

    @property
    def connection(self) -> Connection:
        return self.controller.connection

    def start(self, *, connect: bool = True) -> bool:
        """Enable the configured streams and start publishing.

        Connects if `connect` is set and the config has an endpoint. Returns
        False if a stream or the connection could not be set up.
        """
        if self._started:
            return True
        ok = True
        for key in self.config.enabled_streams():
            if not self.controller.enable_pub(key, self.config.topic_for(key)):
                log.error("could not enable stream %s", key.value)
                ok = False
        self.scheduler.start()
        self._started = True
        if connect and self.config.endpoint:
            ok = self.controller.enable(self.config.endpoint) and ok
        return ok

    def stop(self) -> None:
        """Stop publishing loops and disconnect."""
        if not self._started:
            return
        self.scheduler.stop()
        self.controller.disable()
        self._started = False

    # -------------------- lifecycle hooks --------------------

    def pause(self) -> None:
        self.controller.pause()

    def resume(self) -> bool:
        return self.controller.resume()

    def disable(self) -> None:
        self.controller.disable()


def _parse_rate(value: str) -> tuple[StreamKey, float]:
    name, sep, rate = value.partition("=")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected STREAM=HZ, got {value!r}")
    try:
        return StreamKey.parse(name), float(rate)
    except (BridgeError, ValueError) as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_config(args: argparse.Namespace) -> BridgeConfig:
    """Config file (if any) overridden by command-line flags."""
    config = BridgeConfig.from_yaml(args.config) if args.config else BridgeConfig()
    if args.endpoint:
        config.endpoint = args.endpoint
    if args.namespace:
        config.namespace = args.namespace
    for key, rate in args.rate or []:
        config.check_rate(key, rate)
        config.streams[key].rate = rate
    for name in args.disable_stream or []:
        config.streams[StreamKey.parse(name)].enabled = False
    return config


def add_bridge_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--endpoint", default=None, help="rosbridge server as IP:PORT (no ws://)")
    p.add_argument("--config", default=None, help="YAML config file")
    p.add_argument("--namespace", default=None, help="topic namespace (default /ipad)")
    p.add_argument(
        "--rate",
        type=_parse_rate,
        action="append",
        metavar="STREAM=HZ",
        help="publishing rate for a stream, e.g. depth=5 (repeatable)",
    )
    p.add_argument(
        "--disable-stream",
        action="append",
        metavar="STREAM",
        help="do not publish this stream (transforms, depth, point_cloud, camera)",
    )
    p.add_argument("--log-level", default="INFO", help="logging level (DEBUG, INFO, ...)")


def main() -> None:
    parser = argparse.ArgumentParser(description="AR sensor -> rosbridge publisher (synthetic source)")
    add_bridge_args(parser)
    parser.add_argument("--source-rate", type=float, default=30.0, help="synthetic frames per second")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--duration", type=float, default=None, help="stop after N seconds")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
    except (BridgeError, ValueError, OSError) as e:
        print(f"[bridge] config error: {ErrorResponse.from_exception(e).to_message()}")
        raise SystemExit(2)
    if not config.endpoint:
        print("[bridge] no endpoint given (use --endpoint or the config file)")
        raise SystemExit(2)

    source = SyntheticSampleSource(rate=args.source_rate, seed=args.seed)
    manager = PubManager(config, source=source)

    def on_health(state: TransportState, error: BaseException | None) -> None:
        if error is not None:
            report = ErrorResponse.from_exception(error).to_message(endpoint=config.endpoint)
            print(f"[bridge] transport {state.value}: {report}")
        else:
            print(f"[bridge] transport {state.value}")

    manager.connection.add_health_listener(on_health)

    if not manager.start():
        print(f"[bridge] could not start publishing to {config.endpoint}")
        manager.stop()
        raise SystemExit(1)

    streams = ", ".join(
        f"{key.value}->{config.topic_for(key)}@{config.streams[key].rate:0.1f}Hz"
        for key in config.enabled_streams()
    )
    print(f"[bridge] publishing to ws://{config.endpoint}: {streams}")

    deadline = time.monotonic() + args.duration if args.duration else None
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        pass
    finally:
        manager.stop()


if __name__ == "__main__":
    main()
