"""Per-stream publishing loops.

Threading model:
- start(): call from the main thread; spawns one daemon thread per stream
- _stream_loop(): background thread (pull sample + publish at the stream's rate)
- stop(): call from the main thread

Loops are independent: a slow encode on the camera stream never delays the
transforms stream. Each loop re-reads its rate from the controller on every
tick, so rate changes apply without restarting anything.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterable

from .config import DEFAULT_RATE
from .controller import PubController
from .sources import SampleSource
from .topics import StreamKey

log = logging.getLogger(__name__)


class PubScheduler:
    """
    Drives periodic sample + publish cycles for every stream of a controller.

    Usage:
        scheduler = PubScheduler(controller, source)
        scheduler.start()
        # ... streams publish while the controller is enabled
        scheduler.stop()
    """

    def __init__(
        self,
        controller: PubController,
        source: SampleSource,
        *,
        keys: Iterable[StreamKey] | None = None,
        idle_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            controller: Controller to publish through (also provides rates).
            source: Non-blocking provider of the latest sample.
            keys: Streams to drive (default: all streams of the controller).
            idle_interval: Longest single wait in seconds, used while disabled
                and when no new sample is available.
        """
        self._controller = controller
        self._source = source
        self._keys = list(keys) if keys is not None else controller.stream_keys
        self._idle_interval = idle_interval
        self._clock = clock

        self._stop_event = threading.Event()
        self._threads: dict[StreamKey, threading.Thread] = {}

    def start(self) -> None:
        self._stop_event.clear()
        for key in self._keys:
            if key in self._threads and self._threads[key].is_alive():
                # A loop from before stop() is still finishing; it keeps running.
                continue
            thread = threading.Thread(
                target=self._stream_loop,
                args=(key,),
                name=f"pub-{key.value}",
                daemon=True,
            )
            self._threads[key] = thread
            thread.start()
        log.debug("started %d stream loops", len(self._threads))

    def stop(self, timeout: float = 1.0) -> None:
        """Signal every loop and wait up to `timeout` for each.

        Loops still busy after the timeout stay tracked so a later start()
        does not spawn a second loop for the same stream.
        """
        self._stop_event.set()
        for key, thread in list(self._threads.items()):
            thread.join(timeout=timeout)
            if thread.is_alive():
                log.warning("stream loop %s did not stop within %.1fs", key.value, timeout)
            else:
                del self._threads[key]

    @property
    def is_running(self) -> bool:
        return any(t.is_alive() for t in self._threads.values())

    def _interval(self, key: StreamKey) -> float:
        rate = self._controller.get_pub_rate(key) or DEFAULT_RATE
        return 1.0 / rate

    def _stream_loop(self, key: StreamKey) -> None:
        last_publish: float | None = None
        last_stamp: float | None = None

        while not self._stop_event.is_set():
            if not self._controller.enabled or not self._controller.is_pub_enabled(key):
                self._stop_event.wait(self._idle_interval)
                continue

            interval = self._interval(key)
            if last_publish is not None:
                remaining = last_publish + interval - self._clock()
                if remaining > 0:
                    # Capped so a rate change is picked up quickly.
                    self._stop_event.wait(min(remaining, self._idle_interval))
                    continue

            sample = self._source.latest_sample()
            if sample is None or sample.timestamp == last_stamp:
                self._stop_event.wait(min(interval, self._idle_interval))
                continue

            last_publish = self._clock()
            last_stamp = sample.timestamp
            try:
                if not self._controller.publish_stream(key, sample):
                    log.debug("publishing %s failed for sample %.3f", key.value, sample.timestamp)
            except Exception:
                # Keep the loop alive; the next sample gets another try.
                log.exception("error publishing %s", key.value)
