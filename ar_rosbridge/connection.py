"""rosbridge connection built on top of websocket-client.

Why this shape:
- The sensor loops must never block on the network. `connect()` only creates
  the transport and returns; the WebSocket handshake finishes in the
  background and frames sent meanwhile wait in a small outbox.
- Socket-level problems show up asynchronously. They are logged and reported
  through the health signal (`add_health_listener`). A lost socket marks the
  connection disconnected; reconnecting is up to the caller (`connect()` again).

Design:
- `WebSocketTransport` owns one `websocket.WebSocketApp` plus two daemon
  threads: the network loop (`run_forever`) and a sender draining the outbox.
- `Connection` owns at most one transport at a time and the `TopicRegistry`.
  Every state change happens under `Connection.lock`.
"""

from __future__ import annotations

import enum
import logging
import queue
import re
import threading
from typing import Any, Callable, Protocol

import websocket

from . import messages
from .errors import InvalidEndpoint, NotConnected, TopicNameCollision, TransportSendFailure
from .topic import Topic, TopicRegistry

log = logging.getLogger(__name__)

# ddd.ddd.ddd.ddd:pppp, digit counts only (no 0-255 range check).
ENDPOINT_RE = re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}:[0-9]{2,4}")

SCHEME = "ws://"
STATUS_NORMAL = 1000
DEFAULT_SEND_QUEUE_SIZE = 64


def is_valid_endpoint(endpoint: str) -> bool:
    return isinstance(endpoint, str) and ENDPOINT_RE.fullmatch(endpoint) is not None


def validate_endpoint(endpoint: str) -> str:
    if not is_valid_endpoint(endpoint):
        raise InvalidEndpoint(f"endpoint does not match host:port syntax: {endpoint!r}")
    return endpoint


class TransportState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    FAILED = "failed"


# (transport, state, error) -> None
TransportListener = Callable[[Any, TransportState, "BaseException | None"], None]
HealthListener = Callable[[TransportState, "BaseException | None"], None]


class Transport(Protocol):
    def start(self) -> None: ...

    def send(self, frame: bytes) -> None: ...

    def close(self, code: int = STATUS_NORMAL) -> None: ...


TransportFactory = Callable[..., Transport]


_CLOSE = object()


class WebSocketTransport:
    """One WebSocket session with a bounded, fire-and-forget outbox."""

    def __init__(
        self,
        url: str,
        *,
        listener: TransportListener,
        queue_size: int = DEFAULT_SEND_QUEUE_SIZE,
    ) -> None:
        self.url = url
        self._listener = listener
        self._queue_size = queue_size

        self._app = websocket.WebSocketApp(
            url,
            on_open=self._on_open,
            on_message=self._on_message,
            on_error=self._on_error,
            on_close=self._on_close,
        )

        # Unbounded so the close marker always fits; the bound is enforced in send().
        self._outbox: "queue.Queue[Any]" = queue.Queue()
        self._opened = threading.Event()
        self._done = threading.Event()
        self._closing = threading.Event()
        self._close_code = STATUS_NORMAL
        self._last_error: BaseException | None = None

        self._net_thread: threading.Thread | None = None
        self._send_thread: threading.Thread | None = None

    def start(self) -> None:
        if self._net_thread is not None:
            return
        self._net_thread = threading.Thread(target=self._app.run_forever, name="rosbridge-net", daemon=True)
        self._send_thread = threading.Thread(target=self._sender_loop, name="rosbridge-send", daemon=True)
        self._net_thread.start()
        self._send_thread.start()

    def send(self, frame: bytes) -> None:
        if self._closing.is_set():
            return
        # Sensor data is "latest value wins": drop the oldest frame when full.
        while self._outbox.qsize() >= self._queue_size:
            try:
                dropped = self._outbox.get_nowait()
            except queue.Empty:
                break
            if dropped is _CLOSE:
                self._outbox.put(_CLOSE)
                return
            log.warning("outbox full (%d frames), dropping oldest frame", self._queue_size)
        self._outbox.put(frame)

    def close(self, code: int = STATUS_NORMAL) -> None:
        if self._closing.is_set():
            return
        self._close_code = code
        self._closing.set()
        self._outbox.put(_CLOSE)
        if self._send_thread is None:
            self._app.close(status=code)

    # -------------------- internal --------------------

    def _wait_open(self) -> bool:
        while not self._opened.wait(0.1):
            if self._done.is_set() or self._closing.is_set():
                return False
        return not self._done.is_set()

    def _sender_loop(self) -> None:
        while True:
            item = self._outbox.get()
            if item is _CLOSE:
                break
            if not self._wait_open():
                log.debug("dropping frame, socket not open")
                continue
            try:
                self._app.send(item.decode("utf-8"))
            except (websocket.WebSocketException, OSError) as e:
                log.error("error sending over socket: %s", e)
                err = TransportSendFailure(str(e))
                err.__cause__ = e
                self._emit(TransportState.OPEN, err)
        self._app.close(status=self._close_code)

    def _emit(self, state: TransportState, error: BaseException | None) -> None:
        try:
            self._listener(self, state, error)
        except Exception:
            log.exception("transport listener failed")

    # websocket-client callbacks (network thread)

    def _on_open(self, ws: websocket.WebSocketApp) -> None:
        log.debug("socket open: %s", self.url)
        self._opened.set()
        self._emit(TransportState.OPEN, None)

    def _on_message(self, ws: websocket.WebSocketApp, message: Any) -> None:
        # rosbridge only answers publishers with status messages.
        log.debug("received from %s: %s", self.url, message)

    def _on_error(self, ws: websocket.WebSocketApp, error: BaseException) -> None:
        self._last_error = error
        if not self._closing.is_set():
            log.error("socket error on %s: %s", self.url, error)

    def _on_close(self, ws: websocket.WebSocketApp, status: int | None, reason: str | None) -> None:
        self._done.set()
        if self._closing.is_set():
            log.debug("socket closed: %s", self.url)
            self._emit(TransportState.CLOSED, None)
        elif self._last_error is not None:
            self._emit(TransportState.FAILED, self._last_error)
        else:
            log.warning("socket closed by peer: %s (status=%s, reason=%s)", self.url, status, reason)
            self._emit(TransportState.CLOSED, None)


class Connection:
    """Interface to one rosbridge server: connection state, topics, sending."""

    def __init__(
        self,
        *,
        transport_factory: TransportFactory = WebSocketTransport,
        send_queue_size: int = DEFAULT_SEND_QUEUE_SIZE,
    ) -> None:
        self.lock = threading.RLock()
        self._transport_factory = transport_factory
        self._send_queue_size = send_queue_size

        self._transport: Transport | None = None
        self._connected = False
        self._endpoint: str | None = None
        self._registry = TopicRegistry()

        self._health = TransportState.CLOSED
        self._health_listeners: list[HealthListener] = []

    @property
    def is_connected(self) -> bool:
        with self.lock:
            return self._connected

    @property
    def endpoint(self) -> str | None:
        return self._endpoint

    @property
    def health(self) -> TransportState:
        return self._health

    @property
    def topics(self) -> list[Topic]:
        with self.lock:
            return list(self._registry)

    @property
    def topic_count(self) -> int:
        with self.lock:
            return len(self._registry)

    def add_health_listener(self, listener: HealthListener) -> None:
        self._health_listeners.append(listener)

    # -------------------- connection lifecycle --------------------

    def connect(self, endpoint: str) -> bool:
        """Open a session to `ws://<endpoint>`.

        Returns False only for an invalid endpoint. The handshake is not
        awaited; failures show up later through the health signal.
        """
        # Outside the lock so the CLOSED notification runs without it held.
        if self.is_connected:
            log.warning("already connected to %s, disconnecting first", self._endpoint)
            self.disconnect()

        with self.lock:
            try:
                validate_endpoint(endpoint)
            except InvalidEndpoint as e:
                log.error("%s", e)
                return False

            if self._transport is not None:
                # A concurrent connect() got in first; replace its session.
                self._transport.close(STATUS_NORMAL)
                self._registry.reset()

            log.debug("connecting to %s", endpoint)
            transport = self._transport_factory(
                SCHEME + endpoint,
                listener=self._on_transport_event,
                queue_size=self._send_queue_size,
            )
            self._transport = transport
            self._endpoint = endpoint
            self._connected = True
            self._health = TransportState.CONNECTING
            transport.start()

            # Topics registered while disconnected get advertised now.
            self._registry.advertise_all()
        self._notify(TransportState.CONNECTING, None)
        return True

    def disconnect(self) -> None:
        """Unadvertise every topic, then close the socket. Idempotent."""
        with self.lock:
            self._registry.unadvertise_all()
            transport = self._transport
            self._transport = None
            was_connected = self._connected
            self._connected = False
            self._registry.reset()
            if transport is not None:
                transport.close(STATUS_NORMAL)
            self._health = TransportState.CLOSED
        if was_connected:
            log.debug("disconnected from %s", self._endpoint)
            self._notify(TransportState.CLOSED, None)

    # -------------------- sending --------------------

    def send(self, envelope: dict[str, Any]) -> bool:
        with self.lock:
            try:
                transport = self._require_transport()
            except NotConnected as e:
                log.info("%s (%s %s)", e, envelope.get("op"), envelope.get("topic"))
                return False
            try:
                frame = messages.encode(envelope)
            except (TypeError, ValueError) as e:
                log.error("error encoding %s for %s: %s", envelope.get("op"), envelope.get("topic"), e)
                return False
            transport.send(frame)
            return True

    def _require_transport(self) -> Transport:
        if not self._connected or self._transport is None:
            raise NotConnected("trying to send without being connected")
        return self._transport

    # -------------------- topics --------------------

    def create_topic(self, name: str, type_name: str) -> Topic | None:
        """Register a topic; advertise it right away if connected.

        Returns None if a topic with this name already exists.
        """
        with self.lock:
            topic = Topic(self, name, type_name)
            try:
                self._registry.add(topic)
            except TopicNameCollision as e:
                log.warning("%s", e)
                return None
            if self._connected:
                topic.advertise()
            return topic

    def destroy_topic(self, topic: Topic) -> None:
        with self.lock:
            if self._registry.get(topic.name) is not topic:
                return
            topic.unadvertise()
            self._registry.remove(topic)
            topic.retired = True

    def get_topic(self, name: str) -> Topic | None:
        with self.lock:
            return self._registry.get(name)

    # -------------------- transport events --------------------

    def _on_transport_event(self, transport: Any, state: TransportState, error: BaseException | None) -> None:
        stale = None
        with self.lock:
            if transport is not self._transport:
                log.debug("ignoring %s from a previous session", state.value)
                return
            if state in (TransportState.CLOSED, TransportState.FAILED):
                if self._connected:
                    log.error("lost connection to %s (%s): %s", self._endpoint, state.value, error)
                self._connected = False
                self._transport = None
                self._registry.reset()
                stale = transport
            self._health = state
        if stale is not None:
            stale.close(STATUS_NORMAL)
        self._notify(state, error)

    def _notify(self, state: TransportState, error: BaseException | None) -> None:
        for listener in list(self._health_listeners):
            try:
                listener(state, error)
            except Exception:
                log.exception("health listener failed")
