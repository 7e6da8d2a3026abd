import threading

import pytest

from ar_rosbridge import connection as connection_module
from ar_rosbridge.connection import Connection, TransportState, WebSocketTransport

# Nothing listens on the chargen port on a test machine.
CLOSED_ENDPOINT = "127.0.0.1:19"


class RecordingApp:
    """Stands in for websocket.WebSocketApp; the handshake completes on open()."""

    def __init__(self, url, *, on_open, on_message, on_error, on_close):
        self.url = url
        self.on_open = on_open
        self.on_close = on_close
        self.events = []
        self.closed = threading.Event()

    def run_forever(self):
        pass

    def open(self):
        self.on_open(self)

    def send(self, data):
        self.events.append(("send", data))

    def close(self, status=None):
        self.events.append(("close", status))
        self.closed.set()


@pytest.fixture
def recording_app(monkeypatch):
    apps = []

    def factory(url, **callbacks):
        app = RecordingApp(url, **callbacks)
        apps.append(app)
        return app

    monkeypatch.setattr(connection_module.websocket, "WebSocketApp", factory)
    return apps


def make_transport(queue_size=8):
    events = []
    transport = WebSocketTransport(
        "ws://10.0.0.2:9090",
        listener=lambda t, state, error: events.append(state),
        queue_size=queue_size,
    )
    return transport, events


def test_outbox_drops_oldest_when_full(recording_app):
    transport, _ = make_transport(queue_size=3)
    for i in range(5):
        transport.send(str(i).encode())
    assert list(transport._outbox.queue) == [b"2", b"3", b"4"]


def test_frames_wait_for_handshake(recording_app):
    transport, events = make_transport()
    transport.start()
    app = recording_app[0]
    try:
        transport.send(b'{"op":"advertise"}')
        transport.send(b'{"op":"publish"}')
        # Nothing leaves before the socket is open.
        assert not app.closed.wait(0.2)
        assert app.events == []

        app.open()
        assert events == [TransportState.OPEN]
    finally:
        transport.close()
    assert app.closed.wait(2.0)
    assert app.events == [
        ("send", '{"op":"advertise"}'),
        ("send", '{"op":"publish"}'),
        ("close", 1000),
    ]


def test_close_flushes_queued_frames_first(recording_app):
    transport, _ = make_transport()
    transport.start()
    app = recording_app[0]
    app.open()
    for i in range(3):
        transport.send(str(i).encode())
    transport.close()
    # Frames sent after close() are ignored.
    transport.send(b"late")
    assert app.closed.wait(2.0)
    assert app.events == [("send", "0"), ("send", "1"), ("send", "2"), ("close", 1000)]


def test_refused_handshake_marks_connection_failed():
    conn = Connection()
    seen = []
    failed = threading.Event()

    def on_health(state, error):
        seen.append(state)
        if state is TransportState.FAILED:
            failed.set()

    conn.add_health_listener(on_health)
    try:
        assert conn.connect(CLOSED_ENDPOINT)
        assert failed.wait(5.0)
        # The failure can be reported before connect() announces CONNECTING.
        assert sorted(s.value for s in seen) == ["connecting", "failed"]
        assert not conn.is_connected
        assert conn.health is TransportState.FAILED
    finally:
        conn.disconnect()
