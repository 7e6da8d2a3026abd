from ar_rosbridge.connection import TransportState, is_valid_endpoint, validate_endpoint
from ar_rosbridge.errors import InvalidEndpoint, TransportSendFailure

import pytest


def test_endpoint_syntax_checks_digit_counts_only():
    # Octet ranges are not checked, only the number of digits.
    assert is_valid_endpoint("999.1.1.1:80")
    assert is_valid_endpoint("192.168.1.20:9090")
    assert not is_valid_endpoint("1.2.3:99")
    assert not is_valid_endpoint("1.2.3.4:9")
    assert not is_valid_endpoint("1.2.3.4:90901")
    assert not is_valid_endpoint("ws://1.2.3.4:9090")
    assert not is_valid_endpoint("localhost:9090")
    assert not is_valid_endpoint("1.2.3.4:9090\n")


def test_validate_endpoint_raises():
    with pytest.raises(InvalidEndpoint):
        validate_endpoint("1.2.3:99")


def test_connect_invalid_endpoint_does_no_io(connection, transports):
    assert connection.connect("1.2.3:99") is False
    assert transports == []
    assert not connection.is_connected


def test_connect_lax_octets_accepted(connection, transports):
    assert connection.connect("999.1.1.1:80") is True
    assert transports[0].url == "ws://999.1.1.1:80"


def test_connect_opens_transport(connection, transports):
    assert connection.connect("10.0.0.2:9090")
    assert connection.is_connected
    assert connection.endpoint == "10.0.0.2:9090"
    assert connection.health is TransportState.CONNECTING
    assert transports[0].started


def test_connect_while_connected_disconnects_first(connection, transports):
    connection.connect("10.0.0.2:9090")
    connection.connect("10.0.0.3:9090")
    assert len(transports) == 2
    assert transports[0].close_code == 1000
    assert not transports[1].closed
    assert connection.is_connected


def test_reconnect_notifies_without_holding_the_lock(connection):
    import threading

    seen = []

    def lock_is_free():
        result = []

        def try_acquire():
            acquired = connection.lock.acquire(blocking=False)
            if acquired:
                connection.lock.release()
            result.append(acquired)

        t = threading.Thread(target=try_acquire)
        t.start()
        t.join()
        return result[0]

    connection.connect("10.0.0.2:9090")
    connection.add_health_listener(lambda state, error: seen.append((state, lock_is_free())))
    connection.connect("10.0.0.3:9090")
    assert seen == [(TransportState.CLOSED, True), (TransportState.CONNECTING, True)]


def test_send_requires_connection(connection, frames):
    assert connection.send({"op": "publish", "id": "x", "topic": "/a", "msg": {}}) is False
    connection.connect("10.0.0.2:9090")
    assert connection.send({"op": "publish", "id": "x", "topic": "/a", "msg": {}}) is True
    assert frames() == [{"op": "publish", "id": "x", "topic": "/a", "msg": {}}]


def test_topic_names_are_unique(connection):
    first = connection.create_topic("/a", "std_msgs/msg/String")
    second = connection.create_topic("/a", "std_msgs/msg/String")
    assert first is not None
    assert second is None
    assert connection.topic_count == 1


def test_create_topic_advertises_only_when_connected(connection, frames):
    connection.create_topic("/a", "std_msgs/msg/String")
    assert frames() == []

    connection.connect("10.0.0.2:9090")
    # Topics registered while disconnected are advertised on connect.
    assert [e["topic"] for e in frames("advertise")] == ["/a"]

    connection.create_topic("/b", "std_msgs/msg/String")
    assert [e["topic"] for e in frames("advertise")] == ["/a", "/b"]


def test_disconnect_unadvertises_then_closes(connection, transports, frames):
    connection.connect("10.0.0.2:9090")
    a = connection.create_topic("/a", "std_msgs/msg/String")
    b = connection.create_topic("/b", "std_msgs/msg/String")

    connection.disconnect()

    assert sorted(e["topic"] for e in frames("unadvertise")) == ["/a", "/b"]
    assert transports[0].close_code == 1000
    assert not connection.is_connected
    assert not a.advertised and not b.advertised
    # Topics survive a disconnect.
    assert connection.topic_count == 2


def test_disconnect_is_idempotent(connection, frames):
    connection.create_topic("/a", "std_msgs/msg/String")
    connection.disconnect()
    connection.disconnect()
    assert frames() == []


def test_destroy_topic(connection, frames):
    connection.connect("10.0.0.2:9090")
    topic = connection.create_topic("/a", "std_msgs/msg/String")
    connection.destroy_topic(topic)
    assert frames("unadvertise") == [{"op": "unadvertise", "id": "unadvertise:/a", "topic": "/a"}]
    assert connection.topic_count == 0
    assert connection.get_topic("/a") is None

    # Already gone: no-op.
    connection.destroy_topic(topic)
    assert len(frames("unadvertise")) == 1


def test_transport_failure_marks_disconnected(connection, transports):
    events = []
    connection.add_health_listener(lambda state, error: events.append((state, error)))
    connection.connect("10.0.0.2:9090")
    topic = connection.create_topic("/a", "std_msgs/msg/String")
    assert topic.advertised

    err = ConnectionRefusedError("refused")
    transports[0].fire(TransportState.FAILED, err)

    assert not connection.is_connected
    assert connection.health is TransportState.FAILED
    assert not topic.advertised
    assert transports[0].closed
    assert events[-1] == (TransportState.FAILED, err)
    assert topic.publish("x") is False


def test_send_failure_keeps_connection(connection, transports):
    events = []
    connection.add_health_listener(lambda state, error: events.append((state, error)))
    connection.connect("10.0.0.2:9090")
    transports[0].fire(TransportState.OPEN)
    err = TransportSendFailure("broken pipe")
    transports[0].fire(TransportState.OPEN, err)

    assert connection.is_connected
    assert events[-1] == (TransportState.OPEN, err)


def test_events_from_previous_session_are_ignored(connection, transports):
    connection.connect("10.0.0.2:9090")
    connection.connect("10.0.0.3:9090")
    transports[0].fire(TransportState.CLOSED)
    assert connection.is_connected
    assert connection.endpoint == "10.0.0.3:9090"
