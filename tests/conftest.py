import json

import numpy as np
import pytest

from ar_rosbridge.connection import Connection
from ar_rosbridge.sources import Sample


class FakeTransport:
    """Records frames instead of talking to a socket."""

    def __init__(self, url, *, listener, queue_size):
        self.url = url
        self.listener = listener
        self.queue_size = queue_size
        self.frames = []
        self.started = False
        self.close_code = None

    def start(self):
        self.started = True

    def send(self, frame):
        self.frames.append(frame)

    def close(self, code=1000):
        if self.close_code is None:
            self.close_code = code

    @property
    def closed(self):
        return self.close_code is not None

    def fire(self, state, error=None):
        self.listener(self, state, error)


@pytest.fixture
def transports():
    return []


@pytest.fixture
def connection(transports):
    def factory(url, *, listener, queue_size):
        t = FakeTransport(url, listener=listener, queue_size=queue_size)
        transports.append(t)
        return t

    return Connection(transport_factory=factory)


@pytest.fixture
def frames(transports):
    """Decoded envelopes sent over every transport so far, optionally filtered by op."""

    def _frames(op=None):
        out = [json.loads(f.decode("utf-8")) for t in transports for f in t.frames]
        if op is not None:
            out = [e for e in out if e["op"] == op]
        return out

    return _frames


@pytest.fixture
def sample():
    return Sample(
        timestamp=1_700_000_000.25,
        depth_map=np.full((4, 6), 1.5, dtype=np.float32),
        points=np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], dtype=np.float32),
        camera_transform=np.eye(4, dtype=np.float32),
        camera_image=np.zeros((3, 5, 3), dtype=np.uint8),
    )
