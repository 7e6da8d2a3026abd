"""Publishing bridge from an AR sensor front-end to a rosbridge server.

Timestamped samples (depth map, feature points, camera pose, camera image)
are converted to ROS 2 messages and published as JSON over WebSocket:

- `Connection` + `TopicRegistry`: the WebSocket session and its topics
- `ControlledPublisher`: per-stream enable/disable/retarget
- `PubController`: master switch, rates, and the app lifecycle hooks
- `PubScheduler`: one publishing loop per stream

Run it with `python -m ar_rosbridge.app run --endpoint IP:PORT`.
"""

from .config import BridgeConfig, StreamConfig
from .connection import Connection, TransportState, is_valid_endpoint
from .controller import PubController, PubEntry
from .manager import PubManager
from .publisher import ControlledPublisher, ControlledStaticPublisher
from .scheduler import PubScheduler
from .sources import LatestSampleBuffer, Sample, SampleSource, SyntheticSampleSource
from .topic import Topic, TopicRegistry
from .topics import StreamKey

__all__ = [
    "BridgeConfig",
    "Connection",
    "ControlledPublisher",
    "ControlledStaticPublisher",
    "LatestSampleBuffer",
    "PubController",
    "PubEntry",
    "PubManager",
    "PubScheduler",
    "Sample",
    "SampleSource",
    "StreamConfig",
    "StreamKey",
    "SyntheticSampleSource",
    "Topic",
    "TopicRegistry",
    "TransportState",
    "is_valid_endpoint",
]
