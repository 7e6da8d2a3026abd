import time

import numpy as np

from ar_rosbridge.config import BridgeConfig
from ar_rosbridge.manager import PubManager
from ar_rosbridge.sources import LatestSampleBuffer, SyntheticSampleSource
from ar_rosbridge.topics import StreamKey


def test_start_enables_configured_streams(connection, transports, sample):
    config = BridgeConfig.from_dict(
        {"endpoint": "10.0.0.2:9090", "streams": {"camera": {"enabled": False}}}
    )
    buffer = LatestSampleBuffer()
    manager = PubManager(config, source=buffer, connection=connection, idle_interval=0.01)
    try:
        assert manager.start()
        assert manager.controller.enabled
        assert transports[0].url == "ws://10.0.0.2:9090"
        assert manager.controller.is_pub_enabled(StreamKey.DEPTH)
        assert not manager.controller.is_pub_enabled(StreamKey.CAMERA)
        assert sorted(t.name for t in connection.topics) == [
            "/ipad/depth",
            "/ipad/pointcloud",
            "/tf",
            "/tf_static",
        ]
    finally:
        manager.stop()
    assert not manager.controller.enabled
    assert not manager.scheduler.is_running


def test_start_without_endpoint_stays_disconnected(connection, transports):
    manager = PubManager(BridgeConfig(), source=LatestSampleBuffer(), connection=connection)
    try:
        assert manager.start()
        assert transports == []
        assert not manager.controller.enabled
    finally:
        manager.stop()


def test_lifecycle_hooks(connection, transports):
    config = BridgeConfig(endpoint="10.0.0.2:9090")
    manager = PubManager(config, source=LatestSampleBuffer(), connection=connection)
    manager.start()
    try:
        manager.pause()
        assert not connection.is_connected
        assert manager.resume()
        assert connection.is_connected
        assert len(transports) == 2

        manager.disable()
        assert manager.resume() is False
        assert not connection.is_connected
    finally:
        manager.stop()


def test_synthetic_source_frames():
    now = [100.0]
    source = SyntheticSampleSource(rate=4.0, seed=1, clock=lambda: now[0])
    first = source.latest_sample()
    assert source.latest_sample() is first

    now[0] += 0.25
    second = source.latest_sample()
    assert second is not first
    assert second.timestamp == first.timestamp + 0.25
    assert second.depth_map.shape == (192, 256)
    assert second.depth_map.dtype == np.float32
    assert second.points.shape == (200, 3)
    assert second.camera_image.shape == (120, 160, 3)
    pose = second.camera_transform
    assert np.allclose(pose[:3, :3] @ pose[:3, :3].T, np.eye(3), atol=1e-5)
