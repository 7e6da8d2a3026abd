import pytest

from ar_rosbridge.errors import StreamKeyUnknown
from ar_rosbridge.topics import StreamKey, camera_topic, default_topics, depth_topic, point_cloud_topic


def test_topic_helpers():
    ns = "/phone"
    assert depth_topic(ns) == "/phone/depth"
    assert point_cloud_topic(ns) == "/phone/pointcloud"
    assert camera_topic(ns) == "/phone/camera"
    assert depth_topic("/phone/") == "/phone/depth"
    assert default_topics()[StreamKey.TRANSFORMS] == "/tf"
    assert default_topics()[StreamKey.CAMERA] == "/ipad/camera"


def test_stream_key_parse():
    assert StreamKey.parse("point-cloud") is StreamKey.POINT_CLOUD
    assert StreamKey.parse(" Depth ") is StreamKey.DEPTH
    assert StreamKey.parse(StreamKey.CAMERA) is StreamKey.CAMERA
    with pytest.raises(StreamKeyUnknown):
        StreamKey.parse("lidar")
