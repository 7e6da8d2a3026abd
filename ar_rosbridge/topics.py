"""Stream keys and default topic names.

We keep topic construction in one place so the controller, the config loader
and the CLI agree on naming.

Topic layout under a configurable namespace (default: `/ipad`):

- `<ns>/depth`       depth map (`sensor_msgs/msg/Image`, 32FC1)
- `<ns>/pointcloud`  ARKit feature points (`sensor_msgs/msg/PointCloud2`)
- `<ns>/camera`      camera image (`sensor_msgs/msg/Image`, rgb8)

Transforms always go to the standard tf topics:

- `/tf`         camera pose in the ARKit frame
- `/tf_static`  fixed frames tying ARKit to ROS conventions
"""

from __future__ import annotations

import enum

from .errors import StreamKeyUnknown

DEFAULT_NAMESPACE = "/ipad"
TF = "/tf"
TF_STATIC = "/tf_static"


class StreamKey(str, enum.Enum):
    TRANSFORMS = "transforms"
    DEPTH = "depth"
    POINT_CLOUD = "point_cloud"
    CAMERA = "camera"

    @classmethod
    def parse(cls, value: str | StreamKey) -> StreamKey:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower().replace("-", "_"))
        except ValueError:
            raise StreamKeyUnknown(f"unknown stream: {value!r}") from None


def depth_topic(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace.rstrip('/')}/depth"


def point_cloud_topic(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace.rstrip('/')}/pointcloud"


def camera_topic(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace.rstrip('/')}/camera"


def default_topics(namespace: str = DEFAULT_NAMESPACE) -> dict[StreamKey, str]:
    return {
        StreamKey.TRANSFORMS: TF,
        StreamKey.DEPTH: depth_topic(namespace),
        StreamKey.POINT_CLOUD: point_cloud_topic(namespace),
        StreamKey.CAMERA: camera_topic(namespace),
    }
