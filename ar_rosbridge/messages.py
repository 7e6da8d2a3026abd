"""ROS 2 message model and rosbridge wire envelopes.

Messages are plain dataclasses whose field names match the ROS 2 message
definitions, so `to_payload()` can turn them into the JSON body rosbridge
expects without per-type code.

Every message class is listed in `MESSAGE_TYPES` with its wire type string
(`<package>/msg/<Name>`). The `/msg/` separator is the ROS 2 spelling.

Envelopes (one JSON object per WebSocket frame):

- advertise:   {"op":"advertise","id":"advertise:<topic>","topic":<topic>,"type":<type>}
- unadvertise: {"op":"unadvertise","id":"unadvertise:<topic>","topic":<topic>}
- publish:     {"op":"publish","id":"publish:<topic>:<n>","topic":<topic>,"msg":{...}}
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Time:
    sec: int
    nanosec: int


@dataclass(frozen=True)
class Header:
    stamp: Time
    frame_id: str


@dataclass(frozen=True)
class Image:
    header: Header
    height: int
    width: int
    encoding: str
    is_bigendian: int
    step: int
    data: bytes

    RGB8 = "rgb8"
    RGBA8 = "rgba8"
    BGR8 = "bgr8"
    BGRA8 = "bgra8"
    MONO8 = "mono8"
    MONO16 = "mono16"
    TYPE_32FC1 = "32FC1"


@dataclass(frozen=True)
class String:
    data: str


@dataclass(frozen=True)
class PointField:
    name: str
    offset: int
    datatype: int
    count: int

    INT8 = 1
    UINT8 = 2
    INT16 = 3
    UINT16 = 4
    INT32 = 5
    UINT32 = 6
    FLOAT32 = 7
    FLOAT64 = 8


@dataclass(frozen=True)
class PointCloud2:
    header: Header
    height: int
    width: int
    fields: list[PointField]
    is_bigendian: bool
    point_step: int
    row_step: int
    data: bytes
    is_dense: bool


@dataclass(frozen=True)
class Vector3:
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class Quaternion:
    x: float
    y: float
    z: float
    w: float


@dataclass(frozen=True)
class Transform:
    translation: Vector3
    rotation: Quaternion


@dataclass(frozen=True)
class TransformStamped:
    header: Header
    child_frame_id: str
    transform: Transform


@dataclass(frozen=True)
class TFMessage:
    transforms: list[TransformStamped] = field(default_factory=list)


MESSAGE_TYPES: dict[type, str] = {
    Time: "builtin_interfaces/msg/Time",
    Header: "std_msgs/msg/Header",
    String: "std_msgs/msg/String",
    Image: "sensor_msgs/msg/Image",
    PointField: "sensor_msgs/msg/PointField",
    PointCloud2: "sensor_msgs/msg/PointCloud2",
    Vector3: "geometry_msgs/msg/Vector3",
    Quaternion: "geometry_msgs/msg/Quaternion",
    Transform: "geometry_msgs/msg/Transform",
    TransformStamped: "geometry_msgs/msg/TransformStamped",
    TFMessage: "tf2_msgs/msg/TFMessage",
}


def message_type(msg_cls: type) -> str:
    """Return the wire type string for a message class (raises KeyError if unknown)."""
    return MESSAGE_TYPES[msg_cls]


def to_payload(value: Any) -> Any:
    """Convert a message (or any nested field value) to JSON-ready data.

    Byte buffers become lists of ints, which is how rosbridge reads `uint8[]`.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_payload(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return list(bytes(value))
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    return value


# -------------------- envelopes --------------------


def advertise(topic: str, type_name: str) -> dict[str, Any]:
    return {"op": "advertise", "id": f"advertise:{topic}", "topic": topic, "type": type_name}


def unadvertise(topic: str) -> dict[str, Any]:
    return {"op": "unadvertise", "id": f"unadvertise:{topic}", "topic": topic}


def publish(topic: str, sequence: int, msg: Any) -> dict[str, Any]:
    return {
        "op": "publish",
        "id": f"publish:{topic}:{sequence}",
        "topic": topic,
        "msg": to_payload(msg),
    }


def encode(envelope: dict[str, Any]) -> bytes:
    return json.dumps(envelope, separators=(",", ":")).encode("utf-8")
