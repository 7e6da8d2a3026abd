"""Conversions from AR sensor data (numpy arrays) to ROS 2 messages.

Coordinate frames used by the published messages:

- `map_ipad`     fixed ROS-convention world frame
- `arkit_ref`    ARKit world frame (Y up, Z backward)
- `ipad_camera`  camera pose as tracked by ARKit
- `ipad`         device frame in ROS convention (X forward, Z up)

The static transforms (`get_tf_static_msg`) connect `map_ipad -> arkit_ref` and
`ipad_camera -> ipad`; the dynamic one (`tf_to_tf_msg`) is
`arkit_ref -> ipad_camera`.
"""

from __future__ import annotations

import math
from typing import Any

import numpy as np

from .messages import (
    Header,
    Image,
    PointCloud2,
    PointField,
    Quaternion,
    TFMessage,
    Time,
    Transform,
    TransformStamped,
    Vector3,
)

FRAME_MAP = "map_ipad"
FRAME_ARKIT_REF = "arkit_ref"
FRAME_CAMERA = "ipad_camera"
FRAME_DEVICE = "ipad"

NANOSEC_PER_SEC = 1_000_000_000


def get_timestamp(t: float) -> Time:
    """Split seconds-since-epoch into `builtin_interfaces/Time`.

    `nanosec` holds true nanoseconds. Rounding can carry into the next second.
    """
    sec = math.floor(t)
    nanosec = int(round((t - sec) * NANOSEC_PER_SEC))
    if nanosec >= NANOSEC_PER_SEC:
        sec += 1
        nanosec -= NANOSEC_PER_SEC
    return Time(sec=int(sec), nanosec=nanosec)


def _header(t: float, frame_id: str) -> Header:
    return Header(stamp=get_timestamp(t), frame_id=frame_id)


# -------------------- point cloud --------------------

XYZ_FIELDS = [
    PointField(name="x", offset=0, datatype=PointField.FLOAT32, count=1),
    PointField(name="y", offset=4, datatype=PointField.FLOAT32, count=1),
    PointField(name="z", offset=8, datatype=PointField.FLOAT32, count=1),
]


def points_to_point_cloud2(t: float, points: Any, *, frame_id: str = FRAME_DEVICE) -> PointCloud2:
    """Build an unordered (height=1) XYZ float32 cloud from an (N, 3) array."""
    pts = np.asarray(points, dtype="<f4")
    if pts.size == 0:
        pts = pts.reshape(0, 3)
    elif pts.ndim != 2 or pts.shape[1] != 3:
        raise ValueError(f"points must be (N, 3), got shape {pts.shape}")
    width = int(pts.shape[0])
    point_step = 3 * 4
    return PointCloud2(
        header=_header(t, frame_id),
        height=1,
        width=width,
        fields=list(XYZ_FIELDS),
        is_bigendian=False,
        point_step=point_step,
        row_step=width * point_step,
        data=np.ascontiguousarray(pts).tobytes(),
        is_dense=False,
    )


# -------------------- images --------------------


def depth_map_to_image(t: float, depth: Any, *, frame_id: str = FRAME_CAMERA) -> Image:
    """Encode a (H, W) depth map in metres as a `32FC1` image."""
    arr = np.asarray(depth, dtype="<f4")
    if arr.ndim != 2:
        raise ValueError(f"depth map must be 2-D, got shape {arr.shape}")
    height, width = arr.shape
    return Image(
        header=_header(t, frame_id),
        height=int(height),
        width=int(width),
        encoding=Image.TYPE_32FC1,
        is_bigendian=0,
        step=int(width) * 4,
        data=np.ascontiguousarray(arr).tobytes(),
    )


_ENCODING_BY_CHANNELS = {1: Image.MONO8, 3: Image.RGB8, 4: Image.RGBA8}


def camera_image_to_image(t: float, image: Any, *, frame_id: str = FRAME_CAMERA) -> Image:
    """Encode an 8-bit (H, W), (H, W, 3) or (H, W, 4) array as mono8/rgb8/rgba8."""
    arr = np.asarray(image, dtype=np.uint8)
    if arr.ndim == 2:
        channels = 1
    elif arr.ndim == 3 and arr.shape[2] in _ENCODING_BY_CHANNELS:
        channels = int(arr.shape[2])
    else:
        raise ValueError(f"unsupported camera image shape {arr.shape}")
    height, width = arr.shape[:2]
    return Image(
        header=_header(t, frame_id),
        height=int(height),
        width=int(width),
        encoding=_ENCODING_BY_CHANNELS[channels],
        is_bigendian=0,
        step=int(width) * channels,
        data=np.ascontiguousarray(arr).tobytes(),
    )


# -------------------- transforms --------------------


def quaternion_from_matrix(m: Any) -> tuple[float, float, float, float]:
    """Return (x, y, z, w) for the rotation part of a 3x3 or 4x4 matrix."""
    r = np.asarray(m, dtype=np.float64)[:3, :3]
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2.0
        w = 0.25 * s
        x = (r[2, 1] - r[1, 2]) / s
        y = (r[0, 2] - r[2, 0]) / s
        z = (r[1, 0] - r[0, 1]) / s
    elif r[0, 0] > r[1, 1] and r[0, 0] > r[2, 2]:
        s = math.sqrt(1.0 + r[0, 0] - r[1, 1] - r[2, 2]) * 2.0
        w = (r[2, 1] - r[1, 2]) / s
        x = 0.25 * s
        y = (r[0, 1] + r[1, 0]) / s
        z = (r[0, 2] + r[2, 0]) / s
    elif r[1, 1] > r[2, 2]:
        s = math.sqrt(1.0 + r[1, 1] - r[0, 0] - r[2, 2]) * 2.0
        w = (r[0, 2] - r[2, 0]) / s
        x = (r[0, 1] + r[1, 0]) / s
        y = 0.25 * s
        z = (r[1, 2] + r[2, 1]) / s
    else:
        s = math.sqrt(1.0 + r[2, 2] - r[0, 0] - r[1, 1]) * 2.0
        w = (r[1, 0] - r[0, 1]) / s
        x = (r[0, 2] + r[2, 0]) / s
        y = (r[1, 2] + r[2, 1]) / s
        z = 0.25 * s
    return float(x), float(y), float(z), float(w)


def transform_stamped_from_matrix(
    tf: Any, *, t: float, frame_id: str, child_frame_id: str
) -> TransformStamped:
    m = np.asarray(tf, dtype=np.float64)
    if m.shape != (4, 4):
        raise ValueError(f"transform must be 4x4, got shape {m.shape}")
    x, y, z, w = quaternion_from_matrix(m)
    tx, ty, tz = (float(v) for v in m[:3, 3])
    return TransformStamped(
        header=_header(t, frame_id),
        child_frame_id=child_frame_id,
        transform=Transform(
            translation=Vector3(x=tx, y=ty, z=tz),
            rotation=Quaternion(x=x, y=y, z=z, w=w),
        ),
    )


def _rotation(axis: str, degrees: float) -> np.ndarray:
    a = math.radians(degrees)
    c, s = math.cos(a), math.sin(a)
    m = np.eye(4)
    if axis == "y":
        m[:3, :3] = [[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]]
    elif axis == "z":
        m[:3, :3] = [[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]]
    else:
        raise ValueError(f"unsupported axis {axis!r}")
    return m


def arkit_reference() -> np.ndarray:
    """ARKit world frame (Y up, Z backward) expressed in ROS convention."""
    return _rotation("y", -90.0) @ _rotation("z", -90.0)


ARKIT_REFERENCE = arkit_reference()
ARKIT_REFERENCE_INVERSE = np.linalg.inv(ARKIT_REFERENCE)


def tf_to_tf_msg(t: float, tf: Any) -> TFMessage:
    """Camera pose (4x4, ARKit world frame) as a one-transform TFMessage."""
    return TFMessage(
        transforms=[
            transform_stamped_from_matrix(tf, t=t, frame_id=FRAME_ARKIT_REF, child_frame_id=FRAME_CAMERA)
        ]
    )


def get_tf_static_msg(t: float) -> TFMessage:
    return TFMessage(
        transforms=[
            transform_stamped_from_matrix(
                ARKIT_REFERENCE, t=t, frame_id=FRAME_MAP, child_frame_id=FRAME_ARKIT_REF
            ),
            transform_stamped_from_matrix(
                ARKIT_REFERENCE_INVERSE, t=t, frame_id=FRAME_CAMERA, child_frame_id=FRAME_DEVICE
            ),
        ]
    )
