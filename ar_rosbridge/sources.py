"""Sensor samples and where they come from.

The AR front-end (session, frame capture, pixel-buffer extraction) lives
outside this package. It only has to provide a `SampleSource`: a non-blocking
`latest_sample()` returning the most recent full sample, or None.

- `LatestSampleBuffer` is the usual adapter: the front-end calls `put()` from
  its own frame callback and the scheduler pulls from it.
- `SyntheticSampleSource` fabricates samples (moving camera, random feature
  points, gradient depth map) so the bridge can run headless.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

import numpy as np


@dataclass(frozen=True)
class Sample:
    """One AR frame. Any sensor slice may be missing."""

    timestamp: float  # seconds
    depth_map: np.ndarray | None = None  # (H, W) float32, metres
    points: np.ndarray | None = None  # (N, 3) float32, ARKit world frame
    camera_transform: np.ndarray | None = None  # (4, 4) camera pose, ARKit world frame
    camera_image: np.ndarray | None = None  # (H, W, 3) uint8 RGB


@runtime_checkable
class SampleSource(Protocol):
    def latest_sample(self) -> Sample | None:
        """Return the latest sample without blocking (None if nothing yet)."""
        ...


class LatestSampleBuffer:
    """Single-slot, thread-safe holder for the latest sample."""

    def __init__(self) -> None:
        self._sample: Sample | None = None
        self._lock = threading.Lock()

    def put(self, sample: Sample) -> None:
        with self._lock:
            self._sample = sample

    def latest_sample(self) -> Sample | None:
        with self._lock:
            return self._sample


class SyntheticSampleSource:
    """
    Fake AR session producing a new sample every 1/rate seconds.

    The camera walks a circle of `radius` metres at 1 m height while looking at
    the origin; feature points are scattered in a cube around the origin.

    Usage:
        source = SyntheticSampleSource(rate=30.0, seed=1)
        sample = source.latest_sample()
    """

    def __init__(
        self,
        *,
        rate: float = 30.0,
        depth_shape: tuple[int, int] = (192, 256),
        image_shape: tuple[int, int] = (120, 160),
        num_points: int = 200,
        radius: float = 2.0,
        seed: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if rate <= 0:
            raise ValueError("rate must be > 0")
        self._interval = 1.0 / rate
        self._depth_shape = depth_shape
        self._image_shape = image_shape
        self._num_points = num_points
        self._radius = radius
        self._rng = np.random.default_rng(seed)
        self._clock = clock
        self._t0 = clock()

        self._lock = threading.Lock()
        self._frame_index: int | None = None
        self._sample: Sample | None = None

    def latest_sample(self) -> Sample | None:
        now = self._clock()
        index = int((now - self._t0) / self._interval)
        with self._lock:
            if index != self._frame_index:
                self._frame_index = index
                self._sample = self._make_sample(self._t0 + index * self._interval)
            return self._sample

    def _make_sample(self, t: float) -> Sample:
        angle = 0.5 * (t - self._t0)  # rad
        return Sample(
            timestamp=t,
            depth_map=self._depth_map(angle),
            points=self._rng.uniform(-1.0, 1.0, size=(self._num_points, 3)).astype(np.float32),
            camera_transform=self._camera_pose(angle),
            camera_image=self._camera_image(angle),
        )

    def _camera_pose(self, angle: float) -> np.ndarray:
        # ARKit world: Y up. Camera looks down its -Z axis towards the origin.
        position = np.array([self._radius * math.sin(angle), 1.0, self._radius * math.cos(angle)])
        z_axis = position / np.linalg.norm(position)
        x_axis = np.cross([0.0, 1.0, 0.0], z_axis)
        x_axis /= np.linalg.norm(x_axis)
        y_axis = np.cross(z_axis, x_axis)
        pose = np.eye(4, dtype=np.float32)
        pose[:3, 0] = x_axis
        pose[:3, 1] = y_axis
        pose[:3, 2] = z_axis
        pose[:3, 3] = position
        return pose

    def _depth_map(self, angle: float) -> np.ndarray:
        h, w = self._depth_shape
        rows = np.linspace(0.5, 4.0, h, dtype=np.float32)[:, None]
        ripple = 0.1 * np.sin(np.linspace(0.0, 2.0 * math.pi, w, dtype=np.float32) + angle)[None, :]
        return (rows + ripple).astype(np.float32)

    def _camera_image(self, angle: float) -> np.ndarray:
        h, w = self._image_shape
        image = np.zeros((h, w, 3), dtype=np.uint8)
        image[..., 0] = np.linspace(0, 255, w, dtype=np.uint8)[None, :]
        image[..., 1] = np.linspace(0, 255, h, dtype=np.uint8)[:, None]
        image[..., 2] = int(127.5 * (1.0 + math.sin(angle)))
        return image
