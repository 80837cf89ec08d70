"""Lane path geometry: anchors -> resampled centerline, boundaries, arc length.

The editor only talks to :class:`PathGeometry`; :class:`LanePath` is the
default implementation, a uniform Catmull-Rom spline through the anchors
resampled at a fixed arc-length step.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple

import numpy as np

_DEFAULT_LANE_WIDTH = 3.7  # m
_DEFAULT_SAMPLE_STEP = 0.5  # m
_DEFAULT_MAX_SAMPLES = 10000  # per segment


class PathGeometry(ABC):
    """Contract the editor consumes for lane path geometry."""

    @abstractmethod
    def add_anchor(self, pos: Sequence[float], resample: bool = True) -> None:
        ...

    @abstractmethod
    def update_anchor(self, index: int, pos: Sequence[float]) -> None:
        ...

    @abstractmethod
    def remove_anchor(self, index: int) -> None:
        ...

    @abstractmethod
    def resample_all(self) -> None:
        ...

    @property
    @abstractmethod
    def anchors(self) -> List[Tuple[float, float]]:
        ...

    @property
    @abstractmethod
    def centerline(self) -> np.ndarray:
        """(N, 3) world points on the ground plane."""

    @property
    @abstractmethod
    def left_boundary(self) -> np.ndarray:
        ...

    @property
    @abstractmethod
    def right_boundary(self) -> np.ndarray:
        ...

    @property
    @abstractmethod
    def arc_length(self) -> float:
        ...


def _empty_points() -> np.ndarray:
    return np.empty((0, 3))


def _catmull_rom(p0: np.ndarray, p1: np.ndarray, p2: np.ndarray, p3: np.ndarray, ts: np.ndarray) -> np.ndarray:
    ts = ts[:, None]
    t2 = ts * ts
    t3 = t2 * ts
    return 0.5 * (
        2.0 * p1
        + (-p0 + p2) * ts
        + (2.0 * p0 - 5.0 * p1 + 4.0 * p2 - p3) * t2
        + (-p0 + 3.0 * p1 - 3.0 * p2 + p3) * t3
    )


def _to_world(points_2d: np.ndarray) -> np.ndarray:
    if len(points_2d) == 0:
        return _empty_points()
    world = np.zeros((len(points_2d), 3))
    world[:, 0] = points_2d[:, 0]
    world[:, 2] = points_2d[:, 1]
    return world


class LanePath(PathGeometry):
    def __init__(
        self,
        *,
        lane_width: float = _DEFAULT_LANE_WIDTH,
        sample_step: float = _DEFAULT_SAMPLE_STEP,
        max_samples_per_segment: int = _DEFAULT_MAX_SAMPLES,
    ) -> None:
        if sample_step <= 0:
            raise ValueError("sample_step must be positive.")
        if max_samples_per_segment < 1:
            raise ValueError("max_samples_per_segment must be at least 1.")
        self.lane_width = float(lane_width)
        self.sample_step = float(sample_step)
        self.max_samples_per_segment = int(max_samples_per_segment)
        self._anchors: List[Tuple[float, float]] = []
        self._samples = np.empty((0, 2))
        self._left = np.empty((0, 2))
        self._right = np.empty((0, 2))
        self._cum_s = np.empty(0)
        # set when anchors changed without a resample
        self.dirty = False

    # -- mutation --

    def add_anchor(self, pos: Sequence[float], resample: bool = True) -> None:
        self._anchors.append((float(pos[0]), float(pos[1])))
        if resample:
            self.resample_all()
        else:
            self.dirty = True

    def update_anchor(self, index: int, pos: Sequence[float]) -> None:
        if not 0 <= index < len(self._anchors):
            raise IndexError(f"No anchor with index {index}")
        self._anchors[index] = (float(pos[0]), float(pos[1]))
        self.resample_all()

    def remove_anchor(self, index: int) -> None:
        if not 0 <= index < len(self._anchors):
            raise IndexError(f"No anchor with index {index}")
        del self._anchors[index]
        self.resample_all()

    def resample_all(self) -> None:
        anchors = np.array(self._anchors, dtype=float).reshape(-1, 2)
        if len(anchors) < 2:
            self._samples = anchors.copy()
            self._left = anchors.copy()
            self._right = anchors.copy()
            self._cum_s = np.zeros(len(anchors))
            self.dirty = False
            return

        # phantom end points mirror the first/last segments
        padded = np.vstack([2.0 * anchors[0] - anchors[1], anchors, 2.0 * anchors[-1] - anchors[-2]])
        pieces = []
        for i in range(1, len(padded) - 2):
            p0, p1, p2, p3 = padded[i - 1], padded[i], padded[i + 1], padded[i + 2]
            chord = float(np.linalg.norm(p2 - p1))
            # capped; far-apart anchors resample at a coarser step
            steps = chord / self.sample_step
            count = self.max_samples_per_segment
            if math.isfinite(steps):
                count = max(1, min(int(math.ceil(steps)), count))
            ts = np.arange(count, dtype=float) / count
            pieces.append(_catmull_rom(p0, p1, p2, p3, ts))
        pieces.append(anchors[-1:].copy())
        samples = np.vstack(pieces)

        deltas = np.diff(samples, axis=0)
        seg_len = np.hypot(deltas[:, 0], deltas[:, 1])
        self._cum_s = np.concatenate([[0.0], np.cumsum(seg_len)])
        self._samples = samples

        tangents = np.gradient(samples, axis=0)
        norms = np.hypot(tangents[:, 0], tangents[:, 1])
        norms[norms < 1e-12] = 1.0
        tangents = tangents / norms[:, None]
        normals = np.column_stack([-tangents[:, 1], tangents[:, 0]])
        half_width = self.lane_width * 0.5
        self._left = samples + normals * half_width
        self._right = samples - normals * half_width
        self.dirty = False

    # -- read accessors --

    @property
    def anchors(self) -> List[Tuple[float, float]]:
        return list(self._anchors)

    @property
    def centerline(self) -> np.ndarray:
        return _to_world(self._samples)

    @property
    def left_boundary(self) -> np.ndarray:
        return _to_world(self._left)

    @property
    def right_boundary(self) -> np.ndarray:
        return _to_world(self._right)

    @property
    def arc_length(self) -> float:
        return float(self._cum_s[-1]) if len(self._cum_s) else 0.0

    @property
    def cumulative_lengths(self) -> np.ndarray:
        return self._cum_s.copy()
