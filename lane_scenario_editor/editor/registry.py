"""Entity registry: lane path anchors and static obstacles keyed by integer handles."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence

import numpy as np

from ..geometry.lane_path import PathGeometry
from ..utils import wrap_angle

MIN_OBSTACLE_SIZE = 0.5
ANCHOR_RADIUS = 1.0


@dataclass
class Anchor:
    index: int
    x: float
    y: float
    radius: float = ANCHOR_RADIUS

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, 0.0, self.y])

    def contains(self, point: Sequence[float]) -> bool:
        return (point[0] - self.x) ** 2 + (point[1] - self.y) ** 2 <= self.radius * self.radius


@dataclass
class ObstacleEntity:
    index: int
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0

    @property
    def position(self) -> np.ndarray:
        return np.array([self.x, 0.0, self.y])

    def contains(self, point: Sequence[float]) -> bool:
        dx = point[0] - self.x
        dy = point[1] - self.y
        cos_r = math.cos(self.rotation)
        sin_r = math.sin(self.rotation)
        local_x = dx * cos_r + dy * sin_r
        local_y = -dx * sin_r + dy * cos_r
        return abs(local_x) <= self.width * 0.5 and abs(local_y) <= self.height * 0.5

    def corners(self) -> np.ndarray:
        """Rectangle corners in path space, counter-clockwise."""
        hw = self.width * 0.5
        hh = self.height * 0.5
        local = np.array([[-hw, -hh], [hw, -hh], [hw, hh], [-hw, hh]])
        cos_r = math.cos(self.rotation)
        sin_r = math.sin(self.rotation)
        rot = np.array([[cos_r, -sin_r], [sin_r, cos_r]])
        return local @ rot.T + np.array([self.x, self.y])


class EntityRegistry:
    """Owns anchors and static obstacles and mirrors anchors into the path geometry.

    Anchor indices stay dense (0..N-1) across removals. Obstacle indices come
    from a counter that only resets when every obstacle is cleared, so a
    removed obstacle's index is never handed out again.
    """

    def __init__(
        self,
        path_factory: Callable[[], PathGeometry],
        *,
        min_obstacle_size: float = MIN_OBSTACLE_SIZE,
        anchor_radius: float = ANCHOR_RADIUS,
    ) -> None:
        self._path_factory = path_factory
        self.min_obstacle_size = float(min_obstacle_size)
        self.anchor_radius = float(anchor_radius)
        self.lane_path: PathGeometry = path_factory()
        self._anchors: List[Anchor] = []
        self._obstacles: Dict[int, ObstacleEntity] = {}
        self._next_anchor = 0
        self._next_obstacle = 0

    # -- anchors --

    @property
    def anchors(self) -> List[Anchor]:
        return list(self._anchors)

    def anchor(self, index: int) -> Anchor:
        if not 0 <= index < len(self._anchors):
            raise KeyError(f"No anchor with index {index}")
        return self._anchors[index]

    def add_anchor(self, pos: Sequence[float], resample: bool = True) -> int:
        index = self._next_anchor
        self._next_anchor += 1
        self._anchors.append(Anchor(index=index, x=float(pos[0]), y=float(pos[1]), radius=self.anchor_radius))
        self.lane_path.add_anchor((float(pos[0]), float(pos[1])), resample)
        return index

    def update_anchor(self, index: int, pos: Sequence[float]) -> None:
        anchor = self.anchor(index)
        anchor.x = float(pos[0])
        anchor.y = float(pos[1])
        self.lane_path.update_anchor(index, (anchor.x, anchor.y))

    def remove_anchor(self, index: int) -> None:
        anchor = self.anchor(index)
        self._anchors.remove(anchor)
        for other in self._anchors:
            if other.index > index:
                other.index -= 1
        self._next_anchor -= 1
        self.lane_path.remove_anchor(index)

    def clear_anchors(self) -> None:
        self._anchors = []
        self._next_anchor = 0
        self.lane_path = self._path_factory()

    # -- obstacles --

    @property
    def obstacles(self) -> List[ObstacleEntity]:
        return list(self._obstacles.values())

    def obstacle(self, index: int) -> ObstacleEntity:
        try:
            return self._obstacles[index]
        except KeyError:
            raise KeyError(f"No obstacle with index {index}") from None

    def add_obstacle(
        self,
        center: Sequence[float],
        width: float,
        height: float,
        rotation: float = 0.0,
    ) -> int:
        index = self._next_obstacle
        self._next_obstacle += 1
        self._obstacles[index] = ObstacleEntity(
            index=index,
            x=float(center[0]),
            y=float(center[1]),
            width=max(self.min_obstacle_size, float(width)),
            height=max(self.min_obstacle_size, float(height)),
            rotation=wrap_angle(float(rotation)),
        )
        return index

    def set_obstacle_center(self, index: int, center: Sequence[float]) -> None:
        obstacle = self.obstacle(index)
        obstacle.x = float(center[0])
        obstacle.y = float(center[1])

    def set_obstacle_rotation(self, index: int, rotation: float) -> None:
        self.obstacle(index).rotation = wrap_angle(float(rotation))

    def remove_obstacle(self, index: int) -> None:
        self.obstacle(index)
        del self._obstacles[index]

    def clear_obstacles(self) -> None:
        self._obstacles = {}
        self._next_obstacle = 0

    def clear_all(self) -> None:
        self.clear_anchors()
        self.clear_obstacles()

    @property
    def next_anchor_index(self) -> int:
        return self._next_anchor

    @property
    def next_obstacle_index(self) -> int:
        return self._next_obstacle
