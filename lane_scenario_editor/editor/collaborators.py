"""Dynamic obstacle collaborator contract and its default list-backed editor."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

DYNAMIC_OBSTACLE_KINDS = ("vehicle", "cyclist", "pedestrian")


class DynamicObstacleCollaborator(ABC):
    """What the editor needs from a dynamic obstacle sub-editor.

    The payload returned by :meth:`to_serializable` is opaque to the editor;
    it is stored under the scenario document's ``d`` field as-is.
    """

    @abstractmethod
    def enable(self) -> None:
        ...

    @abstractmethod
    def disable(self) -> None:
        ...

    @abstractmethod
    def collect_dynamic_obstacles(self) -> List[Any]:
        ...

    @abstractmethod
    def clear_dynamic_obstacles(self) -> None:
        ...

    @abstractmethod
    def to_serializable(self) -> Any:
        ...

    @abstractmethod
    def load_from_serializable(self, value: Any) -> None:
        ...


def _pair(raw: Dict[str, Any], key: str, default: Tuple[float, float]) -> Tuple[float, float]:
    value = raw.get(key)
    if not value:
        return default
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"Dynamic obstacle field '{key}' must be a 2-element list, got {value!r}")
    if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in value):
        raise ValueError(f"Dynamic obstacle field '{key}' must be numeric, got {value!r}")
    try:
        pair = (float(value[0]), float(value[1]))
    except OverflowError as exc:
        raise ValueError(f"Dynamic obstacle field '{key}' is out of range") from exc
    if not all(math.isfinite(v) for v in pair):
        raise ValueError(f"Dynamic obstacle field '{key}' must be finite, got {value!r}")
    return pair


@dataclass
class DynamicObstacle:
    kind: str
    start_pos: Tuple[float, float]  # (station, lateral offset) along the lane path
    velocity: Tuple[float, float]  # (longitudinal, lateral) m/s
    size: Tuple[float, float]
    parallel: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "t": DYNAMIC_OBSTACLE_KINDS.index(self.kind),
            "p": [self.start_pos[0], self.start_pos[1]],
            "v": [self.velocity[0], self.velocity[1]],
            "s": [self.size[0], self.size[1]],
            "a": 1 if self.parallel else 0,
        }

    @staticmethod
    def from_dict(raw: Dict[str, Any]) -> "DynamicObstacle":
        kind_raw = raw.get("t", 0)
        if isinstance(kind_raw, str):
            kind = kind_raw
        elif isinstance(kind_raw, int) and not isinstance(kind_raw, bool) and 0 <= kind_raw < len(DYNAMIC_OBSTACLE_KINDS):
            kind = DYNAMIC_OBSTACLE_KINDS[kind_raw]
        else:
            raise ValueError(f"Unknown dynamic obstacle type {kind_raw!r}")
        if kind not in DYNAMIC_OBSTACLE_KINDS:
            raise ValueError(f"Unknown dynamic obstacle type '{kind}'")
        return DynamicObstacle(
            kind=kind,
            start_pos=_pair(raw, "p", (0.0, 0.0)),
            velocity=_pair(raw, "v", (0.0, 0.0)),
            size=_pair(raw, "s", (1.0, 1.0)),
            parallel=bool(raw.get("a", 1)),
        )


class DynamicObstacleEditor(DynamicObstacleCollaborator):
    def __init__(self) -> None:
        self.enabled = False
        self._obstacles: List[DynamicObstacle] = []

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    def add_dynamic_obstacle(self, obstacle: DynamicObstacle) -> int:
        if obstacle.kind not in DYNAMIC_OBSTACLE_KINDS:
            raise ValueError(f"Unknown dynamic obstacle type '{obstacle.kind}'")
        if not all(math.isfinite(v) for v in (*obstacle.start_pos, *obstacle.velocity, *obstacle.size)):
            raise ValueError("Dynamic obstacle fields must be finite.")
        self._obstacles.append(obstacle)
        return len(self._obstacles) - 1

    def remove_dynamic_obstacle(self, index: int) -> DynamicObstacle:
        return self._obstacles.pop(index)

    def collect_dynamic_obstacles(self) -> List[DynamicObstacle]:
        return list(self._obstacles)

    def clear_dynamic_obstacles(self) -> None:
        self._obstacles = []

    def to_serializable(self) -> List[Dict[str, Any]]:
        return [obstacle.to_dict() for obstacle in self._obstacles]

    def load_from_serializable(self, value: Optional[Any]) -> None:
        if value is None:
            self.clear_dynamic_obstacles()
            return
        if not isinstance(value, list):
            raise ValueError(f"Dynamic obstacle payload must be a list, got {type(value).__name__}")
        obstacles = []
        for item in value:
            if not isinstance(item, dict):
                raise ValueError("Dynamic obstacle record must be an object.")
            try:
                obstacles.append(DynamicObstacle.from_dict(item))
            except (TypeError, IndexError, KeyError, OverflowError) as exc:
                raise ValueError(f"Invalid dynamic obstacle record: {item!r}") from exc
        self._obstacles = obstacles
        logging.debug("Loaded %d dynamic obstacles", len(obstacles))
