"""Scenario document codec (compact ``{p, s, d, l, v}`` JSON form).

Field names are part of the on-disk contract and must not change; a layout
change bumps ``v``.
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..utils import truncate
from .collaborators import DynamicObstacleCollaborator
from .obstacles import StaticObstacle
from .registry import EntityRegistry

FORMAT_VERSION = 1
POSITION_DIGITS = 5
LENGTH_DIGITS = 3


class MalformedDocument(ValueError):
    """Scenario document is structurally incomplete; nothing was loaded."""


def _check_points(raw: Any) -> List[Tuple[float, float]]:
    if raw is None:
        raise MalformedDocument("Incomplete lane path: missing 'p'.")
    if not isinstance(raw, list):
        raise MalformedDocument("Incomplete lane path: 'p' must be a list.")
    if len(raw) % 2 != 0:
        raise MalformedDocument(f"Incomplete lane path: 'p' has odd length {len(raw)}.")
    points = []
    for i in range(0, len(raw), 2):
        x, y = raw[i], raw[i + 1]
        if isinstance(x, bool) or isinstance(y, bool) or not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
            raise MalformedDocument(f"Incomplete lane path: non-numeric coordinate at {i}.")
        try:
            point = (float(x), float(y))
        except OverflowError as exc:
            raise MalformedDocument(f"Incomplete lane path: coordinate out of range at {i}.") from exc
        if not (math.isfinite(point[0]) and math.isfinite(point[1])):
            raise MalformedDocument(f"Incomplete lane path: non-finite coordinate at {i}.")
        points.append(point)
    return points


def _check_obstacles(raw: Any) -> List[StaticObstacle]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise MalformedDocument("Static obstacles 's' must be a list.")
    obstacles = []
    for idx, record in enumerate(raw):
        try:
            obstacles.append(StaticObstacle.from_json(record))
        except ValueError as exc:
            raise MalformedDocument(f"Static obstacle {idx}: {exc}") from exc
    return obstacles


class ScenarioCodec:
    """Serializes the registry plus dynamic obstacles, and rebuilds them from a document."""

    def __init__(
        self,
        registry: EntityRegistry,
        dynamic: DynamicObstacleCollaborator,
        *,
        on_path_changed: Optional[Callable[[], None]] = None,
        before_load: Optional[Callable[[], None]] = None,
    ) -> None:
        self.registry = registry
        self.dynamic = dynamic
        self._on_path_changed = on_path_changed
        self._before_load = before_load

    def static_obstacles(self) -> List[StaticObstacle]:
        return [
            StaticObstacle(pos=(o.x, o.y), rot=o.rotation, width=o.width, height=o.height)
            for o in self.registry.obstacles
        ]

    def serialize(self) -> Dict[str, Any]:
        points: List[float] = []
        for anchor in self.registry.anchors:
            points.append(truncate(anchor.x, POSITION_DIGITS))
            points.append(truncate(anchor.y, POSITION_DIGITS))
        return {
            "p": points,
            "s": [obstacle.to_json() for obstacle in self.static_obstacles()],
            "d": self.dynamic.to_serializable(),
            "l": truncate(self.registry.lane_path.arc_length, LENGTH_DIGITS),
            "v": FORMAT_VERSION,
        }

    def deserialize(self, doc: Any) -> None:
        if not isinstance(doc, dict):
            raise MalformedDocument("Scenario document must be a JSON object.")
        version = doc.get("v", FORMAT_VERSION)
        if version != FORMAT_VERSION or isinstance(version, bool):
            raise MalformedDocument(f"Unsupported scenario format version {version!r}.")
        points = _check_points(doc.get("p"))
        obstacles = _check_obstacles(doc.get("s"))

        # The dynamic collaborator replaces its set atomically, so loading it
        # first keeps a rejected payload from leaving a half-cleared editor.
        try:
            self.dynamic.load_from_serializable(doc.get("d"))
        except ValueError as exc:
            raise MalformedDocument(f"Dynamic obstacles: {exc}") from exc

        if self._before_load is not None:
            self._before_load()
        self.registry.clear_all()
        for pos in points:
            self.registry.add_anchor(pos, resample=False)
        self.registry.lane_path.resample_all()
        if self._on_path_changed is not None:
            self._on_path_changed()

        for obstacle in obstacles:
            self.registry.add_obstacle(obstacle.pos, obstacle.width, obstacle.height, obstacle.rot)

        logging.info("Loaded scenario: %d anchors, %d static obstacles", len(points), len(obstacles))


def dumps(doc: Dict[str, Any]) -> str:
    return json.dumps(doc, separators=(",", ":"), ensure_ascii=True)


def loads(text: str) -> Dict[str, Any]:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedDocument(f"Scenario document is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise MalformedDocument("Scenario document must be a JSON object.")
    return raw


def save_document(path: Path, doc: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dumps(doc), encoding="utf-8")


def load_document(path: Path) -> Dict[str, Any]:
    return loads(path.read_text(encoding="utf-8"))
