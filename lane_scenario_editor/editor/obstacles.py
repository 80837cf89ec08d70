"""Plain obstacle records exchanged with simulation/export code."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..utils import truncate

POSITION_DIGITS = 5


@dataclass
class StaticObstacle:
    pos: Tuple[float, float]
    rot: float
    width: float
    height: float

    def to_json(self) -> Dict[str, Any]:
        return {
            "p": [truncate(self.pos[0], POSITION_DIGITS), truncate(self.pos[1], POSITION_DIGITS)],
            "r": self.rot,
            "w": self.width,
            "h": self.height,
        }

    @staticmethod
    def from_json(raw: Any) -> "StaticObstacle":
        if not isinstance(raw, dict):
            raise ValueError(f"Obstacle record must be an object, got {type(raw).__name__}")
        pos = raw.get("p")
        if not isinstance(pos, (list, tuple)) or len(pos) != 2:
            raise ValueError(f"Obstacle record needs a 2-element 'p', got {pos!r}")
        try:
            obstacle = StaticObstacle(
                pos=(float(pos[0]), float(pos[1])),
                rot=float(raw.get("r", 0.0)),
                width=float(raw["w"]),
                height=float(raw["h"]),
            )
        except KeyError as exc:
            raise ValueError(f"Obstacle record missing field {exc}") from exc
        except (TypeError, ValueError, OverflowError) as exc:
            raise ValueError(f"Obstacle record has a non-numeric field: {raw!r}") from exc
        values = (*obstacle.pos, obstacle.rot, obstacle.width, obstacle.height)
        if not all(math.isfinite(v) for v in values):
            raise ValueError(f"Obstacle record has a non-finite field: {raw!r}")
        return obstacle
