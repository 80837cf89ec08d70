"""Pointer-driven interaction state machine for the scenario editor.

The host delivers raw input through :meth:`InteractionStateMachine.pointer_down`,
:meth:`~InteractionStateMachine.pointer_move`,
:meth:`~InteractionStateMachine.pointer_up`, :meth:`~InteractionStateMachine.key_down`
and :meth:`~InteractionStateMachine.key_up`, then calls
:meth:`~InteractionStateMachine.update` once per frame. Pointer coordinates are
normalized device coordinates in ``[-1, 1]`` with +y up.

Pointer-move only latches the position; all drag feedback is computed in
``update()`` so it keeps tracking the ground while the camera moves.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np

from ..config import InteractionConfig
from ..geometry.projection import Camera, intersect_ground, to_path_space
from ..utils import wrap_angle
from .collaborators import DynamicObstacleCollaborator
from .hit_test import pick
from .registry import MIN_OBSTACLE_SIZE, EntityRegistry

PRIMARY_BUTTON = 0


class ToolMode(str, Enum):
    PATH = "path"
    STATIC_OBSTACLES = "staticObstacles"
    DYNAMIC_OBSTACLES = "dynamicObstacles"


@dataclass(frozen=True)
class ObstacleRect:
    center: Tuple[float, float]
    width: float
    height: float


@dataclass(frozen=True)
class Idle:
    pass


@dataclass
class DraggingPoint:
    index: int
    offset: np.ndarray  # anchor position minus grab point


@dataclass
class MovingObstacle:
    index: int
    offset: np.ndarray


@dataclass
class CreatingObstacleRect:
    corner: Tuple[float, float]
    preview: Optional[ObstacleRect] = None


@dataclass
class RotatingObstacle:
    index: int
    initial_rotation: float
    reference: Tuple[float, float]


DragState = Union[Idle, DraggingPoint, MovingObstacle, CreatingObstacleRect, RotatingObstacle]

IDLE = Idle()


@dataclass(frozen=True)
class HoverState:
    kind: str  # "anchor" | "obstacle"
    index: int
    cursor: str  # "grab" | "removing"


@dataclass
class ModifierState:
    remove_mode: bool = False
    rotate_mode: bool = False


def rect_from_corners(
    a: Sequence[float],
    b: Sequence[float],
    min_size: float = MIN_OBSTACLE_SIZE,
) -> ObstacleRect:
    """Axis-aligned rectangle spanned by two opposite path-space corners."""
    center = ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)
    width = max(min_size, abs(a[0] - b[0]))
    height = max(min_size, abs(a[1] - b[1]))
    return ObstacleRect(center=center, width=width, height=height)


def rotation_from_pointer(initial_rotation: float, reference_x: float, pointer_x: float) -> float:
    """One full pointer sweep across the viewport turns the obstacle once."""
    return wrap_angle(initial_rotation + (reference_x - pointer_x) * 2.0 * math.pi)


def _normalize_key(key: str) -> str:
    key = key.strip().lower()
    if key == "ctrl":
        return "control"
    return key


class InteractionStateMachine:
    def __init__(
        self,
        registry: EntityRegistry,
        camera: Camera,
        dynamic: DynamicObstacleCollaborator,
        *,
        config: Optional[InteractionConfig] = None,
        on_path_changed: Optional[Callable[[], None]] = None,
    ) -> None:
        self.registry = registry
        self.camera = camera
        self.dynamic = dynamic
        self.config = config or InteractionConfig()
        self._on_path_changed = on_path_changed
        self.enabled = True
        self.tool_mode = ToolMode.PATH
        self.drag: DragState = IDLE
        self.modifiers = ModifierState()
        self.hover: Optional[HoverState] = None
        self.pointer: Tuple[float, float] = (0.0, 0.0)

    # -- modes and modifiers --

    @property
    def remove_mode(self) -> bool:
        return self.modifiers.remove_mode

    @property
    def rotate_mode(self) -> bool:
        return self.modifiers.rotate_mode

    @property
    def preview(self) -> Optional[ObstacleRect]:
        if isinstance(self.drag, CreatingObstacleRect):
            return self.drag.preview
        return None

    def change_tool_mode(self, mode: Union[ToolMode, str]) -> None:
        mode = ToolMode(mode)
        self.cancel()
        self.hover = None
        self.tool_mode = mode
        if mode is ToolMode.DYNAMIC_OBSTACLES:
            self.dynamic.enable()
        else:
            self.dynamic.disable()
        logging.debug("Tool mode: %s", mode.value)

    def key_down(self, key: str, repeat: bool = False) -> None:
        if repeat or self.tool_mode is ToolMode.DYNAMIC_OBSTACLES:
            return
        key = _normalize_key(key)
        if key == self.config.remove_key:
            self.modifiers.remove_mode = True
        elif key == self.config.rotate_key and self.tool_mode is ToolMode.STATIC_OBSTACLES:
            self.modifiers.rotate_mode = True

    def key_up(self, key: str) -> None:
        key = _normalize_key(key)
        if key == self.config.remove_key:
            self.modifiers.remove_mode = False
        elif key == self.config.rotate_key:
            self.modifiers.rotate_mode = False

    def cancel(self) -> None:
        """Drop any in-progress drag without committing it."""
        self.drag = IDLE

    # -- pointer events --

    def _latch(self, pointer: Optional[Sequence[float]]) -> None:
        if pointer is not None:
            self.pointer = (float(pointer[0]), float(pointer[1]))

    def _path_changed(self) -> None:
        if self._on_path_changed is not None:
            self._on_path_changed()

    def pointer_move(self, pointer: Sequence[float]) -> None:
        self._latch(pointer)

    def pointer_down(self, pointer: Sequence[float], button: int = PRIMARY_BUTTON) -> None:
        if not self.enabled or button != PRIMARY_BUTTON:
            return
        if self.tool_mode is ToolMode.DYNAMIC_OBSTACLES:
            return
        self._latch(pointer)
        # a lost pointer-up must not leave a stale drag behind
        self.cancel()

        ray = self.camera.ray_from_pointer(self.pointer)
        ground = intersect_ground(ray)

        if self.tool_mode is ToolMode.PATH:
            picked = pick(ray, self.registry.anchors)
            if picked is not None:
                if self.remove_mode:
                    self.registry.remove_anchor(picked.index)
                    self.hover = None
                    self._path_changed()
                else:
                    self.drag = DraggingPoint(index=picked.index, offset=picked.position - ground)
            elif not self.remove_mode and ground is not None:
                self.registry.add_anchor(to_path_space(ground))
                self._path_changed()
            return

        picked = pick(ray, self.registry.obstacles)
        if picked is not None:
            if self.remove_mode:
                self.registry.remove_obstacle(picked.index)
                self.hover = None
            elif self.rotate_mode:
                self.drag = RotatingObstacle(
                    index=picked.index,
                    initial_rotation=picked.rotation,
                    reference=self.pointer,
                )
            else:
                self.drag = MovingObstacle(index=picked.index, offset=picked.position - ground)
        elif not self.remove_mode and not self.rotate_mode and ground is not None:
            corner = to_path_space(ground)
            self.drag = CreatingObstacleRect(corner=(float(corner[0]), float(corner[1])))

    def pointer_up(self, pointer: Optional[Sequence[float]] = None, button: int = PRIMARY_BUTTON) -> None:
        if not self.enabled or button != PRIMARY_BUTTON:
            return
        self._latch(pointer)
        drag = self.drag
        self.drag = IDLE
        if not isinstance(drag, CreatingObstacleRect):
            return

        rect = drag.preview
        ground = intersect_ground(self.camera.ray_from_pointer(self.pointer))
        if ground is not None:
            rect = rect_from_corners(drag.corner, to_path_space(ground), self.config.min_obstacle_size)
        if rect is None:
            return
        index = self.registry.add_obstacle(rect.center, rect.width, rect.height)
        logging.debug(
            "Created obstacle %d at (%.2f, %.2f) %.2fx%.2f",
            index,
            rect.center[0],
            rect.center[1],
            rect.width,
            rect.height,
        )

    # -- per-frame tick --

    def update(self) -> None:
        if not self.enabled or self.tool_mode is ToolMode.DYNAMIC_OBSTACLES:
            return
        drag = self.drag

        if isinstance(drag, RotatingObstacle):
            rotation = rotation_from_pointer(drag.initial_rotation, drag.reference[0], self.pointer[0])
            self.registry.set_obstacle_rotation(drag.index, rotation)
            return

        ray = self.camera.ray_from_pointer(self.pointer)

        if isinstance(drag, Idle):
            self._update_hover(ray)
            return

        ground = intersect_ground(ray)
        if ground is None:
            return

        if isinstance(drag, DraggingPoint):
            target = ground + drag.offset
            self.registry.update_anchor(drag.index, to_path_space(target))
            self._path_changed()
        elif isinstance(drag, MovingObstacle):
            target = ground + drag.offset
            self.registry.set_obstacle_center(drag.index, to_path_space(target))
        elif isinstance(drag, CreatingObstacleRect):
            drag.preview = rect_from_corners(drag.corner, to_path_space(ground), self.config.min_obstacle_size)

    def _update_hover(self, ray) -> None:
        self.hover = None
        if self.tool_mode is ToolMode.PATH:
            picked = pick(ray, self.registry.anchors)
            kind = "anchor"
        else:
            picked = pick(ray, self.registry.obstacles)
            kind = "obstacle"
        if picked is None:
            return
        cursor = "removing" if self.remove_mode else "grab"
        self.hover = HoverState(kind=kind, index=picked.index, cursor=cursor)
