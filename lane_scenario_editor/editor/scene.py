"""Scenario editor facade: wires registry, interaction, codec and collaborators."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from ..config import EditorConfig
from ..geometry.lane_path import LanePath, PathGeometry
from ..geometry.projection import Camera
from ..storage import ScenarioStore, format_date
from .codec import ScenarioCodec
from .collaborators import DynamicObstacleCollaborator, DynamicObstacleEditor
from .obstacles import StaticObstacle
from .registry import EntityRegistry
from .state_machine import InteractionStateMachine, ToolMode


@dataclass
class PathRenderGeometry:
    """Snapshot of the lane path handed to the renderer."""

    centerline: np.ndarray = field(default_factory=lambda: np.empty((0, 3)))
    left_boundary: np.ndarray = field(default_factory=lambda: np.empty((0, 3)))
    right_boundary: np.ndarray = field(default_factory=lambda: np.empty((0, 3)))
    arc_length: float = 0.0


@dataclass
class EditorStats:
    road_length: float
    static_obstacles: int
    dynamic_obstacles: int


@dataclass
class SaveResult:
    success: bool
    saved_at: Optional[datetime]


class ScenarioEditor:
    def __init__(
        self,
        config: Optional[EditorConfig] = None,
        *,
        camera: Optional[Camera] = None,
        dynamic: Optional[DynamicObstacleCollaborator] = None,
        path_factory: Optional[Callable[[], PathGeometry]] = None,
        store: Optional[ScenarioStore] = None,
    ) -> None:
        self.config = config or EditorConfig()
        self.camera = camera or Camera.from_config(self.config.camera)
        if path_factory is None:
            lane_cfg = self.config.lane

            def path_factory() -> PathGeometry:
                return LanePath(
                    lane_width=lane_cfg.lane_width,
                    sample_step=lane_cfg.sample_step,
                    max_samples_per_segment=lane_cfg.max_samples_per_segment,
                )

        self.registry = EntityRegistry(
            path_factory,
            min_obstacle_size=self.config.interaction.min_obstacle_size,
            anchor_radius=self.config.interaction.anchor_radius,
        )
        self.dynamic_obstacle_editor = dynamic or DynamicObstacleEditor()
        self.path_geometry = PathRenderGeometry()
        self.interaction = InteractionStateMachine(
            self.registry,
            self.camera,
            self.dynamic_obstacle_editor,
            config=self.config.interaction,
            on_path_changed=self.rebuild_path_geometry,
        )
        self.codec = ScenarioCodec(
            self.registry,
            self.dynamic_obstacle_editor,
            on_path_changed=self.rebuild_path_geometry,
            before_load=self.interaction.cancel,
        )
        self.store = store
        self.previous_saved_name: Optional[str] = None
        self.scenario_name = "Untitled"
        self.saved_at_label = "Unsaved"
        self.change_tool_mode(ToolMode.PATH)

    # -- host surface --

    @property
    def enabled(self) -> bool:
        return self.interaction.enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self.interaction.enabled = bool(value)
        if not value:
            self.interaction.cancel()

    @property
    def tool_mode(self) -> ToolMode:
        return self.interaction.tool_mode

    def change_tool_mode(self, mode: Union[ToolMode, str]) -> None:
        self.interaction.change_tool_mode(mode)

    def pointer_down(self, pointer: Sequence[float], button: int = 0) -> None:
        self.interaction.pointer_down(pointer, button)

    def pointer_move(self, pointer: Sequence[float]) -> None:
        self.interaction.pointer_move(pointer)

    def pointer_up(self, pointer: Optional[Sequence[float]] = None, button: int = 0) -> None:
        self.interaction.pointer_up(pointer, button)

    def key_down(self, key: str, repeat: bool = False) -> None:
        self.interaction.key_down(key, repeat)

    def key_up(self, key: str) -> None:
        self.interaction.key_up(key)

    def update(self) -> None:
        self.interaction.update()

    @property
    def static_obstacles(self) -> List[StaticObstacle]:
        return self.codec.static_obstacles()

    @property
    def dynamic_obstacles(self) -> List[Any]:
        return self.dynamic_obstacle_editor.collect_dynamic_obstacles()

    @property
    def stats(self) -> EditorStats:
        return EditorStats(
            road_length=self.path_geometry.arc_length,
            static_obstacles=len(self.registry.obstacles),
            dynamic_obstacles=len(self.dynamic_obstacles),
        )

    def rebuild_path_geometry(self) -> None:
        lane_path = self.registry.lane_path
        self.path_geometry = PathRenderGeometry(
            centerline=lane_path.centerline,
            left_boundary=lane_path.left_boundary,
            right_boundary=lane_path.right_boundary,
            arc_length=lane_path.arc_length,
        )

    # -- clears --

    def clear_points(self) -> None:
        self.interaction.cancel()
        self.registry.clear_anchors()
        self.rebuild_path_geometry()

    def clear_static_obstacles(self) -> None:
        self.interaction.cancel()
        self.registry.clear_obstacles()

    def clear_dynamic_obstacles(self) -> None:
        self.dynamic_obstacle_editor.clear_dynamic_obstacles()

    def clear_all(self) -> None:
        self.clear_points()
        self.clear_static_obstacles()
        self.clear_dynamic_obstacles()

    # -- documents --

    def serialize(self) -> Dict[str, Any]:
        return self.codec.serialize()

    def deserialize(self, doc: Any) -> None:
        self.codec.deserialize(doc)

    def update_saved_info(self, name: Optional[str], saved_at: Optional[datetime]) -> None:
        self.previous_saved_name = name or None
        self.scenario_name = name or "Untitled"
        self.saved_at_label = format_date(saved_at)

    def _require_store(self) -> ScenarioStore:
        if self.store is None:
            raise RuntimeError("No scenario store configured.")
        return self.store

    def save_scenario(self, name: Optional[str], overwrite: bool = False) -> Optional[SaveResult]:
        """Save under *name*; re-saving under the last saved name overwrites.

        Returns None when *name* is None (the prompt was cancelled). A result
        with ``success=False`` carries the existing entry's save time so the
        host can ask before retrying with ``overwrite=True``.
        """
        if name is None:
            return None
        if name == "":
            raise ValueError("The scenario name cannot be blank.")
        store = self._require_store()
        success, saved_at = store.save(
            name,
            self.serialize(),
            overwrite or name == self.previous_saved_name,
        )
        if success:
            self.update_saved_info(name, saved_at)
        else:
            logging.warning("A scenario named '%s' already exists, last saved %s.", name, format_date(saved_at))
        return SaveResult(success=success, saved_at=saved_at)

    def load_scenario(self, name: str) -> None:
        entry = self._require_store().load(name)
        self.deserialize(entry.document)
        self.update_saved_info(entry.name, entry.saved_at)
