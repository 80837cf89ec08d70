"""Configuration models and YAML loading."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml


@dataclass
class CameraConfig:
    projection: str = "perspective"
    fov: float = 45.0
    aspect: float = 16.0 / 9.0
    near: float = 1.0
    far: float = 10000.0
    ortho_size: float = 50.0
    position: Tuple[float, float, float] = (0.0, 120.0, 80.0)
    target: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    up: Tuple[float, float, float] = (0.0, 1.0, 0.0)


@dataclass
class LaneConfig:
    lane_width: float = 3.7
    sample_step: float = 0.5
    max_samples_per_segment: int = 10000


@dataclass
class InteractionConfig:
    min_obstacle_size: float = 0.5
    anchor_radius: float = 1.0
    remove_key: str = "shift"
    rotate_key: str = "control"


@dataclass
class StorageConfig:
    scenario_dir: str = "scenarios"


@dataclass
class EditorConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    lane: LaneConfig = field(default_factory=LaneConfig)
    interaction: InteractionConfig = field(default_factory=InteractionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    frame_interval_ms: int = 33


def _vec3(value: Any, default: Tuple[float, float, float]) -> Tuple[float, float, float]:
    if value is None:
        return default
    if isinstance(value, dict):
        return (
            float(value.get("x", default[0])),
            float(value.get("y", default[1])),
            float(value.get("z", default[2])),
        )
    if isinstance(value, (list, tuple)) and len(value) == 3:
        return (float(value[0]), float(value[1]), float(value[2]))
    raise ValueError(f"Expected a 3-vector, got {value!r}")


def _normalize_key(name: Any, default: str) -> str:
    if name is None:
        return default
    key = str(name).strip().lower()
    if key in {"ctrl", "control"}:
        return "control"
    return key or default


def load_editor_config(path: Path) -> EditorConfig:
    if not path.exists():
        return EditorConfig()
    raw = yaml.safe_load(path.read_text())
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid editor config: {path}")

    defaults = EditorConfig()
    camera_raw = raw.get("camera", {}) or {}
    projection = str(camera_raw.get("projection", defaults.camera.projection)).lower()
    if projection not in {"perspective", "orthographic"}:
        raise ValueError(f"Unknown camera projection '{projection}' in {path}")
    camera = CameraConfig(
        projection=projection,
        fov=float(camera_raw.get("fov", defaults.camera.fov)),
        aspect=float(camera_raw.get("aspect", defaults.camera.aspect)),
        near=float(camera_raw.get("near", defaults.camera.near)),
        far=float(camera_raw.get("far", defaults.camera.far)),
        ortho_size=float(camera_raw.get("ortho_size", defaults.camera.ortho_size)),
        position=_vec3(camera_raw.get("position"), defaults.camera.position),
        target=_vec3(camera_raw.get("target"), defaults.camera.target),
        up=_vec3(camera_raw.get("up"), defaults.camera.up),
    )

    lane_raw = raw.get("lane", {}) or {}
    lane = LaneConfig(
        lane_width=float(lane_raw.get("lane_width", defaults.lane.lane_width)),
        sample_step=float(lane_raw.get("sample_step", defaults.lane.sample_step)),
        max_samples_per_segment=int(lane_raw.get("max_samples_per_segment", defaults.lane.max_samples_per_segment)),
    )
    if lane.sample_step <= 0:
        raise ValueError("lane.sample_step must be positive.")
    if lane.max_samples_per_segment < 1:
        raise ValueError("lane.max_samples_per_segment must be at least 1.")

    interaction_raw = raw.get("interaction", {}) or {}
    keys_raw = interaction_raw.get("keys", {}) or {}
    interaction = InteractionConfig(
        min_obstacle_size=float(
            interaction_raw.get("min_obstacle_size", defaults.interaction.min_obstacle_size)
        ),
        anchor_radius=float(interaction_raw.get("anchor_radius", defaults.interaction.anchor_radius)),
        remove_key=_normalize_key(keys_raw.get("remove"), defaults.interaction.remove_key),
        rotate_key=_normalize_key(keys_raw.get("rotate"), defaults.interaction.rotate_key),
    )

    storage_raw = raw.get("storage", {}) or {}
    storage = StorageConfig(
        scenario_dir=str(storage_raw.get("scenario_dir", defaults.storage.scenario_dir)),
    )

    return EditorConfig(
        camera=camera,
        lane=lane,
        interaction=interaction,
        storage=storage,
        frame_interval_ms=int(raw.get("frame_interval_ms", defaults.frame_interval_ms)),
    )


def apply_editor_overrides(
    config: EditorConfig,
    *,
    scenario_dir: Optional[str] = None,
    lane_width: Optional[float] = None,
    projection: Optional[str] = None,
) -> EditorConfig:
    storage = config.storage
    if scenario_dir is not None:
        storage = replace(storage, scenario_dir=scenario_dir)
    lane = config.lane
    if lane_width is not None:
        lane = replace(lane, lane_width=lane_width)
    camera = config.camera
    if projection is not None:
        camera = replace(camera, projection=projection)
    return replace(config, storage=storage, lane=lane, camera=camera)


def config_to_dict(config: EditorConfig) -> Dict[str, Any]:
    return {
        "camera": {
            "projection": config.camera.projection,
            "fov": config.camera.fov,
            "aspect": config.camera.aspect,
            "near": config.camera.near,
            "far": config.camera.far,
            "ortho_size": config.camera.ortho_size,
            "position": list(config.camera.position),
            "target": list(config.camera.target),
            "up": list(config.camera.up),
        },
        "lane": {
            "lane_width": config.lane.lane_width,
            "sample_step": config.lane.sample_step,
            "max_samples_per_segment": config.lane.max_samples_per_segment,
        },
        "interaction": {
            "min_obstacle_size": config.interaction.min_obstacle_size,
            "anchor_radius": config.interaction.anchor_radius,
            "keys": {
                "remove": config.interaction.remove_key,
                "rotate": config.interaction.rotate_key,
            },
        },
        "storage": {"scenario_dir": config.storage.scenario_dir},
        "frame_interval_ms": config.frame_interval_ms,
    }
