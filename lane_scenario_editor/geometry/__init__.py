"""Geometry helpers (screen projection, lane path resampling)."""

from .lane_path import LanePath, PathGeometry
from .projection import Camera, Ray, intersect_ground, project, to_path_space, to_world

__all__ = [
    "Camera",
    "LanePath",
    "PathGeometry",
    "Ray",
    "intersect_ground",
    "project",
    "to_path_space",
    "to_world",
]
