"""Screen-to-ground projection: look-at camera, pointer rays, ground plane hits."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from ..config import CameraConfig

GROUND_NORMAL = np.array([0.0, 1.0, 0.0])
_PARALLEL_EPS = 1e-9


@dataclass
class Ray:
    origin: np.ndarray
    direction: np.ndarray

    def at(self, t: float) -> np.ndarray:
        return self.origin + self.direction * t


def _normalize(vec: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vec))
    if norm < 1e-12:
        return vec
    return vec / norm


@dataclass
class Camera:
    """Look-at camera using OpenGL clip conventions (looks down its -Z)."""

    position: np.ndarray = field(default_factory=lambda: np.array([0.0, 120.0, 80.0]))
    target: np.ndarray = field(default_factory=lambda: np.zeros(3))
    up: np.ndarray = field(default_factory=lambda: np.array([0.0, 1.0, 0.0]))
    fov_y: float = 45.0  # degrees
    aspect: float = 16.0 / 9.0
    near: float = 1.0
    far: float = 10000.0
    projection: str = "perspective"
    ortho_size: float = 50.0  # half-height of the orthographic view volume

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=float)
        self.target = np.asarray(self.target, dtype=float)
        self.up = np.asarray(self.up, dtype=float)

    @classmethod
    def from_config(cls, config: CameraConfig) -> "Camera":
        return cls(
            position=np.array(config.position, dtype=float),
            target=np.array(config.target, dtype=float),
            up=np.array(config.up, dtype=float),
            fov_y=config.fov,
            aspect=config.aspect,
            near=config.near,
            far=config.far,
            projection=config.projection,
            ortho_size=config.ortho_size,
        )

    def set_aspect(self, aspect: float) -> None:
        self.aspect = max(1e-6, float(aspect))

    def view_matrix(self) -> np.ndarray:
        z_axis = _normalize(self.position - self.target)
        x_axis = np.cross(self.up, z_axis)
        if np.linalg.norm(x_axis) < 1e-9:
            # up is parallel to the view direction
            fallback = np.array([0.0, 0.0, -1.0]) if abs(z_axis[1]) > 0.99 else np.array([0.0, 1.0, 0.0])
            x_axis = np.cross(fallback, z_axis)
        x_axis = _normalize(x_axis)
        y_axis = np.cross(z_axis, x_axis)

        view = np.identity(4)
        view[0, :3] = x_axis
        view[1, :3] = y_axis
        view[2, :3] = z_axis
        view[0, 3] = -float(np.dot(x_axis, self.position))
        view[1, 3] = -float(np.dot(y_axis, self.position))
        view[2, 3] = -float(np.dot(z_axis, self.position))
        return view

    def projection_matrix(self) -> np.ndarray:
        near, far = self.near, self.far
        proj = np.zeros((4, 4))
        if self.projection == "orthographic":
            top = self.ortho_size
            right = self.ortho_size * self.aspect
            proj[0, 0] = 1.0 / right
            proj[1, 1] = 1.0 / top
            proj[2, 2] = -2.0 / (far - near)
            proj[2, 3] = -(far + near) / (far - near)
            proj[3, 3] = 1.0
            return proj
        f = 1.0 / math.tan(math.radians(self.fov_y) * 0.5)
        proj[0, 0] = f / max(1e-6, self.aspect)
        proj[1, 1] = f
        proj[2, 2] = (far + near) / (near - far)
        proj[2, 3] = (2.0 * far * near) / (near - far)
        proj[3, 2] = -1.0
        return proj

    def ray_from_pointer(self, pointer: Sequence[float]) -> Ray:
        """Build a world-space ray through a normalized pointer coordinate in [-1, 1]."""
        nx, ny = float(pointer[0]), float(pointer[1])
        inv_pv = np.linalg.inv(self.projection_matrix() @ self.view_matrix())

        p_near = inv_pv @ np.array([nx, ny, -1.0, 1.0])
        p_far = inv_pv @ np.array([nx, ny, 1.0, 1.0])
        p_near /= p_near[3]
        p_far /= p_far[3]

        origin = p_near[:3]
        direction = _normalize(p_far[:3] - p_near[:3])
        return Ray(origin=origin, direction=direction)

    def world_to_ndc(self, points: np.ndarray) -> np.ndarray:
        """Project (N, 3) world points to (N, 2) NDC; points behind the camera become NaN."""
        points = np.atleast_2d(np.asarray(points, dtype=float))
        if points.size == 0:
            return np.empty((0, 2))
        homo = np.hstack([points, np.ones((points.shape[0], 1))])
        clip = homo @ (self.projection_matrix() @ self.view_matrix()).T
        w = clip[:, 3:4]
        with np.errstate(divide="ignore", invalid="ignore"):
            ndc = clip[:, :2] / w
        ndc[(w[:, 0] <= 1e-9)] = np.nan
        return ndc


def intersect_ground(ray: Ray) -> Optional[np.ndarray]:
    """Intersect *ray* with the y=0 ground plane; None if parallel or behind the origin."""
    denom = float(np.dot(ray.direction, GROUND_NORMAL))
    if abs(denom) < _PARALLEL_EPS:
        return None
    t = -float(np.dot(ray.origin, GROUND_NORMAL)) / denom
    if t < 0:
        return None
    point = ray.at(t)
    point[1] = 0.0
    return point


def project(camera: Camera, pointer: Sequence[float]) -> Optional[np.ndarray]:
    return intersect_ground(camera.ray_from_pointer(pointer))


def to_path_space(world: np.ndarray) -> np.ndarray:
    """World ground point (x, 0, z) -> path-space (x, y)."""
    return np.array([float(world[0]), float(world[2])])


def to_world(pos: Sequence[float]) -> np.ndarray:
    """Path-space (x, y) -> world ground point (x, 0, y)."""
    return np.array([float(pos[0]), 0.0, float(pos[1])])
