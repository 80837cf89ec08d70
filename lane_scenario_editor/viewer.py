"""Matplotlib host for the scenario editor, plus a headless top-down preview.

The interactive view axes span ``[-1, 1]`` on both axes so matplotlib's data
coordinates are the normalized pointer the editor expects. World geometry is
projected through the editor camera every frame.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from .editor.codec import MalformedDocument
from .editor.registry import ObstacleEntity
from .editor.scene import ScenarioEditor
from .editor.state_machine import ToolMode
from .geometry.projection import to_world
from .storage import ScenarioStoreError, format_date

plt = None
Button = None
Polygon = None
TextBox = None

POINT_COLOR = "#0088ff"
POINT_HOVER_COLOR = "#33ccff"
OBSTACLE_COLOR = "#dd0000"
OBSTACLE_HOVER_COLOR = "#dd3333"
LANE_COLOR = "#3b6ea5"
CENTERLINE_COLOR = "#f4a261"
DYNAMIC_COLOR = "#6b9080"
GRID_COLOR = "#d0d0d0"

_CIRCLE_SEGMENTS = 24


def _circle_world(center: Sequence[float], radius: float) -> np.ndarray:
    angles = np.linspace(0.0, 2.0 * math.pi, _CIRCLE_SEGMENTS, endpoint=False)
    xs = center[0] + radius * np.cos(angles)
    ys = center[1] + radius * np.sin(angles)
    return np.stack([xs, np.zeros_like(xs), ys], axis=1)


def _corners_world(obstacle: ObstacleEntity) -> np.ndarray:
    return np.array([to_world(c) for c in obstacle.corners()])


def _rect_corners(center: Sequence[float], width: float, height: float) -> np.ndarray:
    hw, hh = width * 0.5, height * 0.5
    cx, cy = center[0], center[1]
    return np.array([[cx - hw, cy - hh], [cx + hw, cy - hh], [cx + hw, cy + hh], [cx - hw, cy + hh]])


def _station_to_point(editor: ScenarioEditor, station: float, lateral: float) -> Optional[Tuple[float, float]]:
    """Map a (station, lateral offset) pair onto the current lane path in path space."""
    geometry = editor.path_geometry
    center = geometry.centerline
    if len(center) < 2:
        return None
    xy = center[:, [0, 2]]
    cum_s = np.concatenate([[0.0], np.cumsum(np.linalg.norm(np.diff(xy, axis=0), axis=1))])
    left = geometry.left_boundary[:, [0, 2]] - xy
    half_width = np.linalg.norm(left, axis=1)
    normals = np.divide(left, half_width[:, None], out=np.zeros_like(left), where=half_width[:, None] > 0)
    s = float(np.clip(station, 0.0, cum_s[-1]))
    x = float(np.interp(s, cum_s, xy[:, 0]))
    y = float(np.interp(s, cum_s, xy[:, 1]))
    nx = float(np.interp(s, cum_s, normals[:, 0]))
    ny = float(np.interp(s, cum_s, normals[:, 1]))
    return x + nx * lateral, y + ny * lateral


class EditorViewer:
    def __init__(self, editor: ScenarioEditor, *, frame_interval_ms: int = 33, grid_extent: float = 100.0) -> None:
        if plt is None:
            _init_matplotlib(False)
        self.editor = editor
        self.grid_extent = grid_extent
        self._artists: List[Any] = []
        self._held_keys: set = set()
        self._pending_overwrite: Optional[str] = None
        self._message = ""

        self.fig = plt.figure(figsize=(13, 8))
        self.ax_view = self.fig.add_axes([0.02, 0.04, 0.76, 0.92])
        self.ax_view.set_xlim(-1.0, 1.0)
        self.ax_view.set_ylim(-1.0, 1.0)
        self.ax_view.set_xticks([])
        self.ax_view.set_yticks([])
        self.ax_buttons = []
        self._build_ui()
        self._connect_events()
        self._sync_aspect()
        self.editor.rebuild_path_geometry()

        self.timer = self.fig.canvas.new_timer(interval=frame_interval_ms)
        self.timer.add_callback(self._tick)

    def _build_ui(self) -> None:
        button_specs = [
            ("Path", lambda _e: self._set_mode(ToolMode.PATH)),
            ("Static", lambda _e: self._set_mode(ToolMode.STATIC_OBSTACLES)),
            ("Dynamic", lambda _e: self._set_mode(ToolMode.DYNAMIC_OBSTACLES)),
            ("Clear Points", lambda _e: self._run(self.editor.clear_points)),
            ("Clear Static", lambda _e: self._run(self.editor.clear_static_obstacles)),
            ("Clear Dynamic", lambda _e: self._run(self.editor.clear_dynamic_obstacles)),
            ("Clear All", lambda _e: self._run(self.editor.clear_all)),
            ("Save", self._save_action),
            ("Load", self._load_action),
        ]
        y = 0.90
        for label, callback in button_specs:
            ax = self.fig.add_axes([0.80, y, 0.18, 0.045])
            btn = Button(ax, label)
            btn.on_clicked(callback)
            self.ax_buttons.append((ax, btn))
            y -= 0.052

        ax_name = self.fig.add_axes([0.84, 0.38, 0.14, 0.04])
        self.name_box = TextBox(ax_name, "Name", initial="")
        self.status_text = self.fig.text(0.80, 0.30, "", fontsize=9, va="top", family="monospace")

    def _connect_events(self) -> None:
        canvas = self.fig.canvas
        canvas.mpl_connect("button_press_event", self._on_press)
        canvas.mpl_connect("motion_notify_event", self._on_motion)
        canvas.mpl_connect("button_release_event", self._on_release)
        canvas.mpl_connect("key_press_event", self._on_key_press)
        canvas.mpl_connect("key_release_event", self._on_key_release)
        canvas.mpl_connect("resize_event", lambda _e: self._sync_aspect())

    def _sync_aspect(self) -> None:
        bbox = self.ax_view.get_window_extent()
        if bbox.height > 0:
            self.editor.camera.set_aspect(bbox.width / bbox.height)

    # -- input --

    @staticmethod
    def _pointer(event: Any) -> Optional[Tuple[float, float]]:
        if event.xdata is None or event.ydata is None:
            return None
        return float(event.xdata), float(event.ydata)

    @staticmethod
    def _button(event: Any) -> int:
        # matplotlib numbers mouse buttons from 1
        return int(event.button) - 1

    def _on_press(self, event: Any) -> None:
        if event.inaxes != self.ax_view:
            return
        pointer = self._pointer(event)
        if pointer is not None:
            self.editor.pointer_down(pointer, self._button(event))

    def _on_motion(self, event: Any) -> None:
        if event.inaxes != self.ax_view:
            return
        pointer = self._pointer(event)
        if pointer is not None:
            self.editor.pointer_move(pointer)

    def _on_release(self, event: Any) -> None:
        pointer = self._pointer(event) if event.inaxes == self.ax_view else None
        self.editor.pointer_up(pointer, self._button(event))

    def _on_key_press(self, event: Any) -> None:
        if event.key is None:
            return
        key = event.key.split("+")[-1]
        repeat = key in self._held_keys
        self._held_keys.add(key)
        self.editor.key_down(key, repeat)

    def _on_key_release(self, event: Any) -> None:
        if event.key is None:
            return
        key = event.key.split("+")[-1]
        self._held_keys.discard(key)
        self.editor.key_up(key)

    # -- actions --

    def _set_mode(self, mode: ToolMode) -> None:
        self.editor.change_tool_mode(mode)
        self._message = f"Mode: {mode.value}"

    def _run(self, action: Any) -> None:
        action()
        self._pending_overwrite = None

    def _textbox_value(self) -> str:
        raw = self.name_box.text
        text = raw if isinstance(raw, str) else raw.get_text()
        return text.strip()

    def _save_action(self, _event: Any) -> None:
        name = self._textbox_value()
        overwrite = name != "" and name == self._pending_overwrite
        try:
            result = self.editor.save_scenario(name, overwrite=overwrite)
        except (ValueError, ScenarioStoreError) as exc:
            self._message = str(exc)
            logging.error("Save failed: %s", exc)
            return
        self._pending_overwrite = None
        if result is None:
            return
        if result.success:
            self._message = f"Saved '{name}'"
        else:
            self._pending_overwrite = name
            self._message = f"'{name}' exists ({format_date(result.saved_at)}).\nSave again to overwrite."

    def _load_action(self, _event: Any) -> None:
        name = self._textbox_value()
        try:
            self.editor.load_scenario(name)
        except KeyError:
            self._message = f"No scenario named '{name}'"
            logging.warning("No scenario named '%s'", name)
            return
        except (MalformedDocument, ScenarioStoreError) as exc:
            self._message = f"Load failed: {exc}"
            logging.error("Load failed for '%s': %s", name, exc)
            return
        self._pending_overwrite = None
        self._message = f"Loaded '{name}'"

    # -- drawing --

    def _project(self, world: np.ndarray) -> np.ndarray:
        return self.editor.camera.world_to_ndc(world)

    def _plot_world_line(self, world: np.ndarray, **kwargs: Any) -> None:
        if len(world) < 2:
            return
        ndc = self._project(world)
        (line,) = self.ax_view.plot(ndc[:, 0], ndc[:, 1], **kwargs)
        self._artists.append(line)

    def _fill_world_polygon(self, world: np.ndarray, **kwargs: Any) -> None:
        ndc = self._project(world)
        if np.isnan(ndc).any():
            return
        patch = Polygon(ndc, closed=True, **kwargs)
        self.ax_view.add_patch(patch)
        self._artists.append(patch)

    def _draw_grid(self) -> None:
        extent = self.grid_extent
        for value in np.arange(-extent, extent + 1e-6, 10.0):
            self._plot_world_line(
                np.array([[value, 0.0, -extent], [value, 0.0, extent]]), color=GRID_COLOR, linewidth=0.5
            )
            self._plot_world_line(
                np.array([[-extent, 0.0, value], [extent, 0.0, value]]), color=GRID_COLOR, linewidth=0.5
            )

    def _redraw(self) -> None:
        for artist in self._artists:
            artist.remove()
        self._artists = []
        self._draw_grid()

        editor = self.editor
        hover = editor.interaction.hover
        geometry = editor.path_geometry
        self._plot_world_line(geometry.left_boundary, color=LANE_COLOR, linewidth=1.2)
        self._plot_world_line(geometry.right_boundary, color=LANE_COLOR, linewidth=1.2)
        self._plot_world_line(geometry.centerline, color=CENTERLINE_COLOR, linewidth=1.0, linestyle="--")

        for anchor in editor.registry.anchors:
            hovered = hover is not None and hover.kind == "anchor" and hover.index == anchor.index
            color = POINT_HOVER_COLOR if hovered else POINT_COLOR
            self._fill_world_polygon(_circle_world((anchor.x, anchor.y), anchor.radius), color=color, alpha=0.9)

        for obstacle in editor.registry.obstacles:
            hovered = hover is not None and hover.kind == "obstacle" and hover.index == obstacle.index
            color = OBSTACLE_HOVER_COLOR if hovered else OBSTACLE_COLOR
            self._fill_world_polygon(_corners_world(obstacle), color=color, alpha=0.75)

        preview = editor.interaction.preview
        if preview is not None:
            corners = _rect_corners(preview.center, preview.width, preview.height)
            self._fill_world_polygon(
                np.array([to_world(c) for c in corners]),
                facecolor=OBSTACLE_COLOR,
                edgecolor="#222222",
                alpha=0.35,
                linestyle="--",
            )

        for obstacle in editor.dynamic_obstacles:
            point = _station_to_point(editor, obstacle.start_pos[0], obstacle.start_pos[1])
            if point is not None:
                radius = max(obstacle.size) * 0.5
                self._fill_world_polygon(_circle_world(point, radius), color=DYNAMIC_COLOR, alpha=0.8)

        self._update_status()

    def _update_status(self) -> None:
        editor = self.editor
        stats = editor.stats
        hover = editor.interaction.hover
        lines = [
            f"Scenario: {editor.scenario_name}",
            f"Saved:    {editor.saved_at_label}",
            f"Mode:     {editor.tool_mode.value}",
            f"Road:     {stats.road_length:.1f} m",
            f"Static:   {stats.static_obstacles}",
            f"Dynamic:  {stats.dynamic_obstacles}",
        ]
        if editor.interaction.remove_mode:
            lines.append("[remove]")
        if editor.interaction.rotate_mode:
            lines.append("[rotate]")
        if hover is not None:
            lines.append(f"Cursor:   {hover.cursor}")
        if self._message:
            lines.append("")
            lines.append(self._message)
        self.status_text.set_text("\n".join(lines))

    def _tick(self) -> None:
        self.editor.update()
        self._redraw()
        self.fig.canvas.draw_idle()

    def run(self) -> None:
        self._redraw()
        self.timer.start()
        plt.show()


def render_preview(editor: ScenarioEditor, out_path: Path, *, title: str = "Scenario Preview") -> None:
    """Top-down path-space PNG of the lane, anchors and obstacles."""
    if plt is None:
        _init_matplotlib(True)
    geometry = editor.path_geometry

    fig, ax = plt.subplots(figsize=(10, 10))
    if len(geometry.centerline) >= 2:
        ax.plot(geometry.left_boundary[:, 0], geometry.left_boundary[:, 2], color=LANE_COLOR, linewidth=1.2)
        ax.plot(geometry.right_boundary[:, 0], geometry.right_boundary[:, 2], color=LANE_COLOR, linewidth=1.2)
        ax.plot(
            geometry.centerline[:, 0],
            geometry.centerline[:, 2],
            color=CENTERLINE_COLOR,
            linewidth=1.0,
            linestyle="--",
            label="Centerline",
        )
    anchors = editor.registry.anchors
    if anchors:
        ax.scatter(
            [a.x for a in anchors],
            [a.y for a in anchors],
            s=36,
            color=POINT_COLOR,
            edgecolor="#222222",
            linewidth=0.5,
            zorder=4,
            label="Anchor",
        )
    for obstacle in editor.registry.obstacles:
        ax.add_patch(Polygon(obstacle.corners(), closed=True, color=OBSTACLE_COLOR, alpha=0.75))
    for obstacle in editor.dynamic_obstacles:
        point = _station_to_point(editor, obstacle.start_pos[0], obstacle.start_pos[1])
        if point is None:
            continue
        ax.scatter([point[0]], [point[1]], s=48, marker="^", color=DYNAMIC_COLOR, zorder=5)
        ax.text(point[0], point[1], obstacle.kind, fontsize=8, color="#333333", ha="left", va="bottom")
    if anchors:
        ax.legend(loc="upper right")

    ax.set_aspect("equal")
    ax.set_title(f"{title} ({editor.stats.road_length:.1f} m)")
    ax.set_xlabel("X (m)")
    ax.set_ylabel("Y (m)")
    ax.autoscale_view()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=160)
    plt.close(fig)
    logging.info("Preview written: %s", out_path)


def _init_matplotlib(headless: bool) -> None:
    global plt, Button, Polygon, TextBox
    import matplotlib

    if headless:
        matplotlib.use("Agg")

    import matplotlib.pyplot as plt_module
    from matplotlib.patches import Polygon as PolygonModule
    from matplotlib.widgets import Button as ButtonModule
    from matplotlib.widgets import TextBox as TextBoxModule

    plt = plt_module
    Button = ButtonModule
    Polygon = PolygonModule
    TextBox = TextBoxModule
