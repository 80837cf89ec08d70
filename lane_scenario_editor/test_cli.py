"""Tests for config loading, the CLI commands and the matplotlib host (headless)."""

from __future__ import annotations

import contextlib
import io
import json
import logging
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace
from typing import List

from .cli import main as cli_main
from .config import apply_editor_overrides, config_to_dict, load_editor_config
from .editor.codec import save_document
from .editor.collaborators import DynamicObstacle
from .editor.scene import ScenarioEditor
from .editor.state_machine import ToolMode
from .harness import report

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

_DOC = {
    "p": [0.0, 0.0, 10.0, 0.0, 20.0, 5.0],
    "s": [{"p": [5.0, 3.0], "r": 0.5, "w": 2.0, "h": 1.0}],
    "d": [{"t": 0, "p": [5.0, 0.0], "v": [8.0, 0.0], "s": [4.5, 1.8], "a": 1}],
    "l": 21.0,
    "v": 1,
}


def _run(tmpdir: str, args: List[str]) -> str:
    out = io.StringIO()
    base = ["--config", str(Path(tmpdir) / "missing.yaml"), "--scenario-dir", str(Path(tmpdir) / "library")]
    with contextlib.redirect_stdout(out):
        code = cli_main(base + args)
    assert code == 0, f"{args} exited with {code}"
    return out.getvalue()


def _expect_exit(tmpdir: str, args: List[str]) -> str:
    try:
        _run(tmpdir, args)
    except SystemExit as exc:
        return str(exc.code)
    raise AssertionError(f"{args} should exit with an error")


def test_config_defaults_and_yaml() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        missing = load_editor_config(Path(tmpdir) / "none.yaml")
        assert missing.lane.lane_width == 3.7
        assert missing.interaction.remove_key == "shift"

        path = Path(tmpdir) / "editor.yaml"
        path.write_text(
            "camera:\n"
            "  projection: Orthographic\n"
            "  position: {x: 0, y: 50, z: 0}\n"
            "lane:\n"
            "  lane_width: 5.0\n"
            "interaction:\n"
            "  keys:\n"
            "    rotate: Ctrl\n"
            "frame_interval_ms: 16\n"
        )
        config = load_editor_config(path)
        assert config.camera.projection == "orthographic"
        assert config.camera.position == (0.0, 50.0, 0.0)
        assert config.lane.lane_width == 5.0
        assert config.lane.sample_step == 0.5
        assert config.lane.max_samples_per_segment == 10000
        assert config.interaction.rotate_key == "control"
        assert config.frame_interval_ms == 16

        overridden = apply_editor_overrides(config, scenario_dir="elsewhere", lane_width=3.0)
        assert overridden.storage.scenario_dir == "elsewhere"
        assert overridden.lane.lane_width == 3.0
        assert config.lane.lane_width == 5.0
        assert config_to_dict(overridden)["interaction"]["keys"]["rotate"] == "control"


def test_config_rejects_bad_values() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "editor.yaml"
        for content in ("- a\n- b\n", "camera:\n  projection: fisheye\n", "lane:\n  sample_step: 0\n", "lane:\n  max_samples_per_segment: 0\n"):
            path.write_text(content)
            try:
                load_editor_config(path)
            except ValueError:
                continue
            raise AssertionError(f"config {content!r} should be rejected")


def test_repo_config_loads() -> None:
    path = Path(__file__).resolve().parent.parent / "configs" / "editor.yaml"
    if not path.exists():
        return
    config = load_editor_config(path)
    assert config.storage.scenario_dir == "scenarios"


def test_cli_save_show_list_delete() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        doc_path = Path(tmpdir) / "merge.json"
        save_document(doc_path, _DOC)

        _run(tmpdir, ["save", "--document", str(doc_path), "--name", "merge"])
        message = _expect_exit(tmpdir, ["save", "--document", str(doc_path), "--name", "merge"])
        assert "--overwrite" in message
        _run(tmpdir, ["save", "--document", str(doc_path), "--name", "merge", "--overwrite"])

        summary = json.loads(_run(tmpdir, ["show", "--load", "merge"]))
        assert summary["name"] == "merge"
        assert summary["anchors"] == 3
        assert summary["static_obstacles"] == 1
        assert summary["dynamic_obstacles"] == 1
        assert summary["road_length_m"] > 20.0

        listing = _run(tmpdir, ["list"])
        assert listing.startswith("merge\t")

        _run(tmpdir, ["delete", "--name", "merge"])
        assert "No saved scenarios." in _run(tmpdir, ["list"])
        assert "merge" in _expect_exit(tmpdir, ["show", "--load", "merge"])


def test_cli_rejects_bad_documents() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        bad_path = Path(tmpdir) / "bad.json"
        bad_path.write_text(json.dumps({"p": [1.0, 2.0, 3.0], "s": []}))
        assert "Incomplete lane path" in _expect_exit(tmpdir, ["show", "--document", str(bad_path)])
        assert "Missing" in _expect_exit(tmpdir, ["show", "--document", str(Path(tmpdir) / "nope.json")])
        assert "requires" in _expect_exit(tmpdir, ["show"])


def test_cli_headless_edit_and_preview() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        doc_path = Path(tmpdir) / "in.json"
        save_document(doc_path, _DOC)

        out_doc = Path(tmpdir) / "out" / "exported.json"
        _run(tmpdir, ["edit", "--headless", "--document", str(doc_path), "--out", str(out_doc)])
        exported = json.loads(out_doc.read_text())
        assert exported["p"] == _DOC["p"]
        assert exported["s"] == _DOC["s"]
        assert exported["d"] == _DOC["d"]

        png = Path(tmpdir) / "preview.png"
        _run(tmpdir, ["preview", "--document", str(doc_path), "--out", str(png)])
        assert png.exists() and png.stat().st_size > 0


def test_viewer_drives_editor() -> None:
    from . import viewer

    viewer._init_matplotlib(True)
    editor = ScenarioEditor()
    host = viewer.EditorViewer(editor)

    def event(x: float, y: float, button: int = 1) -> SimpleNamespace:
        return SimpleNamespace(inaxes=host.ax_view, xdata=x, ydata=y, button=button, key=None)

    host._on_press(event(0.0, 0.0))
    host._on_release(event(0.0, 0.0))
    host._on_press(event(0.0, 0.3))
    host._on_release(event(0.0, 0.3))
    assert len(editor.registry.anchors) == 2

    host._set_mode(ToolMode.STATIC_OBSTACLES)
    host._on_press(event(0.1, -0.1))
    host._on_motion(event(0.2, -0.2))
    host._tick()
    assert editor.interaction.preview is not None
    host._on_release(event(0.2, -0.2))
    assert editor.stats.static_obstacles == 1

    host._on_key_press(SimpleNamespace(key="shift"))
    assert editor.interaction.remove_mode
    host._on_key_press(SimpleNamespace(key="shift"))
    host._on_key_release(SimpleNamespace(key="shift"))
    assert not editor.interaction.remove_mode

    editor.dynamic_obstacle_editor.add_dynamic_obstacle(
        DynamicObstacle(kind="pedestrian", start_pos=(2.0, 1.0), velocity=(1.0, 0.0), size=(0.5, 0.5))
    )
    host._tick()
    assert "Static:   1" in host.status_text.get_text()
    viewer.plt.close(host.fig)


TESTS = [
    test_config_defaults_and_yaml,
    test_config_rejects_bad_values,
    test_repo_config_loads,
    test_cli_save_show_list_delete,
    test_cli_rejects_bad_documents,
    test_cli_headless_edit_and_preview,
    test_viewer_drives_editor,
]


def main() -> int:
    """Run config, CLI and viewer tests."""
    return report("CLI and Viewer Test Suite", TESTS)


if __name__ == "__main__":
    sys.exit(main())
