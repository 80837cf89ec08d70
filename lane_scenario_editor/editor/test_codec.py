"""Tests for the scenario document codec and the dynamic obstacle collaborator."""

from __future__ import annotations

import json
import logging
import math
import sys
import tempfile
from pathlib import Path

from ..harness import report
from .codec import FORMAT_VERSION, MalformedDocument, dumps, load_document, loads, save_document
from .collaborators import DynamicObstacle, DynamicObstacleEditor
from .obstacles import StaticObstacle
from .scene import ScenarioEditor
from .state_machine import IDLE, ToolMode

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


def _populated_editor() -> ScenarioEditor:
    editor = ScenarioEditor()
    for pos in [(0.0, 0.0), (12.3456789, 4.000019), (-25.5, 30.123456)]:
        editor.registry.add_anchor(pos)
    editor.rebuild_path_geometry()
    editor.registry.add_obstacle((3.1415926535, -2.7182818), 2.25, 4.5, rotation=1.2345678901)
    editor.registry.add_obstacle((10.0, 10.0), 0.75, 1.0, rotation=-3.0)
    editor.dynamic_obstacle_editor.add_dynamic_obstacle(
        DynamicObstacle(kind="cyclist", start_pos=(15.0, -1.0), velocity=(4.0, 0.0), size=(1.8, 0.6), parallel=True)
    )
    return editor


def _expect_malformed(editor: ScenarioEditor, doc: object) -> None:
    before = editor.serialize()
    try:
        editor.deserialize(doc)
    except MalformedDocument:
        assert editor.serialize() == before, "rejected document changed editor state"
        return
    raise AssertionError(f"document should be rejected: {doc!r}")


def test_serialize_empty_editor() -> None:
    doc = ScenarioEditor().serialize()
    assert doc == {"p": [], "s": [], "d": [], "l": 0.0, "v": FORMAT_VERSION}


def test_serialize_truncates_positions() -> None:
    doc = _populated_editor().serialize()
    assert doc["p"] == [0.0, 0.0, 12.34567, 4.00001, -25.5, 30.12345]
    first = doc["s"][0]
    assert first["p"] == [3.14159, -2.71828]
    assert first["r"] == 1.2345678901
    assert (first["w"], first["h"]) == (2.25, 4.5)
    assert doc["s"][1]["r"] == -3.0
    assert doc["d"] == [{"t": 1, "p": [15.0, -1.0], "v": [4.0, 0.0], "s": [1.8, 0.6], "a": 1}]
    assert doc["l"] == round(doc["l"], 3)
    assert doc["v"] == 1


def test_round_trip() -> None:
    source = _populated_editor()
    doc = source.serialize()

    target = ScenarioEditor()
    target.deserialize(json.loads(json.dumps(doc)))
    reloaded = target.serialize()
    # road length is recomputed from the truncated anchors
    assert math.isclose(reloaded.pop("l"), doc["l"], abs_tol=1e-2)
    assert reloaded == {key: value for key, value in doc.items() if key != "l"}

    again = ScenarioEditor()
    again.deserialize(target.serialize())
    assert again.serialize() == target.serialize()

    anchors = target.registry.anchors
    assert [(a.index, a.x, a.y) for a in anchors] == [
        (0, 0.0, 0.0),
        (1, 12.34567, 4.00001),
        (2, -25.5, 30.12345),
    ]
    obstacles = target.static_obstacles
    assert obstacles[0] == StaticObstacle(pos=(3.14159, -2.71828), rot=1.2345678901, width=2.25, height=4.5)
    assert [o.index for o in target.registry.obstacles] == [0, 1]
    assert target.dynamic_obstacles[0].kind == "cyclist"
    assert target.stats.road_length > 0.0


def test_deserialize_replaces_existing_state() -> None:
    editor = _populated_editor()
    editor.deserialize({"p": [1.0, 1.0, 5.0, 1.0], "s": [{"p": [0, 0], "r": 0, "w": 1, "h": 1}], "v": 1})
    assert len(editor.registry.anchors) == 2
    assert [o.index for o in editor.registry.obstacles] == [0]
    # a missing "d" clears the dynamic obstacles
    assert editor.dynamic_obstacles == []
    assert math.isclose(editor.stats.road_length, 4.0, abs_tol=1e-9)


def test_odd_point_list_rejected() -> None:
    editor = _populated_editor()
    _expect_malformed(editor, {"p": [1.0, 2.0, 3.0], "s": [], "v": 1})


def test_malformed_documents_leave_state_untouched() -> None:
    editor = _populated_editor()
    for doc in [
        [],
        {"s": [], "v": 1},
        {"p": "1,2", "s": []},
        {"p": [1.0, "x"], "s": []},
        {"p": [1.0, True], "s": []},
        {"p": [1.0, float("inf")], "s": []},
        {"p": [], "s": {}},
        {"p": [], "s": [{"p": [0, 0], "w": 1}]},
        {"p": [], "s": [{"p": [0], "w": 1, "h": 1}]},
        {"p": [], "s": [], "v": 2},
        {"p": [], "s": [], "v": True},
        {"p": [], "s": [], "d": {"t": 0}},
        {"p": [], "s": [], "d": [{"t": 9}]},
        {"p": [10**400, 0], "s": []},
        {"p": [], "s": [{"p": [10**400, 0], "w": 1, "h": 1}]},
        {"p": [], "s": [], "d": [{"t": 0, "p": {"x": 1}}]},
        {"p": [], "s": [], "d": [{"t": 0, "v": [float("nan"), 0.0]}]},
        {"p": [], "s": [], "d": [{"t": 0, "s": ["wide", 1.0]}]},
        {"p": [], "s": [], "d": [{"t": 0, "p": [10**400, 0]}]},
    ]:
        _expect_malformed(editor, doc)


def test_far_coordinates_round_trip() -> None:
    editor = ScenarioEditor()
    editor.deserialize(
        {
            "p": [1e24, 0.0, 1e24 + 1e9, 0.0],
            "s": [{"p": [1e24, 0.0], "r": 0.0, "w": 1.0, "h": 1.0}],
        }
    )
    doc = editor.serialize()
    assert doc["p"] == [1e24, 0.0, 1e24 + 1e9, 0.0]
    assert doc["s"][0]["p"] == [1e24, 0.0]
    assert math.isfinite(doc["l"])
    assert loads(dumps(doc))["p"] == doc["p"]


def test_missing_version_and_obstacles_accepted() -> None:
    editor = ScenarioEditor()
    editor.deserialize({"p": [0.0, 0.0, 0.0, 3.0]})
    assert len(editor.registry.anchors) == 2
    assert editor.registry.obstacles == []


def test_clear_all_serializes_empty() -> None:
    editor = _populated_editor()
    editor.clear_all()
    doc = editor.serialize()
    assert doc["p"] == [] and doc["s"] == [] and doc["l"] == 0
    assert doc["d"] == []
    assert editor.stats.road_length == 0.0


def test_load_cancels_active_drag() -> None:
    editor = ScenarioEditor()
    editor.change_tool_mode(ToolMode.STATIC_OBSTACLES)
    editor.pointer_down((0.0, 0.0))
    assert editor.interaction.drag is not IDLE
    editor.deserialize({"p": [], "s": [], "v": 1})
    assert editor.interaction.drag is IDLE


def test_text_and_file_forms() -> None:
    doc = _populated_editor().serialize()
    text = dumps(doc)
    assert " " not in text
    assert loads(text) == doc

    for bad in ["{not json", "[1, 2]"]:
        try:
            loads(bad)
        except MalformedDocument:
            continue
        raise AssertionError(f"loads should reject {bad!r}")

    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "nested" / "scenario.json"
        save_document(path, doc)
        assert load_document(path) == doc


def test_dynamic_obstacle_records() -> None:
    raw = {"t": 2, "p": [3.0, 0.5], "v": [1.2, 0.0], "s": [0.5, 0.5], "a": 0}
    obstacle = DynamicObstacle.from_dict(raw)
    assert obstacle.kind == "pedestrian" and not obstacle.parallel
    assert obstacle.to_dict() == raw
    assert DynamicObstacle.from_dict({"t": "vehicle"}).size == (1.0, 1.0)

    for bad in [{"t": "tank"}, {"t": -1}, {"t": 1.5}]:
        try:
            DynamicObstacle.from_dict(bad)
        except ValueError:
            continue
        raise AssertionError(f"from_dict should reject {bad!r}")

    dynamic = DynamicObstacleEditor()
    try:
        dynamic.add_dynamic_obstacle(
            DynamicObstacle(kind="vehicle", start_pos=(float("nan"), 0.0), velocity=(0.0, 0.0), size=(1.0, 1.0))
        )
    except ValueError:
        pass
    else:
        raise AssertionError("non-finite dynamic obstacle should be rejected")

    dynamic.load_from_serializable([raw, {"t": 0}])
    assert len(dynamic.collect_dynamic_obstacles()) == 2
    removed = dynamic.remove_dynamic_obstacle(0)
    assert removed.kind == "pedestrian"
    try:
        dynamic.load_from_serializable([{"t": 0}, {"t": 0, "p": [1.0]}])
    except ValueError:
        pass
    else:
        raise AssertionError("short position should be rejected")
    assert len(dynamic.collect_dynamic_obstacles()) == 1
    dynamic.load_from_serializable(None)
    assert dynamic.to_serializable() == []


def test_static_obstacle_records() -> None:
    obstacle = StaticObstacle.from_json({"p": [1, 2], "w": 3, "h": 4})
    assert obstacle == StaticObstacle(pos=(1.0, 2.0), rot=0.0, width=3.0, height=4.0)
    for bad in [None, {"p": [1, 2], "w": "wide", "h": 1}, {"p": [1, 2], "w": float("nan"), "h": 1}]:
        try:
            StaticObstacle.from_json(bad)
        except ValueError:
            continue
        raise AssertionError(f"from_json should reject {bad!r}")


TESTS = [
    test_serialize_empty_editor,
    test_serialize_truncates_positions,
    test_round_trip,
    test_deserialize_replaces_existing_state,
    test_odd_point_list_rejected,
    test_malformed_documents_leave_state_untouched,
    test_far_coordinates_round_trip,
    test_missing_version_and_obstacles_accepted,
    test_clear_all_serializes_empty,
    test_load_cancels_active_drag,
    test_text_and_file_forms,
    test_dynamic_obstacle_records,
    test_static_obstacle_records,
]


def main() -> int:
    """Run scenario codec tests."""
    return report("Scenario Codec Test Suite", TESTS)


if __name__ == "__main__":
    sys.exit(main())
