"""Tests for the file-backed scenario library."""

from __future__ import annotations

import json
import logging
import sys
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path

from .harness import report
from .storage import INDEX_FILENAME, ScenarioStore, ScenarioStoreError, format_date

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

_DOC = {"p": [0.0, 0.0, 10.0, 0.0], "s": [], "d": [], "l": 10.0, "v": 1}


def test_save_load_and_names() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ScenarioStore(Path(tmpdir) / "library")
        assert store.names() == []

        success, saved_at = store.save("beta", _DOC)
        assert success and saved_at.tzinfo is not None
        store.save("alpha", {"p": [], "s": [], "v": 1})
        assert store.names() == ["alpha", "beta"]

        entry = store.load("beta")
        assert entry.name == "beta"
        assert entry.document == _DOC
        assert entry.saved_at == saved_at

        raw = json.loads((Path(tmpdir) / "library" / INDEX_FILENAME).read_text())
        assert raw["beta"]["name"] == "beta"
        assert raw["beta"]["data"] == _DOC
        assert not (Path(tmpdir) / "library" / f"{INDEX_FILENAME}.tmp").exists()


def test_conflict_and_overwrite() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ScenarioStore(Path(tmpdir))
        _, first_saved = store.save("lane", _DOC)

        success, existing = store.save("lane", {"p": [], "s": []})
        assert not success
        assert existing == first_saved
        assert store.load("lane").document == _DOC

        success, _ = store.save("lane", {"p": [], "s": []}, overwrite=True)
        assert success
        assert store.load("lane").document == {"p": [], "s": []}


def test_delete() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ScenarioStore(Path(tmpdir))
        store.save("gone", _DOC)
        store.delete("gone")
        assert store.names() == []
        for action in (lambda: store.delete("gone"), lambda: store.load("gone")):
            try:
                action()
            except KeyError:
                continue
            raise AssertionError("missing names should raise KeyError")


def test_picker_lists_newest_first() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ScenarioStore(Path(tmpdir))
        for name in ("first", "second", "third"):
            store.save(name, _DOC)
            time.sleep(0.002)
        store.save("first", _DOC, overwrite=True)
        assert [entry.name for entry in store.show_picker()] == ["first", "third", "second"]


def test_corrupt_index() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        index = Path(tmpdir) / INDEX_FILENAME
        for content in ("{broken", "[1, 2, 3]"):
            index.write_text(content)
            try:
                ScenarioStore(Path(tmpdir)).names()
            except ScenarioStoreError:
                continue
            raise AssertionError(f"index {content!r} should be rejected")

        for entry in ("not-an-entry", [1, 2]):
            index.write_text(json.dumps({"x": entry}))
            try:
                ScenarioStore(Path(tmpdir)).load("x")
            except ScenarioStoreError:
                continue
            raise AssertionError(f"entry {entry!r} should be rejected")

        index.write_text(json.dumps({"x": {"name": "x", "data": {}}}))
        try:
            ScenarioStore(Path(tmpdir)).load("x")
        except ScenarioStoreError:
            return
    raise AssertionError("entry without savedAt should be rejected")


def test_naive_timestamps_read_as_utc() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        index = Path(tmpdir) / INDEX_FILENAME
        index.write_text(
            json.dumps(
                {
                    "old": {"name": "old", "savedAt": "2020-01-01T00:00:00", "data": _DOC},
                    "new": {"name": "new", "savedAt": "2021-01-01T00:00:00+00:00", "data": _DOC},
                }
            )
        )
        store = ScenarioStore(Path(tmpdir))
        assert store.load("old").saved_at == datetime(2020, 1, 1, tzinfo=timezone.utc)
        assert [entry.name for entry in store.show_picker()] == ["new", "old"]


def test_format_date() -> None:
    assert format_date(None) == "Unsaved"
    label = format_date(datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc))
    assert len(label) == len("2024-05-01 12:30:00")
    assert label.startswith("2024-05-0")


TESTS = [
    test_save_load_and_names,
    test_conflict_and_overwrite,
    test_delete,
    test_picker_lists_newest_first,
    test_corrupt_index,
    test_naive_timestamps_read_as_utc,
    test_format_date,
]


def main() -> int:
    """Run scenario storage tests."""
    return report("Scenario Storage Test Suite", TESTS)


if __name__ == "__main__":
    sys.exit(main())
