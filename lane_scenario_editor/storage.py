"""File-backed scenario library (named documents with save timestamps)."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

INDEX_FILENAME = "scenarios.json"


class ScenarioStoreError(RuntimeError):
    pass


@dataclass
class ScenarioEntry:
    name: str
    saved_at: datetime
    document: Dict[str, Any]


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "Unsaved"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


class ScenarioStore:
    """Keeps every scenario in one JSON index file under *directory*."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.index_path = self.directory / INDEX_FILENAME

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self.index_path.exists():
            return {}
        try:
            raw = json.loads(self.index_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ScenarioStoreError(f"Corrupt scenario index {self.index_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ScenarioStoreError(f"Invalid scenario index: {self.index_path}")
        return raw

    def _write(self, entries: Dict[str, Dict[str, Any]]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp_path = self.index_path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(entries, ensure_ascii=True, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.index_path)

    @staticmethod
    def _entry(name: str, raw: Dict[str, Any]) -> ScenarioEntry:
        try:
            saved_at = datetime.fromisoformat(str(raw["savedAt"]))
            document = raw["data"]
        except (KeyError, TypeError, ValueError) as exc:
            raise ScenarioStoreError(f"Invalid scenario entry '{name}'") from exc
        if saved_at.tzinfo is None:
            # entries written without an offset are taken as UTC
            saved_at = saved_at.replace(tzinfo=timezone.utc)
        return ScenarioEntry(name=name, saved_at=saved_at, document=document)

    def names(self) -> List[str]:
        return sorted(self._read().keys())

    def save(self, name: str, document: Dict[str, Any], overwrite: bool = False) -> Tuple[bool, datetime]:
        """Store *document* under *name*.

        Returns ``(False, existing_saved_at)`` without writing when the name
        is taken and *overwrite* is false.
        """
        entries = self._read()
        existing = entries.get(name)
        if existing is not None and not overwrite:
            return False, self._entry(name, existing).saved_at
        saved_at = datetime.now(timezone.utc)
        entries[name] = {"name": name, "savedAt": saved_at.isoformat(), "data": document}
        self._write(entries)
        logging.info("Scenario saved: %s", name)
        return True, saved_at

    def load(self, name: str) -> ScenarioEntry:
        entries = self._read()
        if name not in entries:
            raise KeyError(f"No scenario named '{name}'")
        return self._entry(name, entries[name])

    def delete(self, name: str) -> None:
        entries = self._read()
        if name not in entries:
            raise KeyError(f"No scenario named '{name}'")
        del entries[name]
        self._write(entries)
        logging.info("Scenario deleted: %s", name)

    def show_picker(self) -> List[ScenarioEntry]:
        """Saved scenarios, most recently saved first."""
        entries = [self._entry(name, raw) for name, raw in self._read().items()]
        entries.sort(key=lambda entry: entry.saved_at, reverse=True)
        return entries
