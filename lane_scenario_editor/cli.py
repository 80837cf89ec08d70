"""Command line entry points for the lane scenario editor."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Optional, Sequence

from .config import apply_editor_overrides, config_to_dict, load_editor_config
from .editor.codec import MalformedDocument, load_document, save_document
from .editor.scene import ScenarioEditor
from .storage import ScenarioStore, ScenarioStoreError, format_date


def _build_editor(args: argparse.Namespace) -> ScenarioEditor:
    try:
        config = load_editor_config(Path(args.config))
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    config = apply_editor_overrides(
        config,
        scenario_dir=args.scenario_dir,
        lane_width=getattr(args, "lane_width", None),
        projection=getattr(args, "projection", None),
    )
    logging.debug("Editor config: %s", config_to_dict(config))
    return ScenarioEditor(config, store=ScenarioStore(Path(config.storage.scenario_dir)))


def _load_into(editor: ScenarioEditor, args: argparse.Namespace) -> None:
    """Fill *editor* from ``--load NAME`` or ``--document PATH`` when given."""
    try:
        if getattr(args, "document", None):
            path = Path(args.document)
            if not path.exists():
                raise SystemExit(f"Missing scenario document: {path}")
            editor.deserialize(load_document(path))
            editor.scenario_name = path.stem
        elif getattr(args, "load", None):
            editor.load_scenario(args.load)
    except KeyError as exc:
        raise SystemExit(f"No scenario named '{args.load}'") from exc
    except (MalformedDocument, ScenarioStoreError) as exc:
        raise SystemExit(f"Could not load scenario: {exc}") from exc


def _require_source(args: argparse.Namespace) -> None:
    if not args.load and not args.document:
        raise SystemExit(f"{args.command} requires --load or --document")


def do_edit(args: argparse.Namespace, editor: ScenarioEditor) -> None:
    from . import viewer

    _load_into(editor, args)
    if args.headless:
        _require_source(args)
        out_path = Path(args.out) if args.out else Path(f"{editor.scenario_name}.json")
        save_document(out_path, editor.serialize())
        logging.info("Scenario exported: %s", out_path)
        return

    viewer._init_matplotlib(False)
    viewer.EditorViewer(editor, frame_interval_ms=editor.config.frame_interval_ms).run()


def do_preview(args: argparse.Namespace, editor: ScenarioEditor) -> None:
    from . import viewer

    _require_source(args)
    _load_into(editor, args)
    viewer._init_matplotlib(True)
    viewer.render_preview(editor, Path(args.out), title=editor.scenario_name)


def do_list(args: argparse.Namespace, editor: ScenarioEditor) -> None:
    try:
        entries = editor.store.show_picker()
    except ScenarioStoreError as exc:
        raise SystemExit(str(exc)) from exc
    if not entries:
        print("No saved scenarios.")
        return
    for entry in entries:
        length = entry.document.get("l", 0) if isinstance(entry.document, dict) else 0
        print(f"{entry.name}\t{format_date(entry.saved_at)}\t{length} m")


def do_save(args: argparse.Namespace, editor: ScenarioEditor) -> None:
    _load_into(editor, args)
    try:
        result = editor.save_scenario(args.name, overwrite=args.overwrite)
    except (ValueError, ScenarioStoreError) as exc:
        raise SystemExit(str(exc)) from exc
    if result is not None and not result.success:
        raise SystemExit(
            f"A scenario named '{args.name}' already exists (saved {format_date(result.saved_at)}); "
            "pass --overwrite to replace it."
        )


def do_delete(args: argparse.Namespace, editor: ScenarioEditor) -> None:
    try:
        editor.store.delete(args.name)
    except KeyError as exc:
        raise SystemExit(f"No scenario named '{args.name}'") from exc
    except ScenarioStoreError as exc:
        raise SystemExit(str(exc)) from exc


def do_show(args: argparse.Namespace, editor: ScenarioEditor) -> None:
    _require_source(args)
    _load_into(editor, args)
    stats = editor.stats
    summary = {
        "name": editor.scenario_name,
        "saved": editor.saved_at_label,
        "anchors": len(editor.registry.anchors),
        "static_obstacles": stats.static_obstacles,
        "dynamic_obstacles": stats.dynamic_obstacles,
        "road_length_m": round(stats.road_length, 3),
    }
    print(json.dumps(summary, indent=2))


def _add_source_args(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--load", help="Scenario name in the store")
    cmd.add_argument("--document", help="Path to a scenario JSON document")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Lane scenario editor.")
    parser.add_argument("--config", default="configs/editor.yaml", help="Editor config YAML")
    parser.add_argument("--scenario-dir", help="Override storage.scenario_dir")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    edit_cmd = subparsers.add_parser("edit", help="Open the interactive editor")
    _add_source_args(edit_cmd)
    edit_cmd.add_argument("--lane-width", type=float)
    edit_cmd.add_argument("--projection", choices=["perspective", "orthographic"])
    edit_cmd.add_argument("--headless", action="store_true", help="Load and re-export without a window")
    edit_cmd.add_argument("--out", help="Output document path for --headless")

    preview_cmd = subparsers.add_parser("preview", help="Render a top-down PNG preview")
    _add_source_args(preview_cmd)
    preview_cmd.add_argument("--lane-width", type=float)
    preview_cmd.add_argument("--out", required=True, help="Output PNG path")

    subparsers.add_parser("list", help="List saved scenarios, newest first")

    save_cmd = subparsers.add_parser("save", help="Import a document into the store")
    save_cmd.add_argument("--document", required=True)
    save_cmd.add_argument("--name", required=True)
    save_cmd.add_argument("--overwrite", action="store_true")

    delete_cmd = subparsers.add_parser("delete", help="Delete a saved scenario")
    delete_cmd.add_argument("--name", required=True)

    show_cmd = subparsers.add_parser("show", help="Print scenario statistics")
    _add_source_args(show_cmd)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1

    editor = _build_editor(args)
    if args.command == "edit":
        do_edit(args, editor)
        return 0
    if args.command == "preview":
        do_preview(args, editor)
        return 0
    if args.command == "list":
        do_list(args, editor)
        return 0
    if args.command == "save":
        do_save(args, editor)
        return 0
    if args.command == "delete":
        do_delete(args, editor)
        return 0
    if args.command == "show":
        do_show(args, editor)
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
