#!/usr/bin/env python3
"""Entry point for the lane scenario editor CLI."""

from lane_scenario_editor.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
