"""Utility for initializing the Wolo POS master workbook.

The module doubles as a script (``python -m wolo_pos.setup_excel``) and as a
library used by tests or other tooling. Shared helpers keep the workbook
bootstrap logic consistent regardless of the execution path.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import openpyxl
from openpyxl.styles import Font

from . import data_manager, log


def default_settings(settings: data_manager.ConfigSettings) -> Mapping[str, Any]:
    """Settings rows seeded into a fresh workbook."""

    return {
        "store_name": settings.store_name,
        "currency": settings.currency,
        "reorder_level": settings.reorder_level,
    }


def create_master_workbook(
    destination: Path,
    *,
    sheet_columns: Mapping[str, Sequence[str]] = data_manager.SHEET_COLUMNS,
    initial_settings: Optional[Mapping[str, Any]] = None,
    overwrite: bool = False,
) -> Path:
    """Create the pharmacy master workbook at ``destination``.

    Parameters are overridable to facilitate testing. When ``overwrite`` is
    ``False`` (the default) this function raises ``FileExistsError`` if the
    target already exists. ``initial_settings`` are written JSON-encoded to
    the ``Settings`` sheet.
    """

    destination = Path(destination).expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(
            f"Refusing to overwrite existing master workbook: {destination}"
        )

    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()

    # Remove the default sheet openpyxl generates so we can create ours.
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    bold_font = Font(bold=True)

    for sheet_name, columns in sheet_columns.items():
        worksheet = workbook.create_sheet(title=sheet_name)
        for column_index, column_name in enumerate(columns, start=1):
            cell = worksheet.cell(row=1, column=column_index)
            cell.value = column_name
            cell.font = bold_font

    if initial_settings and data_manager.SETTINGS_SHEET in workbook.sheetnames:
        settings_sheet = workbook[data_manager.SETTINGS_SHEET]
        for key, value in initial_settings.items():
            settings_sheet.append([key, json.dumps(value), None])

    workbook.save(destination)
    log.info("Created master workbook at '%s'", destination)
    return destination


def run_from_config(config_path: Optional[Path] = None, *, overwrite: bool = False) -> Path:
    """Create the workbook named by ``[System] DataFile`` in ``config_path``."""

    located = Path(data_manager.find_config_file(config_path)).expanduser().resolve()
    parser = data_manager.read_config(located)
    settings = data_manager.parse_settings(parser, base_path=located.parent)
    return create_master_workbook(
        settings.data_file,
        initial_settings=default_settings(settings),
        overwrite=overwrite,
    )


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize the Wolo POS data file")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: search upward for config.ini)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the target workbook if it already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the setup script."""

    args = parse_args(argv)

    print("--- Wolo POS Setup Script ---")

    try:
        output_path = run_from_config(args.config, overwrite=args.force)
    except FileNotFoundError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except KeyError as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except (PermissionError, OSError) as exc:
        print(f"\n[ERROR] Unable to write workbook: {exc}")
        return 1

    print(f"\n[SUCCESS] Created master workbook at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
