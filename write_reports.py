# SPDX-License-Identifier: Apache-2.0

"""
Write report tables to CSV files and to an Excel workbook.

A table is a list of `cells.Row`, keyed by a short title such as
``github-issues``. CSV output keeps only the cell texts. The workbook keeps
the styling hints as well: header and total rows are bold, totals and
unmerged changelists get a background fill, links stay clickable.
"""

from __future__ import annotations

import csv
import logging
import os
from datetime import datetime
from typing import Dict, List

import pandas as pd
from openpyxl.styles import Font, PatternFill

from cells import Row

Tables = Dict[str, List[Row]]

MIN_COLUMN_WIDTH = 12
MAX_COLUMN_WIDTH = 60


def write_csv(output_dir: str, tables: Tables) -> List[str]:
    """Write one '<title>.csv' per non-empty table and return the paths."""
    os.makedirs(output_dir, exist_ok=True)
    paths = []
    for title, rows in tables.items():
        if not rows:
            continue
        path = os.path.join(output_dir, f"{title}.csv")
        with open(path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerows(row.texts() for row in rows)
        paths.append(path)
    for path in paths:
        logging.info(f"Wrote output to {path}.")
    return paths


def _hex_color(rgb) -> str:
    return "{:02X}{:02X}{:02X}".format(*rgb)


def _style_sheet(worksheet, rows: List[Row]) -> None:
    worksheet.freeze_panes = "A2"
    widths: Dict[int, int] = {}
    for row_idx, row in enumerate(rows, start=1):
        fill = PatternFill(fill_type="solid", fgColor=_hex_color(row.color)) if row.color else None
        for col_idx, cell in enumerate(row.cells, start=1):
            ws_cell = worksheet.cell(row=row_idx, column=col_idx)
            if row.bold or row_idx == 1:
                ws_cell.font = Font(bold=True)
            if fill is not None:
                ws_cell.fill = fill
            if cell.hyperlink:
                ws_cell.hyperlink = cell.hyperlink
            widths[col_idx] = max(widths.get(col_idx, 0), len(cell.text))
    for col_idx, width in widths.items():
        letter = worksheet.cell(row=1, column=col_idx).column_letter
        worksheet.column_dimensions[letter].width = min(max(MIN_COLUMN_WIDTH, width + 2), MAX_COLUMN_WIDTH)


def write_workbook(path: str, tables: Tables, append: bool = False) -> str:
    """Write each non-empty table to its own sheet.

    With append=True the sheets are added to the existing workbook at path,
    replacing sheets that have the same title.
    """
    tables = {title: rows for title, rows in tables.items() if rows}
    if not tables:
        logging.info("No data to write to the workbook.")
        return path
    if append and not os.path.exists(path):
        raise SystemExit(f"Workbook not found: {path}")

    mode_args = {"mode": "a", "if_sheet_exists": "replace"} if append else {"mode": "w"}
    with pd.ExcelWriter(path, engine="openpyxl", **mode_args) as writer:
        for title, rows in tables.items():
            df = pd.DataFrame([row.texts() for row in rows])
            df.to_excel(writer, sheet_name=title, header=False, index=False)
            _style_sheet(writer.sheets[title], rows)
    logging.info(f"Wrote {len(tables)} sheet(s) to workbook: {path}")
    return path


def workbook_title(name: str, start: datetime) -> str:
    return f"{name} (as of {start.strftime('%m-%d-%Y')})"
