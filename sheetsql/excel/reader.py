from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

import openpyxl
import pandas as pd

from ..models.cell import Grid

"""Workbook loading.

Every sheet is read twice:

- raw grid: openpyxl with data_only=False; formula cells keep their formula
  text ("=SUM(B2:C2)") so callers can tell computed cells apart.
- evaluated grid: pandas (openpyxl engine, header=None); formula cells carry the
  values computed by the application that last saved the file.

The evaluated grid is what the structure-recovery pipeline consumes. Cells are
converted to plain Python scalars (None for NaN/NaT, datetime for Timestamp) and
trailing empty cells are trimmed, so rows may be ragged.
"""

__all__ = [
    "WorkbookReadError",
    "LoadedWorkbook",
    "load_workbook_bytes",
    "load_workbook_file",
    "to_scalar",
]

logger = logging.getLogger(__name__)


class WorkbookReadError(Exception):
    """Raised when the workbook bytes cannot be read or contain no sheets."""


@dataclass
class LoadedWorkbook:
    sheet_names: list[str]
    raw_grids: dict[str, Grid] = field(default_factory=dict)
    evaluated_grids: dict[str, Grid] = field(default_factory=dict)


def to_scalar(value: Any) -> Any:
    """Convert a pandas/numpy cell to a plain Python value."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        value = value.item()  # numpy scalar
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, time):
        return value.isoformat()
    return value


def _trim(row: list[Any]) -> list[Any]:
    end = len(row)
    while end and (row[end - 1] is None or row[end - 1] == ""):
        end -= 1
    return row[:end]


def _trim_grid(rows: list[list[Any]]) -> Grid:
    grid = [_trim(r) for r in rows]
    while grid and not grid[-1]:
        grid.pop()
    return grid


def _raw_grids(data: bytes) -> dict[str, Grid]:
    wb = openpyxl.load_workbook(io.BytesIO(data), data_only=False, read_only=True)
    try:
        grids: dict[str, Grid] = {}
        for ws in wb.worksheets:
            rows = []
            for cells in ws.iter_rows(values_only=True):
                rows.append([_raw_cell(v) for v in cells])
            grids[str(ws.title)] = _trim_grid(rows)
        return grids
    finally:
        wb.close()


def _raw_cell(value: Any) -> Any:
    if isinstance(value, (datetime, date, str, bool, int, float)) or value is None:
        return value
    # ArrayFormula / DataTableFormula objects
    text = getattr(value, "text", None)
    return text if isinstance(text, str) else str(value)


def load_workbook_bytes(data: bytes) -> LoadedWorkbook:
    """Parse workbook bytes into raw and evaluated grids per sheet."""
    if not data:
        raise WorkbookReadError("workbook is empty")
    try:
        xls = pd.ExcelFile(io.BytesIO(data), engine="openpyxl")
        evaluated: dict[str, Grid] = {}
        for name in xls.sheet_names:
            # keep_default_na=False: literal "NA"/"N/A" cells stay text
            df = xls.parse(name, header=None, keep_default_na=False, na_values=[""])
            rows = [[to_scalar(v) for v in values] for values in df.itertuples(index=False, name=None)]
            evaluated[str(name)] = _trim_grid(rows)
        raw = _raw_grids(data)
    except Exception as e:
        raise WorkbookReadError(f"unreadable workbook: {e}") from e

    names = list(evaluated)
    if not names:
        raise WorkbookReadError("workbook contains no sheets")
    logger.debug(f"loaded workbook with sheets {names}")
    return LoadedWorkbook(sheet_names=names, raw_grids=raw, evaluated_grids=evaluated)


def load_workbook_file(path: Path) -> LoadedWorkbook:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise WorkbookReadError(f"cannot read {path}: {e}") from e
    return load_workbook_bytes(data)
