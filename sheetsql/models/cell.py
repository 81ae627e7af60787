from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import Any

"""Cell value model.

A cell holds one of: text (str), number (int/float), boolean (bool),
date-time (datetime/date) or nothing (None). Grids are lists of rows and rows
may be ragged; reading past the end of a row yields None.

Consumers dispatch on `cell_kind()` rather than on ad hoc isinstance checks.
Empty text and None share CellKind.EMPTY but stay distinguishable through the
raw value (nullability reporting needs that).
"""

__all__ = [
    "CellKind",
    "Grid",
    "cell_at",
    "cell_kind",
    "is_empty",
    "is_blank_row",
    "non_empty_count",
    "numeric_value",
    "parse_number",
]

Grid = list[list[Any]]

# 1,234.50 / $1,234 / (1,234) / -12.5% / € 300
_NUMBER_RE = re.compile(
    r"^(?P<neg>\()?\s*(?P<sign>[-+])?\s*[$€£¥]?\s*"
    r"(?P<num>\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?|\.\d+)"
    r"\s*(?P<pct>%)?\s*(?(neg)\))$"
)


class CellKind(Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    EMPTY = "empty"


def cell_kind(value: Any) -> CellKind:
    """Classify a raw cell value. bool is checked before number (bool is an int)."""
    if value is None:
        return CellKind.EMPTY
    if isinstance(value, bool):
        return CellKind.BOOLEAN
    if isinstance(value, (int, float)):
        if isinstance(value, float) and value != value:  # NaN leaking from pandas
            return CellKind.EMPTY
        return CellKind.NUMBER
    if isinstance(value, (datetime, date)):
        return CellKind.DATETIME
    if isinstance(value, str):
        return CellKind.EMPTY if value.strip() == "" else CellKind.TEXT
    return CellKind.TEXT


def is_empty(value: Any) -> bool:
    return cell_kind(value) is CellKind.EMPTY


def cell_at(grid: Grid, row: int, col: int) -> Any:
    """Ragged-safe cell access: out-of-range positions read as None."""
    if row < 0 or row >= len(grid):
        return None
    cells = grid[row]
    if cells is None or col < 0 or col >= len(cells):
        return None
    return cells[col]


def non_empty_count(row: list[Any] | None) -> int:
    if not row:
        return 0
    return sum(1 for v in row if not is_empty(v))


def is_blank_row(row: list[Any] | None) -> bool:
    return non_empty_count(row) == 0


def parse_number(text: str) -> float | int | None:
    """Parse a numeric-looking string (thousands separators, currency, parentheses).

    Returns None when the text is not a number. Integral values come back as int.
    """
    m = _NUMBER_RE.match(text.strip())
    if m is None:
        return None
    raw = m.group("num").replace(",", "")
    number: float | int = float(raw) if "." in raw else int(raw)
    if m.group("pct"):
        number = float(number) / 100
    if m.group("neg") or m.group("sign") == "-":
        number = -number
    return number


def numeric_value(value: Any) -> float | int | None:
    """Numeric reading of a cell: numbers as-is, numeric text parsed, else None."""
    kind = cell_kind(value)
    if kind is CellKind.NUMBER:
        return value
    if kind is CellKind.TEXT:
        return parse_number(value)
    return None
