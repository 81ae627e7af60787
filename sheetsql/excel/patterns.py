from __future__ import annotations

import re
from typing import Any

from ..models.cell import CellKind, cell_kind, is_blank_row, is_empty, numeric_value

"""Shared vocabularies and row predicates for matrix (report) layouts.

The classifier, the aggregate analyzer and the normalizer must agree on what a
period header, a section marker and a substantive data row are; otherwise
aggregate row positions computed by the analyzer would not line up with the
rows the normalizer emits.
"""

__all__ = [
    "PERIOD_PATTERNS",
    "AGGREGATE_HEADER_PATTERNS",
    "is_period_header",
    "is_aggregate_header",
    "is_section_marker_text",
    "is_section_marker_row",
    "substantive_rows",
]

_MONTHS_SHORT = "jan|feb|mar|apr|may|jun|jul|aug|sep|sept|oct|nov|dec"
_MONTHS_LONG = (
    "january|february|march|april|may|june|july|august|september|october|november|december"
)

PERIOD_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bQ[1-4]\b", re.IGNORECASE),  # Q1..Q4 anywhere
    re.compile(r"\bH[1-2]\b", re.IGNORECASE),  # H1, H2
    re.compile(rf"^({_MONTHS_SHORT})\b", re.IGNORECASE),
    re.compile(rf"^({_MONTHS_LONG})\b", re.IGNORECASE),
    re.compile(r"^\d{4}$"),  # 2024
    re.compile(r"^FY\s?'?\d{2,4}", re.IGNORECASE),
    re.compile(r"\b(budget|actual|forecast|total)", re.IGNORECASE),
)

AGGREGATE_HEADER_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(total|subtotal|sum)\b", re.IGNORECASE),
)


def _text(value: Any) -> str | None:
    if cell_kind(value) is CellKind.TEXT:
        return value.strip()
    return None


def is_period_header(value: Any) -> bool:
    text = _text(value)
    if text is None:
        return False
    return any(p.search(text) for p in PERIOD_PATTERNS)


def is_aggregate_header(value: Any) -> bool:
    text = _text(value)
    if text is None:
        return False
    return any(p.search(text) for p in AGGREGATE_HEADER_PATTERNS)


def is_section_marker_text(value: Any) -> bool:
    """All-caps label of two or more letters that does not announce a total.

    str.isupper() keeps this independent of the label's language (VERTRIEB,
    ÉQUIPE and SALES all qualify).
    """
    text = _text(value)
    if text is None or len(text) < 2:
        return False
    if sum(1 for ch in text if ch.isalpha()) < 2:
        return False
    return text.isupper() and "TOTAL" not in text


def is_section_marker_row(row: list[Any] | None, label_column_count: int) -> bool:
    """First cell is a section marker, other label cells and all data cells empty."""
    if not row or not is_section_marker_text(row[0]):
        return False
    for value in row[1:label_column_count]:
        if not is_empty(value):
            return False
    return all(numeric_value(v) is None for v in row[label_column_count:])


def substantive_rows(
    rows: list[list[Any]], label_column_count: int
) -> list[tuple[int, int, list[Any]]]:
    """Number the data rows that carry observations.

    Returns (position, section_index, row) for each row that is neither blank nor
    a section marker; `position` counts only those rows. `section_index` increments
    at every section marker (0 before the first one).
    """
    result: list[tuple[int, int, list[Any]]] = []
    section = 0
    position = 0
    for row in rows:
        if is_blank_row(row):
            continue
        if is_section_marker_row(row, label_column_count):
            section += 1
            continue
        result.append((position, section, row))
        position += 1
    return result
