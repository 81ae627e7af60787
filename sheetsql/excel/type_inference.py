from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, datetime, time
from typing import Any

from ..models.cell import CellKind, cell_kind, is_empty, parse_number
from ..models.column import StorageType
from ..models.config_models import HeuristicsConfig
from .naming import sanitize_column_name

"""Column type inference.

Rule order (first match wins):
1. identifier-like column names are TEXT regardless of content
2. any alphabetic, non-date text in the sample makes the column TEXT
3. any remaining plain text makes the column TEXT
4. the first type reaching the ratio threshold, in priority
   BOOLEAN > DATE > INTEGER (all numbers integral) > REAL
5. TEXT
"""

__all__ = [
    "infer_type",
    "is_nullable",
    "is_identifier_name",
    "is_date_string",
    "coerce_value",
]

_IDENTIFIER_PATTERNS = (
    re.compile(r"_id$"),
    re.compile(r"^id$"),
    re.compile(r"^id_"),
    re.compile(r"_code$"),
    re.compile(r"_key$"),
    re.compile(r"_ref$"),
    re.compile(r"_no$"),
    re.compile(r"_number$"),
)
_IDENTIFIER_NAMES = {"sku", "upc", "isbn"}

_DATE_PATTERNS = (
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),  # YYYY-MM-DD
    re.compile(r"^\d{2}/\d{2}/\d{4}$"),  # MM/DD/YYYY
    re.compile(r"^\d{2}-\d{2}-\d{4}$"),  # DD-MM-YYYY
    re.compile(r"^\d{4}/\d{2}/\d{2}$"),  # YYYY/MM/DD
)

_DEFAULTS = HeuristicsConfig()


def is_identifier_name(column_name: str) -> bool:
    name = sanitize_column_name(column_name)
    if name in _IDENTIFIER_NAMES:
        return True
    return any(p.search(name) for p in _IDENTIFIER_PATTERNS)


def is_date_string(value: str) -> bool:
    """Pattern check only; '13/45/2024' is accepted (no calendar validation)."""
    text = value.strip()
    return any(p.match(text) for p in _DATE_PATTERNS)


def _has_time_component(value: Any) -> bool:
    return isinstance(value, datetime) and value.time() != time(0, 0)


def _sample(cells: Sequence[Any], size: int) -> list[Any]:
    values: list[Any] = []
    for v in cells:
        if not is_empty(v):
            values.append(v)
            if len(values) >= size:
                break
    return values


def infer_type(
    column_name: str,
    cells: Sequence[Any],
    config: HeuristicsConfig = _DEFAULTS,
) -> StorageType:
    """Decide the storage type of a column from its header and the cells below it."""
    if is_identifier_name(column_name):
        return StorageType.TEXT

    values = _sample(cells, config.type_sample_size)
    if not values:
        return StorageType.TEXT

    booleans = numbers = integers = dates = texts = 0
    timestamps = 0
    for v in values:
        kind = cell_kind(v)
        if kind is CellKind.BOOLEAN:
            booleans += 1
        elif kind is CellKind.NUMBER:
            numbers += 1
            if float(v).is_integer():
                integers += 1
        elif kind is CellKind.DATETIME:
            dates += 1
            if _has_time_component(v):
                timestamps += 1
        elif kind is CellKind.TEXT:
            if is_date_string(v):
                dates += 1
                continue
            if any(ch.isalpha() for ch in v):
                # Mixed alphanumeric content poisons the column
                return StorageType.TEXT
            parsed = parse_number(v)
            if parsed is None:
                texts += 1
            else:
                numbers += 1
                if float(parsed).is_integer():
                    integers += 1

    if texts:
        return StorageType.TEXT

    total = len(values)
    threshold = config.type_ratio_threshold
    if booleans / total >= threshold:
        return StorageType.BOOLEAN
    if dates / total >= threshold:
        return StorageType.TIMESTAMP if timestamps else StorageType.DATE
    if numbers / total >= threshold and integers == numbers:
        return StorageType.INTEGER
    if numbers / total >= threshold:
        return StorageType.REAL
    return StorageType.TEXT


def is_nullable(
    column_name: str,
    cells: Sequence[Any],
    config: HeuristicsConfig = _DEFAULTS,
) -> bool:
    """True if any of the first sampled rows has no value in this column.

    A column without any sampled rows is reported nullable.
    """
    window = list(cells[: config.nullable_sample_rows])
    if not window:
        return True
    return any(is_empty(v) for v in window)


def _parse_date_string(text: str) -> date | None:
    text = text.strip()
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%d-%m-%Y", "%Y/%m/%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _format_text(value: Any) -> str:
    kind = cell_kind(value)
    if kind is CellKind.NUMBER and float(value).is_integer():
        return str(int(value))
    if kind is CellKind.DATETIME:
        return value.isoformat()
    return str(value).strip() if isinstance(value, str) else str(value)


def coerce_value(value: Any, storage_type: StorageType) -> Any:
    """Convert a raw cell to the Python value stored for `storage_type`.

    Empty cells and values that cannot be represented become None.
    """
    kind = cell_kind(value)
    if kind is CellKind.EMPTY:
        return None

    if storage_type is StorageType.TEXT:
        return _format_text(value)

    if storage_type is StorageType.BOOLEAN:
        if kind is CellKind.BOOLEAN:
            return value
        if kind is CellKind.NUMBER and value in (0, 1):
            return bool(value)
        if kind is CellKind.TEXT and value.strip().lower() in ("true", "false", "yes", "no"):
            return value.strip().lower() in ("true", "yes")
        return None

    if storage_type in (StorageType.INTEGER, StorageType.REAL):
        if kind is CellKind.NUMBER:
            number = value
        elif kind is CellKind.TEXT:
            number = parse_number(value)
        else:
            return None
        if number is None:
            return None
        if storage_type is StorageType.INTEGER:
            return int(number) if float(number).is_integer() else None
        return float(number)

    # DATE / TIMESTAMP
    if kind is CellKind.DATETIME:
        if storage_type is StorageType.DATE and isinstance(value, datetime):
            return value.date()
        return value
    if kind is CellKind.TEXT:
        parsed = _parse_date_string(value)
        if parsed is None:
            return None
        if storage_type is StorageType.TIMESTAMP:
            return datetime.combine(parsed, time(0, 0))
        return parsed
    return None
