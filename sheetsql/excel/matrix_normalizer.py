from __future__ import annotations

import logging
from typing import Any

from ..models.cell import CellKind, Grid, cell_kind, is_blank_row, is_empty, numeric_value
from ..models.column import ColumnInfo, StorageType
from ..models.config_models import HeuristicsConfig
from ..models.matrix import AggregateAnalysis, AggregateInfo, NormalizedMatrix
from .naming import dedupe_names, sanitize_column_name
from .patterns import is_aggregate_header, is_period_header, is_section_marker_row
from .type_inference import coerce_value

"""Matrix (report layout) normalization.

Unpivots a report grid into the long relation

    section | category | period | amount | is_aggregate

one output row per numeric period cell. Pre-computed totals stay queryable and
are flagged through `is_aggregate` rather than dropped, so summing rows with
is_aggregate = false never double counts.

Non-numeric and empty period cells emit nothing; no zero values are invented.
"""

__all__ = [
    "normalize",
    "period_columns",
    "MATRIX_COLUMNS",
    "UNKNOWN_SECTION",
]

logger = logging.getLogger(__name__)

UNKNOWN_SECTION = "Unknown"
MATRIX_COLUMNS = ("section", "category", "period", "amount", "is_aggregate")
_COLUMN_TYPES = {
    "section": (StorageType.TEXT, False),
    "category": (StorageType.TEXT, True),
    "period": (StorageType.TEXT, False),
    "amount": (StorageType.REAL, False),
    "is_aggregate": (StorageType.BOOLEAN, False),
}

_DEFAULTS = HeuristicsConfig()


def _header_text(value: Any) -> str:
    if cell_kind(value) is CellKind.NUMBER and float(value).is_integer():
        return str(int(value))
    return "" if is_empty(value) else str(value).strip()


def period_columns(
    header: list[Any], label_column_count: int, period_headers: list[str] | None = None
) -> list[tuple[int, str]]:
    """(grid column, header text) of every period column, totals included.

    Only text cells qualify, as in the classifier: a numeric 2024 is data, the
    text "2024" is a period.
    """
    known = {h.strip() for h in period_headers or []}
    found: list[tuple[int, str]] = []
    for index in range(label_column_count, len(header)):
        if cell_kind(header[index]) is not CellKind.TEXT:
            continue
        text = header[index].strip()
        if not text:
            continue
        if text in known or is_period_header(text) or is_aggregate_header(text):
            found.append((index, text))
    return found


def _at(row: list[Any], index: int) -> Any:
    return row[index] if 0 <= index < len(row) else None


def _section_name(value: Any) -> str:
    return str(value).strip().title()


def _category(row: list[Any], label_column_count: int) -> str | None:
    if label_column_count >= 2:
        second = _at(row, 1)
        if cell_kind(second) is CellKind.TEXT and second.strip():
            return second.strip()
    labels = [_at(row, i) for i in range(label_column_count)]
    for value in labels:
        if cell_kind(value) is CellKind.TEXT and value.strip():
            return value.strip()
    for value in labels:
        if not is_empty(value):
            return _header_text(value)
    return None


def _columns(rows: list[list[Any]]) -> list[ColumnInfo]:
    columns: list[ColumnInfo] = []
    for position, name in enumerate(MATRIX_COLUMNS):
        storage_type, nullable = _COLUMN_TYPES[name]
        samples = [r[position] for r in rows if r[position] is not None][:5]
        columns.append(
            ColumnInfo(
                name=name,
                original_name=name,
                storage_type=storage_type,
                nullable=nullable,
                sample_values=samples,
            )
        )
    return columns


def normalize(
    grid: Grid,
    period_header_row: int,
    period_headers: list[str],
    label_column_count: int,
    aggregate_analysis: AggregateAnalysis | None = None,
    config: HeuristicsConfig = _DEFAULTS,
) -> NormalizedMatrix:
    """Unpivot a matrix grid below `period_header_row`.

    Row positions in `aggregate_analysis` count substantive rows only (blank and
    section-marker rows are not numbered), the same numbering the analyzer uses.
    """
    analysis = aggregate_analysis or AggregateAnalysis.empty()
    header = list(grid[period_header_row] or []) if 0 <= period_header_row < len(grid) else []
    periods = period_columns(header, label_column_count, period_headers)
    if not periods:
        logger.info("no period columns found; passing the sheet through unpivoted")
        return _passthrough(grid, period_header_row, config)

    rows: list[list[Any]] = []
    section = UNKNOWN_SECTION
    position = 0
    for raw in grid[period_header_row + 1 :]:
        row = list(raw or [])
        if is_blank_row(row):
            continue
        if is_section_marker_row(row, label_column_count):
            section = _section_name(row[0])
            continue

        aggregate_row = position in analysis.aggregate_row_positions
        category = _category(row, label_column_count)
        for index, period in periods:
            amount = numeric_value(_at(row, index))
            if amount is None:
                continue
            is_aggregate = aggregate_row or (
                index - label_column_count in analysis.aggregate_column_positions
            )
            rows.append([section, category, period, float(amount), is_aggregate])
        position += 1

    info = AggregateInfo(
        aggregate_period_names=[
            p for i, p in periods if i - label_column_count in analysis.aggregate_column_positions
        ],
        aggregate_column_positions=sorted(analysis.aggregate_column_positions),
        aggregate_row_positions=sorted(analysis.aggregate_row_positions),
    )
    return NormalizedMatrix(columns=_columns(rows), rows=rows, aggregate_info=info)


def _passthrough(grid: Grid, header_row: int, config: HeuristicsConfig) -> NormalizedMatrix:
    """Header cells become plain TEXT columns; every later row is kept as found."""
    header = list(grid[header_row] or []) if 0 <= header_row < len(grid) else []
    positions = [i for i, v in enumerate(header) if not is_empty(v)]
    originals = [_header_text(header[i]) for i in positions]
    names = dedupe_names(sanitize_column_name(o) for o in originals)

    rows: list[list[Any]] = []
    for raw in grid[header_row + 1 :]:
        row = list(raw or [])
        if is_blank_row(row):
            continue
        rows.append([coerce_value(_at(row, i), StorageType.TEXT) for i in positions])

    window = rows[: config.nullable_sample_rows]
    columns = [
        ColumnInfo(
            name=name,
            original_name=original,
            storage_type=StorageType.TEXT,
            nullable=not window or any(r[k] is None for r in window),
            sample_values=[r[k] for r in rows if r[k] is not None][:5],
            source_index=index,
        )
        for k, (index, original, name) in enumerate(zip(positions, originals, names, strict=True))
    ]
    return NormalizedMatrix(columns=columns, rows=rows, unpivoted=False)
