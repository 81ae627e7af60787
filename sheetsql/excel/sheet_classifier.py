from __future__ import annotations

import re
from typing import Any

from ..models.cell import CellKind, Grid, cell_kind, is_empty, non_empty_count, numeric_value
from ..models.classification import ClassificationResult, MatrixScore, SheetType
from ..models.config_models import HeuristicsConfig
from .patterns import is_period_header, is_section_marker_text

"""Sheet classification: simple table vs. matrix/report layout.

The matrix pre-scan runs first and uses its own header row (the first row with
two or more period-like cells), because report layouts routinely confuse the
table header locator. Only when the matrix score stays below
`matrix_threshold` is the suggested header row scored as a table.
"""

__all__ = [
    "classify",
    "scan_matrix",
    "score_table",
]

MATRIX_PERIOD_ROW = "period_header_row"
MATRIX_SECTIONS = "sparse_first_column_with_sections"
MATRIX_NUMERIC = "numeric_columns"

TABLE_UNIQUE_HEADERS = "unique_headers"
TABLE_DENSITY = "consistent_density"
TABLE_ID_COLUMN = "id_like_header"
TABLE_FIRST_COLUMN = "filled_first_column"
TABLE_MIXED_TYPES = "mixed_column_types"

_ID_VOCAB_RE = re.compile(r"\b(id|code|number|key)\b", re.IGNORECASE)

_DEFAULTS = HeuristicsConfig()


def _period_cells(row: list[Any] | None) -> list[tuple[int, str]]:
    if not row:
        return []
    return [(i, v.strip()) for i, v in enumerate(row) if is_period_header(v)]


def _label_column_count(grid: Grid, header_row: int, first_period_col: int, scan_rows: int) -> int:
    """2 (section + category) unless only one leading label column is populated."""
    if first_period_col <= 1:
        return 1
    body = grid[header_row + 1 : header_row + 1 + scan_rows]
    second_populated = any(
        len(row) > 1 and cell_kind(row[1]) is CellKind.TEXT for row in body if row
    )
    return 2 if second_populated else 1


def scan_matrix(grid: Grid, config: HeuristicsConfig = _DEFAULTS) -> MatrixScore:
    """Matrix pre-scan: period header row, sparse/sectioned first column, numeric density."""
    contributions: dict[str, int] = {}
    period_row: int | None = None
    period_cells: list[tuple[int, str]] = []

    for i in range(min(len(grid), config.matrix_scan_rows)):
        cells = _period_cells(grid[i])
        if len(cells) >= 2:
            period_row = i
            period_cells = cells
            break

    if period_row is None:
        return MatrixScore(contributions=contributions)
    contributions[MATRIX_PERIOD_ROW] = 40

    label_count = _label_column_count(
        grid, period_row, period_cells[0][0], config.section_scan_rows
    )

    # Step 2: sparse first column punctuated by section markers; blank rows
    # count as rows with an empty first cell
    following = grid[period_row + 1 : period_row + 1 + config.section_scan_rows]
    if following:
        empty_first = sum(1 for row in following if is_empty(row[0] if row else None))
        markers = sum(1 for row in following if row and is_section_marker_text(row[0]))
        if empty_first / len(following) > 0.5 and markers >= 1:
            contributions[MATRIX_SECTIONS] = 30

    # Step 3: numeric density in the data region
    sample = grid[period_row + 1 : period_row + 1 + config.numeric_sample_rows]
    width = max((len(r) for r in [grid[period_row], *sample] if r), default=0)
    numeric_columns = 0
    if sample:
        for col in range(label_count, width):
            numeric = sum(
                1 for row in sample if row and col < len(row) and numeric_value(row[col]) is not None
            )
            if numeric > len(sample) / 2:
                numeric_columns += 1
    if numeric_columns >= 2:
        contributions[MATRIX_NUMERIC] = 20

    return MatrixScore(
        contributions=contributions,
        period_header_row=period_row,
        period_headers=[text for _, text in period_cells],
        label_column_count=label_count,
    )


def _dominant_type(values: list[Any]) -> str:
    present = [v for v in values if not is_empty(v)]
    if not present:
        return "empty"
    numeric = sum(1 for v in present if numeric_value(v) is not None)
    return "number" if numeric > len(present) - numeric else "text"


def score_table(grid: Grid, header_row: int, config: HeuristicsConfig = _DEFAULTS) -> dict[str, int]:
    """Score the suggested header row as a columnar table. Returns named contributions."""
    contributions: dict[str, int] = {}
    headers = grid[header_row] if 0 <= header_row < len(grid) else []
    headers = headers or []
    data_rows = [row or [] for row in grid[header_row + 1 :]]

    non_empty_headers = [h.strip() if isinstance(h, str) else h for h in headers if not is_empty(h)]
    if len(non_empty_headers) >= 3 and len(set(non_empty_headers)) == len(non_empty_headers):
        contributions[TABLE_UNIQUE_HEADERS] = 10

    if data_rows:
        avg = sum(non_empty_count(r) for r in data_rows) / len(data_rows)
        if avg >= len(non_empty_headers) * 0.7:
            contributions[TABLE_DENSITY] = 10

    if any(isinstance(h, str) and _ID_VOCAB_RE.search(h) for h in headers):
        contributions[TABLE_ID_COLUMN] = 5

    if data_rows:
        filled = sum(1 for r in data_rows if r and not is_empty(r[0]))
        if filled >= len(data_rows) * 0.8:
            contributions[TABLE_FIRST_COLUMN] = 5

    types = {
        _dominant_type([r[c] if c < len(r) else None for r in data_rows])
        for c in range(len(headers))
    }
    types.discard("empty")
    if len(types) >= 2:
        contributions[TABLE_MIXED_TYPES] = 5

    return contributions


def classify(
    grid: Grid,
    suggested_header_row: int = 0,
    config: HeuristicsConfig = _DEFAULTS,
) -> ClassificationResult:
    """Classify a sheet grid as TABLE, MATRIX or UNKNOWN.

    An empty grid is UNKNOWN with confidence 0.
    """
    if not grid:
        return ClassificationResult.unknown()

    matrix = scan_matrix(grid, config)
    if matrix.score >= config.matrix_threshold:
        return ClassificationResult(
            sheet_type=SheetType.MATRIX,
            confidence=min(100, matrix.score),
            period_header_row=matrix.period_header_row,
            period_headers=matrix.period_headers,
            label_column_count=matrix.label_column_count,
            contributions=matrix.contributions,
        )

    table = score_table(grid, suggested_header_row, config)
    score = sum(table.values())
    if score > config.table_threshold:
        return ClassificationResult(
            sheet_type=SheetType.TABLE,
            confidence=min(100, score * 3),
            contributions=table,
        )
    return ClassificationResult.unknown()
