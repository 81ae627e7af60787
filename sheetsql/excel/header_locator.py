from __future__ import annotations

import re
from typing import Any

from ..models.cell import CellKind, Grid, cell_at, cell_kind, is_empty, non_empty_count
from ..models.column import ColumnInfo
from ..models.config_models import HeuristicsConfig
from ..models.detection import HeaderDetectionResult, RowScore
from .naming import dedupe_names, sanitize_column_name
from .type_inference import infer_type, is_nullable

"""Header row detection.

Every candidate row among the first `header_scan_rows` rows gets a score made
of named signal contributions (see SIGNAL_* below). The highest score wins; on
ties the earliest row wins. Confidence is the winning score relative to
`header_confidence_scale`, capped at 100. The scale is not a ceiling on the
score itself.
"""

__all__ = [
    "detect_header",
    "score_row",
    "extract_columns",
]

SIGNAL_CELL_COUNT = "non_empty_cells"
SIGNAL_SINGLE_CELL = "single_cell_title"
SIGNAL_ALL_TEXT = "all_text"
SIGNAL_UNIQUE = "unique_values"
SIGNAL_SIMILAR_NEXT = "similar_next_row"
SIGNAL_NUMERIC_BELOW = "numeric_below_text"
SIGNAL_TOTAL = "total_keyword"
SIGNAL_SHORT_FIRST_ROW = "short_first_row"
SIGNAL_HEADER_VOCAB = "header_vocabulary"

_TOTAL_RE = re.compile(r"\b(total|subtotal|sum|grand)\b", re.IGNORECASE)
# English-only bonus signal, never a requirement
_HEADER_VOCAB_RE = re.compile(
    r"\b(id|name|date|amount|price|quantity|category|type|status|region|department)\b",
    re.IGNORECASE,
)

_DEFAULTS = HeuristicsConfig()


def _texts(row: list[Any]) -> list[str]:
    return [v for v in row if cell_kind(v) is CellKind.TEXT]


def score_row(grid: Grid, row_index: int) -> RowScore:
    """Score one row as a header candidate. Pure function of the grid."""
    row = grid[row_index] if row_index < len(grid) else None
    row = row or []
    contributions: dict[str, int] = {}

    values = [v for v in row if not is_empty(v)]
    non_empty = len(values)
    texts = _texts(row)
    all_text = non_empty > 0 and len(texts) == non_empty

    if non_empty >= 3:
        contributions[SIGNAL_CELL_COUNT] = non_empty * 2
    if non_empty == 1 and len(row) > 1:
        contributions[SIGNAL_SINGLE_CELL] = -15
    if all_text:
        contributions[SIGNAL_ALL_TEXT] = 5
    if non_empty > 1 and len(set(_hashable(v) for v in values)) == non_empty:
        contributions[SIGNAL_UNIQUE] = 3

    if row_index + 1 < len(grid):
        next_row = grid[row_index + 1] or []
        next_non_empty = non_empty_count(next_row)
        if next_non_empty > 0 and next_non_empty >= non_empty * 0.7:
            contributions[SIGNAL_SIMILAR_NEXT] = 2
        if all_text and any(cell_kind(v) is CellKind.NUMBER for v in next_row):
            contributions[SIGNAL_NUMERIC_BELOW] = 3

    if any(_TOTAL_RE.search(t) for t in texts):
        contributions[SIGNAL_TOTAL] = -10
    if row_index == 0 and non_empty <= 2:
        contributions[SIGNAL_SHORT_FIRST_ROW] = -3
    if any(_HEADER_VOCAB_RE.search(t) for t in texts):
        contributions[SIGNAL_HEADER_VOCAB] = 4

    return RowScore(row=row_index, contributions=contributions)


def _hashable(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def extract_columns(
    grid: Grid,
    header_row: int,
    config: HeuristicsConfig = _DEFAULTS,
) -> list[ColumnInfo]:
    """Build ColumnInfo for every non-empty header cell of `header_row`.

    Empty header cells are skipped, so their column positions are not exposed.
    Up to `header_sample_rows` rows below the header feed type inference.
    """
    header = grid[header_row] if 0 <= header_row < len(grid) else None
    if not header:
        return []

    body = grid[header_row + 1 : header_row + 1 + config.header_sample_rows]
    positions = [i for i, v in enumerate(header) if not is_empty(v)]
    originals = [_format_header(header[i]) for i in positions]
    names = dedupe_names(sanitize_column_name(o) for o in originals)

    columns: list[ColumnInfo] = []
    for index, original, name in zip(positions, originals, names, strict=True):
        cells = [cell_at(body, r, index) for r in range(len(body))]
        samples = [v for v in cells if not is_empty(v)][:5]
        columns.append(
            ColumnInfo(
                name=name,
                original_name=original,
                storage_type=infer_type(name, cells, config),
                nullable=is_nullable(name, cells, config),
                sample_values=samples,
                source_index=index,
            )
        )
    return columns


def _format_header(value: Any) -> str:
    if cell_kind(value) is CellKind.NUMBER and float(value).is_integer():
        return str(int(value))
    return str(value).strip()


def detect_header(grid: Grid, config: HeuristicsConfig = _DEFAULTS) -> HeaderDetectionResult:
    """Locate the most likely header row of a sheet grid.

    An empty grid yields row 0 with confidence 0 and no columns.
    """
    if not grid:
        return HeaderDetectionResult(header_row_index=0, confidence=0, columns=[])

    scan = min(len(grid), config.header_scan_rows)
    scores = [score_row(grid, i) for i in range(scan)]

    best = scores[0]
    for candidate in scores[1:]:
        if candidate.score > best.score:
            best = candidate

    confidence = min(100, round(best.score / config.header_confidence_scale * 100))
    confidence = max(0, confidence)
    return HeaderDetectionResult(
        header_row_index=best.row,
        confidence=confidence,
        columns=extract_columns(grid, best.row, config),
        row_scores=scores,
    )
