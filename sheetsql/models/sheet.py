from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .classification import SheetType
from .column import ColumnInfo
from .matrix import AggregateInfo

"""ProcessedSheet: the per-sheet output of the structure-recovery pipeline."""

__all__ = [
    "ProcessedSheet",
]

DEFAULT_PREVIEW_ROWS = 100


@dataclass(frozen=True)
class ProcessedSheet:
    """A sheet after header detection, classification and (for matrices) unpivoting.

    `data_rows` are aligned with `columns`. Previews are read-only slices of the
    stored rows rather than separate copies.
    """
    name: str  # sanitized table identifier
    original_name: str
    sheet_type: SheetType
    header_row: int
    columns: list[ColumnInfo]
    data_rows: list[list[Any]]
    header_confidence: int = 0
    classification_confidence: int = 0
    aggregate_info: AggregateInfo | None = None
    # Matrix only: the sheet as found, first rows of the evaluated grid
    source_rows: list[list[Any]] | None = None
    preview_limit: int = DEFAULT_PREVIEW_ROWS
    error: str | None = None
    column_indices: list[int] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.data_rows)

    @property
    def preview_rows(self) -> list[list[Any]]:
        return self.data_rows[: self.preview_limit]

    @property
    def original_preview_rows(self) -> list[list[Any]] | None:
        if self.source_rows is None:
            return None
        return self.source_rows[: self.preview_limit]

    @property
    def has_aggregate_column(self) -> bool:
        return any(c.name == "is_aggregate" for c in self.columns)
