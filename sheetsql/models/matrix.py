from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .column import ColumnInfo

"""Matrix (report layout) models: aggregate analysis and the unpivoted relation."""

__all__ = [
    "AggregateAnalysis",
    "AggregateInfo",
    "NormalizedMatrix",
]


@dataclass(frozen=True)
class AggregateAnalysis:
    """Advisory result of aggregate detection.

    Column positions are relative to the data region (first column after the
    label columns); row positions count substantive data rows only (blank and
    section-marker rows are not numbered). Empty sets mean "no aggregates".
    """
    aggregate_column_positions: frozenset[int] = frozenset()
    aggregate_row_positions: frozenset[int] = frozenset()
    confidence: float = 0.0
    reasoning: str | None = None

    @staticmethod
    def empty() -> AggregateAnalysis:
        return AggregateAnalysis()

    @property
    def is_empty(self) -> bool:
        return not self.aggregate_column_positions and not self.aggregate_row_positions


@dataclass(frozen=True)
class AggregateInfo:
    aggregate_period_names: list[str] = field(default_factory=list)
    aggregate_column_positions: list[int] = field(default_factory=list)
    aggregate_row_positions: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class NormalizedMatrix:
    columns: list[ColumnInfo]
    rows: list[list[Any]]
    aggregate_info: AggregateInfo = field(default_factory=AggregateInfo)
    # False when no period column was found and the sheet passed through as-is
    unpivoted: bool = True
