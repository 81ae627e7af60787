from __future__ import annotations

from dataclasses import dataclass, field

from .column import ColumnInfo

"""Header detection results.

RowScore keeps every signal contribution by name so a caller (or a test) can
see why a row won, not just the final number.
"""

__all__ = [
    "RowScore",
    "HeaderDetectionResult",
]


@dataclass(frozen=True)
class RowScore:
    row: int
    contributions: dict[str, int] = field(default_factory=dict)

    @property
    def score(self) -> int:
        return sum(self.contributions.values())


@dataclass(frozen=True)
class HeaderDetectionResult:
    header_row_index: int  # 0-based
    confidence: int  # 0-100
    columns: list[ColumnInfo] = field(default_factory=list)
    row_scores: list[RowScore] = field(default_factory=list)
