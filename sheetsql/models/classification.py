from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Sheet classification results."""

__all__ = [
    "SheetType",
    "MatrixScore",
    "ClassificationResult",
]


class SheetType(Enum):
    TABLE = "table"
    MATRIX = "matrix"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class MatrixScore:
    """Matrix pre-scan outcome with named contributions."""
    contributions: dict[str, int] = field(default_factory=dict)
    period_header_row: int | None = None
    period_headers: list[str] = field(default_factory=list)
    label_column_count: int = 2

    @property
    def score(self) -> int:
        return sum(self.contributions.values())


@dataclass(frozen=True)
class ClassificationResult:
    sheet_type: SheetType
    confidence: int  # 0-100
    # Populated only for MATRIX
    period_header_row: int | None = None
    period_headers: list[str] = field(default_factory=list)
    label_column_count: int | None = None
    contributions: dict[str, int] = field(default_factory=dict)

    @staticmethod
    def unknown() -> ClassificationResult:
        return ClassificationResult(sheet_type=SheetType.UNKNOWN, confidence=0)
