from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .column import ColumnInfo
from .sheet import ProcessedSheet

"""Workbook-level schema models."""

__all__ = [
    "TableSchema",
    "Relationship",
    "SchemaInfo",
    "ProcessedWorkbook",
]


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: list[ColumnInfo]
    row_count: int
    has_aggregate_column: bool = False


@dataclass(frozen=True)
class Relationship:
    """Inferred foreign key: from_table.from_column references to_table.to_column."""
    from_table: str
    from_column: str
    to_table: str
    to_column: str
    confidence: float  # matched distinct values / distinct values, 0-1


@dataclass(frozen=True)
class SchemaInfo:
    tables: list[TableSchema] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)

    def table(self, name: str) -> TableSchema | None:
        for t in self.tables:
            if t.name == name:
                return t
        return None


@dataclass(frozen=True)
class ProcessedWorkbook:
    """Result of one upload: every sheet plus the assembled schema."""
    upload_id: str
    file_name: str
    sheets: list[ProcessedSheet]
    schema: SchemaInfo
    created_at: datetime

    @property
    def tables(self) -> list[ProcessedSheet]:
        return self.sheets

    @property
    def relationships(self):
        return self.schema.relationships

    @property
    def failed_sheets(self) -> list[ProcessedSheet]:
        return [s for s in self.sheets if s.error is not None]
