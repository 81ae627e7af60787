from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Column metadata shared by the table and matrix paths."""

__all__ = [
    "StorageType",
    "ColumnInfo",
]


class StorageType(Enum):
    TEXT = "TEXT"
    INTEGER = "INTEGER"
    REAL = "REAL"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"


@dataclass(frozen=True)
class ColumnInfo:
    """One exposed column of a processed sheet.

    `name` is the sanitized identifier ([a-z0-9_], <=64 chars) derived from
    `original_name`; `sample_values` holds at most five non-empty values.
    `source_index` is the column position in the original grid (-1 for
    synthesized matrix columns).
    """
    name: str
    original_name: str
    storage_type: StorageType
    nullable: bool
    sample_values: list[Any] = field(default_factory=list)
    source_index: int = -1
