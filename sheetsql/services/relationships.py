from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Any

from ..models.column import ColumnInfo, StorageType
from ..models.schema import Relationship
from ..models.sheet import ProcessedSheet

"""Foreign-key inference across the processed sheets of one workbook.

For every ordered pair of tables, column pairs of compatible type are scored
from their names; the best three per pair are validated against the data:
confidence = distinct non-null from-values found in the target column /
distinct non-null from-values. Pairs below MIN_CONFIDENCE are dropped and a
relationship found in both directions is kept once, with its highest
confidence.
"""

__all__ = [
    "infer_relationships",
    "score_candidate",
    "types_compatible",
    "value_overlap",
    "MIN_CONFIDENCE",
]

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.5
MAX_CANDIDATES = 3

ID_SUFFIXES = ("_id", "_code", "_key", "_ref", "_number", "_no")
ID_PATTERNS = (
    re.compile(r"^(.+)_id$"),
    re.compile(r"^(.+)_code$"),
    re.compile(r"^(.+)_key$"),
    re.compile(r"^id_(.+)$"),
    re.compile(r"^fk_(.+)$"),
)

_COMPATIBLE = (
    {StorageType.INTEGER, StorageType.REAL},
    {StorageType.DATE, StorageType.TIMESTAMP},
)


def types_compatible(a: StorageType, b: StorageType) -> bool:
    if a is b:
        return True
    return any(a in group and b in group for group in _COMPATIBLE)


def score_candidate(from_col: ColumnInfo, to_col: ColumnInfo, to_table: str) -> int:
    """Name-based likelihood that from_col references to_col; 0 means never.

    Compatible types alone never make a candidate: the from-column name must
    match, contain the target table name, carry a key suffix or follow a
    foreign-key pattern.
    """
    if not types_compatible(from_col.storage_type, to_col.storage_type):
        return 0

    from_name = from_col.name.lower()
    to_name = to_col.name.lower()
    score = 0
    if from_name == to_name:
        score += 5
    table_base = to_table.replace("_", "").lower()
    if table_base and table_base in from_name:
        score += 3
    if from_name.endswith(ID_SUFFIXES):
        score += 2
    for pattern in ID_PATTERNS:
        m = pattern.match(from_name)
        if m:
            base = m.group(1)
            if base in to_table.lower() or base in to_name:
                score += 3
    if score == 0:
        return 0
    if to_name == "id" or to_name.endswith("_id"):
        score += 2
    if from_col.storage_type is to_col.storage_type:
        score += 1
    return score


def _key(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        return value.date() if value.time() == datetime.min.time() else value
    if isinstance(value, date):
        return value
    return str(value).strip()


def _distinct(sheet: ProcessedSheet, position: int) -> set[Any]:
    values = set()
    for row in sheet.data_rows:
        if position < len(row) and row[position] is not None and row[position] != "":
            values.add(_key(row[position]))
    return values


def value_overlap(
    from_sheet: ProcessedSheet, from_position: int, to_sheet: ProcessedSheet, to_position: int
) -> float:
    from_values = _distinct(from_sheet, from_position)
    if not from_values:
        return 0.0
    matched = from_values & _distinct(to_sheet, to_position)
    return len(matched) / len(from_values)


def _candidates(from_sheet: ProcessedSheet, to_sheet: ProcessedSheet) -> list[tuple[int, int, int]]:
    scored = []
    for i, from_col in enumerate(from_sheet.columns):
        for j, to_col in enumerate(to_sheet.columns):
            score = score_candidate(from_col, to_col, to_sheet.name)
            if score > 0:
                scored.append((score, i, j))
    # Stable: equal scores keep column order
    scored.sort(key=lambda t: -t[0])
    return scored[:MAX_CANDIDATES]


def _deduplicate(relationships: list[Relationship]) -> list[Relationship]:
    seen: dict[frozenset[tuple[str, str]], Relationship] = {}
    for rel in relationships:
        key = frozenset({(rel.from_table, rel.from_column), (rel.to_table, rel.to_column)})
        existing = seen.get(key)
        if existing is None or existing.confidence < rel.confidence:
            seen[key] = rel
    return list(seen.values())


def infer_relationships(sheets: list[ProcessedSheet]) -> list[Relationship]:
    """Relationships among sheets that have both rows and columns."""
    tables = [s for s in sheets if s.columns and s.data_rows]
    found: list[Relationship] = []
    for from_sheet in tables:
        for to_sheet in tables:
            if from_sheet is to_sheet:
                continue
            for _, i, j in _candidates(from_sheet, to_sheet):
                confidence = value_overlap(from_sheet, i, to_sheet, j)
                if confidence < MIN_CONFIDENCE:
                    continue
                found.append(
                    Relationship(
                        from_table=from_sheet.name,
                        from_column=from_sheet.columns[i].name,
                        to_table=to_sheet.name,
                        to_column=to_sheet.columns[j].name,
                        confidence=round(confidence, 4),
                    )
                )
    result = _deduplicate(found)
    logger.debug(f"inferred {len(result)} relationship(s)")
    return result
