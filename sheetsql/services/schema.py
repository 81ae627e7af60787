from __future__ import annotations

from datetime import date, datetime
from typing import Any

from ..models.schema import Relationship, SchemaInfo, TableSchema
from ..models.sheet import ProcessedSheet
from .relationships import infer_relationships

"""Workbook schema assembly and the textual schema context.

Relationships are inferred only once every sheet is finished.
"""

__all__ = [
    "assemble_schema",
    "build_schema_context",
]

_SAMPLES_PER_COLUMN = 4
_MAX_SAMPLE_CHARS = 20


def assemble_schema(sheets: list[ProcessedSheet], infer: bool = True) -> SchemaInfo:
    tables = [
        TableSchema(
            name=s.name,
            columns=list(s.columns),
            row_count=s.row_count,
            has_aggregate_column=s.has_aggregate_column,
        )
        for s in sheets
    ]
    relationships = infer_relationships(sheets) if infer else []
    return SchemaInfo(tables=tables, relationships=relationships)


def _format_table(table: TableSchema) -> str:
    columns = ", ".join(
        f"{c.name} {c.storage_type.value}{'' if c.nullable else ' NOT NULL'}" for c in table.columns
    )
    line = f"- {table.name} ({columns}) - {table.row_count} rows"
    if table.has_aggregate_column:
        line += " [filter is_aggregate = false before summing amounts]"
    return line


def _format_relationship(rel: Relationship) -> str:
    return f"- {rel.from_table}.{rel.from_column} -> {rel.to_table}.{rel.to_column}"


def _format_sample(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, str):
        text = value if len(value) <= _MAX_SAMPLE_CHARS else value[: _MAX_SAMPLE_CHARS - 3] + "..."
        return f'"{text}"'
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def build_schema_context(schema: SchemaInfo) -> str:
    """Compact schema description handed to the external query generator."""
    parts = ["### Tables", *(_format_table(t) for t in schema.tables)]

    if schema.relationships:
        parts += ["", "### Relationships", *(_format_relationship(r) for r in schema.relationships)]

    samples = []
    for table in schema.tables:
        for column in table.columns:
            if column.sample_values:
                values = ", ".join(_format_sample(v) for v in column.sample_values[:_SAMPLES_PER_COLUMN])
                samples.append(f"- {table.name}.{column.name}: {values}")
    if samples:
        parts += ["", "### Sample Values", *samples]
    return "\n".join(parts)
