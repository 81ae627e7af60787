from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2 import errors as pg_errors

from ..models.column import StorageType
from ..models.config_models import DatabaseConfig
from ..models.sheet import ProcessedSheet
from .batch_insert import BatchMetrics, batch_insert, quote_ident

"""Query engine adapter (PostgreSQL).

Processed sheets are loaded as tables named after their sanitized names.
Queries coming from the external query generator are checked by
validate_read_only() before they reach the database and run under a statement
timeout. Database failures surface as typed QueryError subclasses.
"""

__all__ = [
    "QueryError",
    "UnknownObjectError",
    "QuerySyntaxError",
    "QueryTimeoutError",
    "ReadOnlyViolationError",
    "QueryResult",
    "SQL_TYPES",
    "connect",
    "create_table_sql",
    "load_sheet",
    "validate_read_only",
    "execute_query",
]

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 10000
DEFAULT_TIMEOUT_MS = 5000

FORBIDDEN_KEYWORDS = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "ALTER",
    "CREATE",
    "TRUNCATE",
    "REPLACE",
    "MERGE",
    "UPSERT",
    "GRANT",
    "REVOKE",
    "ATTACH",
    "DETACH",
    "COPY",
    "EXPORT",
    "IMPORT",
    "PRAGMA",
    "VACUUM",
    "ANALYZE",
    "LOAD",
    "INSTALL",
)

SQL_TYPES = {
    StorageType.TEXT: "TEXT",
    StorageType.INTEGER: "BIGINT",
    StorageType.REAL: "DOUBLE PRECISION",
    StorageType.BOOLEAN: "BOOLEAN",
    StorageType.DATE: "DATE",
    StorageType.TIMESTAMP: "TIMESTAMP",
}


class QueryError(Exception):
    pass


class UnknownObjectError(QueryError):
    """Unknown table or column."""


class QuerySyntaxError(QueryError):
    pass


class QueryTimeoutError(QueryError):
    pass


class ReadOnlyViolationError(QueryError):
    """The statement is not a single read-only query."""


@dataclass(frozen=True)
class QueryResult:
    columns: list[str]
    rows: list[tuple[Any, ...]]

    @property
    def row_count(self) -> int:
        return len(self.rows)


def connect(config: DatabaseConfig | None = None) -> Any:
    """Open a connection; DATABASE_URL / PGDSN take precedence over `config`.

    Individual PG* variables (PGHOST, PGUSER ...) are honoured by libpq itself.
    """
    dsn = os.environ.get("DATABASE_URL") or os.environ.get("PGDSN")
    if dsn:
        return psycopg2.connect(dsn)
    config = config or DatabaseConfig()
    if config.dsn:
        return psycopg2.connect(config.dsn)
    params = {
        "host": config.host,
        "port": config.port,
        "user": config.user,
        "password": config.password,
        "dbname": config.database,
    }
    return psycopg2.connect(**{k: v for k, v in params.items() if v is not None})


def create_table_sql(sheet: ProcessedSheet) -> str:
    cols = ", ".join(
        f"{quote_ident(c.name)} {SQL_TYPES[c.storage_type]}" for c in sheet.columns
    )
    return f"CREATE TABLE {quote_ident(sheet.name)} ({cols})"


def load_sheet(
    cursor: Any,
    sheet: ProcessedSheet,
    replace: bool = True,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> int:
    """Create the sheet's table and bulk insert its rows. Returns the row count."""
    if not sheet.columns:
        logger.warning(f"sheet '{sheet.original_name}' has no columns; not loaded")
        return 0
    if replace:
        cursor.execute(f"DROP TABLE IF EXISTS {quote_ident(sheet.name)}")
    cursor.execute(create_table_sql(sheet))
    result = batch_insert(
        cursor,
        sheet.name,
        [c.name for c in sheet.columns],
        sheet.data_rows,
        page_size=page_size,
        metrics_callback=metrics_callback,
    )
    logger.info(f"loaded {result.inserted_rows} rows into {sheet.name}")
    return result.inserted_rows


# Literals, quoted identifiers and comments in one left-to-right pass
_LITERALS_AND_COMMENTS = re.compile(
    r"'(?:[^']|'')*'"  # string literal
    r"|\"(?:[^\"]|\"\")*\""  # quoted identifier
    r"|--[^\n]*"
    r"|/\*[\s\S]*?\*/"
)
# Keywords that are also scalar function names; a call is allowed
_FUNCTION_KEYWORDS = {"REPLACE"}
_WHITESPACE = re.compile(r"\s+")
_READ_ONLY_START = re.compile(r"^(SELECT|WITH)\b")


def _normalize(sql: str) -> str:
    sql = _LITERALS_AND_COMMENTS.sub(" ", sql)
    return _WHITESPACE.sub(" ", sql).strip().upper()


def validate_read_only(sql: str | None) -> str:
    """Return the trimmed statement or raise ReadOnlyViolationError."""
    if not sql or not sql.strip():
        raise ReadOnlyViolationError("empty query")
    statement = sql.strip()
    if len(statement) > MAX_QUERY_LENGTH:
        raise ReadOnlyViolationError(f"query longer than {MAX_QUERY_LENGTH} characters")

    normalized = _normalize(statement)
    for keyword in FORBIDDEN_KEYWORDS:
        call = r"(?!\s*\()" if keyword in _FUNCTION_KEYWORDS else ""
        if re.search(rf"\b{keyword}\b{call}", normalized):
            raise ReadOnlyViolationError(f"query contains forbidden keyword: {keyword}")
    if not _READ_ONLY_START.match(normalized):
        raise ReadOnlyViolationError("query must start with SELECT or WITH")
    if ";" in normalized.rstrip(";"):
        raise ReadOnlyViolationError("multiple statements are not allowed")
    return statement


def _translate(error: Exception) -> QueryError:
    if isinstance(error, (pg_errors.UndefinedTable, pg_errors.UndefinedColumn, pg_errors.UndefinedFunction)):
        return UnknownObjectError(str(error).strip())
    if isinstance(error, pg_errors.SyntaxError):
        return QuerySyntaxError(str(error).strip())
    if isinstance(error, pg_errors.QueryCanceled):
        return QueryTimeoutError("query execution timeout")
    return QueryError(str(error).strip())


def execute_query(cursor: Any, sql: str, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> QueryResult:
    """Run a validated read-only query under a statement timeout."""
    statement = validate_read_only(sql)
    try:
        cursor.execute(f"SET statement_timeout = {int(timeout_ms)}")
        cursor.execute(statement)
        columns = [d[0] for d in cursor.description or []]
        rows = [tuple(r) for r in cursor.fetchall()] if columns else []
    except psycopg2.Error as e:
        raise _translate(e) from e
    return QueryResult(columns=columns, rows=rows)
