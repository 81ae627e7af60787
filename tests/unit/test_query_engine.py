from __future__ import annotations

import pytest
from psycopg2 import errors as pg_errors

from sheetsql.db import query_engine as qe
from sheetsql.db.batch_insert import InsertResult
from sheetsql.db.query_engine import (
    QueryError,
    QuerySyntaxError,
    QueryTimeoutError,
    ReadOnlyViolationError,
    UnknownObjectError,
    create_table_sql,
    execute_query,
    load_sheet,
    validate_read_only,
)
from sheetsql.models.classification import SheetType
from sheetsql.models.column import ColumnInfo, StorageType
from sheetsql.models.sheet import ProcessedSheet


class DummyCursor:
    def __init__(self, result=None, description=None, fail_on=None, error=None) -> None:
        self.executed: list[str] = []
        self.result = result or []
        self.description = description
        self.fail_on = fail_on
        self.error = error

    def execute(self, sql):
        self.executed.append(sql)
        if self.fail_on and self.fail_on in sql:
            raise self.error

    def fetchall(self):
        return self.result


def _sheet(columns, rows):
    return ProcessedSheet(
        name="budget",
        original_name="Budget",
        sheet_type=SheetType.MATRIX,
        header_row=0,
        columns=columns,
        data_rows=rows,
    )


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT * FROM t",
        "  select a from t;  ",
        "WITH x AS (SELECT 1) SELECT * FROM x",
        "SELECT created_at, updated_by FROM t",
        "-- leading comment\nSELECT 1",
        "SELECT * FROM orders WHERE status = 'Update'",
        "SELECT replace(name, 'a', 'b') FROM t",
        'SELECT "delete" FROM t',
        "SELECT 'x;y', '--' AS dashes, b FROM t",
        "SELECT 'it''s' FROM t",
    ],
)
def test_validate_read_only_accepts(sql):
    assert validate_read_only(sql) == sql.strip()


@pytest.mark.parametrize(
    "sql",
    [
        "",
        "   ",
        None,
        "DELETE FROM t",
        "SELECT 1; DROP TABLE t",
        "SELECT 1; SELECT 2",
        "EXPLAIN SELECT 1",
        "SELECT * FROM t /* comment */ ; UPDATE t SET a = 1",
        "SELECT " + "a" * 10001,
        "SELECT 'it''s'; DELETE FROM t",
        "SELECT 1 -- it's\n; DROP TABLE t",
        "SELECT 1 FROM t; REPLACE INTO t VALUES (1)",
    ],
)
def test_validate_read_only_rejects(sql):
    with pytest.raises(ReadOnlyViolationError):
        validate_read_only(sql)


def test_create_table_sql_maps_types():
    sheet = _sheet(
        [
            ColumnInfo("section", "section", StorageType.TEXT, False),
            ColumnInfo("amount", "amount", StorageType.REAL, False),
            ColumnInfo("qty", "qty", StorageType.INTEGER, True),
            ColumnInfo("is_aggregate", "is_aggregate", StorageType.BOOLEAN, False),
        ],
        [],
    )
    assert create_table_sql(sheet) == (
        'CREATE TABLE "budget" ("section" TEXT, "amount" DOUBLE PRECISION, '
        '"qty" BIGINT, "is_aggregate" BOOLEAN)'
    )


def test_load_sheet(monkeypatch):
    inserted = {}

    def fake_batch_insert(cursor, table, columns, rows, page_size=1000, metrics_callback=None):
        inserted.update(table=table, columns=columns, rows=rows)
        return InsertResult(inserted_rows=len(rows))

    monkeypatch.setattr(qe, "batch_insert", fake_batch_insert)
    cur = DummyCursor()
    sheet = _sheet([ColumnInfo("amount", "amount", StorageType.REAL, False)], [[1.0], [2.0]])
    assert load_sheet(cur, sheet) == 2
    assert cur.executed[0] == 'DROP TABLE IF EXISTS "budget"'
    assert cur.executed[1].startswith('CREATE TABLE "budget"')
    assert inserted == {"table": "budget", "columns": ["amount"], "rows": [[1.0], [2.0]]}


def test_load_sheet_without_columns_is_skipped():
    cur = DummyCursor()
    assert load_sheet(cur, _sheet([], [])) == 0
    assert cur.executed == []


def test_execute_query_sets_timeout():
    cur = DummyCursor(result=[("Sales", 1.5)], description=[("section",), ("amount",)])
    result = execute_query(cur, "SELECT section, amount FROM budget", timeout_ms=2500)
    assert cur.executed[0] == "SET statement_timeout = 2500"
    assert result.columns == ["section", "amount"]
    assert result.rows == [("Sales", 1.5)]
    assert result.row_count == 1


@pytest.mark.parametrize(
    "error, expected",
    [
        (pg_errors.UndefinedTable('relation "nope" does not exist'), UnknownObjectError),
        (pg_errors.UndefinedColumn('column "x" does not exist'), UnknownObjectError),
        (pg_errors.SyntaxError("syntax error at or near"), QuerySyntaxError),
        (pg_errors.QueryCanceled("canceling statement due to statement timeout"), QueryTimeoutError),
        (pg_errors.DivisionByZero("division by zero"), QueryError),
    ],
)
def test_execute_query_translates_errors(error, expected):
    cur = DummyCursor(fail_on="FROM", error=error)
    with pytest.raises(expected):
        execute_query(cur, "SELECT * FROM nope")


def test_execute_query_rejects_before_touching_database():
    cur = DummyCursor()
    with pytest.raises(ReadOnlyViolationError):
        execute_query(cur, "DROP TABLE budget")
    assert cur.executed == []
