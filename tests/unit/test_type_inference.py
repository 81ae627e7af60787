from __future__ import annotations

from datetime import date, datetime

import pytest

from sheetsql.excel.type_inference import (
    coerce_value,
    infer_type,
    is_date_string,
    is_identifier_name,
    is_nullable,
)
from sheetsql.models.column import StorageType


@pytest.mark.parametrize(
    "name",
    ["customer_id", "id", "id_customer", "product_code", "api_key", "order_ref", "invoice_no",
     "phone_number", "SKU", "upc", "Order ID"],
)
def test_identifier_columns_are_always_text(name):
    assert is_identifier_name(name)
    assert infer_type(name, ["00123", 45, 7.0, "0099"]) is StorageType.TEXT


def test_mixed_alphanumeric_forces_text():
    assert infer_type("product", ["PROD-001", "PROD-002", 45]) is StorageType.TEXT


@pytest.mark.parametrize(
    "cells, expected",
    [
        ([1, 2, 3], StorageType.INTEGER),
        (["100", "1,200", "$3"], StorageType.INTEGER),
        ([1, 2.5, 3], StorageType.REAL),
        ([True, False, True], StorageType.BOOLEAN),
        (["2024-01-05", "2024/02/01", "03/15/2024"], StorageType.DATE),
        ([datetime(2024, 1, 1), datetime(2024, 1, 2)], StorageType.DATE),
        ([datetime(2024, 1, 1, 9, 30), datetime(2024, 1, 2)], StorageType.TIMESTAMP),
        ([None, "", "   "], StorageType.TEXT),
        # no type reaches the 70% threshold
        ([True, True, 1, 2.5], StorageType.TEXT),
        (["-", "1"], StorageType.TEXT),
    ],
)
def test_infer_type(cells, expected):
    assert infer_type("value", cells) is expected


def test_only_first_twenty_values_are_sampled():
    cells = [1] * 20 + ["not a number"]
    assert infer_type("value", cells) is StorageType.INTEGER


def test_nullable_looks_at_first_fifty_rows():
    assert is_nullable("x", ["a", None]) is True
    assert is_nullable("x", ["a", ""]) is True
    assert is_nullable("x", ["a", "b"]) is False
    assert is_nullable("x", ["a"] * 50 + [None]) is False
    assert is_nullable("x", []) is True


def test_date_strings_are_pattern_only():
    assert is_date_string("2024-01-05")
    assert is_date_string("13/45/2024")
    assert not is_date_string("Jan 5 2024")


@pytest.mark.parametrize(
    "value, storage_type, expected",
    [
        ("007", StorageType.TEXT, "007"),
        (7.0, StorageType.TEXT, "7"),
        ("1,234", StorageType.INTEGER, 1234),
        ("(12.5)", StorageType.REAL, -12.5),
        ("abc", StorageType.INTEGER, None),
        (2.5, StorageType.INTEGER, None),
        ("yes", StorageType.BOOLEAN, True),
        ("2024-01-05", StorageType.DATE, date(2024, 1, 5)),
        ("2024-01-05", StorageType.TIMESTAMP, datetime(2024, 1, 5)),
        (datetime(2024, 1, 5, 10, 0), StorageType.DATE, date(2024, 1, 5)),
        ("", StorageType.TEXT, None),
        (None, StorageType.REAL, None),
    ],
)
def test_coerce_value(value, storage_type, expected):
    assert coerce_value(value, storage_type) == expected
