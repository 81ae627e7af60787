from __future__ import annotations

from sheetsql.excel import sheet_classifier as sc
from sheetsql.excel.sheet_classifier import classify, scan_matrix, score_table
from sheetsql.models.classification import SheetType
from sheetsql.models.config_models import HeuristicsConfig


def test_empty_grid_is_unknown():
    result = classify([])
    assert result.sheet_type is SheetType.UNKNOWN
    assert result.confidence == 0


def test_simple_table(simple_table_grid):
    result = classify(simple_table_grid, suggested_header_row=1)
    assert result.sheet_type is SheetType.TABLE
    assert result.contributions == {
        sc.TABLE_UNIQUE_HEADERS: 10,
        sc.TABLE_DENSITY: 10,
        sc.TABLE_ID_COLUMN: 5,
        sc.TABLE_FIRST_COLUMN: 5,
        sc.TABLE_MIXED_TYPES: 5,
    }
    assert result.confidence == 100
    assert result.period_header_row is None


def test_matrix_with_aggregate_column(matrix_grid):
    result = classify(matrix_grid, suggested_header_row=2)
    assert result.sheet_type is SheetType.MATRIX
    assert result.confidence == 90
    assert result.period_header_row == 0
    assert result.period_headers == ["Q1 Budget", "Q2 Budget", "H1 Total"]
    assert result.label_column_count == 2
    assert result.contributions == {
        sc.MATRIX_PERIOD_ROW: 40,
        sc.MATRIX_SECTIONS: 30,
        sc.MATRIX_NUMERIC: 20,
    }


def test_matrix_prescan_ignores_suggested_header(sectioned_matrix_grid):
    # a wrong table header suggestion must not prevent matrix detection
    result = classify(sectioned_matrix_grid, suggested_header_row=4)
    assert result.sheet_type is SheetType.MATRIX
    assert result.period_headers == ["Jan", "Feb", "Total"]


def test_period_row_without_sections_falls_back_to_table():
    grid = [
        ["Region", "Q1", "Q2", "Q3"],
        ["East", 1, 2, 3],
        ["West", 4, 5, 6],
    ]
    matrix = scan_matrix(grid)
    assert matrix.score == 60  # period row + numeric density, no sections
    assert matrix.label_column_count == 1
    result = classify(grid, 0, HeuristicsConfig(matrix_threshold=61))
    assert result.sheet_type is SheetType.TABLE


def test_thresholds_are_configurable(matrix_grid):
    strict = HeuristicsConfig(matrix_threshold=95)
    assert classify(matrix_grid, 0, strict).sheet_type is not SheetType.MATRIX


def test_single_label_column_when_second_column_is_numeric():
    grid = [
        ["Item", "", "Jan", "Feb"],
        ["SALES", "", "", ""],
        ["Salaries", 5, 1, 2],
    ]
    assert scan_matrix(grid).label_column_count == 1


def test_unclassifiable_grid_is_unknown():
    result = classify([["a"], [None]], 0)
    assert result.sheet_type is SheetType.UNKNOWN
    assert result.confidence == 0


def test_table_scoring_sparse_first_column_gets_no_bonus():
    grid = [["a", "b", "c"], [None, 1, 2], [None, 3, 4]]
    assert sc.TABLE_FIRST_COLUMN not in score_table(grid, 0)


def test_blank_rows_count_as_empty_first_column():
    body = [["SALES"], [None, "A", 1, 2], ["OPS"], [None, "B", 3, 4], ["HR"], [None, "C", 5, 6]]
    header = ["", "", "Q1", "Q2"]
    assert sc.MATRIX_SECTIONS not in scan_matrix([header, *body]).contributions  # 3 of 6
    with_blanks = [header, body[0], [], body[1], [None, None], *body[2:]]
    assert scan_matrix(with_blanks).contributions[sc.MATRIX_SECTIONS] == 30  # 5 of 8
