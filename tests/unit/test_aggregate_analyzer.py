from __future__ import annotations

import asyncio
import json
import random
import time

import pytest

from sheetsql.excel.aggregate_analyzer import (
    ArithmeticAggregateClassifier,
    CompletionAggregateClassifier,
    analyze_aggregates,
    analyze_with_timeout,
    build_classifier_prompt,
    parse_classifier_response,
)
from sheetsql.models.config_models import HeuristicsConfig
from sheetsql.models.matrix import AggregateAnalysis


def test_aggregate_column_found_from_arithmetic(matrix_grid):
    result = analyze_aggregates(matrix_grid[0], matrix_grid[1:], 2)
    assert result.aggregate_column_positions == {2}
    assert result.aggregate_row_positions == frozenset()
    assert result.confidence == 1.0


def test_labels_in_any_language_do_not_matter():
    header = ["", "", "Janvier", "Février", "Gesamt"]
    rows = [["", "Loyer", 10, 20, 30], ["", "Salaires", 1.5, 2.25, 3.75], ["", "Divers", 0, 4, 4]]
    assert analyze_aggregates(header, rows, 2).aggregate_column_positions == {2}


def test_subtotal_and_grand_total_rows(sectioned_matrix_grid):
    grid = sectioned_matrix_grid
    result = analyze_aggregates(grid[0], grid[1:], 2)
    assert result.aggregate_column_positions == {2}
    # Total Sales, Total Marketing, Grand Total (substantive positions)
    assert result.aggregate_row_positions == {2, 5, 6}


def test_total_column_before_its_parts():
    header = ["Item", "Total", "A", "B"]
    rows = [["x", 30, 10, 20], ["y", 7, 3, 4], ["z", 11, 5, 6]]
    assert analyze_aggregates(header, rows, 1).aggregate_column_positions == {0}


def test_relationship_must_hold_for_most_rows():
    header = ["", "A", "B", "C"]
    good = [["r1", 1, 2, 3], ["r2", 2, 2, 4], ["r3", 3, 3, 6], ["r4", 5, 5, 10], ["r5", 1, 1, 9]]
    assert analyze_aggregates(header, good, 1).aggregate_column_positions == {2}  # 4 of 5

    bad = good[:3] + [["r4", 5, 5, 11], ["r5", 1, 1, 9]]
    assert analyze_aggregates(header, bad, 1).is_empty  # 3 of 5


def test_tolerance_absorbs_rounding():
    header = ["", "A", "B", "Sum"]
    rows = [["x", 0.1, 0.2, 0.3], ["y", 1 / 3, 2 / 3, 1.0]]
    assert analyze_aggregates(header, rows, 1).aggregate_column_positions == {2}


def test_numeric_text_counts_as_numbers():
    header = ["", "A", "B", "Tot"]
    rows = [["x", "1,000", "2,000", "3,000"], ["y", "$5", "$6", "$11"]]
    assert analyze_aggregates(header, rows, 1).aggregate_column_positions == {2}


@pytest.mark.parametrize(
    "rows",
    [
        [],
        [["", "only", 1, 2, 3]],  # one row is not enough evidence
        [["", "a", "x", "y", "z"], ["", "b", "p", "q", "r"]],  # nothing numeric
        [["", "a", 1, 7, 2], ["", "b", 4, 9, 3]],  # no relationship
    ],
)
def test_inconclusive_input_yields_empty_analysis(rows):
    result = analyze_aggregates(["", "", "Q1", "Q2", "Q3"], rows, 2)
    assert result == AggregateAnalysis.empty()
    assert result.confidence == 0.0


def test_sample_size_is_configurable(sectioned_matrix_grid):
    grid = sectioned_matrix_grid
    result = analyze_aggregates(grid[0], grid[1:], 2, HeuristicsConfig(aggregate_sample_rows=3))
    assert result.aggregate_row_positions == {2}


def test_parse_response_extracts_json_from_prose():
    text = 'Here you go:\n```json\n{"aggregateColumns": [2], "aggregateRows": [4], "confidence": 0.9, "reasoning": "H1 = Q1 + Q2"}\n```'
    result = parse_classifier_response(text)
    assert result.aggregate_column_positions == {2}
    assert result.aggregate_row_positions == {4}
    assert result.confidence == 0.9
    assert result.reasoning == "H1 = Q1 + Q2"


@pytest.mark.parametrize("text", [None, "", "no json here", '{"aggregateColumns": [1', "[1, 2]"])
def test_parse_response_malformed_is_empty(text):
    assert parse_classifier_response(text) == AggregateAnalysis.empty()


def test_parse_response_filters_bad_values():
    result = parse_classifier_response(
        json.dumps({"aggregateColumns": [2, "3", -1, True, 1.5], "aggregateRows": "all", "confidence": 7})
    )
    assert result.aggregate_column_positions == {2}
    assert result.aggregate_row_positions == frozenset()
    assert result.confidence == 1.0


def test_parse_response_default_confidence():
    assert parse_classifier_response('{"aggregateColumns": [0]}').confidence == 0.5


class _SlowClassifier:
    async def classify(self, header_row, data_rows, label_column_count):
        await asyncio.sleep(5)
        return AggregateAnalysis(aggregate_column_positions=frozenset({0}), confidence=1.0)


class _FailingClassifier:
    async def classify(self, header_row, data_rows, label_column_count):
        raise RuntimeError("service unavailable")


class _WrongTypeClassifier:
    async def classify(self, header_row, data_rows, label_column_count):
        return {"aggregateColumns": [0]}


@pytest.mark.parametrize("classifier", [_SlowClassifier(), _FailingClassifier(), _WrongTypeClassifier()])
def test_classifier_failures_degrade_to_empty(classifier):
    result = asyncio.run(analyze_with_timeout(classifier, ["a"], [[1]], 1, timeout=0.05))
    assert result == AggregateAnalysis.empty()


def test_arithmetic_classifier_runs_off_loop(matrix_grid):
    classifier = ArithmeticAggregateClassifier()
    result = asyncio.run(analyze_with_timeout(classifier, matrix_grid[0], matrix_grid[1:], 2, timeout=5))
    assert result.aggregate_column_positions == {2}


def test_completion_classifier_sends_prompt_and_parses_answer(matrix_grid):
    seen = {}

    async def complete(system_prompt: str, prompt: str) -> str:
        seen["system"] = system_prompt
        seen["prompt"] = prompt
        return '{"aggregateColumns": [2], "aggregateRows": [], "confidence": 0.8}'

    classifier = CompletionAggregateClassifier(complete)
    result = asyncio.run(classifier.classify(matrix_grid[0], matrix_grid[1:], 2))
    assert result.aggregate_column_positions == {2}
    assert "NUMERIC PATTERNS" in seen["system"]
    assert "Row 0:" in seen["prompt"] and "Row 1:" in seen["prompt"]
    assert "Row 2:" not in seen["prompt"]  # the section marker row is not numbered


def test_prompt_reports_label_column_offset(matrix_grid):
    prompt = build_classifier_prompt(matrix_grid[0], matrix_grid[1:], 2)
    assert "column index 2" in prompt


def test_total_over_many_columns():
    months = [f"M{i}" for i in range(1, 25)]
    header = ["", *months, "Total"]
    rows = []
    for r in range(4):
        values = [(r + 1) * 10 + i for i in range(24)]
        rows.append([f"line {r}", *values, sum(values)])
    assert analyze_aggregates(header, rows, 1).aggregate_column_positions == {24}


def test_passed_deadline_yields_empty(matrix_grid):
    result = analyze_aggregates(matrix_grid[0], matrix_grid[1:], 2, deadline=time.monotonic() - 1)
    assert result == AggregateAnalysis.empty()


def test_arithmetic_classifier_stops_at_its_timeout():
    rng = random.Random(7)
    header = ["", *[f"C{i}" for i in range(150)]]
    rows = [[f"r{r}", *[rng.randint(1, 10_000) for _ in range(150)]] for r in range(20)]
    classifier = ArithmeticAggregateClassifier(HeuristicsConfig(analyzer_timeout_seconds=0.2))
    started = time.monotonic()
    result = asyncio.run(classifier.classify(header, rows, 1))
    assert time.monotonic() - started < 3
    assert result == AggregateAnalysis.empty()
