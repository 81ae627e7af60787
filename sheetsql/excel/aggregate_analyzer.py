from __future__ import annotations

import asyncio
import json
import logging
import math
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from ..models.cell import numeric_value
from ..models.config_models import HeuristicsConfig
from ..models.matrix import AggregateAnalysis
from .patterns import substantive_rows

"""Aggregate detection for matrix sheets.

Labels such as "Total" may be written in any language, so aggregates are found
from arithmetic alone: a column is an aggregate when, for most rows, it equals
the sum of a run of other columns; a row is an aggregate when, for most
columns, it equals the sum of a run of rows of its section.

Positions are relative to the data region: columns from `label_column_count`
on, rows counting substantive data rows only (see patterns.substantive_rows).

The result is advisory. Every failure path returns AggregateAnalysis.empty(),
and `analyze_with_timeout` bounds any classifier (including an external
language-model classifier) by a timeout.
"""

__all__ = [
    "analyze_aggregates",
    "AggregateClassifier",
    "ArithmeticAggregateClassifier",
    "CompletionAggregateClassifier",
    "parse_classifier_response",
    "build_classifier_prompt",
    "analyze_with_timeout",
]

logger = logging.getLogger(__name__)

_DEFAULTS = HeuristicsConfig()
_MIN_CHECKS = 2


@dataclass(frozen=True)
class _Relation:
    target: int
    members: tuple[int, ...]
    support: float
    checked: int


def _close(a: float, b: float, config: HeuristicsConfig) -> bool:
    return math.isclose(
        a, b, rel_tol=config.aggregate_rel_tolerance, abs_tol=config.aggregate_abs_tolerance
    )


def _support(
    target: Sequence[float | None],
    members: Sequence[Sequence[float | None]],
    config: HeuristicsConfig,
) -> tuple[float, int]:
    """Share of informative positions where target == sum(members)."""
    checked = matched = 0
    for i, value in enumerate(target):
        if value is None:
            continue
        parts = [m[i] for m in members]
        if all(p is None for p in parts):
            continue
        total = sum(p for p in parts if p is not None)
        if total == 0 and value == 0:
            continue
        checked += 1
        if _close(total, value, config):
            matched += 1
    if checked == 0:
        return 0.0, 0
    return matched / checked, checked


class _AnalysisTimeout(Exception):
    pass


def _check_deadline(deadline: float | None) -> None:
    if deadline is not None and time.monotonic() > deadline:
        raise _AnalysisTimeout


class _RunSums:
    """Per-row prefix sums over an ordered list of columns.

    total(i, start, end) is the sum of row i over columns[start:end], None when
    every one of those cells is empty.
    """

    def __init__(self, columns: Sequence[Sequence[float | None]], rows: int) -> None:
        self.sums: list[list[float]] = []
        self.counts: list[list[int]] = []
        for i in range(rows):
            sums = [0.0]
            counts = [0]
            for col in columns:
                value = col[i]
                sums.append(sums[-1] + (value or 0.0))
                counts.append(counts[-1] + (value is not None))
            self.sums.append(sums)
            self.counts.append(counts)

    def total(self, i: int, start: int, end: int) -> float | None:
        if self.counts[i][end] == self.counts[i][start]:
            return None
        return self.sums[i][end] - self.sums[i][start]


def _run_support(
    target: Sequence[float | None], runs: _RunSums, start: int, end: int, config: HeuristicsConfig
) -> tuple[float, int]:
    checked = matched = 0
    for i, value in enumerate(target):
        if value is None:
            continue
        total = runs.total(i, start, end)
        if total is None or (total == 0 and value == 0):
            continue
        checked += 1
        if _close(total, value, config):
            matched += 1
    if checked == 0:
        return 0.0, 0
    return matched / checked, checked


def _best_run(
    target: int,
    items: Sequence[int],
    column: Callable[[int], Sequence[float | None]],
    config: HeuristicsConfig,
    deadline: float | None,
) -> _Relation | None:
    """Best contiguous run (length >= 2, longest first) of `items` summing to `target`."""
    n = len(items)
    if n < 2:
        return None
    target_values = column(target)
    runs = _RunSums([column(c) for c in items], len(target_values))
    best: _Relation | None = None
    for length in range(n, 1, -1):
        for start in range(0, n - length + 1):
            _check_deadline(deadline)
            support, checked = _run_support(target_values, runs, start, start + length, config)
            if checked < _MIN_CHECKS or support < config.aggregate_min_support:
                continue
            if best is None or support > best.support:
                best = _Relation(
                    target=target,
                    members=tuple(items[start : start + length]),
                    support=support,
                    checked=checked,
                )
                if support == 1.0:
                    return best
    return best


def _best_relation(
    target: int,
    candidates: list[tuple[int, ...]],
    series: Callable[[int], Sequence[float | None]],
    config: HeuristicsConfig,
    deadline: float | None,
) -> _Relation | None:
    best: _Relation | None = None
    target_values = series(target)
    for members in candidates:
        _check_deadline(deadline)
        support, checked = _support(target_values, [series(m) for m in members], config)
        if checked < _MIN_CHECKS or support < config.aggregate_min_support:
            continue
        if best is None or support > best.support:
            best = _Relation(target=target, members=members, support=support, checked=checked)
    return best


def _pick(*relations: _Relation | None) -> _Relation | None:
    best: _Relation | None = None
    for relation in relations:
        if relation is not None and (best is None or relation.support > best.support):
            best = relation
    return best


def _detect_columns(
    values: list[list[float | None]], width: int, config: HeuristicsConfig, deadline: float | None
) -> list[_Relation]:
    def column(c: int) -> list[float | None]:
        return [row[c] for row in values]

    numeric = [c for c in range(width) if any(v is not None for v in column(c))]
    base: list[int] = []
    aggregates: list[int] = []
    found: list[_Relation] = []

    # Totals to the right of their parts (Q1, Q2, H1 Total ...)
    for c in numeric:
        relation = _pick(
            _best_run(c, base, column, config, deadline),
            _best_run(c, aggregates, column, config, deadline),
        )
        if relation is None:
            base.append(c)
        else:
            aggregates.append(c)
            found.append(relation)

    # Totals to the left of their parts (Total, Jan, Feb ...)
    for c in list(base):
        following = [b for b in base if b > c]
        relation = _best_run(c, following, column, config, deadline)
        if relation is not None:
            base.remove(c)
            found.append(relation)
    return found


def _detect_rows(
    values: list[list[float | None]],
    sections: list[int],
    config: HeuristicsConfig,
    deadline: float | None,
) -> list[_Relation]:
    def row(r: int) -> list[float | None]:
        return values[r]

    base: list[int] = []
    aggregates: list[int] = []
    found: list[_Relation] = []
    for r in range(len(values)):
        in_section = [b for b in base if sections[b] == sections[r]]
        candidates = [in_section[i:] for i in range(len(in_section) - 1)]
        candidates = [tuple(c) for c in candidates]
        if len({sections[b] for b in base}) > 1:
            candidates.append(tuple(base))  # grand total over every section
        if len(aggregates) >= 2:
            candidates.append(tuple(aggregates))  # sum of subtotals
        relation = _best_relation(r, candidates, row, config, deadline)
        if relation is None:
            base.append(r)
        else:
            aggregates.append(r)
            found.append(relation)
    return found


def analyze_aggregates(
    header_row: Sequence[Any],
    data_rows: Sequence[Sequence[Any]],
    label_column_count: int,
    config: HeuristicsConfig = _DEFAULTS,
    deadline: float | None = None,
) -> AggregateAnalysis:
    """Find aggregate column and row positions from numeric relationships.

    `deadline` is a time.monotonic() value; once it passes the search stops and
    the empty analysis is returned.
    """
    rows = substantive_rows([list(r or []) for r in data_rows], label_column_count)
    rows = rows[: config.aggregate_sample_rows]
    if len(rows) < _MIN_CHECKS:
        return AggregateAnalysis.empty()

    width = max([len(header_row), *(len(r) for _, _, r in rows)]) - label_column_count
    if width <= 0:
        return AggregateAnalysis.empty()

    values: list[list[float | None]] = []
    for _, _, row in rows:
        cells = list(row[label_column_count:]) + [None] * width
        values.append([_as_float(v) for v in cells[:width]])
    if not any(v is not None for row in values for v in row):
        return AggregateAnalysis.empty()

    try:
        column_relations = _detect_columns(values, width, config, deadline)
        row_relations = _detect_rows(values, [section for _, section, _ in rows], config, deadline)
    except _AnalysisTimeout:
        logger.warning(f"aggregate search over {width} columns hit its deadline; assuming no aggregates")
        return AggregateAnalysis.empty()
    relations = column_relations + row_relations
    if not relations:
        return AggregateAnalysis.empty()

    reasoning = "; ".join(
        [f"column {r.target} = sum{list(r.members)} ({r.support:.0%} of {r.checked} rows)" for r in column_relations]
        + [f"row {r.target} = sum{list(r.members)} ({r.support:.0%} of {r.checked} columns)" for r in row_relations]
    )
    return AggregateAnalysis(
        aggregate_column_positions=frozenset(r.target for r in column_relations),
        aggregate_row_positions=frozenset(r.target for r in row_relations),
        confidence=round(sum(r.support for r in relations) / len(relations), 4),
        reasoning=reasoning,
    )


def _as_float(value: Any) -> float | None:
    number = numeric_value(value)
    return None if number is None else float(number)


class AggregateClassifier(Protocol):
    async def classify(
        self,
        header_row: Sequence[Any],
        data_rows: Sequence[Sequence[Any]],
        label_column_count: int,
    ) -> AggregateAnalysis: ...


class ArithmeticAggregateClassifier:
    """Local classifier running analyze_aggregates off the event loop."""

    def __init__(self, config: HeuristicsConfig = _DEFAULTS) -> None:
        self.config = config

    async def classify(
        self,
        header_row: Sequence[Any],
        data_rows: Sequence[Sequence[Any]],
        label_column_count: int,
    ) -> AggregateAnalysis:
        # The worker thread cannot be cancelled; the deadline ends it with the await
        deadline = time.monotonic() + self.config.analyzer_timeout_seconds
        return await asyncio.to_thread(
            analyze_aggregates, header_row, data_rows, label_column_count, self.config, deadline
        )


CLASSIFIER_SYSTEM_PROMPT = """You are a spreadsheet structure analyzer. Identify calculated aggregate \
columns and rows by analyzing NUMERIC PATTERNS, not text labels (labels may be in any language).

AGGREGATE COLUMNS: columns whose values equal the sum of other columns for most rows.
AGGREGATE ROWS: rows whose values equal the sum of other rows of the same section.

Return indices relative to the data portion: columns counted from the first numeric data column, \
rows counted from the first data row below the header (0-based).

Return ONLY valid JSON:
{"aggregateColumns": [...], "aggregateRows": [...], "confidence": <0.0-1.0>, "reasoning": "..."}"""

CompletionFn = Callable[[str, str], Awaitable[str]]


def build_classifier_prompt(
    header_row: Sequence[Any],
    data_rows: Sequence[Sequence[Any]],
    label_column_count: int,
    max_rows: int = 20,
) -> str:
    rows = substantive_rows([list(r or []) for r in data_rows], label_column_count)[:max_rows]
    lines = [f"Row {pos}: {json.dumps(list(row), default=str)}" for pos, _, row in rows]
    return (
        "Analyze this spreadsheet matrix to identify aggregate columns and rows.\n\n"
        f"## Headers\n{json.dumps(list(header_row), default=str)}\n\n"
        f"## Data Rows (first {len(rows)})\n" + "\n".join(lines) + "\n\n"
        f"## Context\n- Numeric data starts at column index {label_column_count}\n"
        "Return your analysis as JSON."
    )


_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def parse_classifier_response(text: str | None) -> AggregateAnalysis:
    """Parse an external classifier's JSON answer. Anything malformed yields empty."""
    if not text or not text.strip():
        return AggregateAnalysis.empty()
    match = _JSON_OBJECT_RE.search(text)
    if match is None:
        logger.warning("aggregate classifier: no JSON object in response")
        return AggregateAnalysis.empty()
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"aggregate classifier: unparsable response: {e}")
        return AggregateAnalysis.empty()
    if not isinstance(parsed, dict):
        return AggregateAnalysis.empty()

    def positions(key: str) -> frozenset[int]:
        raw = parsed.get(key)
        if not isinstance(raw, list):
            return frozenset()
        return frozenset(
            n for n in raw if isinstance(n, int) and not isinstance(n, bool) and n >= 0
        )

    confidence = parsed.get("confidence")
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        confidence = min(1.0, max(0.0, float(confidence)))
    else:
        confidence = 0.5
    reasoning = parsed.get("reasoning")
    return AggregateAnalysis(
        aggregate_column_positions=positions("aggregateColumns"),
        aggregate_row_positions=positions("aggregateRows"),
        confidence=confidence,
        reasoning=reasoning if isinstance(reasoning, str) else None,
    )


class CompletionAggregateClassifier:
    """Delegates to an external language classifier.

    `complete(system_prompt, user_prompt)` is any coroutine returning the model's
    text answer; transport and credentials belong to the caller.
    """

    def __init__(self, complete: CompletionFn, max_rows: int = 20) -> None:
        self._complete = complete
        self.max_rows = max_rows

    async def classify(
        self,
        header_row: Sequence[Any],
        data_rows: Sequence[Sequence[Any]],
        label_column_count: int,
    ) -> AggregateAnalysis:
        prompt = build_classifier_prompt(header_row, data_rows, label_column_count, self.max_rows)
        response = await self._complete(CLASSIFIER_SYSTEM_PROMPT, prompt)
        return parse_classifier_response(response)


async def analyze_with_timeout(
    classifier: AggregateClassifier,
    header_row: Sequence[Any],
    data_rows: Sequence[Sequence[Any]],
    label_column_count: int,
    timeout: float,
) -> AggregateAnalysis:
    """Await the classifier for at most `timeout` seconds; never raises."""
    try:
        result = await asyncio.wait_for(
            classifier.classify(header_row, data_rows, label_column_count), timeout
        )
    except asyncio.TimeoutError:
        logger.warning(f"aggregate analysis timed out after {timeout}s; assuming no aggregates")
        return AggregateAnalysis.empty()
    except Exception as e:
        logger.warning(f"aggregate analysis failed ({type(e).__name__}: {e}); assuming no aggregates")
        return AggregateAnalysis.empty()
    if not isinstance(result, AggregateAnalysis):
        logger.warning("aggregate analysis returned an unexpected result; assuming no aggregates")
        return AggregateAnalysis.empty()
    return result
