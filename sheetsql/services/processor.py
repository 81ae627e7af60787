from __future__ import annotations

import asyncio
import dataclasses
import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from ..excel.aggregate_analyzer import (
    AggregateClassifier,
    ArithmeticAggregateClassifier,
    analyze_with_timeout,
)
from ..excel.header_locator import detect_header
from ..excel.matrix_normalizer import normalize
from ..excel.naming import dedupe_names, sanitize_table_name
from ..excel.reader import LoadedWorkbook, load_workbook_bytes
from ..excel.sheet_classifier import classify
from ..excel.type_inference import coerce_value
from ..logging.error_log import ErrorLogBuffer
from ..models.cell import Grid, is_blank_row
from ..models.classification import ClassificationResult, SheetType
from ..models.config_models import IngestConfig
from ..models.detection import HeaderDetectionResult
from ..models.error_record import ErrorRecord
from ..models.schema import ProcessedWorkbook
from ..models.sheet import ProcessedSheet
from .progress import ProgressTracker
from .schema import assemble_schema

"""Workbook processing: the single entry point of the structure-recovery pipeline.

Per sheet: header detection -> classification -> table extraction, or for
matrix layouts aggregate analysis (awaited, bounded by a timeout) followed by
unpivoting. Sheets are processed concurrently and independently; a sheet that
raises becomes an UNKNOWN sheet carrying the error, and the other sheets are
unaffected. The workbook schema and relationships are assembled once every
sheet is done.

Only an unreadable workbook (WorkbookReadError) aborts the upload.
"""

__all__ = [
    "process_sheet",
    "process_workbook",
    "process_workbook_async",
    "SHEET_ERROR_TYPE",
]

logger = logging.getLogger(__name__)

SHEET_ERROR_TYPE = "SHEET_PROCESSING_ERROR"


def _table_rows(grid: Grid, header: HeaderDetectionResult) -> list[list[Any]]:
    rows = []
    for raw in grid[header.header_row_index + 1 :]:
        row = list(raw or [])
        if is_blank_row(row):
            continue
        rows.append(
            [
                coerce_value(row[c.source_index] if c.source_index < len(row) else None, c.storage_type)
                for c in header.columns
            ]
        )
    return rows


def _table_sheet(
    name: str,
    grid: Grid,
    header: HeaderDetectionResult,
    classification: ClassificationResult,
    preview_limit: int,
) -> ProcessedSheet:
    return ProcessedSheet(
        name=sanitize_table_name(name),
        original_name=name,
        sheet_type=classification.sheet_type,
        header_row=header.header_row_index,
        columns=list(header.columns),
        data_rows=_table_rows(grid, header),
        header_confidence=header.confidence,
        classification_confidence=classification.confidence,
        preview_limit=preview_limit,
        column_indices=[c.source_index for c in header.columns],
    )


async def _matrix_sheet(
    name: str,
    grid: Grid,
    header: HeaderDetectionResult,
    classification: ClassificationResult,
    classifier: AggregateClassifier,
    config: IngestConfig,
) -> ProcessedSheet:
    h = config.heuristics
    period_row = classification.period_header_row
    if period_row is None:
        period_row = header.header_row_index
    label_count = classification.label_column_count or 2

    analysis = await analyze_with_timeout(
        classifier,
        list(grid[period_row] or []),
        grid[period_row + 1 :],
        label_count,
        h.analyzer_timeout_seconds,
    )
    if not analysis.is_empty:
        logger.info(
            f"sheet '{name}': aggregates columns={sorted(analysis.aggregate_column_positions)} "
            f"rows={sorted(analysis.aggregate_row_positions)} confidence={analysis.confidence}"
        )

    matrix = normalize(grid, period_row, classification.period_headers, label_count, analysis, h)
    sheet_type = SheetType.MATRIX if matrix.unpivoted else SheetType.UNKNOWN
    return ProcessedSheet(
        name=sanitize_table_name(name),
        original_name=name,
        sheet_type=sheet_type,
        header_row=period_row,
        columns=matrix.columns,
        data_rows=matrix.rows,
        header_confidence=header.confidence,
        classification_confidence=classification.confidence if matrix.unpivoted else 0,
        aggregate_info=matrix.aggregate_info,
        source_rows=grid if matrix.unpivoted else None,
        preview_limit=h.preview_rows,
        column_indices=[] if matrix.unpivoted else [c.source_index for c in matrix.columns],
    )


async def process_sheet(
    name: str,
    grid: Grid,
    config: IngestConfig | None = None,
    classifier: AggregateClassifier | None = None,
) -> ProcessedSheet:
    """Recover the structure of one sheet grid. May raise; see process_workbook_async."""
    config = config or IngestConfig()
    h = config.heuristics
    if not grid:
        return ProcessedSheet(
            name=sanitize_table_name(name),
            original_name=name,
            sheet_type=SheetType.UNKNOWN,
            header_row=0,
            columns=[],
            data_rows=[],
            preview_limit=h.preview_rows,
        )

    header = detect_header(grid, h)
    logger.info(
        f"sheet '{name}': header row {header.header_row_index} (confidence {header.confidence}%)"
    )
    classification = classify(grid, header.header_row_index, h)
    logger.info(
        f"sheet '{name}': type {classification.sheet_type.value} "
        f"(confidence {classification.confidence}%)"
    )

    if classification.sheet_type is SheetType.MATRIX:
        return await _matrix_sheet(
            name,
            grid,
            header,
            classification,
            classifier or ArithmeticAggregateClassifier(h),
            config,
        )
    return _table_sheet(name, grid, header, classification, h.preview_rows)


def _failed_sheet(name: str, error: Exception, preview_limit: int) -> ProcessedSheet:
    return ProcessedSheet(
        name=sanitize_table_name(name),
        original_name=name,
        sheet_type=SheetType.UNKNOWN,
        header_row=0,
        columns=[],
        data_rows=[],
        preview_limit=preview_limit,
        error=f"{type(error).__name__}: {error}",
    )


def _unique_table_names(sheets: list[ProcessedSheet]) -> list[ProcessedSheet]:
    names = dedupe_names([s.name for s in sheets], fallback_prefix="sheet")
    return [s if s.name == n else dataclasses.replace(s, name=n) for s, n in zip(sheets, names, strict=True)]


async def process_workbook_async(
    data: bytes | LoadedWorkbook,
    file_name: str = "workbook.xlsx",
    config: IngestConfig | None = None,
    classifier: AggregateClassifier | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ProcessedWorkbook:
    """Process every sheet of a workbook and assemble its schema.

    Raises WorkbookReadError when the bytes cannot be read or hold no sheet.
    Sheet failures are recorded in `error_log` (when given) and reported on
    the sheet's `error` field instead of being raised.
    """
    config = config or IngestConfig()
    workbook = data if isinstance(data, LoadedWorkbook) else load_workbook_bytes(data)
    classifier = classifier or ArithmeticAggregateClassifier(config.heuristics)

    with ProgressTracker(len(workbook.sheet_names)) as progress:

        async def run(name: str) -> ProcessedSheet:
            try:
                sheet = await process_sheet(name, workbook.evaluated_grids.get(name, []), config, classifier)
            except Exception as e:
                logger.error(f"sheet '{name}' failed: {e}", exc_info=True)
                if error_log is not None:
                    error_log.append(ErrorRecord.create(file_name, name, -1, SHEET_ERROR_TYPE, str(e)))
                progress.finish_sheet(name, success=False)
                return _failed_sheet(name, e, config.heuristics.preview_rows)
            progress.finish_sheet(name, success=True, rows=sheet.row_count)
            return sheet

        sheets = list(await asyncio.gather(*(run(n) for n in workbook.sheet_names)))

    sheets = _unique_table_names(sheets)
    schema = assemble_schema(sheets)
    return ProcessedWorkbook(
        upload_id=str(uuid.uuid4()),
        file_name=file_name,
        sheets=sheets,
        schema=schema,
        created_at=datetime.now(UTC),
    )


def process_workbook(
    data: bytes | LoadedWorkbook,
    file_name: str = "workbook.xlsx",
    config: IngestConfig | None = None,
    classifier: AggregateClassifier | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ProcessedWorkbook:
    """Synchronous wrapper around process_workbook_async."""
    return asyncio.run(process_workbook_async(data, file_name, config, classifier, error_log))
