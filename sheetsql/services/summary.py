from __future__ import annotations

from datetime import datetime

from ..models.classification import SheetType
from ..models.processing_result import WorkbookStats
from ..models.schema import ProcessedWorkbook

"""SUMMARY line rendering.

Format:
SUMMARY sheets={n} tables={t} matrix={m} unknown={u} rows={r}
relationships={k} failed_sheets={f} elapsed_sec={s}
"""

__all__ = [
    "render_summary_line",
    "format_seconds",
    "collect_stats",
]


def format_seconds(value: float) -> str:
    """Render seconds without scientific notation or trailing zeros."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(stats: WorkbookStats) -> str:
    """
    >>> from datetime import datetime, timezone
    >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    >>> render_summary_line(WorkbookStats("b.xlsx", 3, 2, 1, 0, 0, 120, 1, t, t, 1.5))
    'SUMMARY sheets=3 tables=2 matrix=1 unknown=0 rows=120 relationships=1 failed_sheets=0 elapsed_sec=1.5'
    """
    return (
        f"SUMMARY sheets={stats.total_sheets} "
        f"tables={stats.table_sheets} "
        f"matrix={stats.matrix_sheets} "
        f"unknown={stats.unknown_sheets} "
        f"rows={stats.total_rows} "
        f"relationships={stats.relationships} "
        f"failed_sheets={stats.failed_sheets} "
        f"elapsed_sec={format_seconds(stats.elapsed_seconds)}"
    )


def collect_stats(workbook: ProcessedWorkbook, start_time: datetime, end_time: datetime) -> WorkbookStats:
    sheets = workbook.sheets
    return WorkbookStats(
        file_name=workbook.file_name,
        total_sheets=len(sheets),
        table_sheets=sum(1 for s in sheets if s.sheet_type is SheetType.TABLE),
        matrix_sheets=sum(1 for s in sheets if s.sheet_type is SheetType.MATRIX),
        unknown_sheets=sum(1 for s in sheets if s.sheet_type is SheetType.UNKNOWN),
        failed_sheets=len(workbook.failed_sheets),
        total_rows=sum(s.row_count for s in sheets),
        relationships=len(workbook.relationships),
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=round((end_time - start_time).total_seconds(), 3),
    )
