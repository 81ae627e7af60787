from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""Workbook processing statistics for the SUMMARY output line."""


@dataclass(frozen=True)
class WorkbookStats:
    """Aggregated counters for one processed workbook."""
    file_name: str
    total_sheets: int
    table_sheets: int
    matrix_sheets: int
    unknown_sheets: int
    failed_sheets: int
    total_rows: int
    relationships: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
