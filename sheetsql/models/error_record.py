from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON-lines error log.

Sheet-level problems (a sheet whose processing raised, an analyzer that timed
out) are recorded here instead of aborting the workbook. row=-1 marks errors
that are not tied to a particular grid row.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """One error log line.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Workbook file name
        sheet: Original sheet name
        row: 0-based grid row, -1 when the error concerns the whole sheet
        error_type: Classification in UPPER_SNAKE_CASE (e.g. SHEET_PROCESSING_ERROR)
        message: Human readable description
    """
    timestamp: str
    file: str
    sheet: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # Fixed key set: only the dataclass fields are serialized
        return json.dumps(asdict(self), ensure_ascii=False)
