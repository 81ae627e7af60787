from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Sheet progress display with tqdm (TTY only).

In non-TTY environments (CI, pipes) no bar is created, so no ANSI control
sequences end up in captured output.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Progress over the sheets of one workbook.

    Sheets may finish in any order when processed concurrently; the bar only
    counts completions.
    """

    def __init__(self, total_sheets: int, *, description: str = "Processing sheets") -> None:
        self.total_sheets = total_sheets
        self.description = description
        self.completed = 0
        self.failed = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_sheets,
                desc=description,
                unit="sheet",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def finish_sheet(self, sheet_name: str, success: bool = True, rows: int = 0) -> None:
        self.completed += 1
        if not success:
            self.failed += 1
        if self.pbar is not None:
            self.pbar.set_postfix(sheet=sheet_name, rows=rows, failed=self.failed)
            self.pbar.update(1)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
