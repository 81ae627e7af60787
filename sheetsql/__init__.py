"""Structure recovery for spreadsheet workbooks.

Turns workbooks of unknown layout into typed relational tables: header
detection, table/matrix classification, matrix unpivoting with aggregate
detection, and column type inference feeding a relational schema.
"""

from .services.processor import process_workbook, process_workbook_async

__all__ = ["process_workbook", "process_workbook_async"]

__version__ = "0.1.0"
