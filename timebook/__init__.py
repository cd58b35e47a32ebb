"""Timebook - personal time tracking with billable rates.

This package tracks project time with timers and manual entries, storing the
data in a monthly spreadsheet workbook (or a SQLite database) and exporting
billed time to standalone workbooks.
"""

__version__ = "0.1.0"

from .db.sqlite_client import SQLiteClient
from .sheets.client import WorkbookClient
from .tracking.tracker import TimeTracker


__all__ = [
    "SQLiteClient",
    "TimeTracker",
    "WorkbookClient",
]
