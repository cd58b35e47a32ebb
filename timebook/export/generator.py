"""Build standalone export workbooks from the entries of a store.

Exports are read-only with respect to the store: a fresh workbook is
assembled in memory for every call and returned as bytes. Totals and
percentages are written as formulas so the file stays live when edited.
"""

import logging
from collections import defaultdict
from io import BytesIO

from openpyxl import Workbook
from openpyxl.utils import get_column_letter, quote_sheetname
from openpyxl.worksheet.worksheet import Worksheet

from ..errors import EmptyProjectError
from ..sheets.client import INVALID_TITLE_CHARS
from ..sheets.models import MAX_SHEET_TITLE
from ..store import TimeStore

logger = logging.getLogger(__name__)

ENTRIES_TITLE = "Time entries"
SUMMARY_TITLE = "Summary"
DATE_ANALYTICS_TITLE = "Analytics by date"
OVERVIEW_TITLE = "All projects"

PERCENT_FORMAT = "0.00%"


def _number_literal(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def _set_widths(sheet: Worksheet, widths: list[int]) -> None:
    for column, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(column)].width = width


def _share_formula(column: str, row: int, total_row: int) -> str:
    """Share of a row in the column total, 0 when the total is 0"""
    return f"=IF(${column}${total_row}=0,0,{column}{row}/${column}${total_row})"


def _workbook_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def unique_sheet_title(name: str, taken: set[str]) -> str:
    """Turn a project name into a sheet title not yet in ``taken``.

    Titles are truncated to the spreadsheet limit; when truncation makes two
    titles collide, a ``~2``, ``~3``... suffix is appended. ``taken`` holds
    lower-cased titles and is updated in place.
    """
    cleaned = "".join("_" if char in INVALID_TITLE_CHARS else char for char in name).strip("'") or "Project"
    title = cleaned[:MAX_SHEET_TITLE]
    counter = 2
    while title.lower() in taken:
        suffix = f"~{counter}"
        title = cleaned[: MAX_SHEET_TITLE - len(suffix)] + suffix
        counter += 1
    taken.add(title.lower())
    return title


def export_project(store: TimeStore, project: str) -> bytes:
    """Export one project: entries, summary and per-date analytics sheets"""
    entries = store.get_project_entries(project)
    if not entries:
        raise EmptyProjectError(f"No entries found for project {project}")

    logger.info(f"Exporting {len(entries)} entries of {project}")
    hourly_rate = entries[0].hourly_rate
    workbook = Workbook()

    # Sheet 1: entries with a cost formula per row
    entries_sheet = workbook.active
    entries_sheet.title = ENTRIES_TITLE
    entries_sheet.append(["Date", "Start time", "End time", "Duration (h)", "Cost (EUR)"])
    rate_literal = _number_literal(hourly_rate)
    for row, entry in enumerate(entries, start=2):
        entries_sheet.append([entry.date, entry.start_time, entry.end_time, entry.duration, f"=D{row}*{rate_literal}"])

    last_entry_row = len(entries) + 1
    entries_total_row = last_entry_row + 1
    entries_sheet.append(["TOTAL", "", "", f"=SUM(D2:D{last_entry_row})", f"=SUM(E2:E{last_entry_row})"])
    _set_widths(entries_sheet, [12, 12, 12, 16, 14])
    entries_sheet.auto_filter.ref = f"A1:E{last_entry_row}"

    # Sheet 2: summary statistics
    dates = [entry.date for entry in entries]
    durations = [entry.duration for entry in entries]
    unique_days = len(set(dates))
    average_per_day = round(sum(durations) / unique_days, 2) if unique_days else 0
    entries_ref = quote_sheetname(ENTRIES_TITLE)

    summary_sheet = workbook.create_sheet(SUMMARY_TITLE)
    for values in [
        ["Project summary", ""],
        ["", ""],
        ["Metric", "Value"],
        ["Project", project],
        ["Hourly rate (EUR/h)", hourly_rate],
        ["", ""],
        ["Entries", len(entries)],
        ["Total hours", f"={entries_ref}!D{entries_total_row}"],
        ["Total cost (EUR)", f"={entries_ref}!E{entries_total_row}"],
        ["", ""],
        ["Period", ""],
        ["Start", min(dates)],
        ["End", max(dates)],
        ["", ""],
        ["Statistics", ""],
        ["Unique days", unique_days],
        ["Average hours/day", average_per_day],
        ["Shortest entry (h)", min(durations)],
        ["Longest entry (h)", max(durations)],
    ]:
        summary_sheet.append(values)
    _set_widths(summary_sheet, [25, 20])

    # Sheet 3: hours and cost per date, newest first
    by_date: dict[str, dict[str, float]] = defaultdict(lambda: {"count": 0, "hours": 0.0, "cost": 0.0})
    for entry in entries:
        stats = by_date[entry.date]
        stats["count"] += 1
        stats["hours"] += entry.duration
        stats["cost"] += entry.cost

    analytics_sheet = workbook.create_sheet(DATE_ANALYTICS_TITLE)
    analytics_sheet.append(["Date", "Entries", "Hours", "Cost (EUR)", "% of hours", "% of cost"])
    sorted_dates = sorted(by_date, reverse=True)
    last_date_row = len(sorted_dates) + 1
    date_total_row = last_date_row + 1
    for row, date in enumerate(sorted_dates, start=2):
        stats = by_date[date]
        analytics_sheet.append(
            [
                date,
                stats["count"],
                stats["hours"],
                round(stats["cost"], 2),
                _share_formula("C", row, date_total_row),
                _share_formula("D", row, date_total_row),
            ]
        )
    analytics_sheet.append(["TOTAL"] + [f"=SUM({column}2:{column}{last_date_row})" for column in "BCDEF"])
    for row in range(2, date_total_row + 1):
        analytics_sheet[f"E{row}"].number_format = PERCENT_FORMAT
        analytics_sheet[f"F{row}"].number_format = PERCENT_FORMAT
    _set_widths(analytics_sheet, [12, 10, 10, 14, 18, 20])
    analytics_sheet.auto_filter.ref = f"A1:F{last_date_row}"

    return _workbook_bytes(workbook)


def export_all_projects(store: TimeStore) -> bytes:
    """Export an overview of every project plus one sheet per project with entries"""
    projects = store.list_projects()
    workbook = Workbook()

    project_stats = []
    for project in projects:
        entries = store.get_project_entries(project.name)
        project_stats.append(
            {
                "name": project.name,
                "rate": project.hourly_rate,
                "hours": sum(entry.duration for entry in entries),
                "cost": round(sum(entry.cost for entry in entries), 2),
                "entries": entries,
            }
        )

    overview = workbook.active
    overview.title = OVERVIEW_TITLE
    overview.append(["Project", "Rate (EUR/h)", "Hours", "Cost (EUR)", "Entries", "% of hours", "% of cost"])
    last_row = len(project_stats) + 1
    total_row = last_row + 1
    for row, stats in enumerate(project_stats, start=2):
        overview.append(
            [
                stats["name"],
                stats["rate"],
                stats["hours"],
                stats["cost"],
                len(stats["entries"]),
                _share_formula("C", row, total_row),
                _share_formula("D", row, total_row),
            ]
        )
    if project_stats:
        overview.append(["TOTAL", None] + [f"=SUM({column}2:{column}{last_row})" for column in "CDEFG"])
    else:
        overview.append(["TOTAL", None, 0, 0, 0, 0, 0])
    for row in range(2, total_row + 1):
        overview[f"F{row}"].number_format = PERCENT_FORMAT
        overview[f"G{row}"].number_format = PERCENT_FORMAT
    _set_widths(overview, [25, 14, 14, 18, 10, 18, 20])
    overview.auto_filter.ref = f"A1:G{last_row}"

    taken = {OVERVIEW_TITLE.lower()}
    for stats in project_stats:
        entries = stats["entries"]
        if not entries:
            continue

        sheet = workbook.create_sheet(unique_sheet_title(stats["name"], taken))
        sheet.append(["Date", "Start", "End", "Hours", "Cost (EUR)"])
        for entry in entries:
            sheet.append([entry.date, entry.start_time, entry.end_time, entry.duration, entry.cost])
        last_entry_row = len(entries) + 1
        sheet.append(["TOTAL", "", "", f"=SUM(D2:D{last_entry_row})", f"=SUM(E2:E{last_entry_row})"])
        _set_widths(sheet, [12, 10, 10, 10, 14])
        sheet.auto_filter.ref = f"A1:E{last_entry_row}"

    logger.info(f"Exported {len(project_stats)} projects")
    return _workbook_bytes(workbook)
