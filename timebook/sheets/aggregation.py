"""Derived sheets: the date x project ledger and the per-project analytics.

Neither sheet is authoritative. The ledger is kept up to date incrementally on
every new entry and recomputed from the project sheets whenever entries are
edited or removed; the analytics sheet is regenerated from scratch on every
mutation that can change hours or rates.
"""

import logging
from collections import defaultdict

from openpyxl.utils import quote_sheetname

from ..dates import normalize_date
from .client import WorkbookClient
from .models import (
    ANALYTICS_HEADER,
    ANALYTICS_SHEET,
    LEDGER_HEADER,
    LEDGER_SHEET,
    Analytics,
    Project,
    ProjectRollup,
    TimeEntry,
)

logger = logging.getLogger(__name__)

# Columns of the ledger that are not projects
LEDGER_FIXED_COLUMNS = len(LEDGER_HEADER)
# Duration column of a project sheet
DURATION_COLUMN = "D"


def _number(value: object) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _row_total(values: list) -> float:
    return sum(_number(value) for value in values[LEDGER_FIXED_COLUMNS:])


def _ledger_header(client: WorkbookClient) -> list[str]:
    header = client.get_header(LEDGER_SHEET)
    if len(header) < LEDGER_FIXED_COLUMNS:
        return list(LEDGER_HEADER)
    return [value for value in header if value != ""] or list(LEDGER_HEADER)


def register_ledger_project(client: WorkbookClient, project: str) -> list[str]:
    """Add a project column to the ledger header if it doesn't exist"""
    header = _ledger_header(client)
    if project not in header[LEDGER_FIXED_COLUMNS:]:
        logger.info(f"Adding ledger column: {project}")
        header.append(project)
        client.update_header_row(LEDGER_SHEET, header)
    return header


def add_to_ledger(client: WorkbookClient, project: str, date: str, duration: float) -> None:
    """Add a duration to the (date, project) cell and recompute the date's total"""
    header = register_ledger_project(client, project)
    column = header.index(project, LEDGER_FIXED_COLUMNS)

    for row_index, values in client.get_indexed_rows(LEDGER_SHEET):
        if normalize_date(values[0]) != date:
            continue
        values = values + [None] * (len(header) - len(values))
        values[column] = _number(values[column]) + duration
        values[1] = _row_total(values)
        client.update_row(LEDGER_SHEET, row_index, values)
        return

    new_row = [date, 0] + [0] * (len(header) - LEDGER_FIXED_COLUMNS)
    new_row[column] = duration
    new_row[1] = _row_total(new_row)
    client.append_row(LEDGER_SHEET, new_row)


def rebuild_ledger(
    client: WorkbookClient, project_names: list[str], entries_by_project: dict[str, list[TimeEntry]]
) -> None:
    """Recompute the whole ledger from the project entry logs"""
    header = _ledger_header(client)
    for name in project_names:
        if name not in header[LEDGER_FIXED_COLUMNS:]:
            header.append(name)

    hours_by_date: dict[str, dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for name, entries in entries_by_project.items():
        for entry in entries:
            hours_by_date[normalize_date(entry.date)][name] += entry.duration

    client.reset_sheet(LEDGER_SHEET, header)
    for date in sorted(hours_by_date):
        row = [date, 0] + [hours_by_date[date].get(name, 0) for name in header[LEDGER_FIXED_COLUMNS:]]
        row[1] = _row_total(row)
        client.append_row(LEDGER_SHEET, row)


def rebuild_analytics(client: WorkbookClient, projects: list[Project]) -> None:
    """Regenerate the analytics sheet with one formula row per project.

    Percentages reference the totals row, which is only known once every
    project row is in place, so they are filled in a second pass.
    """
    client.reset_sheet(ANALYTICS_SHEET, ANALYTICS_HEADER)

    for row_number, project in enumerate(projects, start=2):
        hours_range = f"{quote_sheetname(project.name)}!{DURATION_COLUMN}:{DURATION_COLUMN}"
        client.append_row(
            ANALYTICS_SHEET,
            [project.name, f"=SUM({hours_range})", project.hourly_rate, f"=B{row_number}*C{row_number}", None, None],
        )

    last_row = len(projects) + 1
    total_row = last_row + 1
    if projects:
        client.append_row(
            ANALYTICS_SHEET,
            [
                "Total",
                f"=SUM(B2:B{last_row})",
                None,
                f"=SUM(D2:D{last_row})",
                f"=SUM(E2:E{last_row})",
                f"=SUM(F2:F{last_row})",
            ],
        )
    else:
        client.append_row(ANALYTICS_SHEET, ["Total", 0, None, 0, 0, 0])

    for row_number in range(2, total_row):
        values = client.get_row_values(ANALYTICS_SHEET, row_number)
        values[4] = f"=IF($B${total_row}=0,0,B{row_number}/$B${total_row})"
        values[5] = f"=IF($D${total_row}=0,0,D{row_number}/$D${total_row})"
        client.update_row(ANALYTICS_SHEET, row_number, values)


def compute_rollups(projects: list[Project], entries_by_project: dict[str, list[TimeEntry]]) -> Analytics:
    """Compute the analytics view in memory, using current rates"""
    rollups = []
    for project in projects:
        entries = entries_by_project.get(project.name, [])
        hours = sum(entry.duration for entry in entries)
        rollups.append(
            ProjectRollup(
                project=project.name,
                hours=hours,
                hourly_rate=project.hourly_rate,
                cost=round(hours * project.hourly_rate, 2),
                entries=len(entries),
            )
        )

    total_hours = sum(rollup.hours for rollup in rollups)
    total_cost = round(sum(rollup.cost for rollup in rollups), 2)
    for rollup in rollups:
        rollup.hours_share = rollup.hours / total_hours if total_hours else 0.0
        rollup.cost_share = rollup.cost / total_cost if total_cost else 0.0

    return Analytics(projects=rollups, total_hours=total_hours, total_cost=total_cost)
