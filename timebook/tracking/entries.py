import logging
import math

from ..dates import normalize_date
from ..errors import NotFoundError, ValidationError
from ..sheets.aggregation import add_to_ledger
from ..sheets.client import WorkbookClient
from ..sheets.models import TimeEntry, TimeEntryWithCost, TimeEntryWithId
from .projects import ProjectRegistry

logger = logging.getLogger(__name__)

ENTRY_ID_SEPARATOR = "|"
UPDATABLE_FIELDS = ("date", "start_time", "end_time", "duration", "description")


def make_entry_id(project: str, date: str, start_time: str, end_time: str) -> str:
    return ENTRY_ID_SEPARATOR.join([project, date, start_time, end_time])


def parse_entry_id(entry_id: str) -> tuple[str, str, str, str]:
    """Split a composite entry id into (project, date, start time, end time)"""
    parts = str(entry_id).rsplit(ENTRY_ID_SEPARATOR, 3)
    if len(parts) != 4 or not parts[0]:
        raise ValidationError(f"Invalid entry ID: {entry_id}")
    project, date, start_time, end_time = parts
    return project, normalize_date(date), start_time, end_time


def validate_duration(duration: object) -> float:
    if isinstance(duration, bool):
        raise ValidationError("Duration must be a number")
    try:
        hours = float(duration)
    except (TypeError, ValueError) as e:
        raise ValidationError("Duration must be a number") from e
    if math.isnan(hours) or math.isinf(hours) or hours <= 0:
        raise ValidationError("Duration must be a positive number of hours")
    return hours


def sort_entries(entries: list) -> list:
    """Newest first"""
    return sorted(entries, key=lambda entry: (entry.date, entry.start_time), reverse=True)


def _text(value: object) -> str:
    return "" if value is None else str(value)


def _number(value: object) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class TimeEntryLog:
    """Entries of each project, one row per entry in the project's sheet.

    Entries have no id of their own: they are addressed by project, date,
    start and end time. When several rows share that key, the topmost one is
    the one updated or deleted.
    """

    def __init__(self, client: WorkbookClient, projects: ProjectRegistry, auto_create_projects: bool = True):
        self.client = client
        self.projects = projects
        self.auto_create_projects = auto_create_projects

    def append(self, entry: TimeEntry) -> TimeEntryWithCost:
        if not entry.project or not str(entry.project).strip():
            raise ValidationError("Project name must not be empty")
        if not entry.date:
            raise ValidationError("Date is required")
        duration = validate_duration(entry.duration)
        date = normalize_date(entry.date)

        project = self.projects.ensure_project(str(entry.project).strip(), self.auto_create_projects)
        rate = self.projects.get_rate(project)
        cost = round(duration * rate, 2)
        self.client.append_row(
            project,
            [date, _text(entry.start_time), _text(entry.end_time), duration, entry.description or "", cost],
        )
        add_to_ledger(self.client, project, date, duration)

        logger.info(f"Saved entry for {project} on {date}: {duration} hours")
        return TimeEntryWithCost(
            project=project,
            date=date,
            start_time=_text(entry.start_time),
            end_time=_text(entry.end_time),
            duration=duration,
            description=entry.description or "",
            hourly_rate=rate,
            cost=cost,
        )

    def _row_to_entry(self, project: str, values: list, rate: float) -> TimeEntryWithCost:
        duration = _number(values[3])
        persisted_cost = values[5] if len(values) > 5 else None
        if persisted_cost is None or persisted_cost == "":
            cost = round(duration * rate, 2)
        else:
            cost = _number(persisted_cost)
        return TimeEntryWithCost(
            project=project,
            date=normalize_date(values[0]),
            start_time=_text(values[1]),
            end_time=_text(values[2]),
            duration=duration,
            description=_text(values[4]),
            hourly_rate=rate,
            cost=cost,
        )

    def list_by_project(self, project: str) -> list[TimeEntryWithCost]:
        if not self.projects.exists(project):
            return []
        rate = self.projects.get_rate(project)
        entries = [self._row_to_entry(project, values, rate) for values in self.client.get_rows(project)]
        return sort_entries(entries)

    def entries_by_project(self) -> dict[str, list[TimeEntryWithCost]]:
        return {name: self.list_by_project(name) for name in self.projects.project_names()}

    def list_all(self) -> list[TimeEntryWithId]:
        entries = []
        for project_entries in self.entries_by_project().values():
            for entry in project_entries:
                entries.append(
                    TimeEntryWithId(
                        **vars(entry),
                        id=make_entry_id(entry.project, entry.date, entry.start_time, entry.end_time),
                    )
                )
        return sort_entries(entries)

    def _find_row(self, entry_id: str) -> tuple[str, int, list]:
        project, date, start_time, end_time = parse_entry_id(entry_id)
        if not self.projects.exists(project):
            raise NotFoundError(f"Project not found: {project}")

        matches = [
            (row_index, values)
            for row_index, values in self.client.get_indexed_rows(project)
            if normalize_date(values[0]) == date and _text(values[1]) == start_time and _text(values[2]) == end_time
        ]
        if not matches:
            raise NotFoundError(f"Entry not found: {entry_id}")
        if len(matches) > 1:
            logger.warning(f"{len(matches)} entries match {entry_id}, using the first one")

        row_index, values = matches[0]
        return project, row_index, values

    def update(self, entry_id: str, updates: dict) -> TimeEntryWithCost:
        """Apply a partial update to the entry addressed by entry_id"""
        unknown = set(updates) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        project, row_index, values = self._find_row(entry_id)
        rate = self.projects.get_rate(project)
        entry = self._row_to_entry(project, values, rate)

        if updates.get("date") is not None:
            entry.date = normalize_date(updates["date"])
        if updates.get("start_time") is not None:
            entry.start_time = _text(updates["start_time"])
        if updates.get("end_time") is not None:
            entry.end_time = _text(updates["end_time"])
        if updates.get("duration") is not None:
            entry.duration = validate_duration(updates["duration"])
        if updates.get("description") is not None:
            entry.description = _text(updates["description"])
        entry.cost = round(entry.duration * rate, 2)

        self.client.update_row(
            project,
            row_index,
            [entry.date, entry.start_time, entry.end_time, entry.duration, entry.description, entry.cost],
        )
        logger.info(f"Updated entry {entry_id}")
        return entry

    def delete(self, entry_id: str) -> None:
        project, row_index, _ = self._find_row(entry_id)
        self.client.delete_row(project, row_index)
        logger.info(f"Deleted entry {entry_id}")
