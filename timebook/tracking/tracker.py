import logging
import threading
from collections.abc import Callable, Generator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ..dates import workbook_filename
from ..sheets.aggregation import compute_rollups, rebuild_analytics, rebuild_ledger
from ..sheets.client import WorkbookClient
from ..sheets.models import Analytics, Project, TimeEntry, TimeEntryWithCost, TimeEntryWithId, Timer
from ..sheets.settings import SettingsTable
from .entries import TimeEntryLog
from .projects import ProjectRegistry
from .timers import TimerRegistry

logger = logging.getLogger(__name__)


@dataclass
class WorkbookSession:
    """Everything bound to one loaded copy of the month workbook"""

    client: WorkbookClient
    settings: SettingsTable
    projects: ProjectRegistry
    entries: TimeEntryLog
    timers: TimerRegistry

    def refresh_analytics(self) -> None:
        rebuild_analytics(self.client, self.projects.list_projects())

    def refresh_all(self) -> None:
        rebuild_ledger(self.client, self.projects.project_names(), self.entries.entries_by_project())
        self.refresh_analytics()


class TimeTracker:
    """Main class for tracking time in the month workbook.

    Every call loads the current month's file, applies its change and writes
    the whole workbook back. Calls from one process are serialized; separate
    processes writing the same file overwrite each other (last writer wins).
    """

    def __init__(
        self,
        data_dir: Path | str,
        auto_create_projects: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.data_dir = Path(data_dir)
        self.auto_create_projects = auto_create_projects
        self.clock = clock
        self._lock = threading.RLock()

    @property
    def workbook_path(self) -> Path:
        return self.data_dir / workbook_filename(self.clock())

    @contextmanager
    def _session(self, save: bool = False) -> Generator[WorkbookSession, None, None]:
        with self._lock:
            client = WorkbookClient(self.workbook_path)
            client.open()
            settings = SettingsTable(client)
            settings.migrate_legacy_rates()
            projects = ProjectRegistry(client, settings)
            yield WorkbookSession(
                client=client,
                settings=settings,
                projects=projects,
                entries=TimeEntryLog(client, projects, self.auto_create_projects),
                timers=TimerRegistry(client, projects, self.auto_create_projects),
            )
            if save:
                client.save()

    def initialize(self) -> Path:
        """Create the month workbook if it doesn't exist yet"""
        with self._session(save=True) as session:
            if not self.workbook_path.exists():
                session.refresh_analytics()
        logger.info(f"Using workbook {self.workbook_path}")
        return self.workbook_path

    # Projects

    def list_projects(self) -> list[Project]:
        with self._session() as session:
            return session.projects.list_projects()

    def project_exists(self, name: str) -> bool:
        with self._session() as session:
            return session.projects.exists(name)

    def add_project(self, name: str, hourly_rate: float = 0.0) -> Project:
        with self._session(save=True) as session:
            project = session.projects.add_project(name, hourly_rate)
            session.refresh_analytics()
            return project

    def update_project_rate(self, name: str, hourly_rate: float) -> Project:
        with self._session(save=True) as session:
            project = session.projects.update_rate(name, hourly_rate)
            session.refresh_analytics()
            return project

    # Time entries

    def save_time_entry(self, entry: TimeEntry) -> TimeEntryWithCost:
        with self._session(save=True) as session:
            saved = session.entries.append(entry)
            session.refresh_analytics()
            return saved

    def get_project_entries(self, name: str) -> list[TimeEntryWithCost]:
        with self._session() as session:
            return session.entries.list_by_project(name)

    def get_all_time_entries(self) -> list[TimeEntryWithId]:
        with self._session() as session:
            return session.entries.list_all()

    def update_time_entry(self, entry_id: str, updates: dict) -> TimeEntryWithCost:
        with self._session(save=True) as session:
            entry = session.entries.update(entry_id, updates)
            session.refresh_all()
            return entry

    def delete_time_entry(self, entry_id: str) -> None:
        with self._session(save=True) as session:
            session.entries.delete(entry_id)
            session.refresh_all()

    # Timers

    def list_timers(self) -> list[Timer]:
        with self._session() as session:
            return session.timers.list_timers()

    def get_timer(self, timer_id: str) -> Timer | None:
        with self._session() as session:
            return session.timers.get_timer(timer_id)

    def start_timer(self, timer_id: str, project: str) -> Timer:
        with self._session(save=True) as session:
            created = session.projects.resolve(str(project).strip()) is None
            timer = session.timers.start(timer_id, project)
            if created:
                session.refresh_analytics()
            return timer

    def update_timer(self, timer_id: str, elapsed_time: float) -> Timer | None:
        with self._session(save=True) as session:
            return session.timers.update(timer_id, elapsed_time)

    def stop_timer(self, timer_id: str) -> Timer | None:
        with self._session(save=True) as session:
            return session.timers.stop(timer_id)

    def delete_timer(self, timer_id: str) -> bool:
        with self._session(save=True) as session:
            return session.timers.delete(timer_id)

    # Settings and derived views

    def get_setting(self, key: str) -> str | None:
        with self._session() as session:
            return session.settings.get(key)

    def set_setting(self, key: str, value: object) -> None:
        with self._session(save=True) as session:
            session.settings.set(key, value)

    def get_analytics(self) -> Analytics:
        with self._session() as session:
            return compute_rollups(session.projects.list_projects(), session.entries.entries_by_project())

    def rebuild(self) -> None:
        """Recompute the ledger and analytics sheets from the project sheets"""
        with self._session(save=True) as session:
            session.refresh_all()
