import logging
import os
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from ..dates import normalize_date
from ..errors import DuplicateProjectError, FileLockedError, NotFoundError, StorageError, ValidationError
from ..sheets.aggregation import compute_rollups
from ..sheets.models import Analytics, Project, TimeEntry, TimeEntryWithCost, TimeEntryWithId, Timer
from ..tracking.entries import UPDATABLE_FIELDS, validate_duration
from ..tracking.projects import validate_rate
from ..tracking.timers import validate_elapsed

logger = logging.getLogger(__name__)

ENTRY_COLUMNS = """
    te.id,
    te.date,
    te.start_time,
    te.end_time,
    te.duration,
    te.description,
    p.name AS project,
    p.hourly_rate,
    COALESCE(te.cost, ROUND(te.duration * p.hourly_rate, 2)) AS cost
"""


class SQLiteClient:
    """Relational store with the same operations as the workbook tracker.

    Entries get a surrogate id, so duplicates are addressable and project
    names are not bound by sheet label rules.
    """

    def __init__(self, data_dir_path: Path | str | None = None, auto_create_projects: bool = True):
        self.data_dir_path = Path(data_dir_path or "data")
        self.database_path = self.data_dir_path / "time-tracking.db"
        self.auto_create_projects = auto_create_projects
        self._ensure_directory()
        self._initialize_database()

    def _ensure_directory(self) -> None:
        """Ensure all required directories exist"""
        os.makedirs(self.data_dir_path, exist_ok=True)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = sqlite3.connect(self.database_path)
        except sqlite3.Error as e:
            logger.error(f"Error opening database {self.database_path}: {e}")
            raise StorageError(f"Failed to open database: {str(e)}") from e

        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        except sqlite3.OperationalError as e:
            logger.error(f"Database error: {e}")
            if "locked" in str(e):
                raise FileLockedError(self.database_path) from e
            raise StorageError(f"Database error: {str(e)}") from e
        finally:
            conn.close()

    def _initialize_database(self) -> None:
        with self._get_connection() as connection:
            connection.executescript("""
                CREATE TABLE IF NOT EXISTS projects (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT UNIQUE NOT NULL,
                    hourly_rate REAL NOT NULL DEFAULT 0
                );

                CREATE TABLE IF NOT EXISTS time_entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    project_id INTEGER NOT NULL,
                    date TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    duration REAL NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    cost REAL,
                    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS timers (
                    timer_id TEXT PRIMARY KEY,
                    project_id INTEGER NOT NULL,
                    start_time TEXT NOT NULL,
                    elapsed_time REAL NOT NULL DEFAULT 0,
                    is_running INTEGER NOT NULL DEFAULT 1,
                    FOREIGN KEY (project_id) REFERENCES projects(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_time_entries_project_date ON time_entries(project_id, date);
                CREATE INDEX IF NOT EXISTS idx_time_entries_date ON time_entries(date);
                CREATE INDEX IF NOT EXISTS idx_timers_project ON timers(project_id);
            """)
            connection.commit()

    # Projects

    @staticmethod
    def _get_project_id(connection: sqlite3.Connection, name: str) -> int | None:
        row = connection.execute("SELECT id FROM projects WHERE name = ?", (name,)).fetchone()
        return row["id"] if row else None

    def _insert_project(self, connection: sqlite3.Connection, name: str, hourly_rate: float) -> int:
        try:
            cursor = connection.execute(
                "INSERT INTO projects (name, hourly_rate) VALUES (?, ?)",
                (name, hourly_rate),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateProjectError(f"Project already exists: {name}") from e
        logger.info(f"Adding project {name} with rate {hourly_rate}")
        return cursor.lastrowid

    def _ensure_project(self, connection: sqlite3.Connection, name: str) -> int:
        project_id = self._get_project_id(connection, name)
        if project_id is not None:
            return project_id
        if not self.auto_create_projects:
            raise NotFoundError(f"Project not found: {name}")
        return self._insert_project(connection, name, 0.0)

    @staticmethod
    def _clean_name(name: object) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Project name must not be empty")
        return name.strip()

    def list_projects(self) -> list[Project]:
        with self._get_connection() as connection:
            rows = connection.execute("SELECT name, hourly_rate FROM projects ORDER BY name").fetchall()
            return [Project(name=row["name"], hourly_rate=row["hourly_rate"]) for row in rows]

    def project_exists(self, name: str) -> bool:
        with self._get_connection() as connection:
            return self._get_project_id(connection, name) is not None

    def add_project(self, name: str, hourly_rate: float = 0.0) -> Project:
        name = self._clean_name(name)
        rate = validate_rate(hourly_rate)
        with self._get_connection() as connection:
            self._insert_project(connection, name, rate)
            connection.commit()
        return Project(name=name, hourly_rate=rate)

    def update_project_rate(self, name: str, hourly_rate: float) -> Project:
        """Store a project's rate, adding the project when it doesn't exist yet"""
        name = self._clean_name(name)
        rate = validate_rate(hourly_rate)
        with self._get_connection() as connection:
            connection.execute(
                """
                INSERT INTO projects (name, hourly_rate) VALUES (?, ?)
                ON CONFLICT(name) DO UPDATE SET hourly_rate = excluded.hourly_rate
                """,
                (name, rate),
            )
            connection.commit()
        logger.info(f"Setting rate of {name} to {rate}")
        return Project(name=name, hourly_rate=rate)

    # Time entries

    def save_time_entry(self, entry: TimeEntry) -> TimeEntryWithCost:
        name = self._clean_name(entry.project)
        if not entry.date:
            raise ValidationError("Date is required")
        duration = validate_duration(entry.duration)
        date = normalize_date(entry.date)

        with self._get_connection() as connection:
            project_id = self._ensure_project(connection, name)
            rate = connection.execute("SELECT hourly_rate FROM projects WHERE id = ?", (project_id,)).fetchone()[0]
            cost = round(duration * rate, 2)
            connection.execute(
                """
                INSERT INTO time_entries (project_id, date, start_time, end_time, duration, description, cost)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (project_id, date, entry.start_time, entry.end_time, duration, entry.description or "", cost),
            )
            connection.commit()

        logger.info(f"Saved entry for {name} on {date}: {duration} hours")
        return TimeEntryWithCost(
            project=name,
            date=date,
            start_time=entry.start_time,
            end_time=entry.end_time,
            duration=duration,
            description=entry.description or "",
            hourly_rate=rate,
            cost=cost,
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> TimeEntryWithId:
        return TimeEntryWithId(
            project=row["project"],
            date=normalize_date(row["date"]),
            start_time=row["start_time"],
            end_time=row["end_time"],
            duration=row["duration"],
            description=row["description"],
            hourly_rate=row["hourly_rate"],
            cost=row["cost"],
            id=str(row["id"]),
        )

    def get_project_entries(self, name: str) -> list[TimeEntryWithCost]:
        with self._get_connection() as connection:
            rows = connection.execute(
                f"""
                SELECT {ENTRY_COLUMNS}
                FROM time_entries te
                JOIN projects p ON te.project_id = p.id
                WHERE p.name = ?
                ORDER BY te.date DESC, te.start_time DESC
                """,
                (name,),
            ).fetchall()
        entries = []
        for row in rows:
            entry = self._row_to_entry(row)
            entries.append(
                TimeEntryWithCost(**{key: value for key, value in vars(entry).items() if key != "id"})
            )
        return entries

    def get_all_time_entries(self) -> list[TimeEntryWithId]:
        with self._get_connection() as connection:
            rows = connection.execute(
                f"""
                SELECT {ENTRY_COLUMNS}
                FROM time_entries te
                JOIN projects p ON te.project_id = p.id
                ORDER BY te.date DESC, te.start_time DESC
                """
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    @staticmethod
    def _parse_entry_id(entry_id: str) -> int:
        try:
            return int(entry_id)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid entry ID: {entry_id}") from e

    def _get_entry(self, connection: sqlite3.Connection, entry_id: int) -> sqlite3.Row:
        row = connection.execute(
            f"""
            SELECT {ENTRY_COLUMNS}
            FROM time_entries te
            JOIN projects p ON te.project_id = p.id
            WHERE te.id = ?
            """,
            (entry_id,),
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        return row

    def update_time_entry(self, entry_id: str, updates: dict) -> TimeEntryWithCost:
        unknown = set(updates) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        values = {key: value for key, value in updates.items() if value is not None}
        if "date" in values:
            values["date"] = normalize_date(values["date"])
        if "duration" in values:
            values["duration"] = validate_duration(values["duration"])

        row_id = self._parse_entry_id(entry_id)
        with self._get_connection() as connection:
            self._get_entry(connection, row_id)
            if values:
                assignments = ", ".join(f"{column} = ?" for column in values)
                connection.execute(
                    f"UPDATE time_entries SET {assignments} WHERE id = ?",
                    (*values.values(), row_id),
                )
            # Edited entries are billed at the current rate
            connection.execute(
                """
                UPDATE time_entries
                SET cost = ROUND(duration * (SELECT hourly_rate FROM projects WHERE id = project_id), 2)
                WHERE id = ?
                """,
                (row_id,),
            )
            connection.commit()
            entry = self._row_to_entry(self._get_entry(connection, row_id))

        logger.info(f"Updated entry {entry_id}")
        return entry

    def delete_time_entry(self, entry_id: str) -> None:
        row_id = self._parse_entry_id(entry_id)
        with self._get_connection() as connection:
            cursor = connection.execute("DELETE FROM time_entries WHERE id = ?", (row_id,))
            connection.commit()
        if cursor.rowcount == 0:
            raise NotFoundError(f"Entry not found: {entry_id}")
        logger.info(f"Deleted entry {entry_id}")

    # Timers

    @staticmethod
    def _row_to_timer(row: sqlite3.Row) -> Timer:
        return Timer(
            timer_id=row["timer_id"],
            project=row["project"],
            start_time=row["start_time"],
            elapsed_time=row["elapsed_time"],
            is_running=bool(row["is_running"]),
        )

    def list_timers(self) -> list[Timer]:
        with self._get_connection() as connection:
            rows = connection.execute(
                """
                SELECT t.timer_id, p.name AS project, t.start_time, t.elapsed_time, t.is_running
                FROM timers t
                JOIN projects p ON t.project_id = p.id
                ORDER BY t.rowid
                """
            ).fetchall()
        return [self._row_to_timer(row) for row in rows]

    def get_timer(self, timer_id: str) -> Timer | None:
        with self._get_connection() as connection:
            row = connection.execute(
                """
                SELECT t.timer_id, p.name AS project, t.start_time, t.elapsed_time, t.is_running
                FROM timers t
                JOIN projects p ON t.project_id = p.id
                WHERE t.timer_id = ?
                """,
                (timer_id,),
            ).fetchone()
        return self._row_to_timer(row) if row else None

    def start_timer(self, timer_id: str, project: str) -> Timer:
        if not timer_id:
            raise ValidationError("Timer ID is required")
        name = self._clean_name(project)
        start_time = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

        with self._get_connection() as connection:
            project_id = self._ensure_project(connection, name)
            connection.execute(
                """
                INSERT OR REPLACE INTO timers (timer_id, project_id, start_time, elapsed_time, is_running)
                VALUES (?, ?, ?, 0, 1)
                """,
                (timer_id, project_id, start_time),
            )
            connection.commit()

        logger.info(f"Started timer {timer_id} for {name}")
        return Timer(timer_id=timer_id, project=name, start_time=start_time, elapsed_time=0.0, is_running=True)

    def update_timer(self, timer_id: str, elapsed_time: float) -> Timer | None:
        seconds = validate_elapsed(elapsed_time)
        with self._get_connection() as connection:
            cursor = connection.execute(
                "UPDATE timers SET elapsed_time = ? WHERE timer_id = ?",
                (seconds, timer_id),
            )
            connection.commit()
        if cursor.rowcount == 0:
            return None
        return self.get_timer(timer_id)

    def stop_timer(self, timer_id: str) -> Timer | None:
        with self._get_connection() as connection:
            cursor = connection.execute("UPDATE timers SET is_running = 0 WHERE timer_id = ?", (timer_id,))
            connection.commit()
        if cursor.rowcount == 0:
            return None
        logger.info(f"Stopped timer {timer_id}")
        return self.get_timer(timer_id)

    def delete_timer(self, timer_id: str) -> bool:
        with self._get_connection() as connection:
            cursor = connection.execute("DELETE FROM timers WHERE timer_id = ?", (timer_id,))
            connection.commit()
        return cursor.rowcount > 0

    # Settings and derived views

    def get_setting(self, key: str) -> str | None:
        with self._get_connection() as connection:
            row = connection.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_setting(self, key: str, value: object) -> None:
        with self._get_connection() as connection:
            connection.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, str(value)),
            )
            connection.commit()

    def get_analytics(self) -> Analytics:
        projects = self.list_projects()
        entries_by_project = {project.name: self.get_project_entries(project.name) for project in projects}
        return compute_rollups(projects, entries_by_project)

    # Migration

    def import_projects(self, projects: list[Project]) -> int:
        """Insert projects that don't exist yet; returns how many were added"""
        added = 0
        with self._get_connection() as connection:
            for project in projects:
                if self._get_project_id(connection, project.name) is not None:
                    logger.info(f"Skipping existing project {project.name}")
                    continue
                self._insert_project(connection, project.name, project.hourly_rate)
                added += 1
            connection.commit()
        return added

    def import_entries(self, entries: list[TimeEntry]) -> None:
        """Insert entries in one transaction, keeping the cost they were billed at"""
        with self._get_connection() as connection:
            for entry in entries:
                project_id = self._get_project_id(connection, entry.project)
                if project_id is None:
                    project_id = self._insert_project(connection, entry.project, 0.0)
                connection.execute(
                    """
                    INSERT INTO time_entries (project_id, date, start_time, end_time, duration, description, cost)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        project_id,
                        normalize_date(entry.date),
                        entry.start_time,
                        entry.end_time,
                        entry.duration,
                        entry.description or "",
                        getattr(entry, "cost", None),
                    ),
                )
            connection.commit()

    def import_timers(self, timers: list[Timer]) -> None:
        with self._get_connection() as connection:
            for timer in timers:
                project_id = self._get_project_id(connection, timer.project)
                if project_id is None:
                    project_id = self._insert_project(connection, timer.project, 0.0)
                connection.execute(
                    """
                    INSERT OR REPLACE INTO timers (timer_id, project_id, start_time, elapsed_time, is_running)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (timer.timer_id, project_id, timer.start_time, timer.elapsed_time, int(timer.is_running)),
                )
            connection.commit()
