import sqlite3

import pytest

from timebook.db.sqlite_client import SQLiteClient
from timebook.errors import DuplicateProjectError, FileLockedError, NotFoundError, ValidationError
from timebook.sheets.models import Project, TimeEntry, Timer


def make_entry(project="Acme", date="2024-05-17", start="09:00", end="10:00", duration=1.0):
    return TimeEntry(project=project, date=date, start_time=start, end_time=end, duration=duration)


class TestProjects:
    def test_add_and_list(self, sqlite_client):
        sqlite_client.add_project("Globex", 20)
        sqlite_client.add_project("Acme", 50)

        assert sqlite_client.list_projects() == [Project("Acme", 50.0), Project("Globex", 20.0)]
        assert sqlite_client.project_exists("Acme")
        assert not sqlite_client.project_exists("Initech")

    def test_duplicate(self, sqlite_client):
        sqlite_client.add_project("Acme", 50)
        with pytest.raises(DuplicateProjectError):
            sqlite_client.add_project("Acme", 10)

    def test_invalid_input(self, sqlite_client):
        with pytest.raises(ValidationError):
            sqlite_client.add_project(" ", 10)
        with pytest.raises(ValidationError):
            sqlite_client.add_project("Acme", -1)

    def test_names_are_not_limited_to_sheet_labels(self, sqlite_client):
        sqlite_client.add_project("Client A/B: phase 2", 10)
        assert sqlite_client.project_exists("Client A/B: phase 2")

    def test_update_rate(self, sqlite_client):
        sqlite_client.add_project("Acme", 50)
        sqlite_client.update_project_rate("Acme", 80)
        assert sqlite_client.list_projects() == [Project("Acme", 80.0)]

    def test_update_rate_adds_missing_project(self, sqlite_client):
        sqlite_client.update_project_rate("Ghost", 40)
        assert sqlite_client.list_projects() == [Project("Ghost", 40.0)]

    def test_update_rate_invalid(self, sqlite_client):
        sqlite_client.add_project("Acme", 50)
        with pytest.raises(ValidationError):
            sqlite_client.update_project_rate("Acme", -1)
        assert sqlite_client.list_projects() == [Project("Acme", 50.0)]


class TestEntries:
    def test_save_and_read(self, sqlite_client):
        sqlite_client.add_project("Acme", 50)
        saved = sqlite_client.save_time_entry(make_entry(date="17.05.2024", duration=1.5))

        assert saved.date == "2024-05-17"
        assert saved.cost == 75.0
        [entry] = sqlite_client.get_project_entries("Acme")
        assert entry == saved

    def test_auto_create(self, sqlite_client):
        sqlite_client.save_time_entry(make_entry(project="Initech"))
        assert sqlite_client.list_projects() == [Project("Initech", 0.0)]

    def test_no_auto_create(self, tmp_path):
        client = SQLiteClient(data_dir_path=tmp_path, auto_create_projects=False)
        with pytest.raises(NotFoundError):
            client.save_time_entry(make_entry(project="Initech"))

    def test_cost_is_kept_after_rate_change(self, sqlite_client):
        sqlite_client.add_project("Acme", 50)
        sqlite_client.save_time_entry(make_entry(duration=2))
        sqlite_client.update_project_rate("Acme", 80)

        [entry] = sqlite_client.get_project_entries("Acme")
        assert entry.cost == 100.0
        assert sqlite_client.get_analytics().total_cost == 160.0

    def test_duplicates_have_their_own_ids(self, sqlite_client):
        sqlite_client.save_time_entry(make_entry())
        sqlite_client.save_time_entry(make_entry())

        ids = [entry.id for entry in sqlite_client.get_all_time_entries()]
        assert len(set(ids)) == 2

    def test_update(self, sqlite_client):
        sqlite_client.add_project("Acme", 50)
        sqlite_client.save_time_entry(make_entry(duration=1))
        [entry] = sqlite_client.get_all_time_entries()

        updated = sqlite_client.update_time_entry(entry.id, {"duration": 3, "description": "Review"})

        assert updated.duration == 3.0
        assert updated.description == "Review"
        assert updated.cost == 150.0

    def test_update_errors(self, sqlite_client):
        with pytest.raises(ValidationError):
            sqlite_client.update_time_entry("not-a-number", {"description": "x"})
        with pytest.raises(NotFoundError):
            sqlite_client.update_time_entry("999", {"description": "x"})

    def test_delete(self, sqlite_client):
        sqlite_client.save_time_entry(make_entry())
        [entry] = sqlite_client.get_all_time_entries()

        sqlite_client.delete_time_entry(entry.id)
        assert sqlite_client.get_all_time_entries() == []
        with pytest.raises(NotFoundError):
            sqlite_client.delete_time_entry(entry.id)


class TestTimers:
    def test_lifecycle(self, sqlite_client):
        started = sqlite_client.start_timer("t1", "Acme")
        assert started.is_running is True

        assert sqlite_client.update_timer("t1", 42).elapsed_time == 42.0
        stopped = sqlite_client.stop_timer("t1")
        assert stopped.is_running is False
        assert sqlite_client.list_timers() == [stopped]

        assert sqlite_client.delete_timer("t1") is True
        assert sqlite_client.delete_timer("t1") is False

    def test_missing_timer(self, sqlite_client):
        assert sqlite_client.get_timer("nope") is None
        assert sqlite_client.update_timer("nope", 1) is None
        assert sqlite_client.stop_timer("nope") is None


def test_settings(sqlite_client):
    sqlite_client.set_setting("theme", "dark")
    sqlite_client.set_setting("theme", "light")
    assert sqlite_client.get_setting("theme") == "light"
    assert sqlite_client.get_setting("missing") is None


def test_locked_database(sqlite_client):
    blocker = sqlite3.connect(sqlite_client.database_path, timeout=0)
    blocker.execute("BEGIN EXCLUSIVE")
    try:
        with pytest.raises(FileLockedError):
            with sqlite_client._get_connection() as connection:
                connection.execute("PRAGMA busy_timeout = 0")
                connection.execute("INSERT INTO settings (key, value) VALUES ('a', 'b')")
    finally:
        blocker.rollback()
        blocker.close()


class TestImport:
    def test_import_projects_skips_existing(self, sqlite_client):
        sqlite_client.add_project("Acme", 50)
        added = sqlite_client.import_projects([Project("Acme", 10), Project("Globex", 20)])

        assert added == 1
        assert sqlite_client.list_projects() == [Project("Acme", 50.0), Project("Globex", 20.0)]

    def test_import_timers(self, sqlite_client):
        timer = Timer(timer_id="t1", project="Acme", start_time="2024-05-17T08:00:00Z", elapsed_time=5, is_running=False)
        sqlite_client.import_timers([timer])
        assert sqlite_client.get_timer("t1") == timer
