from datetime import datetime

import pytest
from openpyxl import load_workbook

from timebook.errors import DuplicateProjectError, NotFoundError
from timebook.sheets.client import WorkbookClient
from timebook.sheets.models import (
    ANALYTICS_SHEET,
    LEDGER_SHEET,
    LEGACY_RATES_HEADER,
    LEGACY_RATES_SHEET,
    PROJECT_HEADER,
    Project,
    TimeEntry,
)
from timebook.tracking.tracker import TimeTracker

from .conftest import FIXED_NOW


def make_entry(project="Acme", date="2024-05-17", start="09:00", end="10:00", duration=1.0):
    return TimeEntry(project=project, date=date, start_time=start, end_time=end, duration=duration)


class TestWorkbookFile:
    def test_initialize_creates_month_file(self, tracker, tmp_path):
        assert tracker.workbook_path == tmp_path / "time-tracking-2024-05.xlsx"
        assert tracker.workbook_path.exists()

        workbook = load_workbook(tracker.workbook_path)
        assert LEDGER_SHEET in workbook.sheetnames
        assert workbook[ANALYTICS_SHEET]["A2"].value == "Total"

    def test_new_month_starts_fresh(self, tmp_path):
        now = {"value": datetime(2024, 5, 31, 23, 0)}
        tracker = TimeTracker(tmp_path, clock=lambda: now["value"])
        tracker.add_project("Acme", 50)

        now["value"] = datetime(2024, 6, 1, 8, 0)
        assert tracker.list_projects() == []
        assert tracker.workbook_path.name == "time-tracking-2024-06.xlsx"

    def test_changes_persist_across_instances(self, tracker, tmp_path):
        tracker.add_project("Acme", 50)
        tracker.save_time_entry(make_entry())

        reloaded = TimeTracker(tmp_path, clock=lambda: FIXED_NOW)
        assert reloaded.list_projects() == [Project("Acme", 50.0)]
        assert len(reloaded.get_project_entries("Acme")) == 1

    def test_failed_operation_is_not_saved(self, tracker, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr("timebook.tracking.tracker.rebuild_analytics", broken)
        with pytest.raises(RuntimeError):
            tracker.add_project("Acme", 50)

        monkeypatch.undo()
        assert tracker.list_projects() == []

    def test_legacy_rates_are_migrated(self, tmp_path):
        path = tmp_path / "time-tracking-2024-05.xlsx"
        client = WorkbookClient(path)
        client.open()
        client.create_sheet("Acme", PROJECT_HEADER)
        client.create_sheet(LEGACY_RATES_SHEET, LEGACY_RATES_HEADER)
        client.append_row(LEGACY_RATES_SHEET, ["Acme", 42])
        client.save()

        tracker = TimeTracker(tmp_path, clock=lambda: FIXED_NOW)
        assert tracker.list_projects() == [Project("Acme", 42.0)]


class TestOperations:
    def test_duplicate_project(self, tracker):
        tracker.add_project("Acme", 50)
        with pytest.raises(DuplicateProjectError):
            tracker.add_project("acme")

    def test_project_name_in_other_case_uses_existing_project(self, tracker):
        tracker.add_project("Acme", 50)
        saved = tracker.save_time_entry(make_entry(project="acme"))
        timer = tracker.start_timer("t1", "ACME")

        assert saved.project == "Acme"
        assert saved.cost == 50.0
        assert timer.project == "Acme"
        assert tracker.list_projects() == [Project("Acme", 50.0)]

    def test_entry_refreshes_analytics(self, tracker):
        tracker.save_time_entry(make_entry(project="Acme"))

        workbook = load_workbook(tracker.workbook_path)
        analytics = workbook[ANALYTICS_SHEET]
        assert analytics["A2"].value == "Acme"
        assert analytics["A3"].value == "Total"

    def test_update_rebuilds_ledger(self, tracker):
        tracker.save_time_entry(make_entry(duration=1.0))
        tracker.update_time_entry("Acme|2024-05-17|09:00|10:00", {"date": "2024-05-18", "duration": 2.0})

        workbook = load_workbook(tracker.workbook_path)
        rows = list(workbook[LEDGER_SHEET].iter_rows(min_row=2, values_only=True))
        assert rows == [("2024-05-18", 2.0, 2.0)]

    def test_delete_rebuilds_ledger(self, tracker):
        tracker.save_time_entry(make_entry(duration=1.0))
        tracker.save_time_entry(make_entry(start="11:00", end="12:00", duration=0.5))
        tracker.delete_time_entry("Acme|2024-05-17|09:00|10:00")

        workbook = load_workbook(tracker.workbook_path)
        rows = list(workbook[LEDGER_SHEET].iter_rows(min_row=2, values_only=True))
        assert rows == [("2024-05-17", 0.5, 0.5)]

    def test_delete_unknown_entry(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.delete_time_entry("Acme|2024-05-17|09:00|10:00")

    def test_analytics(self, tracker):
        tracker.add_project("Acme", 50)
        tracker.save_time_entry(make_entry(duration=1.0))
        tracker.save_time_entry(make_entry(start="11:00", end="13:00", duration=2.0))

        analytics = tracker.get_analytics()
        assert analytics.total_hours == 3.0
        assert analytics.total_cost == 150.0
        assert analytics.projects[0].hours_share == 1.0

    def test_rate_change_updates_analytics_only(self, tracker):
        tracker.add_project("Acme", 50)
        tracker.save_time_entry(make_entry(duration=2.0))
        tracker.update_project_rate("Acme", 100)

        assert tracker.get_analytics().total_cost == 200.0
        assert tracker.get_project_entries("Acme")[0].cost == 100.0

    def test_timer_lifecycle(self, tracker):
        tracker.start_timer("t1", "Acme")
        assert tracker.project_exists("Acme")

        tracker.update_timer("t1", 30)
        stopped = tracker.stop_timer("t1")
        assert stopped.elapsed_time == 30.0
        assert stopped.is_running is False
        assert [timer.timer_id for timer in tracker.list_timers()] == ["t1"]

        assert tracker.delete_timer("t1") is True
        assert tracker.get_timer("t1") is None

    def test_settings(self, tracker):
        tracker.set_setting("theme", "dark")
        assert tracker.get_setting("theme") == "dark"
        assert tracker.get_setting("missing") is None

    def test_rebuild(self, tracker):
        tracker.save_time_entry(make_entry(duration=1.0))
        client = WorkbookClient(tracker.workbook_path)
        client.open()
        client.replace_rows(LEDGER_SHEET, [["2024-05-17", 99, 99]])
        client.save()

        tracker.rebuild()

        workbook = load_workbook(tracker.workbook_path)
        rows = list(workbook[LEDGER_SHEET].iter_rows(min_row=2, values_only=True))
        assert rows == [("2024-05-17", 1.0, 1.0)]
