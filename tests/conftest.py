from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from timebook.api.main import create_app
from timebook.db.sqlite_client import SQLiteClient
from timebook.sheets.client import WorkbookClient
from timebook.sheets.settings import SettingsTable
from timebook.tracking.entries import TimeEntryLog
from timebook.tracking.projects import ProjectRegistry
from timebook.tracking.timers import TimerRegistry
from timebook.tracking.tracker import TimeTracker


FIXED_NOW = datetime(2024, 5, 17, 10, 30)


@pytest.fixture
def workbook_client(tmp_path):
    """An open, not yet saved, month workbook"""
    client = WorkbookClient(tmp_path / "time-tracking-2024-05.xlsx")
    client.open()
    return client


@pytest.fixture
def settings(workbook_client):
    return SettingsTable(workbook_client)


@pytest.fixture
def projects(workbook_client, settings):
    return ProjectRegistry(workbook_client, settings)


@pytest.fixture
def entry_log(workbook_client, projects):
    return TimeEntryLog(workbook_client, projects)


@pytest.fixture
def timers(workbook_client, projects):
    return TimerRegistry(workbook_client, projects)


@pytest.fixture
def tracker(tmp_path):
    tracker = TimeTracker(tmp_path, clock=lambda: FIXED_NOW)
    tracker.initialize()
    return tracker


@pytest.fixture
def sqlite_client(tmp_path):
    return SQLiteClient(data_dir_path=tmp_path)


@pytest.fixture
def api(tracker):
    return TestClient(create_app(tracker))


@pytest.fixture
def sqlite_api(sqlite_client):
    return TestClient(create_app(sqlite_client))
