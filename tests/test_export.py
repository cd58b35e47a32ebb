from io import BytesIO

import pytest
from openpyxl import load_workbook

from timebook.errors import EmptyProjectError
from timebook.export.generator import (
    DATE_ANALYTICS_TITLE,
    ENTRIES_TITLE,
    OVERVIEW_TITLE,
    SUMMARY_TITLE,
    export_all_projects,
    export_project,
    unique_sheet_title,
)
from timebook.sheets.models import TimeEntry


def make_entry(project="Acme", date="2024-05-17", start="09:00", end="10:00", duration=1.0):
    return TimeEntry(project=project, date=date, start_time=start, end_time=end, duration=duration)


def open_export(content: bytes):
    return load_workbook(BytesIO(content))


@pytest.fixture
def acme(tracker):
    tracker.add_project("Acme", 50)
    tracker.save_time_entry(make_entry(date="2024-05-16", duration=1.0))
    tracker.save_time_entry(make_entry(date="2024-05-17", duration=2.0))
    tracker.save_time_entry(make_entry(date="2024-05-17", start="14:00", end="14:30", duration=0.5))
    return tracker


class TestUniqueSheetTitle:
    def test_plain(self):
        assert unique_sheet_title("Acme", set()) == "Acme"

    def test_invalid_characters_are_replaced(self):
        assert unique_sheet_title("a/b:c", set()) == "a_b_c"

    def test_truncated_collisions_get_suffix(self):
        taken = set()
        first = unique_sheet_title("A" * 40, taken)
        second = unique_sheet_title("A" * 35, taken)
        third = unique_sheet_title("A" * 31, taken)

        assert first == "A" * 31
        assert second == "A" * 29 + "~2"
        assert third == "A" * 29 + "~3"
        assert all(len(title) <= 31 for title in (first, second, third))

    def test_case_insensitive(self):
        taken = {"all projects"}
        assert unique_sheet_title("ALL PROJECTS", taken) == "ALL PROJECTS~2"


class TestExportProject:
    def test_empty_project(self, tracker):
        tracker.add_project("Acme", 50)
        with pytest.raises(EmptyProjectError):
            export_project(tracker, "Acme")

    def test_unknown_project(self, tracker):
        with pytest.raises(EmptyProjectError):
            export_project(tracker, "Nobody")

    def test_sheets(self, acme):
        workbook = open_export(export_project(acme, "Acme"))
        assert workbook.sheetnames == [ENTRIES_TITLE, SUMMARY_TITLE, DATE_ANALYTICS_TITLE]

    def test_entries_sheet(self, acme):
        sheet = open_export(export_project(acme, "Acme"))[ENTRIES_TITLE]

        assert [cell.value for cell in sheet[1]] == ["Date", "Start time", "End time", "Duration (h)", "Cost (EUR)"]
        # Newest first
        assert sheet["A2"].value == "2024-05-17"
        assert sheet["B2"].value == "14:00"
        assert sheet["E2"].value == "=D2*50"
        assert sheet["A5"].value == "TOTAL"
        assert sheet["D5"].value == "=SUM(D2:D4)"
        assert sheet["E5"].value == "=SUM(E2:E4)"
        assert sheet.auto_filter.ref == "A1:E4"

    def test_summary_sheet(self, acme):
        sheet = open_export(export_project(acme, "Acme"))[SUMMARY_TITLE]
        summary = {row[0]: row[1] for row in sheet.iter_rows(values_only=True) if row[0]}

        assert summary["Project"] == "Acme"
        assert summary["Hourly rate (EUR/h)"] == 50
        assert summary["Entries"] == 3
        assert summary["Total hours"] == "='Time entries'!D5"
        assert summary["Total cost (EUR)"] == "='Time entries'!E5"
        assert summary["Start"] == "2024-05-16"
        assert summary["End"] == "2024-05-17"
        assert summary["Unique days"] == 2
        assert summary["Average hours/day"] == 1.75
        assert summary["Shortest entry (h)"] == 0.5
        assert summary["Longest entry (h)"] == 2

    def test_date_analytics_sheet(self, acme):
        sheet = open_export(export_project(acme, "Acme"))[DATE_ANALYTICS_TITLE]

        assert [cell.value for cell in sheet[2]] == [
            "2024-05-17",
            2,
            2.5,
            125,
            "=IF($C$4=0,0,C2/$C$4)",
            "=IF($D$4=0,0,D2/$D$4)",
        ]
        assert sheet["A3"].value == "2024-05-16"
        assert sheet["A4"].value == "TOTAL"
        assert sheet["C4"].value == "=SUM(C2:C3)"
        assert sheet["E2"].number_format == "0.00%"


class TestExportAllProjects:
    def test_overview_and_project_sheets(self, acme):
        acme.add_project("Globex", 20)
        acme.add_project("Initech", 10)
        acme.save_time_entry(make_entry(project="Globex", duration=1.0))

        workbook = open_export(export_all_projects(acme))

        # Projects without entries get no sheet of their own
        assert workbook.sheetnames == [OVERVIEW_TITLE, "Acme", "Globex"]
        overview = workbook[OVERVIEW_TITLE]
        assert [row[0] for row in overview.iter_rows(min_row=2, values_only=True)] == [
            "Acme",
            "Globex",
            "Initech",
            "TOTAL",
        ]
        assert [cell.value for cell in overview[2]][:5] == ["Acme", 50, 3.5, 175, 3]
        assert overview["F2"].value == "=IF($C$5=0,0,C2/$C$5)"
        assert overview["C5"].value == "=SUM(C2:C4)"

        globex = workbook["Globex"]
        assert globex["A3"].value == "TOTAL"
        assert globex["E2"].value == 20

    def test_no_projects(self, tracker):
        overview = open_export(export_all_projects(tracker))[OVERVIEW_TITLE]
        assert [cell.value for cell in overview[2]] == ["TOTAL", None, 0, 0, 0, 0, 0]
