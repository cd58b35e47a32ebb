# timebook/sheets/models.py
from dataclasses import dataclass


LEDGER_SHEET = "Ledger"
ANALYTICS_SHEET = "Analytics"
TIMERS_SHEET = "_timers"
SETTINGS_SHEET = "_settings"
LEGACY_RATES_SHEET = "_projects"

# Sheets starting with this prefix are internal and never projects
RESERVED_PREFIX = "_"
MAX_SHEET_TITLE = 31

LEDGER_HEADER = ["Date", "Total (h)"]
PROJECT_HEADER = ["Date", "Start time", "End time", "Duration (h)", "Description", "Cost (EUR)"]
TIMERS_HEADER = ["TimerID", "Project", "StartTime", "ElapsedTime", "IsRunning"]
SETTINGS_HEADER = ["Key", "Value"]
LEGACY_RATES_HEADER = ["Project", "Hourly rate (EUR)"]
ANALYTICS_HEADER = ["Project", "Hours", "Rate (EUR/h)", "Cost (EUR)", "% of hours", "% of cost"]

BASELINE_SHEETS = {
    LEDGER_SHEET: LEDGER_HEADER,
    ANALYTICS_SHEET: ANALYTICS_HEADER,
    TIMERS_SHEET: TIMERS_HEADER,
    SETTINGS_SHEET: SETTINGS_HEADER,
}


@dataclass
class Project:
    """A project and its hourly rate"""

    name: str
    hourly_rate: float = 0.0


@dataclass
class TimeEntry:
    """One logged work interval"""

    project: str
    date: str
    start_time: str
    end_time: str
    duration: float
    description: str = ""


@dataclass
class TimeEntryWithCost(TimeEntry):
    hourly_rate: float = 0.0
    cost: float = 0.0


@dataclass
class TimeEntryWithId(TimeEntryWithCost):
    id: str = ""


@dataclass
class Timer:
    """A server-side stopwatch tied to a project"""

    timer_id: str
    project: str
    start_time: str
    elapsed_time: float = 0.0
    is_running: bool = True


@dataclass
class ProjectRollup:
    """Hours and cost of a single project with its share of the totals"""

    project: str
    hours: float
    hourly_rate: float
    cost: float
    entries: int
    hours_share: float = 0.0
    cost_share: float = 0.0


@dataclass
class Analytics:
    projects: list[ProjectRollup]
    total_hours: float
    total_cost: float
