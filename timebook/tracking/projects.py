import logging
import math

from ..errors import DuplicateProjectError, NotFoundError, ValidationError
from ..sheets.aggregation import register_ledger_project
from ..sheets.client import WorkbookClient, validate_sheet_title
from ..sheets.models import ANALYTICS_SHEET, LEDGER_SHEET, PROJECT_HEADER, RESERVED_PREFIX, Project
from ..sheets.settings import SettingsTable

logger = logging.getLogger(__name__)

NON_PROJECT_SHEETS = {LEDGER_SHEET, ANALYTICS_SHEET}


def validate_rate(hourly_rate: object) -> float:
    """Check that an hourly rate is a finite, non-negative number"""
    if isinstance(hourly_rate, bool):
        raise ValidationError("Hourly rate must be a number")
    try:
        rate = float(hourly_rate)
    except (TypeError, ValueError) as e:
        raise ValidationError("Hourly rate must be a number") from e
    if math.isnan(rate) or math.isinf(rate) or rate < 0:
        raise ValidationError("Hourly rate must be a non-negative number")
    return rate


class ProjectRegistry:
    """Projects of a workbook: one entry-log sheet each, rates in the settings table"""

    def __init__(self, client: WorkbookClient, settings: SettingsTable):
        self.client = client
        self.settings = settings

    def project_names(self) -> list[str]:
        return sorted(
            name
            for name in self.client.sheet_names()
            if name not in NON_PROJECT_SHEETS and not name.startswith(RESERVED_PREFIX)
        )

    def list_projects(self) -> list[Project]:
        return [Project(name=name, hourly_rate=self.get_rate(name)) for name in self.project_names()]

    def exists(self, name: str) -> bool:
        return name in self.project_names()

    def resolve(self, name: str) -> str | None:
        """Return the existing project whose name matches regardless of case"""
        wanted = name.lower()
        for project_name in self.project_names():
            if project_name.lower() == wanted:
                return project_name
        return None

    def ensure_project(self, name: str, auto_create: bool) -> str:
        """Return the stored name of a project, creating it with rate 0 when allowed"""
        existing = self.resolve(name)
        if existing is not None:
            return existing
        if not auto_create:
            raise NotFoundError(f"Project not found: {name}")
        logger.info(f"Creating project {name}")
        return self.add_project(name, 0).name

    def get_rate(self, name: str) -> float:
        return self.settings.get_rate(name)

    def add_project(self, name: str, hourly_rate: object = 0.0) -> Project:
        name = validate_sheet_title(name)
        rate = validate_rate(hourly_rate)

        existing = self.client.find_sheet(name)
        if existing is not None:
            raise DuplicateProjectError(f"Project already exists: {existing}")

        logger.info(f"Adding project {name} with rate {rate}")
        self.client.create_sheet(name, PROJECT_HEADER)
        register_ledger_project(self.client, name)
        self.settings.set_rate(name, rate)
        return Project(name=name, hourly_rate=rate)

    def update_rate(self, name: str, hourly_rate: object) -> Project:
        """Store a project's rate, whether or not its sheet exists yet"""
        rate = validate_rate(hourly_rate)
        logger.info(f"Setting rate of {name} to {rate}")
        self.settings.set_rate(name, rate)
        return Project(name=name, hourly_rate=rate)
