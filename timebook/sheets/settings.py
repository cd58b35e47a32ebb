import logging
import math

from .client import WorkbookClient
from .models import LEGACY_RATES_SHEET, SETTINGS_SHEET

logger = logging.getLogger(__name__)


def rate_key(project: str) -> str:
    return f"project:{project}:hourlyRateEUR"


def parse_rate(value: object) -> float:
    """Read a stored rate, falling back to 0 for missing or garbage values"""
    try:
        rate = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(rate) or math.isinf(rate) or rate < 0:
        return 0.0
    return rate


class SettingsTable:
    """Key/value pairs kept in the settings sheet, one pair per row"""

    def __init__(self, client: WorkbookClient):
        self.client = client

    def _find_row(self, key: str) -> int | None:
        for row_index, values in self.client.get_indexed_rows(SETTINGS_SHEET):
            if values[0] is not None and str(values[0]) == key:
                return row_index
        return None

    def get(self, key: str) -> str | None:
        row_index = self._find_row(key)
        if row_index is None:
            return None
        value = self.client.get_row_values(SETTINGS_SHEET, row_index)[1]
        return None if value is None else str(value)

    def set(self, key: str, value: object) -> None:
        row_index = self._find_row(key)
        if row_index is None:
            self.client.append_row(SETTINGS_SHEET, [key, str(value)])
        else:
            self.client.update_row(SETTINGS_SHEET, row_index, [key, str(value)])

    def is_empty(self) -> bool:
        return not self.client.get_rows(SETTINGS_SHEET)

    def get_rate(self, project: str) -> float:
        return parse_rate(self.get(rate_key(project)))

    def set_rate(self, project: str, hourly_rate: float) -> None:
        self.set(rate_key(project), hourly_rate)

    def migrate_legacy_rates(self) -> int:
        """Copy rates from the old per-project rate sheet into the settings table.

        Only runs while the settings table is still empty, so values set after
        the first migration are never overwritten. Returns the number of rates
        copied.
        """
        if not self.client.has_sheet(LEGACY_RATES_SHEET) or not self.is_empty():
            return 0

        migrated = 0
        for values in self.client.get_rows(LEGACY_RATES_SHEET):
            project = values[0]
            if project is None or not str(project).strip():
                continue
            rate = parse_rate(values[1] if len(values) > 1 else None)
            self.set_rate(str(project).strip(), rate)
            migrated += 1

        logger.info(f"Migrated {migrated} project rates from {LEGACY_RATES_SHEET}")
        return migrated
