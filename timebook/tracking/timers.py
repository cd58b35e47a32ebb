import logging
import math
from datetime import datetime, timezone

from ..errors import ValidationError
from ..sheets.client import WorkbookClient
from ..sheets.models import TIMERS_SHEET, Timer
from .projects import ProjectRegistry

logger = logging.getLogger(__name__)


def validate_elapsed(elapsed_time: object) -> float:
    if isinstance(elapsed_time, bool):
        raise ValidationError("Elapsed time must be a number")
    try:
        seconds = float(elapsed_time)
    except (TypeError, ValueError) as e:
        raise ValidationError("Elapsed time must be a number") from e
    if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        raise ValidationError("Elapsed time must be a non-negative number of seconds")
    return seconds


def _is_running(value: object) -> bool:
    return value is True or str(value).lower() == "true"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class TimerRegistry:
    """Timers in flight, persisted so they survive a page reload.

    Elapsed time is reported by the client; the registry only stores it.
    """

    def __init__(self, client: WorkbookClient, projects: ProjectRegistry, auto_create_projects: bool = True):
        self.client = client
        self.projects = projects
        self.auto_create_projects = auto_create_projects

    @staticmethod
    def _row_to_timer(values: list) -> Timer:
        try:
            elapsed = float(values[3] or 0)
        except (TypeError, ValueError):
            elapsed = 0.0
        return Timer(
            timer_id=str(values[0]),
            project="" if values[1] is None else str(values[1]),
            start_time="" if values[2] is None else str(values[2]),
            elapsed_time=elapsed,
            is_running=_is_running(values[4]),
        )

    @staticmethod
    def _timer_to_row(timer: Timer) -> list:
        return [timer.timer_id, timer.project, timer.start_time, timer.elapsed_time, timer.is_running]

    def _find_row(self, timer_id: str) -> tuple[int, list] | None:
        for row_index, values in self.client.get_indexed_rows(TIMERS_SHEET):
            if values[0] is not None and str(values[0]) == timer_id:
                return row_index, values
        return None

    def list_timers(self) -> list[Timer]:
        return [
            self._row_to_timer(values)
            for values in self.client.get_rows(TIMERS_SHEET)
            if values[0] is not None
        ]

    def get_timer(self, timer_id: str) -> Timer | None:
        found = self._find_row(timer_id)
        return None if found is None else self._row_to_timer(found[1])

    def start(self, timer_id: str, project: str) -> Timer:
        if not timer_id:
            raise ValidationError("Timer ID is required")
        if not project or not str(project).strip():
            raise ValidationError("Project name required for start action")

        project = self.projects.ensure_project(str(project).strip(), self.auto_create_projects)
        timer = Timer(timer_id=timer_id, project=project, start_time=_utc_now(), elapsed_time=0.0, is_running=True)
        found = self._find_row(timer_id)
        if found is None:
            self.client.append_row(TIMERS_SHEET, self._timer_to_row(timer))
        else:
            self.client.update_row(TIMERS_SHEET, found[0], self._timer_to_row(timer))

        logger.info(f"Started timer {timer_id} for {project}")
        return timer

    def update(self, timer_id: str, elapsed_time: object) -> Timer | None:
        """Record the elapsed time reported by the client; None if the timer is gone"""
        seconds = validate_elapsed(elapsed_time)
        found = self._find_row(timer_id)
        if found is None:
            return None

        row_index, values = found
        timer = self._row_to_timer(values)
        timer.elapsed_time = seconds
        self.client.update_row(TIMERS_SHEET, row_index, self._timer_to_row(timer))
        return timer

    def stop(self, timer_id: str) -> Timer | None:
        """Mark a timer as stopped. The timer stays listed until deleted."""
        found = self._find_row(timer_id)
        if found is None:
            return None

        row_index, values = found
        timer = self._row_to_timer(values)
        timer.is_running = False
        self.client.update_row(TIMERS_SHEET, row_index, self._timer_to_row(timer))
        logger.info(f"Stopped timer {timer_id}")
        return timer

    def delete(self, timer_id: str) -> bool:
        found = self._find_row(timer_id)
        if found is None:
            return False

        self.client.delete_row(TIMERS_SHEET, found[0])
        logger.info(f"Deleted timer {timer_id}")
        return True
