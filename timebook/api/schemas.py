from dataclasses import asdict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def from_dataclass(model_class: type[BaseModel], obj: object) -> BaseModel:
    return model_class(**asdict(obj))


class HealthStatus(BaseModel):
    status: str
    version: str


class SuccessResponse(CamelModel):
    success: bool


class ProjectOut(CamelModel):
    name: str
    hourly_rate: float


class ProjectsResponse(CamelModel):
    projects: list[ProjectOut]


class ProjectRequest(CamelModel):
    project_name: str | None = None
    hourly_rate: float | None = None


class ProjectResponse(CamelModel):
    success: bool
    project: ProjectOut


class TimeEntryRequest(CamelModel):
    project: str | None = None
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    duration: float | None = None
    description: str | None = None


class TimeEntryUpdate(CamelModel):
    id: str | None = None
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    duration: float | None = None
    description: str | None = None


class TimeEntryOut(CamelModel):
    project: str
    date: str
    start_time: str
    end_time: str
    duration: float
    description: str = ""
    hourly_rate: float
    cost: float
    # Only set when listing entries of every project
    id: str | None = None


class EntriesResponse(CamelModel):
    entries: list[TimeEntryOut]


class TimerRequest(CamelModel):
    action: str | None = None
    timer_id: str | None = None
    project: str | None = None
    elapsed_time: float | None = None


class TimerOut(CamelModel):
    timer_id: str
    project: str
    start_time: str
    elapsed_time: float
    is_running: bool


class TimerResponse(CamelModel):
    timer: TimerOut


class TimersResponse(CamelModel):
    timers: list[TimerOut]


class ProjectRollupOut(CamelModel):
    project: str
    hours: float
    hourly_rate: float
    cost: float
    entries: int
    hours_share: float
    cost_share: float


class AnalyticsResponse(CamelModel):
    projects: list[ProjectRollupOut]
    total_hours: float
    total_cost: float
