from fastapi import APIRouter, Depends

from ...errors import NotFoundError, ValidationError
from ...store import TimeStore
from ...tracking.projects import validate_rate
from ..dependencies import get_store
from ..schemas import ProjectOut, ProjectRequest, ProjectResponse, ProjectsResponse, from_dataclass


router = APIRouter(prefix="/projects", tags=["projects"])


@router.get("")
def list_projects(store: TimeStore = Depends(get_store)) -> ProjectsResponse:
    """Return all projects with their hourly rates."""
    return ProjectsResponse(projects=[from_dataclass(ProjectOut, project) for project in store.list_projects()])


@router.post("")
def add_project(request: ProjectRequest, store: TimeStore = Depends(get_store)) -> ProjectResponse:
    """Create a project."""
    if not request.project_name or not request.project_name.strip():
        raise ValidationError("Invalid project name")

    hourly_rate = 0.0 if request.hourly_rate is None else request.hourly_rate
    project = store.add_project(request.project_name, hourly_rate)
    return ProjectResponse(success=True, project=from_dataclass(ProjectOut, project))


@router.patch("")
def update_project_rate(request: ProjectRequest, store: TimeStore = Depends(get_store)) -> ProjectResponse:
    """Change the hourly rate of an existing project."""
    if not request.project_name:
        raise ValidationError("Invalid project name")
    if request.hourly_rate is None:
        raise ValidationError("Invalid hourly rate")
    hourly_rate = validate_rate(request.hourly_rate)
    if not store.project_exists(request.project_name):
        raise NotFoundError(f"Project not found: {request.project_name}")

    project = store.update_project_rate(request.project_name, hourly_rate)
    return ProjectResponse(success=True, project=from_dataclass(ProjectOut, project))
