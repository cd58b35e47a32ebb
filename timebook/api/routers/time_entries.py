from fastapi import APIRouter, Depends, Query

from ...errors import ValidationError
from ...sheets.models import TimeEntry
from ...store import TimeStore
from ..dependencies import get_store
from ..schemas import EntriesResponse, SuccessResponse, TimeEntryOut, TimeEntryRequest, TimeEntryUpdate, from_dataclass


router = APIRouter(prefix="/time-entries", tags=["time entries"])

REQUIRED_FIELDS = ("project", "date", "start_time", "end_time", "duration")


@router.post("")
def save_time_entry(request: TimeEntryRequest, store: TimeStore = Depends(get_store)) -> SuccessResponse:
    """Log a time entry, creating its project if needed."""
    missing = [field for field in REQUIRED_FIELDS if not getattr(request, field)]
    if missing:
        raise ValidationError("Missing required fields")

    store.save_time_entry(
        TimeEntry(
            project=request.project,
            date=request.date,
            start_time=request.start_time,
            end_time=request.end_time,
            duration=request.duration,
            description=request.description or "",
        )
    )
    return SuccessResponse(success=True)


@router.get("", response_model_exclude_none=True)
def get_time_entries(project: str | None = None, store: TimeStore = Depends(get_store)) -> EntriesResponse:
    """Return the entries of one project, or of every project with their ids."""
    entries = store.get_project_entries(project) if project else store.get_all_time_entries()
    return EntriesResponse(entries=[from_dataclass(TimeEntryOut, entry) for entry in entries])


@router.put("")
def update_time_entry(request: TimeEntryUpdate, store: TimeStore = Depends(get_store)) -> SuccessResponse:
    """Apply a partial update to an entry."""
    if not request.id:
        raise ValidationError("Entry ID required")

    updates = request.model_dump(exclude={"id"}, exclude_none=True)
    store.update_time_entry(request.id, updates)
    return SuccessResponse(success=True)


@router.delete("")
def delete_time_entry(
    entry_id: str | None = Query(None, alias="id"), store: TimeStore = Depends(get_store)
) -> SuccessResponse:
    """Delete an entry."""
    if not entry_id:
        raise ValidationError("Entry ID required")

    store.delete_time_entry(entry_id)
    return SuccessResponse(success=True)
