from fastapi import APIRouter, Depends

from ...errors import NotFoundError, ValidationError
from ...store import TimeStore
from ..dependencies import get_store
from ..schemas import SuccessResponse, TimerOut, TimerRequest, TimerResponse, TimersResponse, from_dataclass


router = APIRouter(prefix="/timers", tags=["timers"])


@router.get("")
def list_timers(store: TimeStore = Depends(get_store)) -> TimersResponse:
    """Return every persisted timer, running or stopped."""
    return TimersResponse(timers=[from_dataclass(TimerOut, timer) for timer in store.list_timers()])


@router.post("")
def timer_action(request: TimerRequest, store: TimeStore = Depends(get_store)) -> TimerResponse | SuccessResponse:
    """Start, update, stop or delete a timer."""
    if not request.action or not request.timer_id:
        raise ValidationError("Missing required fields")

    if request.action == "start":
        if not request.project:
            raise ValidationError("Project name required for start action")
        timer = store.start_timer(request.timer_id, request.project)
    elif request.action == "update":
        if request.elapsed_time is None:
            raise ValidationError("Elapsed time required for update action")
        timer = store.update_timer(request.timer_id, request.elapsed_time)
    elif request.action == "stop":
        timer = store.stop_timer(request.timer_id)
    elif request.action == "delete":
        return SuccessResponse(success=store.delete_timer(request.timer_id))
    else:
        raise ValidationError("Invalid action")

    if timer is None:
        raise NotFoundError("Timer not found")
    return TimerResponse(timer=from_dataclass(TimerOut, timer))
