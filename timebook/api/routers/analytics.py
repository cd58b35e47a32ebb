from dataclasses import asdict

from fastapi import APIRouter, Depends

from ...store import TimeStore
from ..dependencies import get_store
from ..schemas import AnalyticsResponse


router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("")
def get_analytics(store: TimeStore = Depends(get_store)) -> AnalyticsResponse:
    """Return hours, cost and shares per project."""
    return AnalyticsResponse(**asdict(store.get_analytics()))
