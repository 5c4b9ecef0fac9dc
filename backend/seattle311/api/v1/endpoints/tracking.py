"""
Request tracking search endpoints.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ValidationError

from seattle311.models.batch import DataBatch
from seattle311.models.service_request import TrackingEvent
from seattle311.services.batch_store import get_current_batch
from seattle311.services.filters import TrackingFilter, filter_tracking

router = APIRouter()


class TrackingSearchResponse(BaseModel):
    count: int
    events: List[TrackingEvent]


def tracking_filter(
    search: Optional[str] = Query(None, description="Match number, location or type"),
    department: Optional[str] = Query(None),
    status_category: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, description="Updated on or after"),
    end_date: Optional[date] = Query(None, description="Updated on or before"),
    month: Optional[int] = Query(None, ge=1, le=12),
) -> TrackingFilter:
    try:
        return TrackingFilter(
            search=search,
            department=department,
            status_category=status_category,
            start_date=start_date,
            end_date=end_date,
            month=month,
        )
    except ValidationError as exc:
        detail = exc.errors(include_url=False, include_context=False, include_input=False)
        raise HTTPException(status_code=422, detail=detail) from exc


@router.get("", response_model=TrackingSearchResponse)
async def search_tracking(
    criteria: TrackingFilter = Depends(tracking_filter),
    limit: int = Query(100, ge=1, le=1000),
    batch: DataBatch = Depends(get_current_batch),
):
    """Search tracking updates, newest first."""
    matches = filter_tracking(batch.tracking, criteria)
    return TrackingSearchResponse(count=len(matches), events=matches[:limit])
