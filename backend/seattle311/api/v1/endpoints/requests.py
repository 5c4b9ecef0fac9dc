"""
Service request search and timeline endpoints.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ValidationError

from seattle311.models.batch import DataBatch
from seattle311.models.service_request import RequestStatus, ServiceRequest, TrackingEvent
from seattle311.services.batch_store import get_current_batch
from seattle311.services.filters import RequestFilter, filter_requests, request_timeline

router = APIRouter()


class RequestSearchResponse(BaseModel):
    count: int
    requests: List[ServiceRequest]


class TimelineResponse(BaseModel):
    service_request_number: str
    request: Optional[ServiceRequest]
    events: List[TrackingEvent]


def request_filter(
    search: Optional[str] = Query(None, description="Match number, type or location"),
    status: Optional[RequestStatus] = Query(None),
    department: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, description="Created on or after"),
    end_date: Optional[date] = Query(None, description="Created on or before"),
    month: Optional[int] = Query(None, ge=1, le=12),
) -> RequestFilter:
    try:
        return RequestFilter(
            search=search,
            status=status,
            department=department,
            start_date=start_date,
            end_date=end_date,
            month=month,
        )
    except ValidationError as exc:
        detail = exc.errors(include_url=False, include_context=False, include_input=False)
        raise HTTPException(status_code=422, detail=detail) from exc


@router.get("", response_model=RequestSearchResponse)
async def search_requests(
    criteria: RequestFilter = Depends(request_filter),
    limit: int = Query(100, ge=1, le=1000),
    batch: DataBatch = Depends(get_current_batch),
):
    """Search requests, newest first."""
    matches = filter_requests(batch.requests, criteria)
    return RequestSearchResponse(count=len(matches), requests=matches[:limit])


@router.get("/{request_number}/timeline", response_model=TimelineResponse)
async def get_request_timeline(
    request_number: str,
    batch: DataBatch = Depends(get_current_batch),
):
    """Status history for one request, oldest update first."""
    request = next(
        (r for r in batch.requests if r.service_request_number == request_number),
        None,
    )
    events = request_timeline(batch.tracking, request_number)
    if request is None and not events:
        raise HTTPException(status_code=404, detail="Service request not found")

    return TimelineResponse(
        service_request_number=request_number,
        request=request,
        events=events,
    )
