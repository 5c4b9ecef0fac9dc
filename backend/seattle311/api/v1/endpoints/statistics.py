"""
Grouped statistics endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from seattle311.models.batch import DataBatch
from seattle311.models.service_request import ServiceRequest
from seattle311.schemas.statistics import (
    BacklogItem,
    DepartmentStats,
    DistrictStats,
    IssueTypeStats,
    MonthStats,
)
from seattle311.services.batch_store import get_current_batch
from seattle311.services.filters import RequestFilter, filter_requests
from seattle311.services.statistics import (
    compute_backlog,
    group_by_department,
    group_by_district,
    group_by_issue_type,
    group_by_month,
    summarize_requests,
    summarize_tracking,
)

router = APIRouter()


async def scoped_requests(
    department: Optional[str] = Query(None, description="Restrict to one department"),
    batch: DataBatch = Depends(get_current_batch),
) -> List[ServiceRequest]:
    """Batch requests, optionally narrowed to a single department."""
    return filter_requests(batch.requests, RequestFilter(department=department))


@router.get("/summary")
async def get_summary(
    requests: List[ServiceRequest] = Depends(scoped_requests),
    batch: DataBatch = Depends(get_current_batch),
):
    """Status totals for requests plus tracking coverage."""
    return {
        "requests": summarize_requests(requests),
        "tracking": summarize_tracking(batch.tracking),
    }


@router.get("/departments", response_model=List[DepartmentStats])
async def get_department_stats(requests: List[ServiceRequest] = Depends(scoped_requests)):
    return group_by_department(requests)


@router.get("/issue-types", response_model=List[IssueTypeStats])
async def get_issue_type_stats(
    limit: Optional[int] = Query(None, ge=1, le=100),
    requests: List[ServiceRequest] = Depends(scoped_requests),
):
    return group_by_issue_type(requests, limit=limit)


@router.get("/months", response_model=List[MonthStats])
async def get_month_stats(requests: List[ServiceRequest] = Depends(scoped_requests)):
    return group_by_month(requests)


@router.get("/districts", response_model=List[DistrictStats])
async def get_district_stats(requests: List[ServiceRequest] = Depends(scoped_requests)):
    return group_by_district(requests)


@router.get("/backlog", response_model=List[BacklogItem])
async def get_backlog(
    limit: int = Query(50, ge=1, le=1000),
    requests: List[ServiceRequest] = Depends(scoped_requests),
):
    """Not-yet-closed requests, most overdue first."""
    return compute_backlog(requests)[:limit]
