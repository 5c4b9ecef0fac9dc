"""
Pydantic schemas for aggregates and insights derived from a batch.

These are recomputed from scratch for every batch or filter change and are
returned as-is by the statistics and insights API.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from seattle311.models.batch import BatchSource
from seattle311.models.service_request import ServiceRequest


class StatusCounts(BaseModel):
    """Request counts per status bucket."""

    total_requests: int = 0
    open: int = 0
    in_progress: int = 0
    closed: int = 0


class GroupStats(StatusCounts):
    """Status counts plus closed-subset resolution statistics for one key."""

    min_resolution_days: Optional[int] = None
    max_resolution_days: Optional[int] = None
    sla_compliance_rate: float = 0.0


class DepartmentStats(GroupStats):
    department: str
    avg_resolution_days: int = 0


class IssueTypeStats(GroupStats):
    issue_type: str
    expected_resolution_days: int
    avg_resolution_days: float = Field(0.0, description="Closed subset only, one decimal")
    completion_rate: int = Field(0, description="Closed / total, whole percent")


class MonthStats(GroupStats):
    month: str = Field(..., description="Calendar bucket as YYYY-MM")
    label: str = Field(..., description="Display label such as 'Mar 2025'")
    avg_resolution_days: int = 0


class DistrictStats(GroupStats):
    district: str
    share: float = Field(0.0, description="Percent of all requests, one decimal")
    avg_resolution_days: int = 0


class BacklogItem(BaseModel):
    """A not-yet-closed request ranked by how far past its target it is."""

    model_config = ConfigDict(frozen=True)

    request: ServiceRequest
    days_open: int
    expected_days: int
    past_due: bool
    urgency_score: float


class RequestSummary(StatusCounts):
    departments: int = 0
    request_types: int = 0
    oldest_created: Optional[datetime] = None
    newest_created: Optional[datetime] = None


class TrackingSummary(BaseModel):
    total_updates: int = 0
    unique_requests: int = 0
    departments: int = 0
    status_counts: Dict[str, int] = Field(default_factory=dict)


class InsightType(str, Enum):
    SEASONAL = "seasonal"
    BOTTLENECK = "bottleneck"
    GEOGRAPHIC = "geographic"
    PREDICTIVE_BACKLOG = "predictive_backlog"
    SLA_COMPLIANCE = "sla_compliance"


class InsightSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class InsightImpact(str, Enum):
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class Insight(BaseModel):
    """A qualitative finding with recommended follow-up actions."""

    type: InsightType
    severity: InsightSeverity
    title: str
    description: str
    impact: InsightImpact
    actions: List[str] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)


class BatchInfo(BaseModel):
    """Batch metadata without the record payload."""

    sequence: int
    target_year: int
    source: BatchSource
    error: Optional[str] = None
    fetched_at: datetime
    data_source: str
    request_count: int
    tracking_count: int
    oldest_created: Optional[datetime] = None
    newest_created: Optional[datetime] = None
