"""
Customer service request and request tracking models.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RequestStatus(str, Enum):
    """Normalized lifecycle bucket of a service request."""

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    CLOSED = "Closed"


class ServiceRequest(BaseModel):
    """
    One reported civic issue (pothole, graffiti, abandoned vehicle, ...).

    ``actual_resolution_days`` and ``sla_met`` stay ``None`` until the request
    is closed. When ``closed_date_estimated`` is set the closure date, and
    everything derived from it, was inferred from the expected resolution
    time rather than observed upstream.
    """

    model_config = ConfigDict(frozen=True)

    service_request_number: str
    service_request_type: str = "Unknown"
    city_department: str = "Unknown"
    status: RequestStatus = RequestStatus.OPEN
    created_date: datetime
    closed_date: Optional[datetime] = None
    closed_date_estimated: bool = False
    method_received: str = "Unknown"

    # Location
    location: str = "Seattle, WA"
    council_district: str = "Unknown"
    neighborhood: str = "Unknown"
    zip_code: Optional[str] = None
    police_precinct: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Resolution
    expected_resolution_days: int = Field(5, ge=1)
    actual_resolution_days: Optional[int] = Field(None, ge=0)
    sla_met: Optional[bool] = None

    @model_validator(mode="after")
    def _closed_date_requires_closed_status(self) -> "ServiceRequest":
        if self.closed_date is not None and self.status is not RequestStatus.CLOSED:
            raise ValueError("closed_date is only valid on Closed requests")
        return self

    @property
    def is_closed(self) -> bool:
        return self.status is RequestStatus.CLOSED


class TrackingEvent(BaseModel):
    """A single status update posted against a service request."""

    model_config = ConfigDict(frozen=True)

    service_request_number: str = ""
    responsible_department: str = "Unknown"
    service_request_type: str = ""
    status_category: str = "In Progress"
    current_status: str = ""
    status_update: str = ""
    updated_at: datetime
    status_order: int = 0
    reported_location: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
