"""
Search and filtering over a batch's requests and tracking events.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field, model_validator

from seattle311.models.service_request import RequestStatus, ServiceRequest, TrackingEvent


class DateWindow(BaseModel):
    """Inclusive calendar-date range plus an optional calendar month."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    month: Optional[int] = Field(None, ge=1, le=12, description="Calendar month, 1-12")

    @model_validator(mode="after")
    def _ordered_range(self) -> "DateWindow":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    def contains(self, moment: datetime) -> bool:
        day = moment.date()
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        if self.month and moment.month != self.month:
            return False
        return True


class RequestFilter(DateWindow):
    """Criteria applied to service requests on their creation date."""

    search: Optional[str] = None
    status: Optional[RequestStatus] = None
    department: Optional[str] = None

    def matches(self, request: ServiceRequest) -> bool:
        if self.search and not _contains_text(
            self.search,
            request.service_request_number,
            request.service_request_type,
            request.location,
        ):
            return False
        if self.status and request.status is not self.status:
            return False
        if self.department and request.city_department != self.department:
            return False
        return self.contains(request.created_date)


class TrackingFilter(DateWindow):
    """Criteria applied to tracking events on their update timestamp."""

    search: Optional[str] = None
    department: Optional[str] = None
    status_category: Optional[str] = None

    def matches(self, event: TrackingEvent) -> bool:
        if self.search and not _contains_text(
            self.search,
            event.service_request_number,
            event.reported_location,
            event.service_request_type,
        ):
            return False
        if self.department and event.responsible_department != self.department:
            return False
        if self.status_category and event.status_category != self.status_category:
            return False
        return self.contains(event.updated_at)


def _contains_text(term: str, *values: Optional[str]) -> bool:
    needle = term.strip().lower()
    return any(needle in (value or "").lower() for value in values)


def filter_requests(
    requests: Sequence[ServiceRequest], criteria: Optional[RequestFilter] = None
) -> List[ServiceRequest]:
    """Matching requests as a new list, in input order."""
    if criteria is None:
        return list(requests)
    return [request for request in requests if criteria.matches(request)]


def filter_tracking(
    events: Sequence[TrackingEvent], criteria: Optional[TrackingFilter] = None
) -> List[TrackingEvent]:
    """Matching tracking events as a new list, in input order."""
    if criteria is None:
        return list(events)
    return [event for event in events if criteria.matches(event)]


def request_timeline(events: Sequence[TrackingEvent], request_number: str) -> List[TrackingEvent]:
    """
    Status history of one request, oldest update first.

    Events whose request is not part of the batch are still returned; an
    unknown number simply yields an empty list.
    """
    history = [event for event in events if event.service_request_number == request_number]
    return sorted(history, key=lambda event: (event.updated_at, event.status_order))
