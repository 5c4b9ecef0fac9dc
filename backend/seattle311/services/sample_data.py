"""
Synthetic fallback batch used when the live feeds are unusable.

The shape is fixed (request count, departments, request types, tracking
progression) while the content is random, so every consumer renders a sample
batch exactly like a live one.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from seattle311.models.service_request import RequestStatus, ServiceRequest, TrackingEvent
from seattle311.services.normalization import (
    compute_resolution,
    sort_events_newest_first,
    sort_newest_first,
)
from seattle311.utils.dates import ONE_DAY, utcnow, year_end

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SampleRequestType:
    """A sample request type; closure delays are drawn from 0 to twice ``avg_days``."""

    name: str
    avg_days: int
    target_days: int


DEPARTMENTS: Tuple[str, ...] = (
    "SPD-Seattle Police Department",
    "SDOT-Seattle Department of Transportation",
    "SPU-Seattle Public Utilities",
    "Parks and Recreation",
    "Human Services Department",
    "SCL-Seattle City Light",
    "FAS-Finance and Administrative Services",
)

REQUEST_TYPES: Tuple[SampleRequestType, ...] = (
    SampleRequestType("Abandoned Vehicle", 3, 3),
    SampleRequestType("Graffiti", 5, 7),
    SampleRequestType("Pothole", 2, 3),
    SampleRequestType("Parking Enforcement", 1, 1),
    SampleRequestType("Unauthorized Encampment", 8, 5),
    SampleRequestType("Street Light Out", 4, 5),
    SampleRequestType("Illegal Dumping / Needles", 6, 7),
    SampleRequestType("Tree Maintenance", 12, 14),
    SampleRequestType("Traffic Signal Malfunction", 1, 2),
    SampleRequestType("Sidewalk Repair", 15, 14),
    SampleRequestType("Water Main Break", 1, 1),
    SampleRequestType("General Inquiry - Police Department", 2, 3),
)

NEIGHBORHOODS: Tuple[str, ...] = (
    "Capitol Hill", "Ballard", "Fremont", "Queen Anne", "University District",
    "Greenwood", "Wallingford", "Ravenna", "Green Lake", "Northgate",
    "Roosevelt", "Stevens", "Adams", "Meadowbrook",
)

METHODS_RECEIVED: Tuple[str, ...] = ("Find It Fix It Apps", "Citizen Web", "Phone")

# (status label, days after creation)
_PROGRESSION: Tuple[Tuple[str, float], ...] = (
    ("Request Received", 0),
    ("Routed to Department", 0.5),
    ("Assigned to Staff", 1),
    ("Work Scheduled", 3),
)

SEATTLE_LAT, SEATTLE_LON = 47.6062, -122.3321


def sample_window(target_year: int, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """
    Creation window for sample requests: Jan 1 of the target year until now,
    capped at the end of the target year. A target year that has not started
    yet gets the whole year.
    """
    now = now or utcnow()
    start = datetime(target_year, 1, 1)
    end = min(now, year_end(target_year))
    if end <= start:
        end = year_end(target_year)
    return start, end


def generate_sample_batch(
    target_year: int,
    count: int = 600,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> Tuple[List[ServiceRequest], List[TrackingEvent]]:
    """
    Generate ``count`` synthetic requests plus their tracking history.

    Returns:
        (requests newest first, tracking events newest first)
    """
    rng = rng or random.Random()
    start, end = sample_window(target_year, now)
    span_days = max(1, (end - start) // ONE_DAY)

    requests: List[ServiceRequest] = []
    tracking: List[TrackingEvent] = []

    for index in range(count):
        request_type = rng.choice(REQUEST_TYPES)
        department = rng.choice(DEPARTMENTS)
        neighborhood = rng.choice(NEIGHBORHOODS)

        created = start + timedelta(days=rng.randrange(span_days), minutes=rng.randrange(24 * 60))
        if created > end:
            created = end

        days_to_close = rng.randint(0, 2 * request_type.avg_days)
        closed: Optional[datetime] = None
        if rng.random() > 0.3:
            closed = created + timedelta(days=days_to_close)
            if closed > end:
                closed = None

        if closed is not None:
            status = RequestStatus.CLOSED
        else:
            status = RequestStatus.IN_PROGRESS if rng.random() > 0.4 else RequestStatus.OPEN

        actual, sla_met = compute_resolution(created, closed, request_type.target_days)
        request = ServiceRequest(
            service_request_number=f"{target_year % 100:02d}-{100000 + index:06d}",
            service_request_type=request_type.name,
            city_department=department,
            status=status,
            created_date=created,
            closed_date=closed,
            method_received=rng.choice(METHODS_RECEIVED),
            location=f"{neighborhood}, Seattle, WA",
            council_district=str(rng.randint(1, 7)),
            neighborhood=neighborhood,
            zip_code=f"981{rng.randint(1, 30):02d}",
            latitude=SEATTLE_LAT + (rng.random() - 0.5) * 0.1,
            longitude=SEATTLE_LON + (rng.random() - 0.5) * 0.1,
            expected_resolution_days=request_type.target_days,
            actual_resolution_days=actual,
            sla_met=sla_met,
        )
        requests.append(request)
        tracking.extend(_tracking_for(request, days_to_close, end))

    logger.info(
        "Generated %s sample requests and %s tracking events for %s",
        len(requests),
        len(tracking),
        target_year,
    )
    return sort_newest_first(requests), sort_events_newest_first(tracking)


def _tracking_for(request: ServiceRequest, days_to_close: int, end: datetime) -> List[TrackingEvent]:
    steps = list(_PROGRESSION)
    if request.is_closed:
        steps.append(("Work Complete", max(0, days_to_close - 1)))
        steps.append(("Verified", days_to_close))
    else:
        steps = steps[:3]

    events: List[TrackingEvent] = []
    for order, (label, offset_days) in enumerate(steps, start=1):
        updated_at = request.created_date + timedelta(days=offset_days)
        if updated_at > end:
            continue
        events.append(
            TrackingEvent(
                service_request_number=request.service_request_number,
                responsible_department=request.city_department,
                service_request_type=request.service_request_type,
                status_category=label,
                current_status=request.status.value,
                status_update=f"{label} ({request.city_department})",
                updated_at=updated_at,
                status_order=order,
                reported_location=request.location,
                latitude=request.latitude,
                longitude=request.longitude,
            )
        )
    return events
