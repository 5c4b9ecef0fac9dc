"""
Normalization of raw Seattle open data records into the canonical schema.

The two upstream feeds name the same concepts differently (and deployments
rename columns over time), so every canonical field is resolved from an
ordered list of candidate keys with a typed default. Adding a new alias only
means extending the relevant ``FieldSpec``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from seattle311.models.service_request import RequestStatus, ServiceRequest, TrackingEvent
from seattle311.utils.dates import ONE_DAY, parse_timestamp, utcnow

DEFAULT_EXPECTED_DAYS = 5

# SLA expectations by request type (in days). Checked by exact name first,
# then by case-insensitive substring in this order.
SLA_TARGET_DAYS: Dict[str, int] = {
    "Abandoned Vehicle": 3,
    "Graffiti": 7,
    "Pothole": 3,
    "Parking Enforcement": 1,
    "Unauthorized Encampment": 5,
    "Encampment": 5,
    "Street Light": 5,
    "Illegal Dumping": 7,
    "Dumping": 7,
    "Tree Maintenance": 14,
    "Tree": 14,
    "Traffic Signal": 2,
    "Street Sign": 5,
    "Sign": 5,
    "Park Maintenance": 10,
    "Park": 10,
    "Sidewalk": 14,
    "Water Main": 1,
    "Sewer": 2,
    "Noise Complaint": 2,
    "General Inquiry": 3,
}

# Substring rules, evaluated in precedence order.
_STATUS_RULES: Tuple[Tuple[RequestStatus, Tuple[str, ...]], ...] = (
    (RequestStatus.CLOSED, ("closed", "complete", "resolved")),
    (RequestStatus.IN_PROGRESS, ("progress", "assigned", "routed")),
    (RequestStatus.OPEN, ("open", "reported", "received")),
)


def _text(value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise ValueError("structured value where text was expected")
    text = str(value).strip()
    if not text:
        raise ValueError("blank value")
    return text


def _location_text(value: Any) -> str:
    # Socrata location columns sometimes arrive as objects
    if isinstance(value, dict):
        return _text(value.get("human_address") or value.get("address"))
    return _text(value)


def _coordinate(value: Any) -> Optional[float]:
    number = float(value)
    return number or None


def _integer(value: Any) -> int:
    return int(float(value))


def _placeholder_id() -> str:
    return f"SR-{uuid.uuid4().hex[:9]}"


@dataclass(frozen=True, slots=True)
class FieldSpec:
    """Canonical field resolved from prioritized upstream aliases."""

    name: str
    aliases: Tuple[str, ...]
    default: Any = None
    default_factory: Optional[Callable[[], Any]] = None
    parser: Optional[Callable[[Any], Any]] = None

    def resolve(self, record: Mapping[str, Any]) -> Any:
        """Return the first alias value that is present and parses, else the default."""
        for alias in self.aliases:
            value = record.get(alias)
            if value is None or value == "":
                continue
            if self.parser is None:
                return value
            try:
                parsed = self.parser(value)
            except (TypeError, ValueError, OverflowError):
                continue
            if parsed is not None:
                return parsed
        if self.default_factory is not None:
            return self.default_factory()
        return self.default


CREATED_DATE_ALIASES = ("createddate", "created_date", "created_at", "opened_at")
UPDATED_DATE_ALIASES = ("updateddate", "updated_at", "updated_date", "last_modified_date")

REQUEST_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(
        "service_request_number",
        ("servicerequestnumber", "service_request_number", "sr_number", "request_id"),
        default_factory=_placeholder_id,
        parser=_text,
    ),
    FieldSpec(
        "service_request_type",
        ("webintakeservicerequests", "servicerequesttype", "service_request_type", "sr_type"),
        default="Unknown",
        parser=_text,
    ),
    FieldSpec(
        "city_department",
        ("departmentname", "responsibledepartment", "city_department", "department"),
        default="Unknown",
        parser=_text,
    ),
    FieldSpec(
        "status",
        ("servicerequeststatusname", "currentstatus", "status", "statuscategory"),
        parser=_text,
    ),
    FieldSpec(
        "created_date",
        CREATED_DATE_ALIASES,
        default_factory=utcnow,
        parser=parse_timestamp,
    ),
    FieldSpec(
        "closed_date",
        ("closeddate", "closed_date", "closed_at", "resolveddate"),
        parser=parse_timestamp,
    ),
    FieldSpec(
        "method_received",
        ("methodreceivedname", "method_received"),
        default="Unknown",
        parser=_text,
    ),
    FieldSpec(
        "location",
        ("location", "reportedlocation", "address"),
        default="Seattle, WA",
        parser=_location_text,
    ),
    FieldSpec("council_district", ("councildistrict", "council_district"), default="Unknown", parser=_text),
    FieldSpec("neighborhood", ("neighborhood",), default="Unknown", parser=_text),
    FieldSpec("zip_code", ("zipcode", "zip_code", "zip"), parser=_text),
    FieldSpec("police_precinct", ("policeprecinct", "police_precinct"), parser=_text),
    FieldSpec("latitude", ("latitude", "lat"), parser=_coordinate),
    FieldSpec("longitude", ("longitude", "lon", "lng"), parser=_coordinate),
)

TRACKING_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(
        "service_request_number",
        ("servicerequestnumber", "service_request_number"),
        default="",
        parser=_text,
    ),
    FieldSpec(
        "responsible_department",
        ("responsibledepartment", "departmentname", "department"),
        default="Unknown",
        parser=_text,
    ),
    FieldSpec(
        "service_request_type",
        ("servicerequesttype", "webintakeservicerequests", "service_request_type"),
        default="",
        parser=_text,
    ),
    FieldSpec("status_category", ("statuscategory", "status"), default="In Progress", parser=_text),
    FieldSpec("current_status", ("currentstatus",), default="", parser=_text),
    FieldSpec("status_update", ("statusupdate", "status_update"), default="", parser=_text),
    FieldSpec("updated_at", UPDATED_DATE_ALIASES, default_factory=utcnow, parser=parse_timestamp),
    FieldSpec("status_order", ("statusorder", "status_order"), default=0, parser=_integer),
    FieldSpec("reported_location", ("reportedlocation", "location"), default="", parser=_location_text),
    FieldSpec("latitude", ("latitude", "lat"), parser=_coordinate),
    FieldSpec("longitude", ("longitude", "lon", "lng"), parser=_coordinate),
)

_CREATED_ONLY = FieldSpec("created_date", CREATED_DATE_ALIASES, parser=parse_timestamp)


def map_record(record: Mapping[str, Any], specs: Iterable[FieldSpec]) -> Dict[str, Any]:
    """Resolve every field spec against a raw record."""
    return {spec.name: spec.resolve(record) for spec in specs}


def normalize_status(raw_status: Optional[str]) -> RequestStatus:
    """
    Map a free-text upstream status onto the three status buckets.

    "Resolved - No Action Needed" is Closed, "ROUTED" and
    "Assigned - In Progress" are In Progress, anything unrecognised is Open.
    """
    if not raw_status:
        return RequestStatus.OPEN

    lowered = raw_status.lower()
    for status, keywords in _STATUS_RULES:
        if any(keyword in lowered for keyword in keywords):
            return status
    return RequestStatus.OPEN


def expected_resolution_days(request_type: Optional[str]) -> int:
    """SLA target in days for a request type, defaulting to 5."""
    if not request_type:
        return DEFAULT_EXPECTED_DAYS

    exact = SLA_TARGET_DAYS.get(request_type)
    if exact:
        return exact

    lowered = request_type.lower()
    for name, days in SLA_TARGET_DAYS.items():
        if name.lower() in lowered:
            return days
    return DEFAULT_EXPECTED_DAYS


def compute_resolution(
    created: Optional[datetime],
    closed: Optional[datetime],
    expected_days: int,
) -> Tuple[Optional[int], Optional[bool]]:
    """
    Whole days from creation to closure and whether that met the SLA.

    Both values are ``None`` while either date is unknown, or when clock skew
    puts the closure before the creation.
    """
    if created is None or closed is None:
        return None, None
    days = (closed - created) // ONE_DAY
    if days < 0:
        return None, None
    return days, days <= expected_days


def normalize_request(record: Mapping[str, Any]) -> ServiceRequest:
    """Build a ServiceRequest from one raw Customer Service Requests record."""
    fields = map_record(record, REQUEST_FIELDS)
    status = normalize_status(fields.pop("status"))
    upstream_closed = fields.pop("closed_date")
    expected = expected_resolution_days(fields["service_request_type"])
    created = fields["created_date"]

    closed: Optional[datetime] = None
    estimated = False
    if status is RequestStatus.CLOSED:
        closed = upstream_closed
        if closed is None:
            # Approximation: the feed carries no closure date, so assume the
            # request closed exactly on its SLA target.
            try:
                closed = created + timedelta(days=expected)
                estimated = True
            except OverflowError:
                # created sits at the end of the calendar; closure stays unknown
                closed = None

    actual, sla_met = compute_resolution(created, closed, expected)

    return ServiceRequest(
        **fields,
        status=status,
        closed_date=closed,
        closed_date_estimated=estimated,
        expected_resolution_days=expected,
        actual_resolution_days=actual,
        sla_met=sla_met,
    )


def normalize_tracking_event(record: Mapping[str, Any]) -> TrackingEvent:
    """Build a TrackingEvent from one raw Request Tracking record."""
    return TrackingEvent(**map_record(record, TRACKING_FIELDS))


def record_created_year(record: Mapping[str, Any]) -> Optional[int]:
    """Year of the upstream creation timestamp, ``None`` when absent or invalid."""
    created = _CREATED_ONLY.resolve(record)
    return created.year if created is not None else None


def count_year_matches(records: Iterable[Mapping[str, Any]], target_year: int) -> int:
    return sum(1 for record in records if record_created_year(record) == target_year)


def sort_newest_first(requests: Sequence[ServiceRequest]) -> List[ServiceRequest]:
    return sorted(requests, key=lambda request: request.created_date, reverse=True)


def sort_events_newest_first(events: Sequence[TrackingEvent]) -> List[TrackingEvent]:
    return sorted(events, key=lambda event: event.updated_at, reverse=True)
