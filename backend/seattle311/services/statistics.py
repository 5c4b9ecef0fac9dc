"""
Grouped statistics over a batch of service requests.

Every function here is pure: it reads an immutable sequence of requests and
returns freshly built aggregates. Ranking by count uses a stable sort, so ties
keep first-encountered order; callers should not depend on that.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from seattle311.models.service_request import RequestStatus, ServiceRequest, TrackingEvent
from seattle311.schemas.statistics import (
    BacklogItem,
    DepartmentStats,
    DistrictStats,
    IssueTypeStats,
    MonthStats,
    RequestSummary,
    TrackingSummary,
)
from seattle311.services.normalization import DEFAULT_EXPECTED_DAYS
from seattle311.utils.dates import utcnow, whole_days_between


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a person would (2.5 -> 3), not banker's rounding."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass(slots=True)
class _Bucket:
    """Running counts for one grouping key."""

    total: int = 0
    open: int = 0
    in_progress: int = 0
    closed: int = 0
    sla_met: int = 0
    resolution_days: List[int] = field(default_factory=list)

    def add(self, request: ServiceRequest) -> None:
        self.total += 1
        if request.status is RequestStatus.OPEN:
            self.open += 1
        elif request.status is RequestStatus.IN_PROGRESS:
            self.in_progress += 1
        else:
            self.closed += 1
            if request.actual_resolution_days is not None:
                self.resolution_days.append(request.actual_resolution_days)
            if request.sla_met:
                self.sla_met += 1

    def mean_resolution(self) -> float:
        if not self.resolution_days:
            return 0.0
        return sum(self.resolution_days) / len(self.resolution_days)

    def sla_compliance_rate(self) -> float:
        if not self.closed:
            return 0.0
        return round_half_up(self.sla_met / self.closed * 100, 1)

    def counts(self) -> dict:
        return {
            "total_requests": self.total,
            "open": self.open,
            "in_progress": self.in_progress,
            "closed": self.closed,
        }

    def resolution(self) -> dict:
        return {
            "min_resolution_days": min(self.resolution_days, default=None),
            "max_resolution_days": max(self.resolution_days, default=None),
            "sla_compliance_rate": self.sla_compliance_rate(),
        }


def _group(
    requests: Iterable[ServiceRequest], key: Callable[[ServiceRequest], str]
) -> Dict[str, _Bucket]:
    buckets: Dict[str, _Bucket] = {}
    for request in requests:
        name = key(request) or "Unknown"
        bucket = buckets.get(name)
        if bucket is None:
            bucket = buckets[name] = _Bucket()
        bucket.add(request)
    return buckets


def group_by_department(requests: Sequence[ServiceRequest]) -> List[DepartmentStats]:
    """Per-department status counts, ranked by request volume."""
    stats = [
        DepartmentStats(
            department=name,
            avg_resolution_days=int(round_half_up(bucket.mean_resolution())),
            **bucket.counts(),
            **bucket.resolution(),
        )
        for name, bucket in _group(requests, lambda r: r.city_department).items()
    ]
    return sorted(stats, key=lambda s: s.total_requests, reverse=True)


def group_by_issue_type(
    requests: Sequence[ServiceRequest], limit: Optional[int] = None
) -> List[IssueTypeStats]:
    """
    Per-request-type statistics, ranked by request volume.

    Carries the type's expected resolution time so callers can compare it
    with the observed closed-request average.
    """
    expected: Dict[str, int] = {}
    for request in requests:
        expected.setdefault(
            request.service_request_type or "Unknown",
            request.expected_resolution_days or DEFAULT_EXPECTED_DAYS,
        )

    stats = [
        IssueTypeStats(
            issue_type=name,
            expected_resolution_days=expected[name],
            avg_resolution_days=round_half_up(bucket.mean_resolution(), 1),
            completion_rate=int(round_half_up(bucket.closed / bucket.total * 100)),
            **bucket.counts(),
            **bucket.resolution(),
        )
        for name, bucket in _group(requests, lambda r: r.service_request_type).items()
    ]
    stats.sort(key=lambda s: s.total_requests, reverse=True)
    return stats[:limit] if limit else stats


def group_by_month(requests: Sequence[ServiceRequest]) -> List[MonthStats]:
    """Per calendar year-month statistics in chronological order."""
    labels: Dict[str, str] = {}

    def month_key(request: ServiceRequest) -> str:
        key = request.created_date.strftime("%Y-%m")
        labels.setdefault(key, request.created_date.strftime("%b %Y"))
        return key

    stats = [
        MonthStats(
            month=key,
            label=labels[key],
            avg_resolution_days=int(round_half_up(bucket.mean_resolution())),
            **bucket.counts(),
            **bucket.resolution(),
        )
        for key, bucket in _group(requests, month_key).items()
    ]
    return sorted(stats, key=lambda s: s.month)


def group_by_district(requests: Sequence[ServiceRequest]) -> List[DistrictStats]:
    """Per council district statistics with each district's share of all requests."""
    total = len(requests)
    stats = [
        DistrictStats(
            district=name,
            share=round_half_up(bucket.total / total * 100, 1),
            avg_resolution_days=int(round_half_up(bucket.mean_resolution())),
            **bucket.counts(),
            **bucket.resolution(),
        )
        for name, bucket in _group(requests, lambda r: r.council_district).items()
    ]
    return sorted(stats, key=lambda s: s.total_requests, reverse=True)


def compute_backlog(
    requests: Sequence[ServiceRequest], now: Optional[datetime] = None
) -> List[BacklogItem]:
    """
    Rank every request that is not Closed by urgency.

    ``urgency_score = days_open / expected_days``; a missing or zero expected
    duration falls back to the default before dividing. A creation date after
    ``now`` counts as zero days open.
    """
    now = now or utcnow()
    backlog = []
    for request in requests:
        if request.status is RequestStatus.CLOSED:
            continue
        days_open = max(0, whole_days_between(request.created_date, now))
        expected = request.expected_resolution_days or DEFAULT_EXPECTED_DAYS
        backlog.append(
            BacklogItem(
                request=request,
                days_open=days_open,
                expected_days=expected,
                past_due=days_open > expected,
                urgency_score=days_open / expected,
            )
        )
    return sorted(backlog, key=lambda item: item.urgency_score, reverse=True)


def summarize_requests(requests: Sequence[ServiceRequest]) -> RequestSummary:
    bucket = _Bucket()
    for request in requests:
        bucket.add(request)

    created = [request.created_date for request in requests]
    return RequestSummary(
        departments=len({request.city_department for request in requests}),
        request_types=len({request.service_request_type for request in requests}),
        oldest_created=min(created) if created else None,
        newest_created=max(created) if created else None,
        **bucket.counts(),
    )


def summarize_tracking(events: Sequence[TrackingEvent]) -> TrackingSummary:
    return TrackingSummary(
        total_updates=len(events),
        unique_requests=len({event.service_request_number for event in events}),
        departments=len({event.responsible_department for event in events}),
        status_counts=dict(Counter(event.status_category for event in events)),
    )
