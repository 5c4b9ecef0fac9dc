"""
Rule-based insights derived from a batch and its issue-type statistics.

Each rule is evaluated on its own; a rule whose condition is not met simply
contributes nothing, it never prevents the other rules from running.
"""

from __future__ import annotations

import calendar
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from seattle311.models.service_request import ServiceRequest, TrackingEvent
from seattle311.schemas.statistics import (
    Insight,
    InsightImpact,
    InsightSeverity,
    InsightType,
    IssueTypeStats,
)
from seattle311.services.statistics import group_by_issue_type, round_half_up
from seattle311.utils.dates import utcnow

logger = logging.getLogger(__name__)

BOTTLENECK_FACTOR = 1.5
BOTTLENECK_LIMIT = 3
TREND_WINDOW_DAYS = 30
SLA_SAMPLE_SIZE = 50
SLA_ALERT_THRESHOLD = 70.0
SLA_TARGET = 80


def derive_insights(
    requests: Sequence[ServiceRequest],
    tracking: Sequence[TrackingEvent] = (),
    metrics_by_type: Optional[Sequence[IssueTypeStats]] = None,
    now: Optional[datetime] = None,
) -> List[Insight]:
    """
    Run every insight rule against a batch.

    Args:
        requests: Batch requests, newest first
        tracking: Batch tracking events (accepted for parity with consumers,
            no rule currently reads them)
        metrics_by_type: Precomputed ``group_by_issue_type`` output; computed
            here when omitted
        now: Reference time for the trailing windows

    Returns:
        Insights in rule order: seasonal, bottleneck, geographic,
        predictive backlog, SLA compliance
    """
    now = now or utcnow()
    if metrics_by_type is None:
        metrics_by_type = group_by_issue_type(requests)

    candidates = (
        seasonal_insight(requests),
        bottleneck_insight(metrics_by_type),
        geographic_insight(requests),
        backlog_trend_insight(requests, now),
        sla_compliance_insight(requests),
    )
    insights = [insight for insight in candidates if insight is not None]
    logger.debug("Derived %s insights from %s requests", len(insights), len(requests))
    return insights


def seasonal_insight(requests: Sequence[ServiceRequest]) -> Optional[Insight]:
    """Calendar month with the highest request volume."""
    monthly = Counter(request.created_date.month for request in requests)
    if not monthly:
        return None

    month, count = max(monthly.items(), key=lambda item: item[1])
    month_name = calendar.month_name[month]
    return Insight(
        type=InsightType.SEASONAL,
        severity=InsightSeverity.INFO,
        title="Seasonal Pattern Detected",
        description=(
            f"Request volume peaks in {month_name} with {count} requests. "
            "Consider increasing staffing during this period."
        ),
        impact=InsightImpact.MEDIUM,
        actions=[
            "Analyze staffing levels during peak periods",
            "Consider temporary resource allocation",
            "Review historical data for multi-year patterns",
        ],
        data={"month": month, "month_name": month_name, "count": count},
    )


def bottleneck_insight(metrics_by_type: Sequence[IssueTypeStats]) -> Optional[Insight]:
    """Request types whose closed average exceeds 1.5x their target."""
    slow = [
        stats
        for stats in metrics_by_type
        if stats.closed
        and stats.avg_resolution_days > stats.expected_resolution_days * BOTTLENECK_FACTOR
    ]
    if not slow:
        return None

    slow.sort(
        key=lambda stats: stats.avg_resolution_days / stats.expected_resolution_days,
        reverse=True,
    )
    worst = slow[:BOTTLENECK_LIMIT]
    top = worst[0]
    overage = round_half_up((top.avg_resolution_days / top.expected_resolution_days - 1) * 100)
    return Insight(
        type=InsightType.BOTTLENECK,
        severity=InsightSeverity.WARNING,
        title="Performance Bottleneck Identified",
        description=(
            f"{top.issue_type} requests are taking {top.avg_resolution_days} days on average, "
            f"{overage:.0f}% over target."
        ),
        impact=InsightImpact.HIGH,
        actions=[
            "Conduct process mapping workshop",
            "Interview staff handling these requests",
            "Identify resource constraints or policy issues",
        ],
        data={
            "issue_types": [stats.issue_type for stats in worst],
            "overage_percent": overage,
        },
    )


def geographic_insight(requests: Sequence[ServiceRequest]) -> Optional[Insight]:
    """Council district with the largest share of requests."""
    districts = Counter(request.council_district or "Unknown" for request in requests)
    if not districts:
        return None

    district, count = max(districts.items(), key=lambda item: item[1])
    share = round_half_up(count / len(requests) * 100, 1)
    return Insight(
        type=InsightType.GEOGRAPHIC,
        severity=InsightSeverity.INFO,
        title="Geographic Hotspot",
        description=f"{district} accounts for {share:.1f}% of all requests.",
        impact=InsightImpact.MEDIUM,
        actions=[
            "Schedule community meeting in affected area",
            "Deploy mobile service unit if available",
            "Investigate underlying infrastructure issues",
        ],
        data={"district": district, "count": count, "share": share},
    )


def backlog_trend_insight(
    requests: Sequence[ServiceRequest], now: Optional[datetime] = None
) -> Optional[Insight]:
    """Projected 30-day backlog growth when intake outpaces closures."""
    now = now or utcnow()
    window_start = now - timedelta(days=TREND_WINDOW_DAYS)

    opened = sum(1 for r in requests if window_start <= r.created_date <= now)
    closed = sum(
        1 for r in requests if r.closed_date is not None and window_start <= r.closed_date <= now
    )
    new_rate = opened / TREND_WINDOW_DAYS
    close_rate = closed / TREND_WINDOW_DAYS
    if new_rate <= close_rate:
        return None

    growth = round_half_up((new_rate - close_rate) * TREND_WINDOW_DAYS)
    return Insight(
        type=InsightType.PREDICTIVE_BACKLOG,
        severity=InsightSeverity.CRITICAL,
        title="Backlog Growth Predicted",
        description=(
            f"Current trend shows {new_rate:.1f} new requests/day vs {close_rate:.1f} "
            f"closures/day. Backlog will grow by {growth:.0f} requests in 30 days."
        ),
        impact=InsightImpact.CRITICAL,
        actions=[
            "Implement expedited closure process",
            "Increase team capacity temporarily",
            "Review prioritization criteria",
        ],
        data={
            "new_per_day": round_half_up(new_rate, 2),
            "closed_per_day": round_half_up(close_rate, 2),
            "projected_growth": int(growth),
        },
    )


def sla_compliance_insight(requests: Sequence[ServiceRequest]) -> Optional[Insight]:
    """SLA compliance across the most recently closed, evaluated requests."""
    evaluated = [r for r in requests if r.closed_date is not None and r.sla_met is not None]
    evaluated.sort(key=lambda r: r.closed_date, reverse=True)
    recent = evaluated[:SLA_SAMPLE_SIZE]
    if not recent:
        return None

    rate = sum(1 for r in recent if r.sla_met) / len(recent) * 100
    if rate >= SLA_ALERT_THRESHOLD:
        return None

    return Insight(
        type=InsightType.SLA_COMPLIANCE,
        severity=InsightSeverity.CRITICAL,
        title="SLA Compliance Below Target",
        description=(
            f"Recent SLA compliance is {round_half_up(rate):.0f}%, "
            f"below the {SLA_TARGET}% target."
        ),
        impact=InsightImpact.CRITICAL,
        actions=[
            "Emergency review of open requests",
            "Reassess SLA targets for feasibility",
            "Implement daily stand-up meetings",
        ],
        data={"compliance_rate": round_half_up(rate, 1), "sample_size": len(recent)},
    )
