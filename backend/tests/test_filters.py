"""Tests for request and tracking filtering."""

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from seattle311.models.service_request import RequestStatus
from seattle311.services.filters import (
    RequestFilter,
    TrackingFilter,
    filter_requests,
    filter_tracking,
    request_timeline,
)

from tests.conftest import make_event


def _numbers(items):
    return [item.service_request_number for item in items]


def test_no_criteria_returns_copy(sample_requests):
    result = filter_requests(sample_requests)
    assert result == sample_requests
    assert result is not sample_requests


def test_search_matches_number_type_and_location(sample_requests):
    assert _numbers(filter_requests(sample_requests, RequestFilter(search="graffiti"))) == ["25-000004"]
    assert _numbers(filter_requests(sample_requests, RequestFilter(search="BALLARD"))) == ["25-000004"]
    assert _numbers(filter_requests(sample_requests, RequestFilter(search="000002"))) == ["25-000002"]


def test_status_and_department(sample_requests):
    closed = filter_requests(sample_requests, RequestFilter(status=RequestStatus.CLOSED))
    assert _numbers(closed) == ["25-000003", "25-000002"]

    spu = filter_requests(
        sample_requests, RequestFilter(department="SPU-Seattle Public Utilities")
    )
    assert _numbers(spu) == ["25-000004"]


def test_date_range_is_inclusive(sample_requests):
    criteria = RequestFilter(start_date=date(2025, 3, 10), end_date=date(2025, 4, 2))
    assert _numbers(filter_requests(sample_requests, criteria)) == ["25-000003", "25-000002"]


def test_month_filter(sample_requests):
    march = filter_requests(sample_requests, RequestFilter(month=3))
    assert _numbers(march) == ["25-000002", "25-000001"]


def test_criteria_combine(sample_requests):
    criteria = RequestFilter(month=3, status=RequestStatus.OPEN)
    assert _numbers(filter_requests(sample_requests, criteria)) == ["25-000001"]


def test_inverted_range_is_rejected():
    with pytest.raises(ValidationError):
        RequestFilter(start_date=date(2025, 5, 1), end_date=date(2025, 4, 1))


def test_tracking_filters(sample_tracking):
    received = filter_tracking(sample_tracking, TrackingFilter(status_category="Request Received"))
    assert len(received) == 2

    april = filter_tracking(sample_tracking, TrackingFilter(month=4, search="25-000003"))
    assert len(april) == 3

    none = filter_tracking(sample_tracking, TrackingFilter(department="Parks and Recreation"))
    assert none == []


def test_request_timeline_sorted_ascending(sample_tracking):
    timeline = request_timeline(sample_tracking, "25-000003")
    assert [e.status_category for e in timeline] == [
        "Request Received",
        "Routed to Department",
        "Work Complete",
    ]


def test_timeline_tolerates_orphans_and_unknown_numbers(sample_tracking):
    orphan = make_event("99-999999", datetime(2025, 2, 1))
    assert request_timeline([*sample_tracking, orphan], "99-999999") == [orphan]
    assert request_timeline(sample_tracking, "does-not-exist") == []
