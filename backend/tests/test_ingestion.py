"""Tests for batch ingestion, verification and fallback."""

import asyncio

import httpx
import pytest
from prometheus_client import REGISTRY

from seattle311.core.config import settings
from seattle311.models.batch import BatchSource
from seattle311.models.service_request import RequestStatus
from seattle311.services.ingestion import IngestionService


def _request_record(number, created, status="Reported", request_type="Pothole"):
    return {
        "servicerequestnumber": number,
        "webintakeservicerequests": request_type,
        "departmentname": "SDOT-Seattle Department of Transportation",
        "servicerequeststatusname": status,
        "createddate": created,
    }


def _tracking_record(number, updated, category="Request Received"):
    return {
        "servicerequestnumber": number,
        "responsibledepartment": "SDOT-Seattle Department of Transportation",
        "statuscategory": category,
        "updateddate": updated,
    }


class FakeSocrata:
    """Connector double keyed by dataset id; values are records or exceptions."""

    def __init__(self, responses, delays=None):
        self.responses = responses
        self.delays = delays or {}
        self.calls = []

    async def query_range(self, dataset_id, field, start, end, limit):
        self.calls.append(
            {"dataset_id": dataset_id, "field": field, "start": start, "end": end, "limit": limit}
        )
        delay = self.delays.get(dataset_id)
        if delay:
            await asyncio.sleep(delay)
        outcome = self.responses[dataset_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


REQUESTS = settings.SOCRATA_REQUESTS_DATASET
TRACKING = settings.SOCRATA_TRACKING_DATASET


def _service(responses, delays=None, timeout=5.0):
    return IngestionService(FakeSocrata(responses, delays), sample_size=50, timeout=timeout)


def _metric(name, labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.asyncio
async def test_live_batch_is_normalized_and_sorted():
    service = _service(
        {
            REQUESTS: [
                _request_record("25-1", "2025-02-01T00:00:00.000"),
                _request_record("25-2", "2025-05-01T00:00:00.000", status="Closed"),
                _request_record("25-3", "2025-03-01T00:00:00.000", status="ROUTED"),
            ],
            TRACKING: [
                _tracking_record("25-1", "2025-02-01T00:00:00.000"),
                _tracking_record("25-1", "2025-02-03T00:00:00.000", "Work Scheduled"),
            ],
        }
    )

    batch = await service.fetch_batch(2025, sequence=4)

    assert batch.source is BatchSource.LIVE
    assert batch.error is None
    assert batch.sequence == 4
    assert batch.data_source == "Seattle Open Data Portal (Live - 2025 Data)"
    assert [r.service_request_number for r in batch.requests] == ["25-2", "25-3", "25-1"]
    assert [r.status for r in batch.requests] == [
        RequestStatus.CLOSED,
        RequestStatus.IN_PROGRESS,
        RequestStatus.OPEN,
    ]
    assert [e.status_category for e in batch.tracking] == ["Work Scheduled", "Request Received"]


@pytest.mark.asyncio
async def test_queries_use_year_range_and_caps():
    connector = FakeSocrata({REQUESTS: [_request_record("25-1", "2025-01-01T00:00:00.000")], TRACKING: []})
    service = IngestionService(connector, sample_size=10)

    await service.fetch_batch(2025)

    calls = {call["dataset_id"]: call for call in connector.calls}
    assert calls[REQUESTS]["field"] == "createddate"
    assert calls[REQUESTS]["limit"] == settings.SOCRATA_REQUESTS_LIMIT
    assert calls[TRACKING]["field"] == "updateddate"
    assert calls[TRACKING]["limit"] == settings.SOCRATA_TRACKING_LIMIT
    assert calls[REQUESTS]["start"] == "2025-01-01T00:00:00.000"
    assert calls[REQUESTS]["end"] == "2025-12-31T23:59:59.999"


@pytest.mark.asyncio
async def test_zero_year_matches_falls_back_to_sample():
    service = _service(
        {
            REQUESTS: [
                _request_record("24-1", "2024-06-01T00:00:00.000"),
                _request_record("24-2", "2024-07-01T00:00:00.000"),
            ],
            TRACKING: [],
        }
    )

    batch = await service.fetch_batch(2025)

    assert batch.source is BatchSource.SAMPLE
    assert batch.error == "API unavailable: No 2025 data available from API"
    assert len(batch.requests) == 50
    assert all(r.created_date.year == 2025 for r in batch.requests)


@pytest.mark.asyncio
async def test_partial_year_match_keeps_live_batch():
    service = _service(
        {
            REQUESTS: [
                _request_record("24-1", "2024-12-31T23:00:00.000"),
                _request_record("25-1", "2025-01-02T00:00:00.000"),
            ],
            TRACKING: [],
        }
    )

    batch = await service.fetch_batch(2025)

    assert batch.source is BatchSource.LIVE
    assert len(batch.requests) == 2


@pytest.mark.asyncio
async def test_empty_requests_feed_falls_back_to_sample():
    service = _service({REQUESTS: [], TRACKING: []})

    batch = await service.fetch_batch(2025)

    assert batch.is_sample
    assert "No 2025 data available from API" in batch.error


@pytest.mark.asyncio
async def test_transport_failure_falls_back_to_sample():
    before = _metric("app_batch_refreshes_total", {"source": "sample"})
    service = _service(
        {
            REQUESTS: httpx.ConnectError("connection refused"),
            TRACKING: [_tracking_record("25-1", "2025-02-01T00:00:00.000")],
        }
    )

    batch = await service.fetch_batch(2025, sequence=2)

    assert batch.is_sample
    assert batch.sequence == 2
    assert batch.error == "API unavailable: connection refused"
    assert batch.data_source == "Sample Data (Demo - 2025)"
    assert batch.tracking, "sample batch carries its own tracking events"
    after = _metric("app_batch_refreshes_total", {"source": "sample"})
    assert after == pytest.approx(before + 1)


@pytest.mark.asyncio
async def test_malformed_body_falls_back_to_sample():
    service = _service({REQUESTS: ValueError("Expected a JSON array"), TRACKING: []})

    batch = await service.fetch_batch(2025)

    assert batch.is_sample
    assert "Expected a JSON array" in batch.error


@pytest.mark.asyncio
async def test_non_object_records_fall_back_to_sample():
    service = _service({REQUESTS: ["not", "records"], TRACKING: []})

    batch = await service.fetch_batch(2025)

    assert batch.is_sample
    assert "non-object records" in batch.error


@pytest.mark.asyncio
async def test_requests_timeout_falls_back_to_sample():
    service = _service(
        {REQUESTS: [_request_record("25-1", "2025-01-02T00:00:00.000")], TRACKING: []},
        delays={REQUESTS: 1.0},
        timeout=0.05,
    )

    batch = await service.fetch_batch(2025)

    assert batch.is_sample
    assert batch.error == "API unavailable: Request timeout"


@pytest.mark.asyncio
async def test_tracking_failure_only_empties_tracking():
    before = _metric(
        "app_upstream_feed_fetches_total", {"feed": "tracking", "outcome": "unavailable"}
    )
    service = _service(
        {
            REQUESTS: [_request_record("25-1", "2025-01-02T00:00:00.000")],
            TRACKING: httpx.ReadTimeout("tracking timed out"),
        }
    )

    batch = await service.fetch_batch(2025)

    assert batch.source is BatchSource.LIVE
    assert batch.error is None
    assert len(batch.requests) == 1
    assert batch.tracking == ()
    after = _metric(
        "app_upstream_feed_fetches_total", {"feed": "tracking", "outcome": "unavailable"}
    )
    assert after == pytest.approx(before + 1)


@pytest.mark.asyncio
async def test_slow_tracking_does_not_block_requests():
    service = _service(
        {
            REQUESTS: [_request_record("25-1", "2025-01-02T00:00:00.000")],
            TRACKING: [_tracking_record("25-1", "2025-01-02T00:00:00.000")],
        },
        delays={TRACKING: 1.0},
        timeout=0.05,
    )

    batch = await service.fetch_batch(2025)

    assert batch.source is BatchSource.LIVE
    assert len(batch.requests) == 1
    assert batch.tracking == ()


@pytest.mark.asyncio
async def test_verification_failure_is_logged_as_warning(caplog):
    service = _service({REQUESTS: [_request_record("24-1", "2024-06-01T00:00:00.000")], TRACKING: []})

    with caplog.at_level("WARNING", logger="seattle311.services.ingestion"):
        await service.fetch_batch(2025)

    assert any(record.message == "batch_verification_failed" for record in caplog.records)


@pytest.mark.asyncio
async def test_out_of_range_timestamps_do_not_abort_batch():
    service = _service(
        {
            REQUESTS: [
                _request_record("25-1", "2025-01-02T00:00:00.000"),
                {"servicerequestnumber": "bad-1", "createddate": "0001-01-01T00:00:00+01:00"},
                _request_record("bad-2", "9999-12-31T00:00:00", status="Closed"),
            ],
            TRACKING: [],
        }
    )

    batch = await service.fetch_batch(2025)

    assert batch.source is BatchSource.LIVE
    assert batch.error is None
    assert len(batch.requests) == 3
