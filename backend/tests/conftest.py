"""
Pytest configuration and fixtures.
"""
from datetime import datetime
from typing import AsyncGenerator, Iterable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from seattle311.models.batch import BatchSource, DataBatch
from seattle311.models.service_request import RequestStatus, ServiceRequest, TrackingEvent

NOW = datetime(2025, 6, 15, 12, 0, 0)


def make_request(
    number: str = "25-000001",
    request_type: str = "Pothole",
    department: str = "SDOT-Seattle Department of Transportation",
    status: RequestStatus = RequestStatus.OPEN,
    created: datetime = datetime(2025, 3, 1, 9, 0, 0),
    closed: Optional[datetime] = None,
    expected: int = 3,
    actual: Optional[int] = None,
    sla_met: Optional[bool] = None,
    district: str = "3",
    location: str = "Capitol Hill, Seattle, WA",
) -> ServiceRequest:
    """Build a normalized request with sensible test defaults."""
    if closed is not None and actual is None:
        actual = (closed - created).days
        sla_met = actual <= expected
    return ServiceRequest(
        service_request_number=number,
        service_request_type=request_type,
        city_department=department,
        status=status,
        created_date=created,
        closed_date=closed,
        location=location,
        council_district=district,
        expected_resolution_days=expected,
        actual_resolution_days=actual,
        sla_met=sla_met,
    )


def make_event(
    number: str = "25-000001",
    updated: datetime = datetime(2025, 3, 1, 9, 0, 0),
    category: str = "Request Received",
    order: int = 1,
    department: str = "SDOT-Seattle Department of Transportation",
) -> TrackingEvent:
    return TrackingEvent(
        service_request_number=number,
        responsible_department=department,
        service_request_type="Pothole",
        status_category=category,
        updated_at=updated,
        status_order=order,
        reported_location="Capitol Hill, Seattle, WA",
    )


def make_batch(
    requests: Iterable[ServiceRequest] = (),
    tracking: Iterable[TrackingEvent] = (),
    sequence: int = 1,
    source: BatchSource = BatchSource.LIVE,
    target_year: int = 2025,
) -> DataBatch:
    return DataBatch(
        sequence=sequence,
        target_year=target_year,
        source=source,
        error=None if source is BatchSource.LIVE else "API unavailable: test",
        fetched_at=NOW,
        data_source=f"Test batch {sequence}",
        requests=tuple(requests),
        tracking=tuple(tracking),
    )


class StubIngestion:
    """Ingestion double that returns a prepared batch stamped with the caller's sequence."""

    def __init__(self, batch: DataBatch):
        self.batch = batch
        self.calls = []

    async def fetch_batch(self, target_year: int, sequence: int = 0) -> DataBatch:
        self.calls.append((target_year, sequence))
        return self.batch.model_copy(update={"sequence": sequence, "target_year": target_year})


@pytest.fixture
def sample_requests():
    """Small newest-first batch covering every status."""
    return [
        make_request(
            "25-000004",
            request_type="Graffiti",
            department="SPU-Seattle Public Utilities",
            status=RequestStatus.IN_PROGRESS,
            created=datetime(2025, 5, 20, 8, 0, 0),
            expected=7,
            district="1",
            location="Ballard, Seattle, WA",
        ),
        make_request(
            "25-000003",
            status=RequestStatus.CLOSED,
            created=datetime(2025, 4, 2, 8, 0, 0),
            closed=datetime(2025, 4, 5, 8, 0, 0),
        ),
        make_request(
            "25-000002",
            status=RequestStatus.CLOSED,
            created=datetime(2025, 3, 10, 8, 0, 0),
            closed=datetime(2025, 3, 13, 8, 0, 0),
        ),
        make_request("25-000001", created=datetime(2025, 3, 1, 9, 0, 0)),
    ]


@pytest.fixture
def sample_tracking():
    return [
        make_event("25-000003", datetime(2025, 4, 5, 8, 0, 0), "Work Complete", 3),
        make_event("25-000003", datetime(2025, 4, 2, 20, 0, 0), "Routed to Department", 2),
        make_event("25-000003", datetime(2025, 4, 2, 8, 0, 0), "Request Received", 1),
        make_event("25-000001", datetime(2025, 3, 1, 9, 0, 0), "Request Received", 1),
    ]


@pytest.fixture
def stub_ingestion(sample_requests, sample_tracking) -> StubIngestion:
    return StubIngestion(make_batch(sample_requests, sample_tracking))


@pytest_asyncio.fixture
async def api_client(stub_ingestion) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX AsyncClient configured against the FastAPI app with a stubbed batch store."""
    from seattle311.main import app
    from seattle311.services.batch_store import BatchStore

    async with app.router.lifespan_context(app):
        previous_store = app.state.batch_store
        app.state.batch_store = BatchStore(stub_ingestion)

        transport = ASGITransport(app=app)
        try:
            async with AsyncClient(transport=transport, base_url="http://testserver") as client:
                yield client
        finally:
            app.state.batch_store = previous_store
