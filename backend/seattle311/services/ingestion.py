"""
Ingestion of the Seattle Customer Service Requests and Request Tracking feeds.

Both feeds are queried concurrently and independently. A tracking failure
only empties the tracking list; a request failure, a malformed response, or a
response with no records from the target year replaces the whole batch with
synthetic sample data so consumers always receive usable requests.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import httpx

from seattle311.connectors.socrata import SocrataConnector, year_bounds
from seattle311.core.config import settings
from seattle311.core.metrics import record_batch_refresh, record_feed_fetch
from seattle311.models.batch import BatchSource, DataBatch
from seattle311.models.service_request import RequestStatus, ServiceRequest, TrackingEvent
from seattle311.services.normalization import (
    count_year_matches,
    normalize_request,
    normalize_tracking_event,
    sort_events_newest_first,
    sort_newest_first,
)
from seattle311.services.sample_data import generate_sample_batch
from seattle311.utils.dates import utcnow

logger = logging.getLogger(__name__)

REQUESTS_FEED = "requests"
TRACKING_FEED = "tracking"

LIVE_LABEL = "Seattle Open Data Portal (Live - {year} Data)"
SAMPLE_LABEL = "Sample Data (Demo - {year})"


class IngestionError(Exception):
    """Base class for feed problems that select the fallback path."""


class FeedUnavailableError(IngestionError):
    """Network error, timeout or non-success HTTP status."""


class FeedParseError(IngestionError):
    """Response body was not a JSON array of record objects."""


class NoDataForPeriodError(IngestionError):
    """The feed answered, but none of its records belong to the target year."""


@dataclass(frozen=True, slots=True)
class FeedSpec:
    feed: str
    dataset_id: str
    date_field: str
    limit: int


@dataclass(slots=True)
class FeedResult:
    """Outcome of one feed query; exactly one of ``records``/``error`` is set."""

    feed: str
    records: Optional[List[Dict[str, Any]]] = None
    error: Optional[IngestionError] = None


class IngestionService:
    """
    Produce one normalized ``DataBatch`` for a target year.

    Example usage:
        service = IngestionService(SocrataConnector())
        batch = await service.fetch_batch(2025, sequence=1)
    """

    def __init__(
        self,
        socrata: SocrataConnector,
        sample_size: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        self.socrata = socrata
        self.sample_size = sample_size or settings.SAMPLE_REQUEST_COUNT
        self.timeout = timeout or settings.SOCRATA_TIMEOUT

    def _feed_specs(self) -> tuple[FeedSpec, FeedSpec]:
        return (
            FeedSpec(
                REQUESTS_FEED,
                settings.SOCRATA_REQUESTS_DATASET,
                "createddate",
                settings.SOCRATA_REQUESTS_LIMIT,
            ),
            FeedSpec(
                TRACKING_FEED,
                settings.SOCRATA_TRACKING_DATASET,
                "updateddate",
                settings.SOCRATA_TRACKING_LIMIT,
            ),
        )

    async def fetch_batch(self, target_year: int, sequence: int = 0) -> DataBatch:
        """
        Fetch, normalize and verify both feeds for ``target_year``.

        Never raises for upstream problems: the returned batch is either live
        (``error`` is None) or sample data carrying the causing message.
        """
        requests_spec, tracking_spec = self._feed_specs()
        logger.info(
            "batch_fetch_started",
            extra={"target_year": target_year, "sequence": sequence},
        )

        requests_result, tracking_result = await asyncio.gather(
            self._fetch_feed(requests_spec, target_year),
            self._fetch_feed(tracking_spec, target_year),
        )

        try:
            requests = self._build_requests(requests_result, target_year)
        except IngestionError as exc:
            if isinstance(exc, NoDataForPeriodError):
                logger.warning(
                    "batch_verification_failed",
                    extra={"target_year": target_year, "reason": str(exc)},
                )
            else:
                logger.warning(
                    "batch_requests_unavailable",
                    extra={"target_year": target_year, "reason": str(exc)},
                )
            return self._sample_batch(target_year, sequence, exc)

        tracking = self._build_tracking(tracking_result)

        batch = DataBatch(
            sequence=sequence,
            target_year=target_year,
            source=BatchSource.LIVE,
            error=None,
            fetched_at=utcnow(),
            data_source=LIVE_LABEL.format(year=target_year),
            requests=tuple(requests),
            tracking=tuple(tracking),
        )
        record_batch_refresh(BatchSource.LIVE.value)
        logger.info(
            "batch_fetch_completed",
            extra={
                "target_year": target_year,
                "sequence": sequence,
                "source": batch.source.value,
                "request_count": len(batch.requests),
                "tracking_count": len(batch.tracking),
                "open": _count_status(requests, RequestStatus.OPEN),
                "in_progress": _count_status(requests, RequestStatus.IN_PROGRESS),
                "closed": _count_status(requests, RequestStatus.CLOSED),
            },
        )
        return batch

    async def _fetch_feed(self, spec: FeedSpec, target_year: int) -> FeedResult:
        """Run one range query, converting every failure into a FeedResult error."""
        start, end = year_bounds(target_year)
        try:
            records = await asyncio.wait_for(
                self.socrata.query_range(
                    dataset_id=spec.dataset_id,
                    field=spec.date_field,
                    start=start,
                    end=end,
                    limit=spec.limit,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            record_feed_fetch(spec.feed, "unavailable")
            logger.error("Fetching %s feed timed out after %ss", spec.feed, self.timeout)
            return FeedResult(spec.feed, error=FeedUnavailableError("Request timeout"))
        except httpx.HTTPError as exc:
            record_feed_fetch(spec.feed, "unavailable")
            logger.error("Fetching %s feed failed: %s", spec.feed, exc)
            return FeedResult(spec.feed, error=FeedUnavailableError(str(exc) or type(exc).__name__))
        except ValueError as exc:
            record_feed_fetch(spec.feed, "parse_error")
            logger.error("Parsing %s feed failed: %s", spec.feed, exc)
            return FeedResult(spec.feed, error=FeedParseError(str(exc)))

        if any(not isinstance(record, dict) for record in records):
            record_feed_fetch(spec.feed, "parse_error")
            return FeedResult(
                spec.feed,
                error=FeedParseError(f"{spec.feed} feed returned non-object records"),
            )

        record_feed_fetch(spec.feed, "success" if records else "empty")
        return FeedResult(spec.feed, records=records)

    def _build_requests(self, result: FeedResult, target_year: int) -> List[ServiceRequest]:
        if result.error is not None:
            raise result.error

        raw = result.records or []
        if not raw:
            raise NoDataForPeriodError(f"No {target_year} data available from API")

        matches = count_year_matches(raw, target_year)
        logger.info(
            "Verified %s of %s request records are from %s", matches, len(raw), target_year
        )
        if matches == 0:
            raise NoDataForPeriodError(f"No {target_year} data available from API")

        try:
            normalized = [normalize_request(record) for record in raw]
        except ValueError as exc:
            raise FeedParseError(f"Malformed request record: {exc}") from exc
        return sort_newest_first(normalized)

    def _build_tracking(self, result: FeedResult) -> List[TrackingEvent]:
        if result.error is not None:
            logger.warning("Tracking data unavailable: %s", result.error)
            return []
        try:
            events = [normalize_tracking_event(record) for record in result.records or []]
        except ValueError as exc:
            logger.warning("Tracking data could not be parsed: %s", exc)
            return []
        return sort_events_newest_first(events)

    def _sample_batch(self, target_year: int, sequence: int, cause: IngestionError) -> DataBatch:
        requests, tracking = generate_sample_batch(target_year, count=self.sample_size)
        record_batch_refresh(BatchSource.SAMPLE.value)
        return DataBatch(
            sequence=sequence,
            target_year=target_year,
            source=BatchSource.SAMPLE,
            error=f"API unavailable: {cause}",
            fetched_at=utcnow(),
            data_source=SAMPLE_LABEL.format(year=target_year),
            requests=tuple(requests),
            tracking=tuple(tracking),
        )


def _count_status(requests: Sequence[ServiceRequest], status: RequestStatus) -> int:
    return sum(1 for request in requests if request.status is status)
