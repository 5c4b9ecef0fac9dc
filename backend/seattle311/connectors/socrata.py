"""Socrata SODA v2 API connector for the Seattle Open Data portal."""

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from seattle311.core.config import settings
from seattle311.core.metrics import record_external_api_retry

logger = logging.getLogger(__name__)


def _record_socrata_retry(retry_state):
    """Tenacity before_sleep callback to track Socrata retries."""
    record_external_api_retry("socrata")


def year_bounds(year: int) -> tuple[str, str]:
    """Return the inclusive SoQL floating timestamp bounds of a calendar year."""
    return f"{year}-01-01T00:00:00.000", f"{year}-12-31T23:59:59.999"


class SocrataConnector:
    """
    Connector for Socrata SODA v2 API with timeout and optional retry logic.

    Example usage:
        connector = SocrataConnector()
        results = await connector.query_range(
            dataset_id="5ngg-rpne",
            field="createddate",
            start="2025-01-01T00:00:00.000",
            end="2025-12-31T23:59:59.999",
            limit=50000,
        )
    """

    def __init__(self, timeout: Optional[float] = None):
        self.base_url = settings.SOCRATA_BASE_URL
        self.app_token = settings.SOCRATA_APP_TOKEN
        self.timeout = timeout or settings.SOCRATA_TIMEOUT
        self.client = httpx.AsyncClient(timeout=self.timeout)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    def _build_headers(self) -> Dict[str, str]:
        """Build request headers with app token."""
        headers = {"Accept": "application/json"}
        if self.app_token:
            headers["X-App-Token"] = self.app_token
        return headers

    @staticmethod
    def _build_params(
        select: Optional[List[str]] = None,
        where: Optional[str] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Translate query arguments into SoQL parameters."""
        params: Dict[str, Any] = {}
        if select:
            params["$select"] = ",".join(select)
        if where:
            params["$where"] = where
        if order:
            params["$order"] = order
        if limit:
            params["$limit"] = limit
        if offset:
            params["$offset"] = offset
        return params

    async def query(
        self,
        dataset_id: str,
        select: Optional[List[str]] = None,
        where: Optional[str] = None,
        order: Optional[str] = None,
        limit: Optional[int] = 1000,
        offset: Optional[int] = 0,
    ) -> List[Dict[str, Any]]:
        """
        Query Socrata dataset with SoQL parameters.

        Args:
            dataset_id: Socrata dataset ID (e.g., "5ngg-rpne")
            select: List of fields to return
            where: WHERE clause (SoQL syntax)
            order: ORDER BY clause
            limit: Maximum records to return
            offset: Number of records to skip

        Returns:
            List of result records as dictionaries

        Raises:
            httpx.HTTPError: transport failure, timeout or non-success status
            ValueError: body is not a JSON array of records
        """
        params = self._build_params(select, where, order, limit, offset)
        url = f"{self.base_url}/{dataset_id}.json"
        logger.info(
            "socrata_request",
            extra={"dataset_id": dataset_id, "url": url, "params": params},
        )

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(1, settings.SOCRATA_MAX_ATTEMPTS)),
            wait=wait_exponential(multiplier=settings.SOCRATA_RETRY_BACKOFF, max=10),
            retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TimeoutException)),
            before_sleep=_record_socrata_retry,
            reraise=True,
        ):
            with attempt:
                response = await self.client.get(
                    url,
                    params=params,
                    headers=self._build_headers(),
                )
                response.raise_for_status()

        results = response.json()
        if not isinstance(results, list):
            raise ValueError(
                f"Expected a JSON array from {dataset_id}, got {type(results).__name__}"
            )

        logger.info(
            "socrata_response",
            extra={"dataset_id": dataset_id, "record_count": len(results)},
        )
        return results

    async def query_range(
        self,
        dataset_id: str,
        field: str,
        start: str,
        end: str,
        limit: int,
    ) -> List[Dict[str, Any]]:
        """
        Query records whose ``field`` falls within ``[start, end]``, newest first.

        Upstream feeds do not always honour the range predicate exactly, so
        callers must verify what comes back.
        """
        return await self.query(
            dataset_id=dataset_id,
            where=f"{field} between '{start}' and '{end}'",
            order=f"{field} DESC",
            limit=limit,
        )
