"""
Prometheus metrics and instrumentation helpers.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


HTTP_REQUESTS_TOTAL = Counter(
    "app_http_requests_total",
    "Total count of HTTP requests processed.",
    ["method", "path", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "app_http_request_duration_seconds",
    "Histogram of HTTP request durations in seconds.",
    ["method", "path"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10),
)

HTTP_REQUEST_ERRORS = Counter(
    "app_http_request_errors_total",
    "Count of HTTP requests resulting in error responses.",
    ["method", "path", "status"],
)

EXTERNAL_API_RETRIES = Counter(
    "app_external_api_retries_total",
    "Retries issued when calling external APIs.",
    ["service"],
)

UPSTREAM_FEED_FETCHES = Counter(
    "app_upstream_feed_fetches_total",
    "Upstream open data feed fetches partitioned by outcome.",
    ["feed", "outcome"],
)

BATCH_REFRESHES = Counter(
    "app_batch_refreshes_total",
    "Completed batch refreshes partitioned by data source.",
    ["source"],
)

STALE_BATCHES_DISCARDED = Counter(
    "app_stale_batches_discarded_total",
    "Refresh results dropped because a newer batch was already published.",
)


def _normalise_path(request: Request) -> str:
    """Prefer full route path templates to reduce cardinality in metrics."""
    route = request.scope.get("route")
    template = getattr(route, "path_format", None)
    if template is None:
        template = getattr(route, "path", None)
    if template is None:
        return request.url.path

    # Routes of included routers only know their path below the mount point
    root_path = request.scope.get("root_path", "")
    if root_path and not template.startswith(root_path):
        template = f"{root_path}{template}"
    return template or request.url.path


def observe_http_request(method: str, path: str, status_code: int, duration: float) -> None:
    """Record metrics for an HTTP request."""
    status_str = str(status_code)
    HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status=status_str).inc()
    HTTP_REQUEST_DURATION.labels(method=method, path=path).observe(duration)

    if status_code >= 400:
        HTTP_REQUEST_ERRORS.labels(method=method, path=path, status=status_str).inc()


def record_external_api_retry(service: str) -> None:
    """Increment retry counter for an external service."""
    EXTERNAL_API_RETRIES.labels(service=service).inc()


def record_feed_fetch(feed: str, outcome: str) -> None:
    """Increment the fetch outcome counter for an upstream feed."""
    UPSTREAM_FEED_FETCHES.labels(feed=feed, outcome=outcome).inc()


def record_batch_refresh(source: str) -> None:
    """Increment the refresh counter for the given batch source."""
    BATCH_REFRESHES.labels(source=source).inc()


def record_stale_batch() -> None:
    STALE_BATCHES_DISCARDED.inc()


class MetricsMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for capturing request metrics."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        method = request.method
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            duration = time.perf_counter() - start
            observe_http_request(method, _normalise_path(request), 500, duration)
            raise

        duration = time.perf_counter() - start
        observe_http_request(method, _normalise_path(request), response.status_code, duration)
        return response


__all__ = [
    "MetricsMiddleware",
    "HTTP_REQUESTS_TOTAL",
    "HTTP_REQUEST_DURATION",
    "HTTP_REQUEST_ERRORS",
    "EXTERNAL_API_RETRIES",
    "UPSTREAM_FEED_FETCHES",
    "BATCH_REFRESHES",
    "STALE_BATCHES_DISCARDED",
    "observe_http_request",
    "record_external_api_retry",
    "record_feed_fetch",
    "record_batch_refresh",
    "record_stale_batch",
]
