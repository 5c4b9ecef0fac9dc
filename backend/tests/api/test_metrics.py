"""
Metrics instrumentation tests.
"""

import pytest
from prometheus_client import REGISTRY

from fastapi import Response

from seattle311.core.metrics import (
    record_batch_refresh,
    record_external_api_retry,
    record_feed_fetch,
)
from seattle311.main import app


@app.get("/__test-error")
async def trigger_error():
    return Response(status_code=500)


def _get_metric_value(metric: str, labels: dict) -> float:
    value = REGISTRY.get_sample_value(metric, labels)
    return value or 0.0


@pytest.mark.asyncio
async def test_http_metrics_and_request_id(api_client):
    labels = {"method": "GET", "path": "/api/v1/health/liveness", "status": "200"}
    before = _get_metric_value("app_http_requests_total", labels)

    response = await api_client.get("/api/v1/health/liveness")

    after = _get_metric_value("app_http_requests_total", labels)
    assert after == pytest.approx(before + 1)
    assert "X-Request-ID" in response.headers
    assert response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_is_echoed(api_client):
    response = await api_client.get(
        "/api/v1/health/liveness", headers={"X-Request-ID": "req-abc"}
    )
    assert response.headers["X-Request-ID"] == "req-abc"


@pytest.mark.asyncio
async def test_http_error_metrics(api_client):
    total_labels = {"method": "GET", "path": "/__test-error", "status": "500"}
    error_labels = total_labels.copy()

    total_before = _get_metric_value("app_http_requests_total", total_labels)
    errors_before = _get_metric_value("app_http_request_errors_total", error_labels)

    response = await api_client.get("/__test-error")

    total_after = _get_metric_value("app_http_requests_total", total_labels)
    errors_after = _get_metric_value("app_http_request_errors_total", error_labels)

    assert response.status_code == 500
    assert total_after == pytest.approx(total_before + 1)
    assert errors_after == pytest.approx(errors_before + 1)


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_counters(api_client):
    record_batch_refresh("live")

    response = await api_client.get("/metrics/")

    assert response.status_code == 200
    assert "app_batch_refreshes_total" in response.text


def test_external_api_retry_metric():
    before = _get_metric_value(
        "app_external_api_retries_total", {"service": "test-service"}
    )
    record_external_api_retry("test-service")
    after = _get_metric_value(
        "app_external_api_retries_total", {"service": "test-service"}
    )
    assert after == pytest.approx(before + 1)


def test_feed_fetch_metric():
    labels = {"feed": "requests", "outcome": "empty"}
    before = _get_metric_value("app_upstream_feed_fetches_total", labels)
    record_feed_fetch("requests", "empty")
    after = _get_metric_value("app_upstream_feed_fetches_total", labels)
    assert after == pytest.approx(before + 1)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url, path",
    [
        ("/api/v1/batch", "/api/v1/batch"),
        ("/api/v1/insights", "/api/v1/insights"),
        ("/api/v1/requests/25-000003/timeline", "/api/v1/requests/{request_number}/timeline"),
    ],
)
async def test_http_metrics_label_full_route_template(api_client, url, path):
    labels = {"method": "GET", "path": path, "status": "200"}
    before = _get_metric_value("app_http_requests_total", labels)

    response = await api_client.get(url)

    assert response.status_code == 200
    after = _get_metric_value("app_http_requests_total", labels)
    assert after == pytest.approx(before + 1)
