"""
Unit tests for metrics endpoint.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from bed_booking.main import app
from bed_booking.metrics import (
    admissions_total,
    availability_duration,
    calendar_cache_hits,
    notifications_total,
    transitions_total,
)


@pytest.fixture
def metrics_client() -> TestClient:
    """FastAPI test client."""
    return TestClient(app)


@pytest.mark.unit
def test_metrics_endpoint_returns_prometheus_format(metrics_client: TestClient) -> None:
    """Test that /metrics endpoint returns Prometheus text format."""
    response = metrics_client.get("/metrics")

    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]


@pytest.mark.unit
def test_metrics_endpoint_contains_custom_metrics(metrics_client: TestClient) -> None:
    """Test that /metrics endpoint includes the booking metrics."""
    admissions_total.labels(mode="beds", outcome="admitted").inc()
    transitions_total.labels(transition="confirm", outcome="applied").inc()
    notifications_total.labels(event="reservation.created", status="skipped").inc()
    availability_duration.observe(0.002)
    calendar_cache_hits.inc()

    content = metrics_client.get("/metrics").text

    assert "bedbooking_admissions_total" in content
    assert "bedbooking_transitions_total" in content
    assert "bedbooking_notifications_total" in content
    assert "bedbooking_availability_duration_seconds" in content
    assert "bedbooking_calendar_cache_hits_total" in content


@pytest.mark.unit
def test_metrics_endpoint_includes_help_and_type_metadata(metrics_client: TestClient) -> None:
    """Test that metrics include Prometheus HELP and TYPE metadata."""
    content = metrics_client.get("/metrics").text

    assert "# HELP" in content
    assert "# TYPE" in content
