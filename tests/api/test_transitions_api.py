"""Tests for the batch transition, monitoring and health endpoints."""

from datetime import UTC, date, datetime, timedelta

import pytest

from stagecall.domain.phases import Phase

pytestmark = pytest.mark.unit


def _due_pre_show(project_factory, project_id: str = "due"):
    return project_factory(project_id, phase=Phase.PRE_SHOW, timezone="UTC", rehearsal_start_date=date(2025, 3, 1))


def test_health_and_correlation_header(api_client):
    response = api_client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "x-request-id" in response.headers


def test_custom_correlation_id_echoed(api_client):
    response = api_client.get("/api/health", headers={"X-Request-ID": "custom-id-123"})
    assert response.headers["x-request-id"] == "custom-id-123"


def test_ready_reflects_store(api_client, store):
    assert api_client.get("/api/ready").status_code == 200
    store.fail("ping")
    response = api_client.get("/api/ready")
    assert response.status_code == 503
    assert response.json()["checks"] == {"store": False}


def test_evaluate_sweep(api_client, store, project_factory):
    store.add_project(_due_pre_show(project_factory))

    response = api_client.post("/api/transitions/evaluate")

    assert response.status_code == 200
    body = response.json()
    assert body["dry_run"] is False
    assert body["result"]["successful_transitions"] == 1
    assert store.projects["due"].phase is Phase.ACTIVE


def test_evaluate_dry_run_override(api_client, store, project_factory):
    store.add_project(_due_pre_show(project_factory))

    body = api_client.post("/api/transitions/evaluate", params={"dry_run": "true"}).json()

    assert body["dry_run"] is True
    assert body["result"]["dry_run_transitions"] == 1
    assert store.projects["due"].phase is Phase.PRE_SHOW


def test_scheduled_transitions(api_client, store, project_factory):
    tomorrow = (datetime.now(UTC) + timedelta(days=1)).date()
    store.add_project(project_factory("soon", phase=Phase.PRE_SHOW, timezone="UTC", rehearsal_start_date=tomorrow))

    body = api_client.get("/api/transitions/scheduled", params={"hours": 72}).json()

    assert body["window_hours"] == 72
    assert body["total"] == 1
    assert body["transitions"][0]["project_id"] == "soon"
    assert body["transitions"][0]["target_phase"] == "active"


def test_metrics_after_sweep(api_client, store, project_factory):
    store.add_project(_due_pre_show(project_factory))
    api_client.post("/api/transitions/evaluate")

    body = api_client.get("/api/transitions/metrics").json()

    assert body["total_transitions"] == 1
    assert body["successful_attempts"] == 1
    assert body["transitions_by_phase"] == {"active": 1}


def test_metrics_rejects_inverted_range(api_client):
    response = api_client.get(
        "/api/transitions/metrics",
        params={"start": "2025-03-02T00:00:00Z", "end": "2025-03-01T00:00:00Z"},
    )
    assert response.status_code == 422


def test_metrics_accepts_bounds_without_offset(api_client, store, project_factory):
    store.add_project(_due_pre_show(project_factory))
    api_client.post("/api/transitions/evaluate")
    start = (datetime.now(UTC) - timedelta(hours=1)).replace(tzinfo=None).isoformat()

    response = api_client.get("/api/transitions/metrics", params={"start": start})

    assert response.status_code == 200
    assert response.json()["total_transitions"] == 1


def test_metrics_inverted_range_without_offset_is_422(api_client):
    response = api_client.get(
        "/api/transitions/metrics",
        params={"start": "2025-03-02T00:00:00", "end": "2025-03-01T00:00:00"},
    )
    assert response.status_code == 422


def test_transition_health(api_client, store):
    assert api_client.get("/api/transitions/health").json()["status"] == "healthy"
    store.fail("ping")
    response = api_client.get("/api/transitions/health")
    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


def test_scheduler_status_when_disabled(api_client):
    body = api_client.get("/api/transitions/scheduler").json()
    assert body["enabled"] is False
    assert body["is_running"] is False
