"""Tests for audit-log derived transition metrics and health."""

from datetime import UTC, datetime, timedelta

import pytest

from stagecall.domain.records import AuditLogEntry
from stagecall.services.automatic_transition_evaluator import AUTOMATIC_ATTEMPT_ACTION
from stagecall.services.phase_engine import PHASE_TRANSITION_ACTION
from stagecall.services.transition_monitoring import HealthStatus, TransitionMonitoring, categorize_error

pytestmark = pytest.mark.unit

NOW = datetime(2025, 3, 20, 12, 0, tzinfo=UTC)


def _attempt(status: str, minutes_ago: int = 5, error: str | None = None) -> AuditLogEntry:
    return AuditLogEntry(
        action_type=AUTOMATIC_ATTEMPT_ACTION,
        project_id="proj-001",
        details={"status": status, "success": status == "transitioned", "error": error},
        timestamp=NOW - timedelta(minutes=minutes_ago),
    )


def _transition(to_phase: str, minutes_ago: int = 5) -> AuditLogEntry:
    return AuditLogEntry(
        action_type=PHASE_TRANSITION_ACTION,
        project_id="proj-001",
        details={"from_phase": "pre_show", "to_phase": to_phase},
        timestamp=NOW - timedelta(minutes=minutes_ago),
    )


@pytest.fixture
def monitoring(store) -> TransitionMonitoring:
    return TransitionMonitoring(store)


@pytest.mark.parametrize(
    ("error", "category"),
    [
        ("connection refused by database", "database"),
        ("commit_phase_transition failed", "other"),
        ("Storage unavailable", "database"),
        ("Invalid timezone identifier", "timezone"),
        ("Criteria check failed", "validation"),
        ("Permission denied", "permission"),
        (None, "other"),
    ],
)
def test_categorize_error(error, category):
    assert categorize_error(error) == category


async def test_metrics_aggregate_window(monitoring, store):
    store.audit_log.extend(
        [
            _transition("active"),
            _transition("active", minutes_ago=10),
            _transition("post_show", minutes_ago=20),
            _transition("archived", minutes_ago=60 * 48),  # outside window
            _attempt("transitioned"),
            _attempt("failed", error="database timeout"),
            _attempt("failed", error="Invalid timezone"),
            _attempt("blocked"),
            _attempt("dry_run"),
            AuditLogEntry(action_type="phase_configuration_updated", project_id="proj-001", timestamp=NOW),
        ]
    )

    metrics = await monitoring.get_transition_metrics(NOW - timedelta(hours=24), NOW)

    assert metrics.total_transitions == 3
    assert metrics.transitions_by_phase == {"active": 2, "post_show": 1}
    assert metrics.successful_attempts == 1
    assert metrics.failed_attempts == 2
    assert metrics.blocked_attempts == 1
    assert metrics.dry_run_attempts == 1
    assert metrics.errors_by_type == {"database": 1, "timezone": 1}
    assert metrics.success_rate == pytest.approx(1 / 3)


async def test_healthy_with_no_failures(monitoring, store):
    store.audit_log.append(_attempt("transitioned"))
    report = await monitoring.health_check(now=NOW)
    assert report.status is HealthStatus.HEALTHY
    assert {check.name for check in report.checks} == {"store", "recent_failures", "recent_activity"}


async def test_degraded_with_a_few_failures(monitoring, store):
    store.audit_log.extend([_attempt("transitioned"), _attempt("transitioned"), _attempt("failed", error="x")])
    report = await monitoring.health_check(now=NOW)
    assert report.status is HealthStatus.DEGRADED


async def test_unhealthy_with_many_failures(monitoring, store):
    store.audit_log.extend(_attempt("failed", error="database down") for _ in range(5))
    report = await monitoring.health_check(now=NOW)
    assert report.status is HealthStatus.UNHEALTHY


async def test_old_failures_do_not_count(monitoring, store):
    store.audit_log.extend(_attempt("failed", minutes_ago=120) for _ in range(5))
    report = await monitoring.health_check(now=NOW)
    assert report.status is HealthStatus.HEALTHY


async def test_unreachable_store_is_unhealthy(monitoring, store):
    store.fail("ping")
    report = await monitoring.health_check(now=NOW)
    assert report.status is HealthStatus.UNHEALTHY
    assert report.checks[0].status == "fail"


async def test_missing_activity_degrades_when_scheduler_expected(store):
    report = await TransitionMonitoring(store, expect_activity=True).health_check(now=NOW)
    assert report.status is HealthStatus.DEGRADED
