"""TransitionMonitoring: metrics and health derived from the audit log."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum

import structlog

from stagecall.services.automatic_transition_evaluator import (
    AUTOMATIC_ATTEMPT_ACTION,
    BLOCKED,
    DRY_RUN,
    FAILED,
    TRANSITIONED,
)
from stagecall.services.phase_engine import PHASE_TRANSITION_ACTION
from stagecall.store.base import PhaseStore

logger = structlog.get_logger(__name__)

# Failures within the failure window before the system is considered unhealthy
UNHEALTHY_FAILURE_COUNT = 5
FAILURE_WINDOW = timedelta(hours=1)
ACTIVITY_WINDOW = timedelta(hours=24)

_ERROR_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("database", ("database", "connection", "storage")),
    ("timezone", ("timezone", "date")),
    ("validation", ("validation", "criteria", "configuration")),
    ("permission", ("permission", "unauthorized", "forbidden")),
)


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class TransitionMetrics:
    start: datetime
    end: datetime
    total_transitions: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    blocked_attempts: int = 0
    dry_run_attempts: int = 0
    transitions_by_phase: dict[str, int] = field(default_factory=dict)
    errors_by_type: dict[str, int] = field(default_factory=dict)

    @property
    def success_rate(self) -> float:
        attempts = self.successful_attempts + self.failed_attempts
        if attempts == 0:
            return 1.0
        return self.successful_attempts / attempts


@dataclass
class HealthCheck:
    name: str
    status: str  # pass | warn | fail
    message: str


@dataclass
class HealthReport:
    status: HealthStatus
    checks: list[HealthCheck]
    timestamp: datetime


def categorize_error(error: str | None) -> str:
    text = (error or "").lower()
    for category, keywords in _ERROR_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return "other"


class TransitionMonitoring:
    def __init__(self, store: PhaseStore, expect_activity: bool = False):
        self.store = store
        # When the scheduler is running, a day without attempts is suspicious
        self.expect_activity = expect_activity

    async def get_transition_metrics(self, start: datetime, end: datetime | None = None) -> TransitionMetrics:
        """Aggregate phase transitions and automatic attempts in [start, end].

        Raises:
            StorageError: If the audit log could not be read
        """
        if end is None:
            end = datetime.now(UTC)

        entries = await self.store.list_audit_entries(
            action_types=(PHASE_TRANSITION_ACTION, AUTOMATIC_ATTEMPT_ACTION),
            since=start,
            until=end,
        )

        metrics = TransitionMetrics(start=start, end=end)
        by_phase: Counter[str] = Counter()
        by_error: Counter[str] = Counter()
        for entry in entries:
            details = entry.details or {}
            if entry.action_type == PHASE_TRANSITION_ACTION:
                metrics.total_transitions += 1
                if details.get("to_phase"):
                    by_phase[details["to_phase"]] += 1
                continue

            status = details.get("status")
            if status == TRANSITIONED:
                metrics.successful_attempts += 1
            elif status == FAILED:
                metrics.failed_attempts += 1
                by_error[categorize_error(details.get("error"))] += 1
            elif status == BLOCKED:
                metrics.blocked_attempts += 1
            elif status == DRY_RUN:
                metrics.dry_run_attempts += 1

        metrics.transitions_by_phase = dict(by_phase)
        metrics.errors_by_type = dict(by_error)
        return metrics

    async def health_check(self, now: datetime | None = None) -> HealthReport:
        """Store reachability plus recent automatic-attempt failures. Never raises."""
        if now is None:
            now = datetime.now(UTC)

        checks: list[HealthCheck] = []
        try:
            await self.store.ping()
        except Exception as exc:
            logger.error("health_check_store_unreachable", error=str(exc))
            checks.append(HealthCheck("store", "fail", f"Store unreachable: {exc}"))
            return HealthReport(HealthStatus.UNHEALTHY, checks, now)
        checks.append(HealthCheck("store", "pass", "Store reachable"))

        try:
            recent = await self.get_transition_metrics(now - FAILURE_WINDOW, now)
            daily = await self.get_transition_metrics(now - ACTIVITY_WINDOW, now)
        except Exception as exc:
            logger.error("health_check_metrics_failed", error=str(exc))
            checks.append(HealthCheck("audit_log", "fail", f"Audit log unreadable: {exc}"))
            return HealthReport(HealthStatus.UNHEALTHY, checks, now)

        failures = recent.failed_attempts
        if failures == 0:
            checks.append(HealthCheck("recent_failures", "pass", "No failed attempts in the last hour"))
        elif failures < UNHEALTHY_FAILURE_COUNT and recent.success_rate >= 0.5:
            checks.append(HealthCheck("recent_failures", "warn", f"{failures} failed attempts in the last hour"))
        else:
            checks.append(HealthCheck("recent_failures", "fail", f"{failures} failed attempts in the last hour"))

        attempts = (
            daily.successful_attempts + daily.failed_attempts + daily.blocked_attempts + daily.dry_run_attempts
        )
        if attempts == 0 and self.expect_activity:
            checks.append(HealthCheck("recent_activity", "warn", "No automatic attempts in the last 24 hours"))
        else:
            checks.append(HealthCheck("recent_activity", "pass", f"{attempts} automatic attempts in the last 24 hours"))

        statuses = {check.status for check in checks}
        if "fail" in statuses:
            overall = HealthStatus.UNHEALTHY
        elif "warn" in statuses:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY

        if overall is not HealthStatus.HEALTHY:
            logger.warning("transition_health_degraded", status=overall.value, failures=failures)
        return HealthReport(overall, checks, now)
