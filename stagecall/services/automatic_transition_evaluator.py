"""AutomaticTransitionEvaluator: periodic sweep that advances due projects.

Every project with auto transitions enabled is evaluated independently with
bounded parallelism. A project's failure is counted and recorded but never
stops the sweep; only a failure to list projects (systemic) propagates.
Criteria-gated phases (prep, staffing, post_show) must also pass the full
CriteriaValidator checklist before an automatic move is executed.

Each attempt, whether it transitioned, was blocked, was a dry run or failed,
is recorded as an "automatic_transition_attempt" audit entry through the
injected AuditSink. Audit write failures are logged and ignored.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog

from stagecall.core.exceptions import NotFoundError, TransitionNotAllowedError
from stagecall.domain.criteria import ValidationResult
from stagecall.domain.phases import (
    TIME_GATED_PHASES,
    Phase,
    TransitionEvaluation,
    TransitionTrigger,
    parse_phase,
)
from stagecall.domain.records import AuditLogEntry, ProjectRecord
from stagecall.services.criteria_validator import CriteriaValidator
from stagecall.services.phase_engine import PhaseEngine
from stagecall.store.base import AuditSink, PhaseStore

logger = structlog.get_logger(__name__)

AUTOMATIC_ATTEMPT_ACTION = "automatic_transition_attempt"

# Attempt outcomes recorded in audit details["status"]
TRANSITIONED = "transitioned"
BLOCKED = "blocked"
DRY_RUN = "dry_run"
FAILED = "failed"

DEFAULT_ENABLED_PHASES = frozenset({Phase.PRE_SHOW, Phase.ACTIVE, Phase.POST_SHOW, Phase.COMPLETE})


@dataclass(frozen=True)
class AutoTransitionConfig:
    enabled_phases: frozenset[Phase] = DEFAULT_ENABLED_PHASES
    dry_run: bool = False
    max_concurrency: int = 5

    @classmethod
    def from_settings(cls, settings) -> "AutoTransitionConfig":
        return cls(
            enabled_phases=frozenset(parse_phase(p) for p in settings.auto_transition_enabled_phases),
            dry_run=settings.auto_transition_dry_run,
            max_concurrency=max(1, settings.auto_transition_max_concurrency),
        )


@dataclass
class ProjectEvaluation:
    """Evaluation of one project within a sweep."""

    project_id: str
    current_phase: Phase
    evaluation: TransitionEvaluation
    should_transition: bool
    scheduled_at: datetime | None = None
    error: str | None = None


@dataclass
class SweepError:
    project_id: str
    error: str
    timestamp: datetime


@dataclass
class TransitionSweepResult:
    total_projects: int = 0
    evaluated_projects: int = 0
    successful_transitions: int = 0
    failed_transitions: int = 0
    scheduled_transitions: int = 0
    dry_run_transitions: int = 0
    errors: list[SweepError] = field(default_factory=list)


@dataclass
class ScheduledTransition:
    project_id: str
    project_name: str
    current_phase: Phase
    target_phase: Phase
    scheduled_at: datetime


class AutomaticTransitionEvaluator:
    def __init__(
        self,
        store: PhaseStore,
        engine: PhaseEngine,
        config: AutoTransitionConfig | None = None,
        audit_sink: AuditSink | None = None,
        criteria: CriteriaValidator | None = None,
    ):
        self.store = store
        self.engine = engine
        self.config = config or AutoTransitionConfig()
        self.audit_sink = audit_sink or store
        self.criteria = criteria or CriteriaValidator(store)

    async def _validate_criteria(self, project: ProjectRecord) -> ValidationResult | None:
        """Full completion checklist for criteria-gated phases; None for time-gated ones."""
        if project.phase == Phase.PREP:
            return await self.criteria.validate_prep_completion(project.id)
        if project.phase == Phase.STAFFING:
            return await self.criteria.validate_staffing_completion(project.id)
        if project.phase == Phase.POST_SHOW:
            return await self.criteria.validate_timecard_completion(project.id)
        return None

    async def evaluate_project_transition(
        self, project: ProjectRecord, now: datetime | None = None
    ) -> ProjectEvaluation:
        """Evaluate one project. Errors are captured in the result, not raised."""
        if now is None:
            now = datetime.now(UTC)

        if project.phase not in self.config.enabled_phases:
            return ProjectEvaluation(
                project_id=project.id,
                current_phase=project.phase,
                evaluation=TransitionEvaluation(
                    project_id=project.id,
                    current_phase=project.phase,
                    can_transition=False,
                    target_phase=None,
                    blockers=["Phase not enabled for automatic transitions"],
                ),
                should_transition=False,
            )

        try:
            evaluation = await self.engine.evaluate_project(project, now)
            if evaluation.can_transition:
                criteria = await self._validate_criteria(project)
                if criteria is not None and not criteria.is_complete:
                    evaluation = TransitionEvaluation(
                        project_id=project.id,
                        current_phase=project.phase,
                        can_transition=False,
                        target_phase=evaluation.target_phase,
                        blockers=list(criteria.blockers or criteria.pending_items),
                        reason=evaluation.reason,
                    )
        except Exception as exc:
            logger.error("automatic_evaluation_failed", project_id=project.id, error=str(exc))
            return ProjectEvaluation(
                project_id=project.id,
                current_phase=project.phase,
                evaluation=TransitionEvaluation(
                    project_id=project.id,
                    current_phase=project.phase,
                    can_transition=False,
                    target_phase=None,
                    blockers=[f"Evaluation error: {exc}"],
                ),
                should_transition=False,
                error=str(exc),
            )

        return ProjectEvaluation(
            project_id=project.id,
            current_phase=project.phase,
            evaluation=evaluation,
            should_transition=evaluation.can_transition,
            scheduled_at=evaluation.scheduled_at,
        )

    async def _audit(
        self,
        outcome: ProjectEvaluation,
        status: str,
        reason: str,
        now: datetime,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        entry = AuditLogEntry(
            action_type=AUTOMATIC_ATTEMPT_ACTION,
            project_id=outcome.project_id,
            details={
                "from_phase": outcome.current_phase.value,
                "to_phase": outcome.evaluation.target_phase.value if outcome.evaluation.target_phase else None,
                "status": status,
                "success": status == TRANSITIONED,
                "reason": reason,
                "error": error,
                "blockers": list(outcome.evaluation.blockers),
                "scheduled_at": outcome.scheduled_at.isoformat() if outcome.scheduled_at else None,
                "timestamp": now.isoformat(),
                **extra,
            },
            timestamp=now,
            triggered_by="system",
        )
        try:
            await self.audit_sink.append_audit(entry)
        except Exception as exc:
            logger.warning("audit_write_failed", project_id=outcome.project_id, error=str(exc))

    def _record_failure(self, result: TransitionSweepResult, project_id: str, error: str, now: datetime) -> None:
        result.failed_transitions += 1
        result.errors.append(SweepError(project_id=project_id, error=error, timestamp=now))

    async def _process(self, project: ProjectRecord, result: TransitionSweepResult, now: datetime) -> None:
        outcome = await self.evaluate_project_transition(project, now)
        result.evaluated_projects += 1

        if outcome.error is not None:
            self._record_failure(result, project.id, outcome.error, now)
            await self._audit(outcome, FAILED, "Evaluation failed", now, error=outcome.error)
            return

        if not outcome.should_transition:
            if outcome.scheduled_at is not None and outcome.scheduled_at > now:
                result.scheduled_transitions += 1
            await self._audit(outcome, BLOCKED, "; ".join(outcome.evaluation.blockers) or "No transition due", now)
            return

        target = outcome.evaluation.target_phase
        trigger = (
            TransitionTrigger.SCHEDULED if outcome.current_phase in TIME_GATED_PHASES else TransitionTrigger.AUTOMATIC
        )

        if self.config.dry_run:
            result.dry_run_transitions += 1
            logger.info(
                "dry_run_transition",
                project_id=project.id,
                from_phase=outcome.current_phase.value,
                to_phase=target.value,
            )
            await self._audit(outcome, DRY_RUN, "Dry run: transition not executed", now, dry_run=True)
            return

        try:
            await self.engine.execute_transition(
                project.id,
                target,
                trigger,
                actor_id=None,
                reason=outcome.evaluation.reason or "Automatic transition",
                now=now,
            )
        except TransitionNotAllowedError as exc:
            # Lost a race with a manual transition or re-evaluation disagreed
            logger.info("automatic_transition_blocked", project_id=project.id, detail=str(exc))
            await self._audit(outcome, BLOCKED, str(exc), now, trigger=trigger.value)
        except Exception as exc:
            logger.error("automatic_transition_failed", project_id=project.id, error=str(exc))
            self._record_failure(result, project.id, str(exc), now)
            await self._audit(outcome, FAILED, "Transition failed", now, error=str(exc), trigger=trigger.value)
        else:
            result.successful_transitions += 1
            await self._audit(
                outcome, TRANSITIONED, outcome.evaluation.reason or "Transitioned", now, trigger=trigger.value
            )

    async def evaluate_all_projects(self, now: datetime | None = None) -> TransitionSweepResult:
        """Run one sweep over every auto-enabled, non-archived project.

        Raises:
            StorageError: If the project listing itself failed
        """
        if now is None:
            now = datetime.now(UTC)

        result = TransitionSweepResult()
        projects = await self.store.list_auto_transition_projects()
        result.total_projects = len(projects)
        if not projects:
            logger.info("no_projects_for_automatic_transition")
            return result

        logger.info("automatic_transition_sweep_started", total_projects=len(projects), dry_run=self.config.dry_run)
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def bounded(project: ProjectRecord) -> None:
            async with semaphore:
                await self._process(project, result, now)

        outcomes = await asyncio.gather(*(bounded(p) for p in projects), return_exceptions=True)
        for project, outcome in zip(projects, outcomes, strict=True):
            if isinstance(outcome, Exception):
                logger.error("automatic_transition_unexpected_error", project_id=project.id, error=str(outcome))
                self._record_failure(result, project.id, str(outcome), now)

        logger.info(
            "automatic_transition_sweep_completed",
            total_projects=result.total_projects,
            evaluated=result.evaluated_projects,
            successful=result.successful_transitions,
            failed=result.failed_transitions,
            scheduled=result.scheduled_transitions,
            dry_run=result.dry_run_transitions,
        )
        return result

    async def get_scheduled_transitions(
        self, window_hours: int = 24, now: datetime | None = None
    ) -> list[ScheduledTransition]:
        """Upcoming scheduled transitions in [now, now + window_hours), soonest first. Read-only."""
        if now is None:
            now = datetime.now(UTC)
        cutoff = now + timedelta(hours=window_hours)

        projects = await self.store.list_auto_transition_projects()
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def bounded(project: ProjectRecord) -> ProjectEvaluation:
            async with semaphore:
                return await self.evaluate_project_transition(project, now)

        outcomes = await asyncio.gather(*(bounded(p) for p in projects))

        upcoming = []
        for project, outcome in zip(projects, outcomes, strict=True):
            if outcome.error is not None:
                logger.warning("scheduled_transition_lookup_failed", project_id=project.id, error=outcome.error)
                continue
            target = outcome.evaluation.target_phase
            if outcome.scheduled_at is None or target is None:
                continue
            if now <= outcome.scheduled_at < cutoff:
                upcoming.append(
                    ScheduledTransition(
                        project_id=project.id,
                        project_name=project.name,
                        current_phase=outcome.current_phase,
                        target_phase=target,
                        scheduled_at=outcome.scheduled_at,
                    )
                )
        return sorted(upcoming, key=lambda s: s.scheduled_at)

    async def evaluate_project(self, project_id: str, now: datetime | None = None) -> ProjectEvaluation:
        """Forced evaluation of a single project by id (no execution).

        Raises:
            NotFoundError: If the project does not exist
        """
        project = await self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return await self.evaluate_project_transition(project, now)
