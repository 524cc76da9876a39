"""PhaseEngine: the project lifecycle state machine.

Every project has exactly one allowed successor phase (domain.phases.NEXT_PHASE).
evaluate_transition decides whether that move is allowed right now;
execute_transition re-evaluates at commit time and writes the phase change
and its audit entry through a conditional store update, so a transition that
raced with another writer is rejected instead of applied twice.

Time-gated moves (pre_show, active, complete) resolve wall-clock schedules in
the project's timezone through domain.timezones.
"""

import calendar
from datetime import UTC, date, datetime, timedelta

import structlog

from stagecall.core.exceptions import NotFoundError, TransitionNotAllowedError
from stagecall.domain.action_items import ActionItem, PhaseItemContext, ReadinessSnapshot, generate_phase_items
from stagecall.domain.configuration import PhaseDefaults, merge_configuration
from stagecall.domain.criteria import checklist_blockers, timecard_blocker
from stagecall.domain.phases import (
    Phase,
    PhaseTransition,
    TransitionEvaluation,
    TransitionTrigger,
    next_phase,
)
from stagecall.domain.records import AuditLogEntry, ProjectRecord
from stagecall.domain.timezones import (
    calculate_transition_time,
    format_in_timezone,
    get_project_timezone,
    is_transition_due,
)
from stagecall.integrations.readiness import ReadinessFeed
from stagecall.store.base import PhaseStore

logger = structlog.get_logger(__name__)

PHASE_TRANSITION_ACTION = "phase_transition"

# Reasons reported while waiting / once due, per time-gated phase
_TIME_GATE_TEXT: dict[Phase, tuple[str, str, str, str]] = {
    # (missing-date blocker, waiting blocker prefix, waiting reason, due reason)
    Phase.PRE_SHOW: (
        "Rehearsal start date must be set",
        "Scheduled to activate at",
        "Waiting for rehearsal start date",
        "Rehearsal start time has arrived",
    ),
    Phase.ACTIVE: (
        "Show end date must be set",
        "Scheduled to transition at",
        "Waiting for post-show transition time",
        "Show has ended",
    ),
    Phase.COMPLETE: (
        "",
        "Scheduled to archive on",
        "Waiting for archive date",
        "Archive date has arrived",
    ),
}

_CRITERIA_REASONS: dict[Phase, str] = {
    Phase.PREP: "Vital project information must be complete",
    Phase.STAFFING: "Staffing and talent assignment must be complete",
    Phase.POST_SHOW: "All timecards must be approved or paid",
}


def _hour_string(hour: int) -> str:
    return f"{hour:02d}:00"


class PhaseEngine:
    """Service layer for phase evaluation and execution.

    Dependencies are injected: the record store (which is also the audit
    sink for committed transitions), the scheduling defaults, and an
    optional readiness feed used only for action items.
    """

    def __init__(
        self,
        store: PhaseStore,
        defaults: PhaseDefaults | None = None,
        readiness_feed: ReadinessFeed | None = None,
    ):
        self.store = store
        self.defaults = defaults or PhaseDefaults()
        self.readiness_feed = readiness_feed

    async def _require_project(self, project_id: str) -> ProjectRecord:
        project = await self.store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def get_current_phase(self, project_id: str) -> Phase:
        """Current phase of a project.

        Raises:
            NotFoundError: If the project does not exist
            StorageError: If the read failed
        """
        project = await self._require_project(project_id)
        return project.phase

    # -- scheduling ---------------------------------------------------------

    def _archive_instant(self, project: ProjectRecord, month: int, day: int, hour: int, tz: str) -> datetime:
        """Next (month, day) at hour local, strictly after the project was completed.

        29 February falls back to 28 February in non-leap years.
        """
        completed_at = project.phase_updated_at or project.created_at
        completed_year = completed_at.astimezone(UTC).year
        for year in range(completed_year - 1, completed_year + 2):
            target_day = min(day, calendar.monthrange(year, month)[1])
            candidate = calculate_transition_time(date(year, month, target_day), _hour_string(hour), tz)
            if isinstance(candidate, datetime) and candidate > completed_at:
                return candidate
        # Unreachable with valid month/day: a year past completion is always later
        raise ValueError(f"Could not resolve archive date {month}/{day} for project {project.id}")

    def get_scheduled_transition_time(self, project: ProjectRecord) -> datetime | None:
        """UTC instant at which a time-gated phase may advance, or None.

        None for phases that are not time-gated or when the date that drives
        the schedule is missing.
        """
        config = merge_configuration(project, self.defaults)
        tz = get_project_timezone(project)

        if project.phase == Phase.PRE_SHOW:
            if project.rehearsal_start_date is None:
                return None
            instant = calculate_transition_time(
                project.rehearsal_start_date, self.defaults.rehearsal_transition_time, tz
            )
        elif project.phase == Phase.ACTIVE:
            if project.show_end_date is None:
                return None
            instant = calculate_transition_time(
                project.show_end_date + timedelta(days=1), _hour_string(config.post_show_transition_hour), tz
            )
        elif project.phase == Phase.COMPLETE:
            instant = self._archive_instant(
                project, config.archive_month, config.archive_day, config.post_show_transition_hour, tz
            )
        else:
            return None

        if not isinstance(instant, datetime):
            logger.error("scheduled_time_unresolved", project_id=project.id, phase=project.phase.value)
            return None
        return instant

    # -- evaluation ---------------------------------------------------------

    def _time_gate(self, project: ProjectRecord, target: Phase, now: datetime) -> TransitionEvaluation:
        missing, waiting, waiting_reason, due_reason = _TIME_GATE_TEXT[project.phase]
        instant = self.get_scheduled_transition_time(project)

        if instant is None:
            return TransitionEvaluation(
                project_id=project.id,
                current_phase=project.phase,
                can_transition=False,
                target_phase=target,
                blockers=[missing or "Transition time could not be determined"],
                reason=waiting_reason,
            )

        if not is_transition_due(instant, now):
            tz = get_project_timezone(project)
            return TransitionEvaluation(
                project_id=project.id,
                current_phase=project.phase,
                can_transition=False,
                target_phase=target,
                blockers=[f"{waiting} {format_in_timezone(instant, tz)}"],
                reason=waiting_reason,
                scheduled_at=instant,
            )

        return TransitionEvaluation(
            project_id=project.id,
            current_phase=project.phase,
            can_transition=True,
            target_phase=target,
            reason=due_reason,
            scheduled_at=instant,
        )

    async def evaluate_project(self, project: ProjectRecord, now: datetime | None = None) -> TransitionEvaluation:
        """Evaluate an already-loaded project snapshot."""
        if now is None:
            now = datetime.now(UTC)

        target = next_phase(project.phase)
        if target is None:
            return TransitionEvaluation(
                project_id=project.id,
                current_phase=project.phase,
                can_transition=False,
                target_phase=None,
                blockers=["Project is already archived"],
                reason="Archived is the final phase",
            )

        if project.phase in _TIME_GATE_TEXT:
            return self._time_gate(project, target, now)

        if project.phase == Phase.POST_SHOW:
            timecards = await self.store.get_timecards(project.id)
            blocker = timecard_blocker(timecards)
            blockers = [blocker] if blocker else []
        else:
            blockers = checklist_blockers(project.phase, project.checklist)

        return TransitionEvaluation(
            project_id=project.id,
            current_phase=project.phase,
            can_transition=not blockers,
            target_phase=target,
            blockers=blockers,
            reason=_CRITERIA_REASONS[project.phase],
        )

    async def evaluate_transition(self, project_id: str, now: datetime | None = None) -> TransitionEvaluation:
        """Decide whether the project may move to its successor now.

        Raises:
            NotFoundError: If the project does not exist
            StorageError: If a read failed
        """
        project = await self._require_project(project_id)
        evaluation = await self.evaluate_project(project, now)
        logger.debug(
            "transition_evaluated",
            project_id=project_id,
            current_phase=evaluation.current_phase.value,
            can_transition=evaluation.can_transition,
            blockers=evaluation.blockers,
        )
        return evaluation

    # -- execution ----------------------------------------------------------

    async def execute_transition(
        self,
        project_id: str,
        target_phase: Phase,
        trigger: TransitionTrigger,
        actor_id: str | None = None,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> PhaseTransition:
        """Move the project to target_phase if a fresh evaluation agrees.

        Writes the phase, phase_updated_at and a phase_transition audit entry
        in one store transaction, conditional on the phase still being the
        one that was evaluated.

        Raises:
            NotFoundError: If the project does not exist
            TransitionNotAllowedError: If evaluation disagrees or the conditional write lost
            StorageError: If the write failed
        """
        target_phase = Phase(target_phase)
        trigger = TransitionTrigger(trigger)
        if now is None:
            now = datetime.now(UTC)

        evaluation = await self.evaluate_transition(project_id, now)
        if not evaluation.can_transition or evaluation.target_phase != target_phase:
            logger.info(
                "transition_rejected",
                project_id=project_id,
                current_phase=evaluation.current_phase.value,
                requested_phase=target_phase.value,
                blockers=evaluation.blockers,
            )
            detail = None
            if evaluation.target_phase != target_phase:
                detail = (
                    f"{evaluation.current_phase.value} can only move to "
                    f"{evaluation.target_phase.value if evaluation.target_phase else 'nothing'}"
                )
                if evaluation.blockers:
                    detail = f"{detail}; {', '.join(evaluation.blockers)}"
            raise TransitionNotAllowedError(project_id, target_phase.value, evaluation.blockers, detail=detail)

        triggered_by = actor_id or "system"
        entry = AuditLogEntry(
            action_type=PHASE_TRANSITION_ACTION,
            project_id=project_id,
            details={
                "from_phase": evaluation.current_phase.value,
                "to_phase": target_phase.value,
                "trigger": trigger.value,
                "triggered_by": triggered_by,
                "reason": reason or evaluation.reason,
                "timestamp": now.isoformat(),
            },
            timestamp=now,
            triggered_by=triggered_by,
        )

        committed = await self.store.commit_phase_transition(
            project_id, evaluation.current_phase, target_phase, now, entry
        )
        if not committed:
            logger.warning(
                "transition_lost_race",
                project_id=project_id,
                expected_phase=evaluation.current_phase.value,
                target_phase=target_phase.value,
            )
            raise TransitionNotAllowedError(
                project_id, target_phase.value, detail="project phase changed before the transition was committed"
            )

        logger.info(
            "phase_transitioned",
            project_id=project_id,
            from_phase=evaluation.current_phase.value,
            to_phase=target_phase.value,
            trigger=trigger.value,
            triggered_by=triggered_by,
        )
        return PhaseTransition(
            project_id=project_id,
            from_phase=evaluation.current_phase,
            to_phase=target_phase,
            trigger=trigger,
            triggered_by=triggered_by,
            transitioned_at=now,
            reason=reason or evaluation.reason,
        )

    # -- action items & history ----------------------------------------------

    async def _readiness(self, project_id: str) -> ReadinessSnapshot:
        snapshot = None
        if self.readiness_feed is not None:
            snapshot = await self.readiness_feed.fetch(project_id)
        if snapshot is None:
            logger.debug("readiness_defaulted", project_id=project_id)
            snapshot = ReadinessSnapshot(project_id=project_id)
        return snapshot

    async def get_phase_action_items(
        self,
        project_id: str,
        phase: Phase | None = None,
        readiness: ReadinessSnapshot | None = None,
    ) -> list[ActionItem]:
        """Operator to-dos for the project's phase (or the given phase).

        Never raises: any failure is logged and yields an empty list.
        """
        try:
            project = await self._require_project(project_id)
            phase = Phase(phase) if phase is not None else project.phase
            if phase == Phase.ARCHIVED:
                return []

            if readiness is None:
                readiness = await self._readiness(project_id)

            team, timecards = [], []
            if phase == Phase.POST_SHOW:
                team = await self.store.get_team_assignments(project_id)
                timecards = await self.store.get_timecards(project_id)

            config = merge_configuration(project, self.defaults)
            context = PhaseItemContext(
                project=project,
                readiness=readiness,
                archive_month=config.archive_month,
                archive_day=config.archive_day,
                team=team,
                timecards=timecards,
            )
            return generate_phase_items(phase, context)
        except Exception as exc:
            logger.warning("phase_action_items_failed", project_id=project_id, error=str(exc))
            return []

    async def get_transition_history(self, project_id: str, limit: int = 50) -> list[PhaseTransition]:
        """Committed transitions for the project, newest first.

        Raises:
            NotFoundError: If the project does not exist
        """
        await self._require_project(project_id)
        entries = await self.store.list_audit_entries(
            project_id=project_id, action_types=(PHASE_TRANSITION_ACTION,), limit=limit
        )
        history = []
        for entry in entries:
            details = entry.details
            try:
                history.append(
                    PhaseTransition(
                        project_id=entry.project_id,
                        from_phase=Phase(details["from_phase"]),
                        to_phase=Phase(details["to_phase"]),
                        trigger=TransitionTrigger(details.get("trigger", TransitionTrigger.MANUAL)),
                        triggered_by=entry.triggered_by,
                        transitioned_at=entry.timestamp,
                        reason=details.get("reason"),
                    )
                )
            except (KeyError, ValueError):
                logger.warning("malformed_transition_audit_entry", project_id=project_id, details=details)
        return history
