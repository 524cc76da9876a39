"""Tests for the automatic transition sweep.

Covers partial-failure isolation, dry run, audit entries, scheduled lookups
and the systemic failure path.
"""

from datetime import UTC, date, datetime

import pytest

from stagecall.core.exceptions import NotFoundError, StorageError
from stagecall.domain.phases import Phase
from stagecall.domain.records import TeamAssignmentRecord, TimecardRecord
from stagecall.services.automatic_transition_evaluator import (
    AUTOMATIC_ATTEMPT_ACTION,
    AutomaticTransitionEvaluator,
    AutoTransitionConfig,
)
from stagecall.services.phase_engine import PHASE_TRANSITION_ACTION

pytestmark = pytest.mark.unit

NOW = datetime(2025, 3, 20, 12, 0, tzinfo=UTC)


def _attempts(store, project_id=None):
    return [
        e
        for e in store.audit_log
        if e.action_type == AUTOMATIC_ATTEMPT_ACTION and (project_id is None or e.project_id == project_id)
    ]


@pytest.fixture
def evaluator(store, engine) -> AutomaticTransitionEvaluator:
    return AutomaticTransitionEvaluator(store, engine)


@pytest.fixture
def seeded(store, project_factory):
    """One due pre-show project, one waiting pre-show project, one prep project."""
    store.add_project(project_factory("due", phase=Phase.PRE_SHOW, rehearsal_start_date=date(2025, 3, 15)))
    store.add_project(project_factory("later", phase=Phase.PRE_SHOW, rehearsal_start_date=date(2025, 4, 15)))
    store.add_project(project_factory("prep", phase=Phase.PREP))
    return store


# ---------------------------------------------------------------------------
# evaluate_all_projects
# ---------------------------------------------------------------------------


async def test_sweep_transitions_due_projects(evaluator, seeded):
    result = await evaluator.evaluate_all_projects(NOW)

    assert result.total_projects == 3
    assert result.evaluated_projects == 3
    assert result.successful_transitions == 1
    assert result.scheduled_transitions == 1
    assert result.failed_transitions == 0
    assert seeded.projects["due"].phase is Phase.ACTIVE
    assert seeded.projects["later"].phase is Phase.PRE_SHOW


async def test_time_gated_transition_uses_scheduled_trigger(evaluator, seeded):
    await evaluator.evaluate_all_projects(NOW)
    [transition] = [e for e in seeded.audit_log if e.action_type == PHASE_TRANSITION_ACTION]
    assert transition.details["trigger"] == "scheduled"
    assert transition.triggered_by == "system"


async def test_every_attempt_is_audited(evaluator, seeded):
    await evaluator.evaluate_all_projects(NOW)

    statuses = {e.project_id: e.details["status"] for e in _attempts(seeded)}
    assert statuses == {"due": "transitioned", "later": "blocked", "prep": "blocked"}
    [prep] = _attempts(seeded, "prep")
    assert prep.details["blockers"] == ["Phase not enabled for automatic transitions"]


async def test_sweep_is_idempotent(evaluator, seeded):
    await evaluator.evaluate_all_projects(NOW)
    second = await evaluator.evaluate_all_projects(NOW)

    assert second.successful_transitions == 0
    assert seeded.projects["due"].phase is Phase.ACTIVE


async def test_execution_failures_are_isolated(store, engine, project_factory):
    for i in range(4):
        store.add_project(project_factory(f"p{i}", phase=Phase.PRE_SHOW, rehearsal_start_date=date(2025, 3, 15)))
    store.fail("commit_phase_transition", project_id="p1")
    evaluator = AutomaticTransitionEvaluator(store, engine, AutoTransitionConfig(max_concurrency=2))

    result = await evaluator.evaluate_all_projects(NOW)

    assert result.evaluated_projects == 4
    assert result.failed_transitions == 1
    assert result.successful_transitions == 3
    assert [e.project_id for e in result.errors] == ["p1"]
    [failed] = _attempts(store, "p1")
    assert failed.details["status"] == "failed"
    assert "commit_phase_transition failed" in failed.details["error"]


async def test_evaluation_failure_is_counted(evaluator, store, project_factory):
    store.add_project(project_factory("wrap", phase=Phase.POST_SHOW))
    store.fail("get_timecards", project_id="wrap")

    result = await evaluator.evaluate_all_projects(NOW)

    assert result.failed_transitions == 1
    assert result.errors[0].project_id == "wrap"


async def test_listing_failure_propagates(evaluator, store):
    store.fail("list_auto_transition_projects")
    with pytest.raises(StorageError):
        await evaluator.evaluate_all_projects(NOW)


async def test_audit_sink_failure_does_not_stop_sweep(evaluator, seeded):
    seeded.fail("append_audit")
    result = await evaluator.evaluate_all_projects(NOW)
    assert result.successful_transitions == 1


async def test_dry_run_writes_no_phase_change(store, engine, seeded):
    evaluator = AutomaticTransitionEvaluator(store, engine, AutoTransitionConfig(dry_run=True))

    result = await evaluator.evaluate_all_projects(NOW)

    assert result.dry_run_transitions == 1
    assert result.successful_transitions == 0
    assert seeded.projects["due"].phase is Phase.PRE_SHOW
    [attempt] = _attempts(seeded, "due")
    assert attempt.details["status"] == "dry_run"


async def test_criteria_phase_uses_automatic_trigger(evaluator, store, project_factory):
    cards = [TimecardRecord(id="t1", user_id="u1", status="approved")]
    store.add_project(project_factory("wrap", phase=Phase.POST_SHOW), timecards=cards)

    await evaluator.evaluate_all_projects(NOW)

    [transition] = [e for e in store.audit_log if e.action_type == PHASE_TRANSITION_ACTION]
    assert transition.details["trigger"] == "automatic"
    assert store.projects["wrap"].phase is Phase.COMPLETE


async def test_post_show_without_timecards_is_blocked(evaluator, store, project_factory):
    store.add_project(
        project_factory("wrap", phase=Phase.POST_SHOW),
        team=[TeamAssignmentRecord(user_id="u1", role="supervisor", full_name="Dana")],
    )

    result = await evaluator.evaluate_all_projects(NOW)

    assert result.successful_transitions == 0
    assert result.failed_transitions == 0
    assert store.projects["wrap"].phase is Phase.POST_SHOW
    [attempt] = _attempts(store, "wrap")
    assert attempt.details["status"] == "blocked"
    assert attempt.details["blockers"] == ["Timecards must be submitted before project completion"]


async def test_post_show_with_missing_submission_is_blocked(evaluator, store, project_factory):
    team = [
        TeamAssignmentRecord(user_id="u1", role="supervisor", full_name="Dana"),
        TeamAssignmentRecord(user_id="u2", role="coordinator", full_name="Lee"),
    ]
    cards = [TimecardRecord(id="t1", user_id="u1", status="approved")]
    store.add_project(project_factory("wrap", phase=Phase.POST_SHOW), team=team, timecards=cards)

    outcome = await evaluator.evaluate_project_transition(store.projects["wrap"], NOW)
    result = await evaluator.evaluate_all_projects(NOW)

    assert outcome.should_transition is False
    assert outcome.evaluation.blockers == ["All team members must submit timecards"]
    assert result.successful_transitions == 0
    assert store.projects["wrap"].phase is Phase.POST_SHOW


async def test_criteria_fetch_failure_is_counted(evaluator, store, project_factory):
    cards = [TimecardRecord(id="t1", user_id="u1", status="approved")]
    store.add_project(project_factory("wrap", phase=Phase.POST_SHOW), timecards=cards)
    store.fail("get_team_assignments", project_id="wrap")

    result = await evaluator.evaluate_all_projects(NOW)

    assert result.failed_transitions == 1
    assert store.projects["wrap"].phase is Phase.POST_SHOW
    [attempt] = _attempts(store, "wrap")
    assert attempt.details["status"] == "failed"


async def test_auto_disabled_projects_are_skipped(evaluator, store, project_factory):
    store.add_project(
        project_factory(
            "off", phase=Phase.PRE_SHOW, rehearsal_start_date=date(2025, 3, 15), auto_transitions_enabled=False
        )
    )
    result = await evaluator.evaluate_all_projects(NOW)
    assert result.total_projects == 0
    assert store.projects["off"].phase is Phase.PRE_SHOW


async def test_project_in_disabled_phase_short_circuits(evaluator, project_factory):
    outcome = await evaluator.evaluate_project_transition(project_factory("prep", phase=Phase.PREP), NOW)

    assert outcome.should_transition is False
    assert outcome.evaluation.blockers == ["Phase not enabled for automatic transitions"]


async def test_waiting_project_carries_scheduled_instant(evaluator, project_factory):
    project = project_factory("later", phase=Phase.PRE_SHOW, rehearsal_start_date=date(2025, 4, 15))

    outcome = await evaluator.evaluate_project_transition(project, NOW)

    assert outcome.should_transition is False
    assert outcome.scheduled_at == datetime(2025, 4, 15, 4, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Scheduled lookups and single-project evaluation
# ---------------------------------------------------------------------------


async def test_scheduled_transitions_within_window(evaluator, store, project_factory):
    store.add_project(project_factory("soon", phase=Phase.PRE_SHOW, rehearsal_start_date=date(2025, 3, 21)))
    store.add_project(project_factory("far", phase=Phase.PRE_SHOW, rehearsal_start_date=date(2025, 4, 21)))
    store.add_project(project_factory("past", phase=Phase.PRE_SHOW, rehearsal_start_date=date(2025, 3, 1)))

    scheduled = await evaluator.get_scheduled_transitions(window_hours=24, now=NOW)

    assert [s.project_id for s in scheduled] == ["soon"]
    assert scheduled[0].target_phase is Phase.ACTIVE
    assert scheduled[0].scheduled_at == datetime(2025, 3, 21, 4, 0, tzinfo=UTC)
    assert store.audit_log == []


async def test_evaluate_single_project(evaluator, seeded):
    outcome = await evaluator.evaluate_project("due", now=NOW)
    assert outcome.should_transition
    assert seeded.projects["due"].phase is Phase.PRE_SHOW

    with pytest.raises(NotFoundError):
        await evaluator.evaluate_project("missing", now=NOW)
