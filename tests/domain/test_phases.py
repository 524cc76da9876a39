"""Tests for the phase chain and action item generators."""

from datetime import date

import pytest

from stagecall.domain.action_items import PhaseItemContext, ReadinessSnapshot, generate_phase_items
from stagecall.domain.phases import (
    NEXT_PHASE,
    PHASE_ORDER,
    Phase,
    is_valid_transition,
    next_phase,
    parse_phase,
    phase_index,
)
from stagecall.domain.records import SetupChecklist, TeamAssignmentRecord, TimecardRecord

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Phase chain
# ---------------------------------------------------------------------------


def test_chain_is_linear_and_forward_only():
    for phase in PHASE_ORDER[:-1]:
        successor = next_phase(phase)
        assert phase_index(successor) == phase_index(phase) + 1


def test_archived_is_terminal():
    assert next_phase(Phase.ARCHIVED) is None
    assert NEXT_PHASE[Phase.ARCHIVED] is None


@pytest.mark.parametrize(
    ("current", "target", "allowed"),
    [
        (Phase.PREP, Phase.STAFFING, True),
        (Phase.PREP, Phase.PRE_SHOW, False),
        (Phase.ACTIVE, Phase.PRE_SHOW, False),
        (Phase.COMPLETE, Phase.ARCHIVED, True),
        (Phase.ARCHIVED, Phase.PREP, False),
    ],
)
def test_is_valid_transition(current, target, allowed):
    assert is_valid_transition(current, target) is allowed


def test_parse_phase():
    assert parse_phase("post_show") is Phase.POST_SHOW
    with pytest.raises(ValueError, match="Unknown phase"):
        parse_phase("wrap")


# ---------------------------------------------------------------------------
# Action item generators
# ---------------------------------------------------------------------------


def _ctx(project, **kwargs) -> PhaseItemContext:
    kwargs.setdefault("readiness", ReadinessSnapshot(project_id=project.id))
    return PhaseItemContext(project=project, archive_month=4, archive_day=1, **kwargs)


def test_prep_items_follow_checklist_gates(project_factory):
    items = generate_phase_items(Phase.PREP, _ctx(project_factory()))
    required = {item.id for item in items if item.required_for_transition}
    assert required == {"prep-roles", "prep-locations"}


def test_prep_items_disappear_once_finalized(project_factory):
    project = project_factory(
        checklist=SetupChecklist(roles_finalized=True, locations_finalized=True),
        rehearsal_start_date=date(2025, 3, 14),
        show_end_date=date(2025, 3, 16),
    )
    assert generate_phase_items(Phase.PREP, _ctx(project)) == []


def test_staffing_items_use_readiness_counts(project_factory):
    readiness = ReadinessSnapshot(project_id="proj-001", total_staff_assigned=4, total_talent=2)
    items = generate_phase_items(Phase.STAFFING, _ctx(project_factory(), readiness=readiness))
    ids = [item.id for item in items]
    assert "staffing-finalize-team" in ids
    assert "staffing-assign-escorts" in ids
    assert "staffing-consider-coordinator" in ids


def test_pre_show_missing_rehearsal_is_required(project_factory):
    items = generate_phase_items(Phase.PRE_SHOW, _ctx(project_factory()))
    assert items[0].id == "preshow-rehearsal-date"
    assert items[0].required_for_transition


def test_post_show_outstanding_timecards(project_factory):
    team = [TeamAssignmentRecord(user_id="u1", role="supervisor"), TeamAssignmentRecord(user_id="u2", role="escort")]
    cards = [TimecardRecord(id="t1", user_id="u1", status="submitted")]
    items = generate_phase_items(Phase.POST_SHOW, _ctx(project_factory(), team=team, timecards=cards))
    by_id = {item.id: item for item in items}

    assert by_id["postshow-review-timecards"].required_for_transition
    assert "1 submitted, 0 draft, 0 rejected" in by_id["postshow-review-timecards"].description
    assert by_id["postshow-missing-timecards"].description == "1 team members haven't submitted timecards yet"


def test_complete_items_mention_archive_date(project_factory):
    items = generate_phase_items(Phase.COMPLETE, _ctx(project_factory()))
    assert items[-1].description.startswith("Project will auto-archive on 4/1")


def test_archived_has_no_items(project_factory):
    assert generate_phase_items(Phase.ARCHIVED, _ctx(project_factory())) == []
