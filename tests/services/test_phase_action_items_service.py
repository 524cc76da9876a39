"""Tests for merging phase checklist items with readiness to-dos."""

import pytest

from stagecall.core.exceptions import NotFoundError
from stagecall.domain.action_items import ActionItem, Priority, ReadinessSnapshot, ReadinessTodo
from stagecall.domain.phases import Phase
from stagecall.services.phase_action_items_service import (
    PhaseActionItemsService,
    combine_action_items,
    map_area_to_category,
    normalize_title,
    readiness_todo_to_item,
)
from stagecall.services.phase_engine import PhaseEngine

pytestmark = pytest.mark.unit


class StaticFeed:
    def __init__(self, snapshot: ReadinessSnapshot | None):
        self.snapshot = snapshot
        self.calls = 0

    async def fetch(self, project_id: str) -> ReadinessSnapshot | None:
        self.calls += 1
        return self.snapshot


def _item(item_id: str, title: str, priority=Priority.MEDIUM, required=False) -> ActionItem:
    return ActionItem(
        id=item_id,
        title=title,
        description="",
        category="setup",
        priority=priority,
        required_for_transition=required,
    )


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def test_area_category_mapping():
    assert map_area_to_category("team", Phase.POST_SHOW) == "payroll"
    assert map_area_to_category("assignments", Phase.PRE_SHOW) == "assignments"
    assert map_area_to_category("catering", Phase.PREP) == "general"


def test_normalize_title():
    assert normalize_title("  Finalize   Talent-Roster! ") == "finalize talentroster"


def test_readiness_todo_mapping():
    todo = ReadinessTodo(id="7", area="talent", priority="critical", title="Add talent")
    item = readiness_todo_to_item(todo, Phase.STAFFING)
    assert item.id == "readiness-7"
    assert item.priority is Priority.HIGH
    assert item.category == "staffing"
    assert item.required_for_transition


def test_combine_dedupes_and_sorts():
    phase_items = [_item("a", "Finalize Talent Roster", Priority.MEDIUM), _item("b", "Zeta", Priority.LOW)]
    readiness_items = [
        _item("r1", "finalize talent roster", Priority.HIGH),
        _item("r2", "Beta", Priority.HIGH),
        _item("r3", "Alpha", Priority.HIGH, required=True),
    ]

    combined = combine_action_items(phase_items, readiness_items)

    assert [item.id for item in combined] == ["r3", "r2", "a", "b"]


# ---------------------------------------------------------------------------
# PhaseActionItemsService
# ---------------------------------------------------------------------------


async def test_unknown_project_raises(store, engine):
    service = PhaseActionItemsService(engine)
    with pytest.raises(NotFoundError):
        await service.get_action_items("missing")


async def test_without_feed_returns_phase_items_only(store, engine, project_factory):
    store.add_project(project_factory())
    result = await PhaseActionItemsService(engine).get_action_items("proj-001")

    assert result.phase is Phase.PREP
    assert result.readiness_items == []
    assert result.summary.total == len(result.phase_items) == len(result.combined_items)


async def test_readiness_items_merged_and_summarized(store, defaults, project_factory):
    snapshot = ReadinessSnapshot(
        project_id="proj-001",
        todo_items=[
            ReadinessTodo(id="1", area="roles", priority="critical", title="Add Project Roles & Pay Rates"),
            ReadinessTodo(id="2", area="locations", priority="optional", title="Name the green room"),
        ],
    )
    feed = StaticFeed(snapshot)
    service = PhaseActionItemsService(PhaseEngine(store, defaults, feed), feed)
    store.add_project(project_factory())

    result = await service.get_action_items("proj-001")

    assert feed.calls == 1
    combined_ids = [item.id for item in result.combined_items]
    assert "readiness-1" not in combined_ids  # duplicate of prep-roles
    assert "readiness-2" in combined_ids
    assert result.summary.by_priority["low"] >= 1
    assert result.summary.required == 2


async def test_filters_apply_to_combined_items_only(store, engine, project_factory):
    store.add_project(project_factory())
    service = PhaseActionItemsService(engine)

    result = await service.get_action_items("proj-001", required_only=True)

    assert all(item.required_for_transition for item in result.combined_items)
    assert result.summary.total > len(result.combined_items)


async def test_explicit_phase_overrides_current(store, engine, project_factory):
    store.add_project(project_factory())
    result = await PhaseActionItemsService(engine).get_action_items("proj-001", phase=Phase.COMPLETE)
    assert result.phase is Phase.COMPLETE
    assert all(item.id.startswith("complete-") for item in result.phase_items)


async def test_include_readiness_false(store, defaults, project_factory):
    snapshot = ReadinessSnapshot(
        project_id="proj-001",
        todo_items=[ReadinessTodo(id="9", area="team", priority="important", title="Call the crew")],
    )
    feed = StaticFeed(snapshot)
    service = PhaseActionItemsService(PhaseEngine(store, defaults, feed), feed)
    store.add_project(project_factory())

    result = await service.get_action_items("proj-001", include_readiness_items=False)

    assert result.readiness_items == []


async def test_critical_items(store, engine, project_factory):
    store.add_project(project_factory())
    items = await PhaseActionItemsService(engine).get_critical_items("proj-001")
    assert {item.id for item in items} == {"prep-roles", "prep-locations"}
