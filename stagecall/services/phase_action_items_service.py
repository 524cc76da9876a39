"""PhaseActionItemsService: phase checklist items merged with readiness to-dos."""

import re
from collections import Counter
from dataclasses import dataclass, field

import structlog

from stagecall.domain.action_items import PRIORITY_RANK, ActionItem, Priority, ReadinessSnapshot, ReadinessTodo
from stagecall.domain.phases import Phase
from stagecall.integrations.readiness import ReadinessFeed
from stagecall.services.phase_engine import PhaseEngine

logger = structlog.get_logger(__name__)

# Readiness area -> category, per phase. Unknown areas map to "general".
_AREA_CATEGORIES: dict[str, dict[Phase, str]] = {
    "team": {
        Phase.PREP: "setup",
        Phase.STAFFING: "staffing",
        Phase.PRE_SHOW: "preparation",
        Phase.ACTIVE: "operations",
        Phase.POST_SHOW: "payroll",
        Phase.COMPLETE: "completion",
        Phase.ARCHIVED: "archival",
    },
    "talent": {
        Phase.PREP: "setup",
        Phase.STAFFING: "staffing",
        Phase.PRE_SHOW: "preparation",
        Phase.ACTIVE: "operations",
        Phase.POST_SHOW: "completion",
        Phase.COMPLETE: "completion",
        Phase.ARCHIVED: "archival",
    },
    "assignments": {
        Phase.PREP: "setup",
        Phase.STAFFING: "staffing",
        Phase.PRE_SHOW: "assignments",
        Phase.ACTIVE: "operations",
        Phase.POST_SHOW: "completion",
        Phase.COMPLETE: "completion",
        Phase.ARCHIVED: "archival",
    },
    "roles": {
        Phase.PREP: "setup",
        Phase.STAFFING: "staffing",
        Phase.PRE_SHOW: "preparation",
        Phase.ACTIVE: "operations",
        Phase.POST_SHOW: "completion",
        Phase.COMPLETE: "completion",
        Phase.ARCHIVED: "archival",
    },
    "locations": {
        Phase.PREP: "setup",
        Phase.STAFFING: "setup",
        Phase.PRE_SHOW: "preparation",
        Phase.ACTIVE: "operations",
        Phase.POST_SHOW: "completion",
        Phase.COMPLETE: "completion",
        Phase.ARCHIVED: "archival",
    },
}

_PRIORITY_MAP: dict[str, Priority] = {
    "critical": Priority.HIGH,
    "important": Priority.MEDIUM,
    "optional": Priority.LOW,
}

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class ActionItemsSummary:
    total: int = 0
    completed: int = 0
    pending: int = 0
    required: int = 0
    by_priority: dict[str, int] = field(default_factory=dict)
    by_category: dict[str, int] = field(default_factory=dict)


@dataclass
class ActionItemsResult:
    phase: Phase
    phase_items: list[ActionItem] = field(default_factory=list)
    readiness_items: list[ActionItem] = field(default_factory=list)
    combined_items: list[ActionItem] = field(default_factory=list)
    summary: ActionItemsSummary = field(default_factory=ActionItemsSummary)


def map_area_to_category(area: str, phase: Phase) -> str:
    return _AREA_CATEGORIES.get(area, {}).get(phase, "general")


def map_readiness_priority(priority: str) -> Priority:
    return _PRIORITY_MAP.get(priority, Priority.MEDIUM)


def normalize_title(title: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    return _WHITESPACE.sub(" ", _NON_ALNUM.sub("", title.lower())).strip()


def readiness_todo_to_item(todo: ReadinessTodo, phase: Phase) -> ActionItem:
    return ActionItem(
        id=f"readiness-{todo.id}",
        title=todo.title,
        description=todo.description,
        category=map_area_to_category(todo.area, phase),
        priority=map_readiness_priority(todo.priority),
        completed=False,
        required_for_transition=todo.priority == "critical",
    )


def combine_action_items(phase_items: list[ActionItem], readiness_items: list[ActionItem]) -> list[ActionItem]:
    """Phase items plus non-duplicate readiness items, sorted priority, required-first, title."""
    seen = {normalize_title(item.title) for item in phase_items}
    combined = list(phase_items)
    for item in readiness_items:
        key = normalize_title(item.title)
        if key in seen:
            continue
        seen.add(key)
        combined.append(item)
    return sorted(
        combined,
        key=lambda item: (PRIORITY_RANK[item.priority], not item.required_for_transition, item.title),
    )


def summarize(items: list[ActionItem]) -> ActionItemsSummary:
    return ActionItemsSummary(
        total=len(items),
        completed=sum(1 for item in items if item.completed),
        pending=sum(1 for item in items if not item.completed),
        required=sum(1 for item in items if item.required_for_transition),
        by_priority=dict(Counter(str(item.priority) for item in items)),
        by_category=dict(Counter(item.category for item in items)),
    )


class PhaseActionItemsService:
    def __init__(self, engine: PhaseEngine, readiness_feed: ReadinessFeed | None = None):
        self.engine = engine
        self.readiness_feed = readiness_feed

    async def _fetch_readiness(self, project_id: str) -> ReadinessSnapshot | None:
        if self.readiness_feed is None:
            return None
        return await self.readiness_feed.fetch(project_id)

    async def get_action_items(
        self,
        project_id: str,
        phase: Phase | None = None,
        include_readiness_items: bool = True,
        category: str | None = None,
        priority: str | None = None,
        required_only: bool = False,
    ) -> ActionItemsResult:
        """Prioritized to-do list for the project's current (or given) phase.

        Filters apply to combined_items only; the summary always covers the
        unfiltered combined list.

        Raises:
            NotFoundError: If the project does not exist
        """
        current = await self.engine.get_current_phase(project_id)
        if phase is not None:
            current = Phase(phase)

        snapshot = await self._fetch_readiness(project_id)
        if snapshot is None and self.readiness_feed is not None:
            logger.info("readiness_items_unavailable", project_id=project_id)

        phase_items = await self.engine.get_phase_action_items(
            project_id, current, readiness=snapshot or ReadinessSnapshot(project_id=project_id)
        )

        readiness_items: list[ActionItem] = []
        if include_readiness_items and snapshot is not None:
            readiness_items = [readiness_todo_to_item(todo, current) for todo in snapshot.todo_items]

        combined = combine_action_items(phase_items, readiness_items)
        summary = summarize(combined)

        filtered = combined
        if category:
            filtered = [item for item in filtered if item.category == category]
        if priority:
            filtered = [item for item in filtered if item.priority == priority]
        if required_only:
            filtered = [item for item in filtered if item.required_for_transition]

        return ActionItemsResult(
            phase=current,
            phase_items=phase_items,
            readiness_items=readiness_items,
            combined_items=filtered,
            summary=summary,
        )

    async def get_critical_items(self, project_id: str) -> list[ActionItem]:
        """Only the items that block the next transition."""
        result = await self.get_action_items(project_id, required_only=True)
        return result.combined_items
