"""Phase enums, the fixed successor table, and transition result types.

Pure domain logic with no external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class Phase(StrEnum):
    """Seven-phase production lifecycle. Values are the persisted strings."""

    PREP = "prep"
    STAFFING = "staffing"
    PRE_SHOW = "pre_show"
    ACTIVE = "active"
    POST_SHOW = "post_show"
    COMPLETE = "complete"
    ARCHIVED = "archived"


class TransitionTrigger(StrEnum):
    """What caused a transition attempt."""

    MANUAL = "manual"
    AUTOMATIC = "automatic"
    SCHEDULED = "scheduled"


# Each phase has exactly one allowed successor; archived is terminal.
NEXT_PHASE: dict[Phase, Phase | None] = {
    Phase.PREP: Phase.STAFFING,
    Phase.STAFFING: Phase.PRE_SHOW,
    Phase.PRE_SHOW: Phase.ACTIVE,
    Phase.ACTIVE: Phase.POST_SHOW,
    Phase.POST_SHOW: Phase.COMPLETE,
    Phase.COMPLETE: Phase.ARCHIVED,
    Phase.ARCHIVED: None,
}

# Phases whose outgoing transition waits on a wall-clock instant
TIME_GATED_PHASES: frozenset[Phase] = frozenset({Phase.PRE_SHOW, Phase.ACTIVE, Phase.COMPLETE})

PHASE_ORDER: tuple[Phase, ...] = tuple(Phase)


def next_phase(current: Phase) -> Phase | None:
    """Return the single allowed successor of current, or None for the terminal phase."""
    return NEXT_PHASE[current]


def phase_index(phase: Phase) -> int:
    """Ordinal position of phase in the lifecycle chain."""
    return PHASE_ORDER.index(phase)


def is_valid_transition(current: Phase, target: Phase) -> bool:
    """True only for the one forward step current -> successor."""
    return NEXT_PHASE[current] == target


def parse_phase(value: str) -> Phase:
    """Parse a persisted phase string.

    Raises:
        ValueError: If value is not one of the seven phase strings
    """
    try:
        return Phase(value)
    except ValueError:
        raise ValueError(f"Unknown phase: {value!r}") from None


@dataclass
class TransitionEvaluation:
    """Outcome of evaluating whether a project may move to its next phase.

    Computed fresh on every call; never persisted directly.
    """

    project_id: str
    current_phase: Phase
    can_transition: bool
    target_phase: Phase | None
    blockers: list[str] = field(default_factory=list)
    reason: str = ""
    scheduled_at: datetime | None = None


@dataclass
class PhaseTransition:
    """A committed phase change."""

    project_id: str
    from_phase: Phase
    to_phase: Phase
    trigger: TransitionTrigger
    triggered_by: str
    transitioned_at: datetime
    reason: str | None = None
