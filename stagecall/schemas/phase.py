"""Pydantic schemas for the project phase endpoints."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from stagecall.domain.phases import Phase, TransitionTrigger


class TransitionEvaluationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    current_phase: Phase
    can_transition: bool
    target_phase: Phase | None = None
    blockers: list[str] = Field(default_factory=list)
    reason: str = ""
    scheduled_at: datetime | None = None


class CurrentPhaseResponse(BaseModel):
    project_id: str
    phase: Phase
    evaluation: TransitionEvaluationResponse


class TransitionRequest(BaseModel):
    """Manual transition request. The actor comes from the X-User-Id header."""

    model_config = ConfigDict(extra="forbid")

    target_phase: Phase
    reason: str | None = Field(default=None, max_length=1000)


class PhaseTransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    from_phase: Phase
    to_phase: Phase
    trigger: TransitionTrigger
    triggered_by: str
    transitioned_at: datetime
    reason: str | None = None


class TransitionHistoryResponse(BaseModel):
    project_id: str
    transitions: list[PhaseTransitionResponse] = Field(default_factory=list)
    total: int = 0


class ActionItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    category: str
    priority: str
    completed: bool = False
    required_for_transition: bool = False


class ActionItemsSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int = 0
    completed: int = 0
    pending: int = 0
    required: int = 0
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)


class ActionItemsResponse(BaseModel):
    """Items default to empty arrays, never null."""

    model_config = ConfigDict(from_attributes=True)

    phase: Phase
    phase_items: list[ActionItemResponse] = Field(default_factory=list)
    readiness_items: list[ActionItemResponse] = Field(default_factory=list)
    combined_items: list[ActionItemResponse] = Field(default_factory=list)
    summary: ActionItemsSummaryResponse


class PhaseConfigurationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    current_phase: Phase
    phase_updated_at: datetime | None = None
    auto_transitions_enabled: bool
    timezone: str | None = None
    rehearsal_start_date: date | None = None
    show_end_date: date | None = None
    archive_month: int
    archive_day: int
    post_show_transition_hour: int
