"""Pydantic schemas for the batch transition and monitoring endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from stagecall.domain.phases import Phase


class SweepErrorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    error: str
    timestamp: datetime


class SweepResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_projects: int = 0
    evaluated_projects: int = 0
    successful_transitions: int = 0
    failed_transitions: int = 0
    scheduled_transitions: int = 0
    dry_run_transitions: int = 0
    errors: list[SweepErrorResponse] = Field(default_factory=list)


class EvaluateResponse(BaseModel):
    dry_run: bool
    result: SweepResultResponse


class ScheduledTransitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    project_id: str
    project_name: str
    current_phase: Phase
    target_phase: Phase
    scheduled_at: datetime


class ScheduledTransitionsResponse(BaseModel):
    window_hours: int
    transitions: list[ScheduledTransitionResponse] = Field(default_factory=list)
    total: int = 0


class TransitionMetricsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start: datetime
    end: datetime
    total_transitions: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    blocked_attempts: int = 0
    dry_run_attempts: int = 0
    success_rate: float = 1.0
    transitions_by_phase: dict[str, int] = Field(default_factory=dict)
    errors_by_type: dict[str, int] = Field(default_factory=dict)


class SchedulerStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    enabled: bool = False
    is_running: bool = False
    interval_minutes: int | None = None
    last_run: datetime | None = None
    next_run: datetime | None = None
    last_result: SweepResultResponse | None = None
    last_error: str | None = None
    consecutive_failures: int = 0
    total_runs: int = 0


class HealthCheckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    status: str
    message: str


class HealthReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str
    checks: list[HealthCheckResponse] = Field(default_factory=list)
    timestamp: datetime
