"""Batch transition and monitoring endpoints.

POST /api/transitions/evaluate?dry_run=  - Run one automatic sweep now
GET  /api/transitions/scheduled?hours=   - Upcoming scheduled transitions
GET  /api/transitions/metrics            - Aggregates from the audit log
GET  /api/transitions/health             - Transition subsystem health report
GET  /api/transitions/scheduler          - Background scheduler status
"""

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from stagecall.api.deps import ServiceContainer, get_services
from stagecall.schemas.transitions import (
    EvaluateResponse,
    HealthReportResponse,
    ScheduledTransitionResponse,
    ScheduledTransitionsResponse,
    SchedulerStatusResponse,
    SweepResultResponse,
    TransitionMetricsResponse,
)
from stagecall.services.automatic_transition_evaluator import AutomaticTransitionEvaluator
from stagecall.services.transition_monitoring import HealthStatus

router = APIRouter()
logger = structlog.get_logger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """Query datetimes without an offset are taken as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@router.post("/evaluate", response_model=EvaluateResponse)
async def evaluate_transitions(
    dry_run: bool | None = None,
    services: ServiceContainer = Depends(get_services),
) -> EvaluateResponse:
    """Run a sweep over every auto-enabled project.

    dry_run overrides the configured mode for this call only.
    """
    evaluator = services.evaluator
    if dry_run is not None and dry_run != services.auto_config.dry_run:
        evaluator = AutomaticTransitionEvaluator(
            services.store,
            services.engine,
            replace(services.auto_config, dry_run=dry_run),
            criteria=services.criteria,
        )

    logger.info("manual_sweep_requested", dry_run=evaluator.config.dry_run)
    result = await evaluator.evaluate_all_projects()
    return EvaluateResponse(dry_run=evaluator.config.dry_run, result=SweepResultResponse.model_validate(result))


@router.get("/scheduled", response_model=ScheduledTransitionsResponse)
async def get_scheduled(
    hours: int = Query(default=24, ge=1, le=24 * 366),
    services: ServiceContainer = Depends(get_services),
) -> ScheduledTransitionsResponse:
    scheduled = await services.evaluator.get_scheduled_transitions(window_hours=hours)
    return ScheduledTransitionsResponse(
        window_hours=hours,
        transitions=[ScheduledTransitionResponse.model_validate(s) for s in scheduled],
        total=len(scheduled),
    )


@router.get("/metrics", response_model=TransitionMetricsResponse)
async def get_metrics(
    start: datetime | None = None,
    end: datetime | None = None,
    services: ServiceContainer = Depends(get_services),
) -> TransitionMetricsResponse:
    """Defaults to the last 24 hours. Naive bounds are read as UTC."""
    end = _as_utc(end) or datetime.now(UTC)
    start = _as_utc(start) or end - timedelta(hours=24)
    if start > end:
        raise HTTPException(status_code=422, detail="start must not be after end")
    metrics = await services.monitoring.get_transition_metrics(start, end)
    return TransitionMetricsResponse.model_validate(metrics)


@router.get("/health", response_model=HealthReportResponse)
async def get_transition_health(services: ServiceContainer = Depends(get_services)):
    report = await services.monitoring.health_check()
    body = HealthReportResponse.model_validate(report)
    status_code = 503 if report.status is HealthStatus.UNHEALTHY else 200
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.get("/scheduler", response_model=SchedulerStatusResponse)
async def get_scheduler_status(services: ServiceContainer = Depends(get_services)) -> SchedulerStatusResponse:
    if services.scheduler is None:
        return SchedulerStatusResponse(enabled=False)
    status = SchedulerStatusResponse.model_validate(services.scheduler.get_status())
    status.enabled = True
    return status
