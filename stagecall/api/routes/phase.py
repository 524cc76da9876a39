"""Project phase API endpoints.

GET  /api/projects/{project_id}/phase                - Current phase and fresh evaluation
POST /api/projects/{project_id}/phase/transition     - Manual transition (X-User-Id is the actor)
GET  /api/projects/{project_id}/phase/action-items   - Phase checklist merged with readiness to-dos
GET  /api/projects/{project_id}/phase/configuration  - Merged scheduling configuration
PUT  /api/projects/{project_id}/phase/configuration  - Partial configuration update
GET  /api/projects/{project_id}/phase/history        - Committed transitions, newest first
"""

import structlog
from fastapi import APIRouter, Depends, Query

from stagecall.api.deps import ServiceContainer, get_services, require_actor
from stagecall.domain.configuration import PhaseConfigurationUpdate
from stagecall.domain.phases import Phase, TransitionTrigger
from stagecall.schemas.phase import (
    ActionItemsResponse,
    CurrentPhaseResponse,
    PhaseConfigurationResponse,
    PhaseTransitionResponse,
    TransitionEvaluationResponse,
    TransitionHistoryResponse,
    TransitionRequest,
)

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/{project_id}/phase", response_model=CurrentPhaseResponse)
async def get_phase(project_id: str, services: ServiceContainer = Depends(get_services)) -> CurrentPhaseResponse:
    evaluation = await services.engine.evaluate_transition(project_id)
    return CurrentPhaseResponse(
        project_id=project_id,
        phase=evaluation.current_phase,
        evaluation=TransitionEvaluationResponse.model_validate(evaluation),
    )


@router.post("/{project_id}/phase/transition", response_model=PhaseTransitionResponse)
async def transition_phase(
    project_id: str,
    request: TransitionRequest,
    actor_id: str = Depends(require_actor),
    services: ServiceContainer = Depends(get_services),
) -> PhaseTransitionResponse:
    """Operator-initiated transition.

    Returns 409 when a fresh evaluation disagrees with target_phase or another
    transition committed first.
    """
    transition = await services.engine.execute_transition(
        project_id,
        request.target_phase,
        TransitionTrigger.MANUAL,
        actor_id=actor_id,
        reason=request.reason,
    )
    logger.info(
        "manual_transition_completed",
        project_id=project_id,
        actor_id=actor_id,
        to_phase=transition.to_phase.value,
    )
    return PhaseTransitionResponse.model_validate(transition)


@router.get("/{project_id}/phase/action-items", response_model=ActionItemsResponse)
async def get_action_items(
    project_id: str,
    phase: Phase | None = None,
    include_readiness_items: bool = True,
    category: str | None = None,
    priority: str | None = None,
    required_only: bool = False,
    services: ServiceContainer = Depends(get_services),
) -> ActionItemsResponse:
    """Query params:
    phase: Phase to generate items for (defaults to the current phase)
    category / priority: Filter combined_items
    required_only: Only items that block the next transition
    """
    result = await services.action_items.get_action_items(
        project_id,
        phase=phase,
        include_readiness_items=include_readiness_items,
        category=category,
        priority=priority,
        required_only=required_only,
    )
    return ActionItemsResponse.model_validate(result)


@router.get("/{project_id}/phase/configuration", response_model=PhaseConfigurationResponse)
async def get_configuration(
    project_id: str, services: ServiceContainer = Depends(get_services)
) -> PhaseConfigurationResponse:
    config = await services.configuration.get_configuration(project_id)
    return PhaseConfigurationResponse.model_validate(config)


@router.put("/{project_id}/phase/configuration", response_model=PhaseConfigurationResponse)
async def update_configuration(
    project_id: str,
    updates: PhaseConfigurationUpdate,
    actor_id: str = Depends(require_actor),
    services: ServiceContainer = Depends(get_services),
) -> PhaseConfigurationResponse:
    config = await services.configuration.update_configuration(project_id, updates, actor_id)
    return PhaseConfigurationResponse.model_validate(config)


@router.get("/{project_id}/phase/history", response_model=TransitionHistoryResponse)
async def get_history(
    project_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    services: ServiceContainer = Depends(get_services),
) -> TransitionHistoryResponse:
    transitions = await services.engine.get_transition_history(project_id, limit=limit)
    return TransitionHistoryResponse(
        project_id=project_id,
        transitions=[PhaseTransitionResponse.model_validate(t) for t in transitions],
        total=len(transitions),
    )
