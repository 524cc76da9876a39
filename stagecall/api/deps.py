"""Service wiring and FastAPI dependency providers.

The lifespan builds one ServiceContainer and stores it on app.state. Tests
swap it through app.dependency_overrides[get_services].
"""

from dataclasses import dataclass

from fastapi import Header, HTTPException, Request

from stagecall.core.config import Settings
from stagecall.domain.configuration import PhaseDefaults
from stagecall.integrations.readiness import ReadinessFeed
from stagecall.services.automatic_transition_evaluator import AutoTransitionConfig, AutomaticTransitionEvaluator
from stagecall.services.criteria_validator import CriteriaValidator
from stagecall.services.phase_action_items_service import PhaseActionItemsService
from stagecall.services.phase_configuration_service import PhaseConfigurationService
from stagecall.services.phase_engine import PhaseEngine
from stagecall.services.transition_monitoring import TransitionMonitoring
from stagecall.services.transition_scheduler import TransitionScheduler
from stagecall.store.base import PhaseStore


@dataclass
class ServiceContainer:
    store: PhaseStore
    defaults: PhaseDefaults
    auto_config: AutoTransitionConfig
    engine: PhaseEngine
    criteria: CriteriaValidator
    configuration: PhaseConfigurationService
    evaluator: AutomaticTransitionEvaluator
    action_items: PhaseActionItemsService
    monitoring: TransitionMonitoring
    scheduler: TransitionScheduler | None = None


def build_services(
    store: PhaseStore,
    settings: Settings,
    readiness_feed: ReadinessFeed | None = None,
) -> ServiceContainer:
    """Construct every service once from settings. The scheduler is built but not started."""
    defaults = PhaseDefaults.from_settings(settings)
    auto_config = AutoTransitionConfig.from_settings(settings)
    engine = PhaseEngine(store, defaults, readiness_feed)
    criteria = CriteriaValidator(store)
    evaluator = AutomaticTransitionEvaluator(store, engine, auto_config, criteria=criteria)

    scheduler = None
    if settings.transition_scheduler_enabled:
        scheduler = TransitionScheduler(evaluator, settings.transition_interval_minutes)

    return ServiceContainer(
        store=store,
        defaults=defaults,
        auto_config=auto_config,
        engine=engine,
        criteria=criteria,
        configuration=PhaseConfigurationService(store, defaults, engine),
        evaluator=evaluator,
        action_items=PhaseActionItemsService(engine, readiness_feed),
        monitoring=TransitionMonitoring(store, expect_activity=scheduler is not None),
        scheduler=scheduler,
    )


def get_services(request: Request) -> ServiceContainer:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return services


async def require_actor(x_user_id: str | None = Header(default=None)) -> str:
    """Acting user id from the X-User-Id header (set by the upstream auth gateway)."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return x_user_id.strip()
