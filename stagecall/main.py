"""StageCall phase engine: FastAPI application entry point."""

import signal
import uuid
from contextlib import asynccontextmanager

# configure_structlog must run before other stagecall imports create loggers
from stagecall.core.config import get_settings as _get_settings_early
from stagecall.core.logging import configure_structlog

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog  # noqa: E402
from fastapi import FastAPI, HTTPException, Request  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from stagecall.api.deps import build_services  # noqa: E402
from stagecall.api.routes import api_router  # noqa: E402
from stagecall.core.config import get_settings  # noqa: E402
from stagecall.core.exceptions import (  # noqa: E402
    ConfigurationValidationError,
    CriteriaValidationError,
    NotFoundError,
    StorageError,
    TransitionNotAllowedError,
)
from stagecall.db import close_db, get_session_factory, init_db  # noqa: E402
from stagecall.domain.configuration import validate_defaults  # noqa: E402
from stagecall.integrations.readiness import HttpReadinessFeed  # noqa: E402
from stagecall.middleware.correlation import get_correlation_id, setup_correlation_middleware  # noqa: E402
from stagecall.store.sql import SqlPhaseStore  # noqa: E402

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: database, services, optional scheduler. Shutdown in reverse."""
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    await init_db()
    logger.info("db_initialized")

    services = build_services(
        SqlPhaseStore(get_session_factory()),
        settings,
        HttpReadinessFeed(settings.readiness_base_url, timeout=settings.readiness_timeout_seconds),
    )
    validate_defaults(services.defaults)
    logger.info("phase_defaults_validated")
    app.state.services = services

    if services.scheduler is not None:
        services.scheduler.start()

    yield

    logger.info("shutdown_begin")
    if services.scheduler is not None:
        await services.scheduler.stop()
    await close_db()
    logger.info("shutdown_complete")


def _error_response(request: Request, status_code: int, detail, event: str, **context) -> JSONResponse:
    """Log with a fresh debug_id and return a sanitized body carrying it."""
    debug_id = str(uuid.uuid4())
    logger.warning(
        event,
        status_code=status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        **context,
    )
    return JSONResponse(status_code=status_code, content={"detail": detail, "debug_id": debug_id})


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(request, 404, str(exc), "not_found", entity=exc.entity, entity_id=exc.entity_id)


async def configuration_error_handler(request: Request, exc: ConfigurationValidationError) -> JSONResponse:
    return _error_response(request, 422, str(exc), "configuration_invalid", field=exc.field)


async def transition_not_allowed_handler(request: Request, exc: TransitionNotAllowedError) -> JSONResponse:
    return _error_response(
        request,
        409,
        {"message": str(exc), "blockers": exc.blockers, "target_phase": str(exc.target_phase)},
        "transition_not_allowed",
        project_id=exc.project_id,
    )


async def criteria_error_handler(request: Request, exc: CriteriaValidationError) -> JSONResponse:
    status_code = 503 if exc.code == CriteriaValidationError.DATABASE_ERROR else 500
    return _error_response(request, status_code, {"code": exc.code, "message": str(exc)}, "criteria_error")


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    return _error_response(request, 503, "Storage unavailable", "storage_error", error=str(exc))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTPException with debug_id tracking."""
    return _error_response(request, exc.status_code, exc.detail, "http_exception")


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unhandled errors: full traceback in logs, generic 500 to the client."""
    debug_id = str(uuid.uuid4())
    logger.error(
        "unhandled_exception",
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "debug_id": debug_id},
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(NotFoundError)(not_found_handler)
    app.exception_handler(ConfigurationValidationError)(configuration_error_handler)
    app.exception_handler(TransitionNotAllowedError)(transition_not_allowed_handler)
    app.exception_handler(CriteriaValidationError)(criteria_error_handler)
    app.exception_handler(StorageError)(storage_error_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(Exception)(generic_exception_handler)


def create_app(lifespan_handler=lifespan) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan_handler: Replaced in tests to skip database setup
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Production lifecycle phase engine",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan_handler,
    )

    setup_correlation_middleware(app)
    install_exception_handlers(app)
    app.include_router(api_router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stagecall.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
