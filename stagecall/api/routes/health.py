import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from stagecall.api.deps import ServiceContainer, get_services

logger = structlog.get_logger(__name__)

router = APIRouter()

SERVICE_NAME = "stagecall-phase-engine"


@router.get("/health")
async def health_check(request: Request):
    """Liveness probe. Returns 503 while the process is draining on SIGTERM."""
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(
            status_code=503,
            content={"status": "shutting_down", "service": SERVICE_NAME},
        )
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/ready")
async def readiness_check(services: ServiceContainer = Depends(get_services)):
    """Readiness probe - verifies the record store is reachable."""
    checks = {"store": False}

    try:
        await services.store.ping()
        checks["store"] = True
    except Exception as exc:
        logger.error("store_readiness_check_failed", error=str(exc))

    all_healthy = all(checks.values())
    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={"status": "ready" if all_healthy else "degraded", "checks": checks},
    )
