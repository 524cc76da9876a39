from fastapi import APIRouter

from stagecall.api.routes import health, phase, transitions

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(phase.router, prefix="/projects", tags=["phase"])
api_router.include_router(transitions.router, prefix="/transitions", tags=["transitions"])
