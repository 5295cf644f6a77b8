"""Liveness probe."""

from fastapi import APIRouter, Depends

from common.config import Settings

from ..engine import FlowMetricsEngine
from ..schemas import HealthOut
from .deps import get_engine


async def health(engine: FlowMetricsEngine = Depends(get_engine)):
    """Liveness probe; ok while the process is serving requests."""
    return engine.health()


def build_router(settings: Settings) -> APIRouter:
    router = APIRouter(tags=["health"])
    router.add_api_route(settings.health_route, health, methods=["GET"], response_model=HealthOut)
    return router
