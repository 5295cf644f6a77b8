from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from common.config import Settings, get_settings

from .endpoints import build_health_router, build_metrics_router, events_router
from .engine import FlowMetricsEngine
from .hooks.host import RuntimeHost

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[FlowMetricsEngine] = None,
    host: Optional[RuntimeHost] = None,
) -> FastAPI:
    """Build the HTTP app around a single engine and its runtime host.

    The engine attaches to the host when the app starts and is flushed and
    detached when it stops.
    """
    if engine is not None:
        settings = engine.settings
    settings = settings or get_settings()
    engine = engine or FlowMetricsEngine(settings)
    host = host or RuntimeHost()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await engine.init(host)
        try:
            yield
        finally:
            await engine.shutdown()

    app = FastAPI(title="Flow Metrics Service", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.host = host

    app.include_router(build_metrics_router(settings))
    app.include_router(build_health_router(settings))
    app.include_router(events_router)

    available = [settings.metrics_route, settings.json_route, settings.health_route]

    async def not_found(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            {"error": "Endpoint not found", "available_endpoints": available},
            status_code=404,
        )

    app.add_exception_handler(404, not_found)

    logger.info(
        "[HTTP] App ready metrics=%s json=%s health=%s",
        settings.metrics_route,
        settings.json_route,
        settings.health_route,
    )
    return app
