"""Prometheus text and JSON exports."""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse

from common.config import Settings

from ..engine import FlowMetricsEngine
from .deps import get_engine

logger = logging.getLogger(__name__)

TEXT_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


async def metrics_text(engine: FlowMetricsEngine = Depends(get_engine)):
    """Prometheus exposition of every instrument."""
    start = time.perf_counter()
    try:
        body = engine.export_text()
    except Exception:
        logger.exception("[HTTP] Error getting metrics")
        return PlainTextResponse("Error getting metrics", status_code=500)

    if engine.settings.enable_detailed_logging:
        logger.debug("[HTTP] Metrics served in %.2fms", (time.perf_counter() - start) * 1000)
    return PlainTextResponse(body, media_type=TEXT_CONTENT_TYPE)


async def metrics_json(engine: FlowMetricsEngine = Depends(get_engine)):
    """Same data as the text export: ``[{name, help, type, values}]``."""
    start = time.perf_counter()
    try:
        payload = engine.export_json()
    except Exception:
        logger.exception("[HTTP] Error getting JSON metrics")
        return JSONResponse({"error": "Error getting metrics"}, status_code=500)

    if engine.settings.enable_detailed_logging:
        logger.debug("[HTTP] JSON metrics served in %.2fms", (time.perf_counter() - start) * 1000)
    return JSONResponse(payload)


def build_router(settings: Settings) -> APIRouter:
    router = APIRouter(tags=["metrics"])
    router.add_api_route(settings.metrics_route, metrics_text, methods=["GET"])
    router.add_api_route(settings.json_route, metrics_json, methods=["GET"])
    return router
