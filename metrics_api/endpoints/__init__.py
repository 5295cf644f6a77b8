"""HTTP endpoints: metrics exports, health and the event bridge."""

from .events import router as events_router
from .health import build_router as build_health_router
from .metrics import build_router as build_metrics_router

__all__ = [
    "events_router",
    "build_health_router",
    "build_metrics_router",
]
