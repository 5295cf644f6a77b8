from __future__ import annotations

from fastapi import Request

from ..engine import FlowMetricsEngine
from ..hooks.host import RuntimeHost


def get_engine(request: Request) -> FlowMetricsEngine:
    return request.app.state.engine


def get_host(request: Request) -> RuntimeHost:
    return request.app.state.host
