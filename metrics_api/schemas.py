from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    SEND = "send"
    RECEIVE = "receive"
    COMPLETE = "complete"
    NODE_ERROR = "node-error"
    FLOW_ERROR = "flow-error"
    FLOWS_STARTED = "flows-started"
    FLOWS_STOPPED = "flows-stopped"


class EventIngestResult(BaseModel):
    kind: EventKind
    accepted: int
    callbacks: int


class HealthEndpoints(BaseModel):
    metrics: str
    json_: str = Field(..., alias="json")
    health: str

    model_config = ConfigDict(populate_by_name=True)


class HealthOut(BaseModel):
    status: str
    timestamp: str
    uptime_seconds: float
    collector: str
    event_source: Optional[str] = None
    endpoints: HealthEndpoints
