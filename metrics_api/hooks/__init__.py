"""Host integration: event router, event sources and the in-process host."""

from .host import EventEmitter, HookRegistry, RuntimeHost
from .router import EventRouter
from .sources import CoarseEventSource, EventSource, PreciseEventSource, select_event_source

__all__ = [
    "CoarseEventSource",
    "EventEmitter",
    "EventRouter",
    "EventSource",
    "HookRegistry",
    "PreciseEventSource",
    "RuntimeHost",
    "select_event_source",
]
