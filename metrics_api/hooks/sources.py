"""Event sources: how the router gets attached to a host runtime.

``PreciseEventSource`` uses the hook API (onSend / onReceive / onComplete)
and gets per-message timing. ``CoarseEventSource`` only listens to
lifecycle and error events; message counts, timings and the traffic-derived
flow/node inventory stay empty in that mode.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Tuple

from .router import EventRouter

logger = logging.getLogger(__name__)


class EventSource(ABC):
    name: str = "abstract"
    precise: bool = False

    @abstractmethod
    def attach(self, host: Any, router: EventRouter) -> None:
        ...

    @abstractmethod
    def detach(self) -> None:
        ...


class CoarseEventSource(EventSource):
    """Lifecycle and error events only."""

    name = "coarse"
    precise = False

    def __init__(self) -> None:
        self._events: Any = None
        self._listeners: List[Tuple[str, Callable[[Any], None]]] = []

    def attach(self, host: Any, router: EventRouter) -> None:
        events = getattr(host, "events", None)
        if events is None:
            logger.warning("[SOURCE] Host exposes no events, monitoring will be limited")
            return

        self._events = events
        self._listen("node-error", router.on_node_error)
        self._listen("flow-error", router.on_flow_error)
        self._listen("flows:started", self._on_flows_started)
        self._listen("flows:stopped", router.on_flows_stopped)
        logger.info("[SOURCE] Event listeners registered: %d", len(self._listeners))

    def detach(self) -> None:
        if self._events is not None:
            for name, callback in self._listeners:
                self._events.off(name, callback)
        self._listeners.clear()
        self._events = None

    def _listen(self, name: str, callback: Callable[[Any], None]) -> None:
        self._events.on(name, callback)
        self._listeners.append((name, callback))

    @staticmethod
    def _on_flows_started(_event: Any = None) -> None:
        logger.info("[SOURCE] Flows started")


class PreciseEventSource(CoarseEventSource):
    """Hook API plus the coarse listeners for generic node/flow errors."""

    name = "precise"
    precise = True

    def __init__(self) -> None:
        super().__init__()
        self._hooks: Any = None
        self._handles: List[Any] = []

    def attach(self, host: Any, router: EventRouter) -> None:
        super().attach(host, router)

        self._hooks = host.hooks
        self._handles.append(self._hooks.add("onSend", lambda events: self._on_send(router, events)))
        self._handles.append(self._hooks.add("onReceive", router.on_receive))
        self._handles.append(self._hooks.add("onComplete", router.on_complete))
        logger.info("[SOURCE] Registered %d hooks", len(self._handles))

    def detach(self) -> None:
        if self._hooks is not None:
            for handle in self._handles:
                self._hooks.remove(handle)
        self._handles.clear()
        self._hooks = None
        super().detach()

    @staticmethod
    def _on_send(router: EventRouter, events: Any) -> None:
        # onSend delivers every send event of one node.send() call at once.
        if not isinstance(events, (list, tuple)):
            events = [events]
        for event in events:
            router.on_send(event)


def select_event_source(host: Any) -> EventSource:
    hooks: Optional[Any] = getattr(host, "hooks", None)
    if hooks is not None and callable(getattr(hooks, "add", None)):
        return PreciseEventSource()
    logger.warning("[SOURCE] Hook API unavailable, falling back to lifecycle events")
    return CoarseEventSource()
