"""In-process host runtime: hook registry plus event emitter.

This is the interface the event sources attach to. An embedding runtime
can pass its own objects as long as they expose the same methods; the
service itself uses ``RuntimeHost`` and feeds it from the HTTP bridge.
"""

from __future__ import annotations

import itertools
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[Any], None]


class HookAPI(Protocol):
    def add(self, name: str, callback: Callback) -> Any:
        ...

    def remove(self, handle: Any) -> bool:
        ...


class EventAPI(Protocol):
    def on(self, name: str, callback: Callback) -> None:
        ...

    def off(self, name: str, callback: Callback) -> None:
        ...


@dataclass(frozen=True)
class HookHandle:
    name: str
    id: int
    callback: Callback


class HookRegistry:
    """Named hooks (``onSend``, ``onReceive``, ``onComplete``)."""

    def __init__(self) -> None:
        self._hooks: Dict[str, List[HookHandle]] = defaultdict(list)
        self._ids = itertools.count(1)

    def add(self, name: str, callback: Callback) -> HookHandle:
        handle = HookHandle(name=name, id=next(self._ids), callback=callback)
        self._hooks[name].append(handle)
        return handle

    def remove(self, handle: HookHandle) -> bool:
        handles = self._hooks.get(handle.name, [])
        if handle in handles:
            handles.remove(handle)
            return True
        return False

    def count(self, name: Optional[str] = None) -> int:
        if name is not None:
            return len(self._hooks.get(name, []))
        return sum(len(handles) for handles in self._hooks.values())

    def trigger(self, name: str, payload: Any) -> int:
        called = 0
        for handle in list(self._hooks.get(name, [])):
            try:
                handle.callback(payload)
                called += 1
            except Exception as e:
                logger.error("[HOST] Hook %s#%d failed: %s", name, handle.id, e)
        return called


class EventEmitter:
    """Named lifecycle/error events (``node-error``, ``flows:stopped``...)."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Callback]] = defaultdict(list)

    def on(self, name: str, callback: Callback) -> None:
        self._listeners[name].append(callback)

    def off(self, name: str, callback: Callback) -> None:
        listeners = self._listeners.get(name, [])
        if callback in listeners:
            listeners.remove(callback)

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(name, []))

    def emit(self, name: str, payload: Any = None) -> int:
        called = 0
        for callback in list(self._listeners.get(name, [])):
            try:
                callback(payload)
                called += 1
            except Exception as e:
                logger.error("[HOST] Listener for %s failed: %s", name, e)
        return called


class RuntimeHost:
    """Host with both capabilities; ``hooks_enabled=False`` models an old runtime."""

    def __init__(self, hooks_enabled: bool = True) -> None:
        self.hooks: Optional[HookRegistry] = HookRegistry() if hooks_enabled else None
        self.events = EventEmitter()

    def dispatch(self, kind: str, payload: Any) -> int:
        """Route one notification by kind. Returns the number of callbacks invoked."""
        hook_name = HOOK_KINDS.get(kind)
        if hook_name is not None:
            if self.hooks is None:
                return 0
            return self.hooks.trigger(hook_name, payload)
        event_name = EVENT_KINDS.get(kind)
        if event_name is None:
            raise KeyError(f"Unknown event kind: {kind}")
        return self.events.emit(event_name, payload)


HOOK_KINDS = {"send": "onSend", "receive": "onReceive", "complete": "onComplete"}
EVENT_KINDS = {
    "node-error": "node-error",
    "flow-error": "flow-error",
    "flows-started": "flows:started",
    "flows-stopped": "flows:stopped",
}
