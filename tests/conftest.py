"""Shared fixtures: manual clock, manual timer loop, sample events."""

import time
from types import SimpleNamespace
from typing import Any, Callable, Dict, List
from unittest.mock import MagicMock

import pytest

from metrics_api.metrics import MetricKey, MetricRegistry


class ManualClock:
    def __init__(self, start: float = 0.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class ManualHandle:
    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualLoop:
    """Just enough of an event loop for ``call_later``; time moves on ``advance``."""

    def __init__(self):
        self.now = 0.0
        self.handles: List[ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def armed(self) -> List[ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [h for h in self.handles if not h.cancelled and h.when <= self.now]
        for handle in due:
            self.handles.remove(handle)
            handle.callback()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=100.0)


@pytest.fixture
def manual_loop() -> ManualLoop:
    return ManualLoop()


@pytest.fixture
def registry() -> MetricRegistry:
    return MetricRegistry(default_collectors=False)


@pytest.fixture
def fake_process() -> MagicMock:
    process = MagicMock()
    process.memory_info.return_value = SimpleNamespace(rss=1024, vms=4096)
    process.create_time.return_value = time.time() - 42.0
    return process


@pytest.fixture
def node_key() -> MetricKey:
    return MetricKey("n1", "function", "f1")


def make_event(field: str, node_id: str = "n1", node_type: str = "function", flow_id: str = "f1",
               msg_id: str = "m1", **extra: Any) -> Dict[str, Any]:
    event: Dict[str, Any] = {
        "msg": {"_msgid": msg_id},
        field: {"id": node_id, "type": node_type, "z": flow_id},
    }
    event.update(extra)
    return event


@pytest.fixture
def send_event() -> Dict[str, Any]:
    return make_event("source")


@pytest.fixture
def receive_event() -> Dict[str, Any]:
    return make_event("destination")


@pytest.fixture
def complete_event() -> Dict[str, Any]:
    return make_event("node")


@pytest.fixture
def event_factory() -> Callable[..., Dict[str, Any]]:
    return make_event
