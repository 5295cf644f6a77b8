"""Event router: host notifications -> timing, batching and error metrics.

Per message in flight, keyed by ``(node_id, message_id)``:

- send / receive: start timing, enqueue an outgoing / incoming record
- complete: stop timing, observe the duration, count the error if any

Every handler is isolated: a failure is counted as an error metric with a
``<stage>_processing`` type and never reaches the host.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Mapping, Optional

from ..metrics.batcher import IngestionBatcher
from ..metrics.keys import UNKNOWN, Direction, MetricKey
from ..metrics.registry import MetricRegistry
from ..metrics.timing_table import TimingTable

logger = logging.getLogger(__name__)


def generate_message_id() -> str:
    # Uncorrelated ids never match a completion; timing stays best-effort.
    return f"msg_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _text(value: Any) -> str:
    if value is None or value == "":
        return UNKNOWN
    return str(value)


def _descriptor(event: Any, field: str) -> Mapping:
    if not isinstance(event, Mapping):
        return {}
    descriptor = event.get(field)
    if not isinstance(descriptor, Mapping):
        return {}
    # Some runtimes wrap the node: {"source": {"node": {...}}}
    nested = descriptor.get("node")
    if isinstance(nested, Mapping):
        return nested
    return descriptor


def extract_key(event: Any, field: str) -> MetricKey:
    descriptor = _descriptor(event, field)
    return MetricKey(
        node_id=_text(descriptor.get("id")),
        node_type=_text(descriptor.get("type")),
        flow_id=_text(descriptor.get("z")),
    )


def extract_message_id(event: Any) -> Optional[str]:
    if not isinstance(event, Mapping):
        return None
    msg = event.get("msg")
    if not isinstance(msg, Mapping):
        return None
    msg_id = msg.get("_msgid")
    if msg_id is None or msg_id == "":
        return None
    return str(msg_id)


def error_name(error: Any, default: str) -> str:
    if isinstance(error, Mapping):
        name = error.get("name")
    elif isinstance(error, BaseException):
        name = type(error).__name__
    else:
        name = getattr(error, "name", None)
    return _text(name) if name else default


class EventRouter:
    """Classifies host events and drives the aggregation components."""

    def __init__(
        self,
        registry: MetricRegistry,
        timings: TimingTable,
        batcher: IngestionBatcher,
        detailed_logging: bool = False,
    ):
        self._registry = registry
        self._timings = timings
        self._batcher = batcher
        self._detailed = detailed_logging

        self._handled = 0
        self._failed = 0
        self._durations = 0

    def on_send(self, event: Any) -> None:
        key = None
        try:
            key = extract_key(event, "source")
            message_id = extract_message_id(event) or generate_message_id()
            self._timings.begin(key.node_id, message_id)
            self._batcher.enqueue(key, Direction.OUTGOING)
            self._handled += 1
            if self._detailed:
                logger.debug("[ROUTER] send %s msg=%s", key.serialize(), message_id)
        except Exception as e:
            self._processing_failed("send", key, e)

    def on_receive(self, event: Any) -> None:
        key = None
        try:
            key = extract_key(event, "destination")
            message_id = extract_message_id(event) or generate_message_id()
            self._timings.begin(key.node_id, message_id)
            self._batcher.enqueue(key, Direction.INCOMING)
            self._handled += 1
            if self._detailed:
                logger.debug("[ROUTER] receive %s msg=%s", key.serialize(), message_id)
        except Exception as e:
            self._processing_failed("receive", key, e)

    def on_complete(self, event: Any) -> None:
        key = None
        try:
            key = extract_key(event, "node")
            message_id = extract_message_id(event) or UNKNOWN

            elapsed = self._timings.end(key.node_id, message_id)
            if elapsed is not None:
                self._registry.record_duration(key, elapsed)
                self._durations += 1
                if self._detailed:
                    logger.debug("[ROUTER] complete %s took %.3fms", key.serialize(), elapsed * 1000)

            error = event.get("error") if isinstance(event, Mapping) else None
            if error is not None:
                error_type = error_name(error, "execution")
                self._registry.record_error(key, error_type)
                if self._detailed:
                    logger.debug("[ROUTER] complete %s with error %s", key.serialize(), error_type)
            self._handled += 1
        except Exception as e:
            self._processing_failed("complete", key, e)

    def on_node_error(self, event: Any) -> None:
        key = None
        try:
            key = extract_key(event, "node")
            error = event.get("error") if isinstance(event, Mapping) else None
            self._registry.record_error(key, error_name(error, "runtime"))
            self._handled += 1
        except Exception as e:
            self._processing_failed("node_error", key, e)

    def on_flow_error(self, event: Any) -> None:
        key = None
        try:
            flow = _descriptor(event, "flow")
            key = MetricKey("flow", "flow", _text(flow.get("id")))
            error = event.get("error") if isinstance(event, Mapping) else None
            self._registry.record_error(key, error_name(error, "flow"))
            self._handled += 1
        except Exception as e:
            self._processing_failed("flow_error", key, e)

    def on_flows_stopped(self, _event: Any = None) -> None:
        dropped = self._timings.clear()
        logger.info("[ROUTER] Flows stopped, dropped %d in-flight timings", dropped)

    def _processing_failed(self, stage: str, key: Optional[MetricKey], error: Exception) -> None:
        self._failed += 1
        key = key or MetricKey.unknown()
        logger.error("[ROUTER] Error handling %s event key=%s: %s", stage, key.serialize(), error)
        try:
            self._registry.record_error(key, f"{stage}_processing")
        except Exception:
            logger.exception("[ROUTER] Could not record %s_processing error", stage)

    def stats(self) -> dict:
        return {
            "events_handled": self._handled,
            "events_failed": self._failed,
            "durations_recorded": self._durations,
            "timing_entries": len(self._timings),
        }
