"""Instrument registry and exporters.

Owns every counter, gauge and histogram of the service plus the raw
per-key counter state that rate calculation and the inventory read from.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Mapping, Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    GCCollector,
    Histogram,
    PlatformCollector,
    ProcessCollector,
    generate_latest,
)

from .inventory import InventoryCollector, compute_inventory
from .keys import CounterState, Direction, MetricKey

logger = logging.getLogger(__name__)

KEY_LABELS = ["node_id", "node_type", "flow_id"]
EXECUTION_TIME_BUCKETS = (0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5)

INCOMING_RATE = "nodered_messages_incoming_per_second"
OUTGOING_RATE = "nodered_messages_outgoing_per_second"
MEMORY_USAGE = "nodered_memory_usage_bytes"
RUNTIME_INFO = "nodered_runtime_info"

# Sample types that only make sense with their sample name attached.
_MULTI_SAMPLE_TYPES = ("histogram", "gaugehistogram", "summary")


class MetricRegistry:
    """Registry of the service instruments.

    Mutations come only from the ingestion path (counters, durations,
    errors) and from periodic ticks (gauges). Exports read the underlying
    ``CollectorRegistry`` in one pass.
    """

    def __init__(self, *, default_collectors: bool = True, detailed_logging: bool = False) -> None:
        self._registry = CollectorRegistry()
        self._detailed = detailed_logging
        self._counters: Dict[MetricKey, CounterState] = {}

        if default_collectors:
            ProcessCollector(registry=self._registry)
            PlatformCollector(registry=self._registry)
            GCCollector(registry=self._registry)

        self._registry.register(InventoryCollector(lambda: list(self._counters)))

        self.messages_incoming_total = Counter(
            "nodered_messages_incoming_total",
            "Total number of incoming messages processed",
            KEY_LABELS,
            registry=self._registry,
        )
        self.messages_outgoing_total = Counter(
            "nodered_messages_outgoing_total",
            "Total number of outgoing messages processed",
            KEY_LABELS,
            registry=self._registry,
        )
        self.errors_total = Counter(
            "nodered_errors_total",
            "Total number of errors",
            KEY_LABELS + ["error_type"],
            registry=self._registry,
        )
        self.node_execution_time = Histogram(
            "nodered_node_execution_time_seconds",
            "Node execution time in seconds",
            KEY_LABELS,
            buckets=EXECUTION_TIME_BUCKETS,
            registry=self._registry,
        )

        self._gauges: Dict[str, Gauge] = {
            INCOMING_RATE: Gauge(
                INCOMING_RATE,
                "Incoming messages processed per second",
                KEY_LABELS,
                registry=self._registry,
            ),
            OUTGOING_RATE: Gauge(
                OUTGOING_RATE,
                "Outgoing messages processed per second",
                KEY_LABELS,
                registry=self._registry,
            ),
            MEMORY_USAGE: Gauge(
                MEMORY_USAGE,
                "Memory usage in bytes",
                ["type"],
                registry=self._registry,
            ),
            RUNTIME_INFO: Gauge(
                RUNTIME_INFO,
                "Runtime information",
                ["version", "platform"],
                registry=self._registry,
            ),
        }

    # ------------------------------------------------------------------
    # Ingestion path
    # ------------------------------------------------------------------

    def record_incoming(self, key: MetricKey) -> None:
        self._record(key, Direction.INCOMING)

    def record_outgoing(self, key: MetricKey) -> None:
        self._record(key, Direction.OUTGOING)

    def _record(self, key: MetricKey, direction: Direction) -> None:
        state = self._counters.get(key)
        if state is None:
            state = self._counters[key] = CounterState()

        if direction is Direction.INCOMING:
            self.messages_incoming_total.labels(*key).inc()
            state.incoming_total += 1
            total = state.incoming_total
        else:
            self.messages_outgoing_total.labels(*key).inc()
            state.outgoing_total += 1
            total = state.outgoing_total

        if self._detailed:
            logger.debug("[REGISTRY] %s %s total=%d", direction.value, key.serialize(), total)

    def record_error(self, key: MetricKey, error_type: str) -> None:
        self.errors_total.labels(*key, error_type).inc()
        if self._detailed:
            logger.debug("[REGISTRY] error %s type=%s", key.serialize(), error_type)

    def record_duration(self, key: MetricKey, seconds: float) -> None:
        """Observe one execution time. Negative or non-finite values are rejected."""
        if seconds is None or math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
            raise ValueError(f"Invalid duration for {key.serialize()}: {seconds!r}")
        self.node_execution_time.labels(*key).observe(seconds)

    # ------------------------------------------------------------------
    # Gauges
    # ------------------------------------------------------------------

    def set_gauge(self, name: str, labels: Optional[Mapping[str, str]], value: float) -> None:
        gauge = self._gauges.get(name)
        if gauge is None:
            raise KeyError(f"Unknown gauge: {name}")
        if labels:
            gauge.labels(**labels).set(value)
        else:
            gauge.set(value)

    def set_memory_usage(self, kind: str, value: float) -> None:
        self.set_gauge(MEMORY_USAGE, {"type": kind}, value)

    def set_runtime_info(self, version: str, platform: str) -> None:
        self.set_gauge(RUNTIME_INFO, {"version": version, "platform": platform}, 1)

    # ------------------------------------------------------------------
    # Raw state
    # ------------------------------------------------------------------

    def counter_state(self, key: MetricKey) -> CounterState:
        state = self._counters.get(key)
        if state is None:
            return CounterState()
        return CounterState(state.incoming_total, state.outgoing_total)

    def counter_states(self) -> Dict[MetricKey, CounterState]:
        return {
            key: CounterState(state.incoming_total, state.outgoing_total)
            for key, state in self._counters.items()
        }

    def inventory(self) -> dict:
        return compute_inventory(list(self._counters))

    @property
    def collector_registry(self) -> CollectorRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def snapshot_text(self) -> str:
        return generate_latest(self._registry).decode("utf-8")

    def snapshot_json(self) -> List[dict]:
        result: List[dict] = []
        for family in self._registry.collect():
            name = family.name
            if family.type == "counter":
                name = f"{name}_total"

            values = []
            for sample in family.samples:
                if sample.name.endswith("_created"):
                    continue
                entry = {"labels": dict(sample.labels), "value": sample.value}
                if family.type in _MULTI_SAMPLE_TYPES:
                    entry["metric_name"] = sample.name
                values.append(entry)

            result.append({
                "name": name,
                "help": family.documentation,
                "type": family.type,
                "values": values,
            })
        return result
