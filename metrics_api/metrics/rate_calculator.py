"""Per-second message rates from cumulative counters."""

from __future__ import annotations

import logging
from typing import Dict, Tuple

from .keys import MetricKey
from .registry import INCOMING_RATE, OUTGOING_RATE, MetricRegistry

logger = logging.getLogger(__name__)

RateSample = Tuple[int, int]


class RateCalculator:
    """Turns counter deltas between two ticks into rate gauges.

    Only reads ``MetricRegistry.counter_states()`` and writes gauges, so a
    slow tick never holds up the ingestion batcher.
    """

    def __init__(self, registry: MetricRegistry, interval_seconds: float, detailed_logging: bool = False):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self._registry = registry
        self._interval = interval_seconds
        self._detailed = detailed_logging
        self._samples: Dict[MetricKey, RateSample] = {}

    @property
    def interval_seconds(self) -> float:
        return self._interval

    def tick(self) -> int:
        states = self._registry.counter_states()
        for key, state in states.items():
            last_in, last_out = self._samples.get(key, (0, 0))

            # A counter that appears to go backwards reports 0, never a negative rate.
            incoming_rate = max(0, state.incoming_total - last_in) / self._interval
            outgoing_rate = max(0, state.outgoing_total - last_out) / self._interval

            labels = key.labels()
            self._registry.set_gauge(INCOMING_RATE, labels, incoming_rate)
            self._registry.set_gauge(OUTGOING_RATE, labels, outgoing_rate)
            self._samples[key] = (state.incoming_total, state.outgoing_total)

            if self._detailed:
                logger.debug(
                    "[RATES] %s in=%d->%d (%.3f/s) out=%d->%d (%.3f/s)",
                    key.serialize(), last_in, state.incoming_total, incoming_rate,
                    last_out, state.outgoing_total, outgoing_rate,
                )
        return len(states)

    def last_sample(self, key: MetricKey) -> RateSample:
        return self._samples.get(key, (0, 0))
