"""Metrics aggregation engine: registry, timing correlation, batching, rates."""

from .batcher import IngestionBatcher
from .keys import BatchRecord, CounterState, Direction, MetricKey
from .periodic import PeriodicTask
from .rate_calculator import RateCalculator
from .registry import MetricRegistry
from .system_sampler import SystemSampler
from .timing_table import TimingTable

__all__ = [
    "BatchRecord",
    "CounterState",
    "Direction",
    "IngestionBatcher",
    "MetricKey",
    "MetricRegistry",
    "PeriodicTask",
    "RateCalculator",
    "SystemSampler",
    "TimingTable",
]
