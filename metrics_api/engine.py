"""Flow metrics engine: construction, startup and shutdown ordering.

One engine is built at process startup and handed to every consumer (the
HTTP app keeps it in ``app.state``). ``init`` is idempotent, so attaching
twice to a host never registers a second set of listeners.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

import psutil

from common.config import Settings

from .hooks.router import EventRouter
from .hooks.sources import EventSource, select_event_source
from .metrics.batcher import IngestionBatcher
from .metrics.periodic import PeriodicTask
from .metrics.rate_calculator import RateCalculator
from .metrics.registry import MetricRegistry
from .metrics.system_sampler import SystemSampler
from .metrics.timing_table import TimingTable

logger = logging.getLogger(__name__)


class FlowMetricsEngine:
    """Owns the registry, timing table, batcher and periodic ticks."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        default_collectors: bool = True,
        process: Optional[psutil.Process] = None,
    ):
        self.settings = settings or Settings()
        detailed = self.settings.enable_detailed_logging

        self.registry = MetricRegistry(default_collectors=default_collectors, detailed_logging=detailed)
        self.timings = TimingTable(
            max_entries=self.settings.max_timing_entries,
            max_age_seconds=self.settings.timing_max_age_seconds,
            clock=clock,
            detailed_logging=detailed,
        )
        self.batcher = IngestionBatcher(
            self.registry,
            batch_size=self.settings.batch_size,
            flush_interval=self.settings.flush_interval_seconds,
            loop=loop,
            detailed_logging=detailed,
        )
        self.rates = RateCalculator(self.registry, self.settings.collect_interval_seconds, detailed_logging=detailed)
        self.sampler = SystemSampler(self.registry, process=process)
        self.router = EventRouter(self.registry, self.timings, self.batcher, detailed_logging=detailed)

        self._tasks: List[PeriodicTask] = [
            PeriodicTask("timing-sweep", self.settings.cleanup_interval_seconds, self.timings.sweep),
            PeriodicTask("rates", self.settings.collect_interval_seconds, self.rates.tick),
            PeriodicTask("system", self.settings.collect_interval_seconds, self.sampler.sample),
        ]

        self._source: Optional[EventSource] = None
        self._initialized = False
        self._started_mono = time.monotonic()

        if detailed:
            logger.info("[ENGINE] Created with %s", self.settings)

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def event_source(self) -> Optional[EventSource]:
        return self._source

    @property
    def periodic_tasks(self) -> List[PeriodicTask]:
        return list(self._tasks)

    async def init(self, host: Any) -> None:
        """Attach to ``host`` and start the periodic ticks. Second call is a no-op."""
        if self._initialized:
            logger.info("[ENGINE] Already initialized, skipping")
            return

        self._source = select_event_source(host)
        self._source.attach(host, self.router)

        self.sampler.record_runtime_info()
        try:
            self.sampler.sample()
        except psutil.Error as e:
            logger.warning("[ENGINE] Initial memory sample failed: %s", e)

        for task in self._tasks:
            task.start()

        self._initialized = True
        logger.info(
            "[ENGINE] Started source=%s collect=%.1fs batch=%d flush=%.3fs max_timings=%d",
            self._source.name,
            self.settings.collect_interval_seconds,
            self.settings.batch_size,
            self.settings.flush_interval_seconds,
            self.settings.max_timing_entries,
        )

    async def shutdown(self) -> None:
        """Stop timers, flush what is pending, then drop in-flight timings."""
        if not self._initialized:
            return

        for task in self._tasks:
            await task.stop()

        if self._source is not None:
            self._source.detach()

        flushed = self.batcher.close()
        dropped = self.timings.clear()
        self._initialized = False
        logger.info("[ENGINE] Stopped. flushed=%d dropped_timings=%d", flushed, dropped)

    def export_text(self) -> str:
        return self.registry.snapshot_text()

    def export_json(self) -> list:
        return self.registry.snapshot_json()

    def health(self) -> dict:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self._uptime_seconds(), 3),
            "collector": "running" if self._initialized else "stopped",
            "event_source": self._source.name if self._source else None,
            "endpoints": {
                "metrics": self.settings.metrics_route,
                "json": self.settings.json_route,
                "health": self.settings.health_route,
            },
        }

    def _uptime_seconds(self) -> float:
        try:
            return self.sampler.uptime_seconds()
        except psutil.Error as e:
            logger.warning("[ENGINE] Process uptime unavailable, using engine uptime: %s", e)
            return time.monotonic() - self._started_mono

    def stats(self) -> dict:
        return {
            "router": self.router.stats(),
            "batcher": self.batcher.get_stats(),
            "timings": self.timings.get_stats(),
            "inventory": self.registry.inventory(),
        }
