"""Batched ingestion of message counts.

Event handlers enqueue a record and return immediately; records reach the
registry either when a full batch has accumulated or when the single flush
timer fires.

- Unbounded queue until flush (nothing is dropped under normal operation)
- Flush by size (synchronous) or by timer (asynchronous)
- At most one timer armed at any time
- FIFO: records are applied in arrival order
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Deque, Optional

from .keys import BatchRecord, Direction, MetricKey
from .registry import MetricRegistry

logger = logging.getLogger(__name__)


class IngestionBatcher:
    """Pending-record queue between the event router and the registry."""

    DEFAULT_BATCH_SIZE = 100
    DEFAULT_FLUSH_INTERVAL = 1.0  # seconds

    def __init__(
        self,
        registry: MetricRegistry,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        detailed_logging: bool = False,
    ):
        """Create the batcher.

        Args:
            registry: Registry receiving the flushed records
            batch_size: Queue length that triggers a synchronous flush, and
                the maximum number of records applied per flush
            flush_interval: Seconds before a partial batch is flushed
            loop: Event loop used to arm the flush timer (default: the
                running loop at the time the timer is armed)
            detailed_logging: Log every flush at DEBUG level
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if flush_interval <= 0:
            raise ValueError(f"flush_interval must be > 0, got {flush_interval}")

        self._registry = registry
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._loop = loop
        self._detailed = detailed_logging

        self._queue: Deque[BatchRecord] = deque()
        self._timer: Optional[asyncio.TimerHandle] = None

        # Stats
        self._total_enqueued = 0
        self._total_flushed = 0
        self._total_failed = 0
        self._flush_count = 0

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    def enqueue(self, key: MetricKey, direction: Direction) -> None:
        record = BatchRecord(key=key, direction=direction)

        if len(self._queue) + 1 >= self._batch_size:
            self._queue.append(record)
            self._total_enqueued += 1
            self.flush()
            return

        # A record is only queued once a timer exists to drain it.
        if self._timer is None:
            self._arm_timer()
        self._queue.append(record)
        self._total_enqueued += 1

    def flush(self) -> int:
        """Apply up to ``batch_size`` records. Returns how many were applied."""
        self._cancel_timer()
        applied = self._drain_batch()

        # Backlog left over: keep draining on the next timer.
        if self._queue:
            self._arm_timer()
        return applied

    def close(self) -> int:
        """Cancel the timer and drain the whole queue. Used on shutdown."""
        self._cancel_timer()
        total = 0
        while self._queue:
            total += self._drain_batch()
        logger.info(
            "[BATCHER] Closed. Stats: enqueued=%d flushed=%d failed=%d",
            self._total_enqueued, self._total_flushed, self._total_failed,
        )
        return total

    def _drain_batch(self) -> int:
        applied = 0
        taken = 0
        while self._queue and taken < self._batch_size:
            record = self._queue.popleft()
            taken += 1
            try:
                if record.direction is Direction.INCOMING:
                    self._registry.record_incoming(record.key)
                else:
                    self._registry.record_outgoing(record.key)
                applied += 1
            except Exception:
                self._total_failed += 1
                logger.exception("[BATCHER] Failed to apply record key=%s", record.key.serialize())

        self._total_flushed += applied
        if taken:
            self._flush_count += 1

        if self._detailed and taken:
            logger.debug("[BATCHER] flushed=%d remaining=%d", applied, len(self._queue))
        return applied

    def _on_timer(self) -> None:
        self._timer = None
        self.flush()

    def _arm_timer(self) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self._timer = loop.call_later(self._flush_interval, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def get_stats(self) -> dict:
        return {
            "pending": len(self._queue),
            "timer_armed": self._timer is not None,
            "total_enqueued": self._total_enqueued,
            "total_flushed": self._total_flushed,
            "total_failed": self._total_failed,
            "flush_count": self._flush_count,
            "batch_size": self._batch_size,
            "flush_interval": self._flush_interval,
        }
