"""Start-time correlation for in-flight messages.

Entries are created on send/receive and consumed on completion. The
periodic sweep only catches what completion never removed.
"""

from __future__ import annotations

import heapq
import logging
import time
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

TimingKey = Tuple[str, str]


class TimingTable:
    """Bounded ``(node_id, message_id) -> start`` map."""

    DEFAULT_MAX_ENTRIES = 1000
    DEFAULT_MAX_AGE_SECONDS = 60.0

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        detailed_logging: bool = False,
    ):
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        if max_age_seconds <= 0:
            raise ValueError(f"max_age_seconds must be > 0, got {max_age_seconds}")

        self._max_entries = max_entries
        self._max_age = max_age_seconds
        self._clock = clock
        self._detailed = detailed_logging
        self._entries: Dict[TimingKey, float] = {}

        self._total_expired = 0
        self._total_evicted = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: TimingKey) -> bool:
        return key in self._entries

    def now(self) -> float:
        return self._clock()

    def begin(self, node_id: str, message_id: str, now: Optional[float] = None) -> None:
        # Last write wins for a repeated (node, message) pair.
        self._entries[(node_id, message_id)] = self._clock() if now is None else now

    def end(self, node_id: str, message_id: str, now: Optional[float] = None) -> Optional[float]:
        """Remove the entry and return elapsed seconds, or None if it is not tracked."""
        start = self._entries.pop((node_id, message_id), None)
        if start is None:
            return None
        current = self._clock() if now is None else now
        return current - start

    def sweep(self, now: Optional[float] = None) -> int:
        """Evict expired entries, then the oldest ones beyond ``max_entries``."""
        current = self._clock() if now is None else now

        expired = [key for key, start in self._entries.items() if current - start > self._max_age]
        for key in expired:
            del self._entries[key]

        overflow = len(self._entries) - self._max_entries
        evicted = 0
        if overflow > 0:
            oldest = heapq.nsmallest(overflow, self._entries.items(), key=lambda item: item[1])
            for key, _ in oldest:
                del self._entries[key]
            evicted = len(oldest)

        self._total_expired += len(expired)
        self._total_evicted += evicted

        if self._detailed and (expired or evicted):
            logger.debug(
                "[TIMING] sweep expired=%d evicted=%d remaining=%d",
                len(expired), evicted, len(self._entries),
            )
        return len(expired) + evicted

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def get_stats(self) -> dict:
        return {
            "entries": len(self._entries),
            "max_entries": self._max_entries,
            "max_age_seconds": self._max_age,
            "total_expired": self._total_expired,
            "total_evicted": self._total_evicted,
        }
