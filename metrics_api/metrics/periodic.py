"""Stoppable periodic callbacks on the event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs ``callback`` every ``interval`` seconds until stopped.

    A failing callback is logged and the schedule continues; stop() waits
    for the task to finish so nothing is rescheduled afterwards.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[], object]):
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.name = name
        self._interval = interval
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"periodic-{self.name}")
        logger.debug("[PERIODIC] %s started interval=%.3fs", self.name, self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("[PERIODIC] %s stopped after %d runs", self.name, self.runs)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._callback()
                self.runs += 1
            except Exception:
                self.failures += 1
                logger.exception("[PERIODIC] %s tick failed", self.name)
