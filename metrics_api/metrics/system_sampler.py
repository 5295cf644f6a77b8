"""Process memory and runtime information."""

from __future__ import annotations

import logging
import platform
import sys
import time
from typing import Optional

import psutil

from .registry import MetricRegistry

logger = logging.getLogger(__name__)


class SystemSampler:
    """Samples the current process into the memory and runtime gauges."""

    def __init__(self, registry: MetricRegistry, process: Optional[psutil.Process] = None):
        self._registry = registry
        self._process = process or psutil.Process()

    def record_runtime_info(self) -> None:
        version = platform.python_version()
        logger.info("[SYSTEM] Runtime python=%s platform=%s", version, sys.platform)
        self._registry.set_runtime_info(version, sys.platform)

    def uptime_seconds(self) -> float:
        """Seconds since the sampled process was created."""
        return max(0.0, time.time() - self._process.create_time())

    def sample(self) -> dict:
        info = self._process.memory_info()
        usage = {"rss": info.rss, "vms": info.vms}
        for kind, value in usage.items():
            self._registry.set_memory_usage(kind, value)
        return usage
