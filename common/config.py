from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _default_env_file() -> str:
    # A .env next to the working directory, so a deployment can ship one file.
    return str(Path.cwd() / ".env")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 1881

    metrics_route: str = "/metrics"
    json_route: str = "/metrics/json"
    health_route: str = "/health"

    collect_interval_ms: int = 5000
    max_timing_entries: int = 1000
    timing_max_age_ms: int = 60000
    cleanup_interval_ms: int = 30000
    batch_size: int = 100
    flush_interval_ms: int = 1000

    enable_detailed_logging: bool = False

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.max_timing_entries < 1:
            raise ValueError(f"max_timing_entries must be >= 1, got {self.max_timing_entries}")
        for name in ("collect_interval_ms", "timing_max_age_ms", "cleanup_interval_ms", "flush_interval_ms"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be > 0, got {value}")
        if not (0 < self.port < 65536):
            raise ValueError(f"port out of range: {self.port}")

    @property
    def collect_interval_seconds(self) -> float:
        return self.collect_interval_ms / 1000.0

    @property
    def flush_interval_seconds(self) -> float:
        return self.flush_interval_ms / 1000.0

    @property
    def cleanup_interval_seconds(self) -> float:
        return self.cleanup_interval_ms / 1000.0

    @property
    def timing_max_age_seconds(self) -> float:
        return self.timing_max_age_ms / 1000.0


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("FLOW_METRICS_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        host=os.getenv("FLOW_METRICS_HOST", "0.0.0.0"),
        port=int(os.getenv("FLOW_METRICS_PORT", "1881")),
        metrics_route=os.getenv("FLOW_METRICS_ROUTE", "/metrics"),
        json_route=os.getenv("FLOW_METRICS_JSON_ROUTE", "/metrics/json"),
        health_route=os.getenv("FLOW_METRICS_HEALTH_ROUTE", "/health"),
        collect_interval_ms=int(os.getenv("FLOW_METRICS_COLLECT_INTERVAL_MS", "5000")),
        max_timing_entries=int(os.getenv("FLOW_METRICS_MAX_TIMING_ENTRIES", "1000")),
        timing_max_age_ms=int(os.getenv("FLOW_METRICS_TIMING_MAX_AGE_MS", "60000")),
        cleanup_interval_ms=int(os.getenv("FLOW_METRICS_CLEANUP_INTERVAL_MS", "30000")),
        batch_size=int(os.getenv("FLOW_METRICS_BATCH_SIZE", "100")),
        flush_interval_ms=int(os.getenv("FLOW_METRICS_FLUSH_INTERVAL_MS", "1000")),
        enable_detailed_logging=_env_bool("FLOW_METRICS_DETAILED_LOGGING"),
    )
