"""Runtime configuration for the task graph scheduler."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field


@dataclass(slots=True)
class WorkerSettings:
    """Worker pool settings."""

    workers: int = field(default_factory=lambda: os.cpu_count() or 1)
    strict_transitions: bool = True
    command_timeout_seconds: float = 3_600.0


@dataclass(slots=True)
class RetrySettings:
    """Retry policy settings."""

    base_seconds: float = 1.0
    max_seconds: float = 60.0
    jitter: bool = True
    default_max_retries: int = 3


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    worker: WorkerSettings = field(default_factory=WorkerSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults suitable for local runs."""

        return cls(
            worker=WorkerSettings(
                workers=_env_int("TASK_GRAPH_WORKERS", os.cpu_count() or 1),
                strict_transitions=_env_bool("TASK_GRAPH_STRICT_TRANSITIONS", default=True),
                command_timeout_seconds=_env_float("TASK_GRAPH_COMMAND_TIMEOUT_SECONDS", 3600.0),
            ),
            retry=RetrySettings(
                base_seconds=_env_float("TASK_GRAPH_RETRY_BASE_SECONDS", 1.0),
                max_seconds=_env_float("TASK_GRAPH_RETRY_MAX_SECONDS", 60.0),
                jitter=_env_bool("TASK_GRAPH_RETRY_JITTER", default=True),
                default_max_retries=_env_int("TASK_GRAPH_DEFAULT_MAX_RETRIES", 3),
            ),
            log_level=os.getenv("TASK_GRAPH_LOG_LEVEL", "INFO").strip().upper(),
        )

    def validate(self) -> None:
        """Raise configuration error for values the scheduler cannot use."""

        if self.worker.workers < 1:
            raise ValueError("TASK_GRAPH_WORKERS must be >= 1.")
        if self.worker.command_timeout_seconds <= 0:
            raise ValueError("TASK_GRAPH_COMMAND_TIMEOUT_SECONDS must be > 0.")
        if self.retry.base_seconds < 0:
            raise ValueError("TASK_GRAPH_RETRY_BASE_SECONDS must be >= 0.")
        if self.retry.max_seconds < self.retry.base_seconds:
            raise ValueError(
                "TASK_GRAPH_RETRY_MAX_SECONDS must be >= TASK_GRAPH_RETRY_BASE_SECONDS.",
            )
        if self.retry.default_max_retries < 1:
            raise ValueError("TASK_GRAPH_DEFAULT_MAX_RETRIES must be >= 1.")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Invalid TASK_GRAPH_LOG_LEVEL: {self.log_level!r}")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from None
