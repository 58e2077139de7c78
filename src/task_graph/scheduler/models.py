"""Domain models for task graph scheduling."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class TaskStatus(str, Enum):
    """Task lifecycle states within one run."""

    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})

# RUNNING -> PENDING is a scheduled retry; RUNNING never goes back to READY directly.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.READY}),
    TaskStatus.READY: frozenset({TaskStatus.RUNNING}),
    TaskStatus.RUNNING: frozenset(
        {TaskStatus.COMPLETED, TaskStatus.PENDING, TaskStatus.FAILED},
    ),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class EngineState(str, Enum):
    """Execution engine lifecycle."""

    IDLE = "idle"
    RUNNING = "running"


@runtime_checkable
class Runnable(Protocol):
    """Unit of work owned by a task.

    ``execute`` returning means success; raising an exception means the
    attempt failed.
    """

    def execute(self) -> Any:
        """Run one attempt."""
        raise NotImplementedError


@dataclass(slots=True)
class Task:
    """Registered task with its definition and runtime state."""

    task_id: str
    priority: int
    dependencies: frozenset[str]
    work: Runnable
    max_retries: int
    created_at: datetime
    sequence: int
    status: TaskStatus = TaskStatus.PENDING
    retry_count: int = 0
    attempts: int = 0
    last_error: str | None = None
    result: Any = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(slots=True)
class RunSummary:
    """Outcome of one scheduler run."""

    completed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    blocked: list[str] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    attempts: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    was_cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        """True when every task completed."""

        return not (self.failed or self.blocked or self.cancelled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": list(self.completed),
            "failed": list(self.failed),
            "blocked": list(self.blocked),
            "cancelled": list(self.cancelled),
            "attempts": dict(self.attempts),
            "errors": dict(self.errors),
            "was_cancelled": self.was_cancelled,
            "duration_seconds": round(self.duration_seconds, 3),
        }
