"""Task event stream and sinks."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol

from task_graph.scheduler.models import TaskStatus

logger = logging.getLogger(__name__)

RUN_STARTED = "run_started"
RUN_FINISHED = "run_finished"
TASK_READY = "task_ready"
TASK_STARTED = "task_started"
TASK_COMPLETED = "task_completed"
TASK_RETRY_SCHEDULED = "task_retry_scheduled"
TASK_FAILED = "task_failed"
TASK_BLOCKED = "task_blocked"
TASK_CANCELLED = "task_cancelled"


@dataclass(slots=True)
class TaskEvent:
    """One lifecycle event for audit and logging."""

    event_type: str
    task_id: str | None = None
    status_from: TaskStatus | None = None
    status_to: TaskStatus | None = None
    attempt: int | None = None
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class EventSink(Protocol):
    """Receives scheduler events; must be fast and must not raise."""

    def emit(self, event: TaskEvent) -> None:
        """Handle one event."""
        raise NotImplementedError


_WARNING_EVENTS = frozenset({TASK_RETRY_SCHEDULED, TASK_BLOCKED, TASK_CANCELLED})


class LoggingEventSink:
    """Write every event to the standard logger."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._logger = log or logger

    def emit(self, event: TaskEvent) -> None:
        if event.event_type == TASK_FAILED:
            level = logging.ERROR
        elif event.event_type in _WARNING_EVENTS:
            level = logging.WARNING
        elif event.event_type == TASK_READY:
            level = logging.DEBUG
        else:
            level = logging.INFO

        if event.task_id is None:
            self._logger.log(level, "%s %s", event.event_type, _format_details(event.details))
            return
        self._logger.log(
            level,
            "%s task=%s attempt=%s %s",
            event.event_type,
            event.task_id,
            event.attempt if event.attempt is not None else "-",
            _format_details(event.details),
        )


class MemoryEventSink:
    """Collect events in memory; thread-safe."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[TaskEvent] = []

    def emit(self, event: TaskEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[TaskEvent]:
        with self._lock:
            return list(self._events)

    def of_type(self, event_type: str) -> list[TaskEvent]:
        return [event for event in self.events if event.event_type == event_type]

    def task_ids(self, event_type: str) -> list[str]:
        return [event.task_id for event in self.of_type(event_type) if event.task_id is not None]


def _format_details(details: dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in details.items())
