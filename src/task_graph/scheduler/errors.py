"""Exception hierarchy for task graph registration and execution."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from task_graph.scheduler.models import TaskStatus


class TaskGraphError(RuntimeError):
    """Base error for all scheduler failures."""


class RegistrationError(TaskGraphError):
    """Task graph is malformed; caller must fix it before running."""


class DuplicateTaskError(RegistrationError):
    """Task id is already registered."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task already registered: {task_id}")
        self.task_id = task_id


class UnknownDependencyError(RegistrationError):
    """Task references dependency ids that are not registered."""

    def __init__(self, task_id: str, missing: Sequence[str]) -> None:
        super().__init__(
            f"Task {task_id} depends on unknown task(s): {', '.join(sorted(missing))}",
        )
        self.task_id = task_id
        self.missing = tuple(sorted(missing))


class CyclicDependencyError(RegistrationError):
    """Dependency graph contains a cycle."""

    def __init__(self, cycle: Sequence[str]) -> None:
        super().__init__(f"Dependency cycle detected: {' -> '.join(cycle)}")
        self.cycle = list(cycle)


class InvalidTaskError(RegistrationError):
    """Task definition fails basic field validation."""


class IllegalTransitionError(TaskGraphError):
    """Requested status change is not in the transition table."""

    def __init__(self, task_id: str, current: TaskStatus, requested: TaskStatus) -> None:
        super().__init__(
            f"Illegal transition for task {task_id}: {current.value} -> {requested.value}",
        )
        self.task_id = task_id
        self.current = current
        self.requested = requested


class QueueError(TaskGraphError):
    """Ready queue misuse."""


class EmptyQueueError(QueueError):
    """Pop from an empty ready queue."""


class TaskNotReadyError(QueueError):
    """Only READY tasks may enter the ready queue."""

    def __init__(self, task_id: str, status: TaskStatus) -> None:
        super().__init__(f"Task {task_id} cannot be queued in status {status.value}")
        self.task_id = task_id
        self.status = status


class PreflightError(TaskGraphError):
    """Run cannot start."""


class NotValidatedError(PreflightError):
    """validate() was not called after the last registration."""


class EmptyGraphError(PreflightError):
    """No tasks registered."""


class RunInProgressError(PreflightError):
    """Another run() on the same scheduler has not finished."""


class PlanError(TaskGraphError):
    """Plan file is missing or malformed."""


class NonRetryableTaskError(Exception):
    """Raised by task work to fail the task without further attempts."""
