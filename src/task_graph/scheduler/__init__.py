"""In-process scheduler for dependency graphs of prioritized tasks.

The moving parts are deliberately small and explicit:

- ``TaskRegistry`` owns task definitions and the status table.
- ``DependencyResolver`` promotes pending tasks once their prerequisites
  completed.
- ``ReadyQueue`` decides what runs next (highest priority, then
  registration order); ``DelayedQueue`` holds retries during backoff.
- ``ExecutionEngine`` drives a bounded pool of worker threads.
- ``RetryPolicy`` turns a failed attempt into retry-or-fail.

``Scheduler`` wires them together and is the entry point for callers.
"""

from task_graph.scheduler.cancellation import CancelToken
from task_graph.scheduler.clock import Clock, SystemClock, VirtualClock
from task_graph.scheduler.errors import (
    CyclicDependencyError,
    DuplicateTaskError,
    EmptyGraphError,
    EmptyQueueError,
    IllegalTransitionError,
    InvalidTaskError,
    NonRetryableTaskError,
    NotValidatedError,
    PlanError,
    PreflightError,
    QueueError,
    RegistrationError,
    RunInProgressError,
    TaskGraphError,
    TaskNotReadyError,
    UnknownDependencyError,
)
from task_graph.scheduler.events import EventSink, LoggingEventSink, MemoryEventSink, TaskEvent
from task_graph.scheduler.models import RunSummary, Runnable, Task, TaskStatus
from task_graph.scheduler.retry import RetryDecision, RetryPolicy
from task_graph.scheduler.services import Scheduler

__all__ = [
    "CancelToken",
    "Clock",
    "CyclicDependencyError",
    "DuplicateTaskError",
    "EmptyGraphError",
    "EmptyQueueError",
    "EventSink",
    "IllegalTransitionError",
    "InvalidTaskError",
    "LoggingEventSink",
    "MemoryEventSink",
    "NonRetryableTaskError",
    "NotValidatedError",
    "PlanError",
    "PreflightError",
    "QueueError",
    "RegistrationError",
    "RetryDecision",
    "RetryPolicy",
    "RunInProgressError",
    "RunSummary",
    "Runnable",
    "Scheduler",
    "SystemClock",
    "Task",
    "TaskEvent",
    "TaskGraphError",
    "TaskNotReadyError",
    "TaskStatus",
    "UnknownDependencyError",
    "VirtualClock",
]
