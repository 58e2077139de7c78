"""Scheduler facade wiring registry, resolver, queue, engine and retry policy."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from task_graph.config import Settings
from task_graph.scheduler.cancellation import CancelToken
from task_graph.scheduler.clock import Clock
from task_graph.scheduler.engine import ExecutionEngine
from task_graph.scheduler.errors import EmptyGraphError, NotValidatedError, RunInProgressError
from task_graph.scheduler.events import EventSink
from task_graph.scheduler.models import EngineState, RunSummary, Runnable, Task, TaskStatus
from task_graph.scheduler.registry import TaskRegistry
from task_graph.scheduler.resolver import DependencyResolver
from task_graph.scheduler.retry import RetryPolicy

DEFAULT_MAX_RETRIES = 3


class Scheduler:
    """Register a task graph, validate it once, then run it.

    Higher ``priority`` values are scheduled first among ready tasks; equal
    priorities run in registration order.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        workers: int | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        strict_transitions: bool = True,
        allow_forward_references: bool = False,
        default_max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        self.registry = TaskRegistry(allow_forward_references=allow_forward_references)
        self.resolver = DependencyResolver(self.registry)
        self.retry_policy = retry_policy or RetryPolicy()
        self.default_max_retries = default_max_retries
        self.engine = ExecutionEngine(
            registry=self.registry,
            resolver=self.resolver,
            retry_policy=self.retry_policy,
            workers=workers,
            clock=clock,
            event_sink=event_sink,
            strict_transitions=strict_transitions,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> Scheduler:
        """Build a scheduler from application settings; kwargs win."""

        options: dict[str, Any] = {
            "workers": settings.worker.workers,
            "strict_transitions": settings.worker.strict_transitions,
            "default_max_retries": settings.retry.default_max_retries,
            "retry_policy": RetryPolicy(
                base_delay=settings.retry.base_seconds,
                max_delay=settings.retry.max_seconds,
                jitter=settings.retry.jitter,
            ),
        }
        options.update(overrides)
        return cls(**options)

    def register(
        self,
        task_id: str,
        priority: int,
        dependencies: Iterable[str],
        work: Runnable | Callable[[], Any],
        max_retries: int | None = None,
    ) -> Task:
        self._ensure_idle()
        return self.registry.register(
            task_id,
            priority,
            dependencies,
            work,
            self.default_max_retries if max_retries is None else max_retries,
        )

    def validate(self) -> list[str]:
        """Check the whole graph; returns a topological order. Safe to repeat."""

        return self.registry.validate()

    def run(self, cancel_token: CancelToken | None = None) -> RunSummary:
        self._ensure_idle()
        if not len(self.registry):
            raise EmptyGraphError("No tasks registered.")
        if not self.registry.is_validated:
            raise NotValidatedError("validate() must succeed after the last registration.")
        return self.engine.run(cancel_token)

    def get_status(self, task_id: str) -> TaskStatus:
        return self.registry.get_status(task_id)

    def get_task(self, task_id: str) -> Task:
        return self.registry.get(task_id)

    def clear(self) -> None:
        """Drop every registered task."""

        self._ensure_idle()
        self.registry.clear()

    def __len__(self) -> int:
        return len(self.registry)

    def _ensure_idle(self) -> None:
        if self.engine.state == EngineState.RUNNING:
            raise RunInProgressError("Task graph cannot change while a run is in progress.")
