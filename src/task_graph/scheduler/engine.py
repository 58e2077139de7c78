"""Execution engine: a bounded worker pool draining the ready queue."""

from __future__ import annotations

import logging
import os
import threading
import time

from task_graph.scheduler import events
from task_graph.scheduler.cancellation import CancelToken
from task_graph.scheduler.clock import Clock, SystemClock
from task_graph.scheduler.errors import IllegalTransitionError, RunInProgressError
from task_graph.scheduler.events import EventSink, LoggingEventSink, TaskEvent
from task_graph.scheduler.models import EngineState, RunSummary, Task, TaskStatus
from task_graph.scheduler.ready_queue import DelayedQueue, ReadyQueue
from task_graph.scheduler.registry import TaskRegistry
from task_graph.scheduler.resolver import DependencyResolver
from task_graph.scheduler.retry import RetryPolicy

logger = logging.getLogger(__name__)

_ERROR_SUMMARY_LIMIT = 500


class ExecutionEngine:
    """Runs every registered task once its dependencies completed.

    All registry, queue and retry-count mutations happen while holding one
    condition lock. Task work runs outside it.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        registry: TaskRegistry,
        resolver: DependencyResolver,
        retry_policy: RetryPolicy,
        workers: int | None = None,
        clock: Clock | None = None,
        event_sink: EventSink | None = None,
        strict_transitions: bool = True,
    ) -> None:
        if workers is not None and workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")
        self.registry = registry
        self.resolver = resolver
        self.retry_policy = retry_policy
        self.workers = workers or os.cpu_count() or 1
        self.clock = clock or SystemClock()
        self.event_sink = event_sink or LoggingEventSink()
        self.strict_transitions = strict_transitions
        # RLock: a cancel callback may fire from a signal handler on a thread holding it.
        self._cond = threading.Condition(threading.RLock())
        self._ready = ReadyQueue()
        self._delayed = DelayedQueue()
        self._running = 0
        self._completed: list[str] = []
        self._failed: list[str] = []
        self._blocked: set[str] = set()
        self._fatal: BaseException | None = None
        self._abort = False
        self.state = EngineState.IDLE

    def run(self, cancel_token: CancelToken | None = None) -> RunSummary:
        """Execute the graph and return the run summary.

        Per-task failures never raise; only an invariant breach in strict
        mode (or a crashed worker) does.
        """

        token = cancel_token or CancelToken()
        with self._cond:
            if self.state == EngineState.RUNNING:
                raise RunInProgressError("Scheduler run already in progress.")
            self.state = EngineState.RUNNING
            self._reset()

        started = time.monotonic()
        token.add_callback(self._wake)
        try:
            self._emit(
                TaskEvent(
                    event_type=events.RUN_STARTED,
                    details={"tasks": len(self.registry), "workers": self.workers},
                ),
            )
            with self._cond:
                for task in self.resolver.initial_ready():
                    self._enqueue(task)

            threads = [
                threading.Thread(
                    target=self._worker_loop,
                    args=(token,),
                    name=f"task-graph-worker-{index}",
                    daemon=True,
                )
                for index in range(max(1, min(self.workers, len(self.registry))))
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            if self._fatal is not None:
                raise self._fatal

            summary = self._build_summary(token)
            summary.duration_seconds = time.monotonic() - started
            self._emit(
                TaskEvent(
                    event_type=events.RUN_FINISHED,
                    details={
                        "completed": len(summary.completed),
                        "failed": len(summary.failed),
                        "blocked": len(summary.blocked),
                        "cancelled": len(summary.cancelled),
                    },
                ),
            )
            return summary
        finally:
            token.remove_callback(self._wake)
            with self._cond:
                self._ready.drain()
                self._delayed.drain()
                self.state = EngineState.IDLE

    def _reset(self) -> None:
        self.registry.reset_runtime()
        self._ready.drain()
        self._delayed.drain()
        self._running = 0
        self._completed = []
        self._failed = []
        self._blocked = set()
        self._fatal = None
        self._abort = False

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _worker_loop(self, token: CancelToken) -> None:
        try:
            while True:
                task = self._next_task(token)
                if task is None:
                    return
                self._execute(task)
        except BaseException as error:  # noqa: BLE001
            logger.exception("Worker %s aborted the run", threading.current_thread().name)
            with self._cond:
                if self._fatal is None:
                    self._fatal = error
                self._abort = True
                self._cond.notify_all()

    def _next_task(self, token: CancelToken) -> Task | None:
        with self._cond:
            while True:
                if self._abort or token.is_cancelled:
                    return None
                self._promote_due()
                if len(self._ready):
                    task = self._ready.pop()
                    if not self._transition(task, TaskStatus.RUNNING):
                        self._reject(task, TaskStatus.RUNNING)
                        continue
                    task.attempts += 1
                    self._running += 1
                    self._emit(
                        TaskEvent(
                            event_type=events.TASK_STARTED,
                            task_id=task.task_id,
                            status_from=TaskStatus.READY,
                            status_to=TaskStatus.RUNNING,
                            attempt=task.attempts,
                            details={"priority": task.priority},
                        ),
                    )
                    return task
                if self._running == 0 and not len(self._delayed):
                    self._cond.notify_all()
                    return None
                next_due = self._delayed.next_due()
                timeout = None if next_due is None else max(0.0, next_due - self.clock.now())
                self.clock.wait(self._cond, timeout)

    def _execute(self, task: Task) -> None:
        try:
            result = task.work.execute()
        except Exception as error:  # noqa: BLE001
            self._on_failure(task, error)
        else:
            self._on_success(task, result)

    def _on_success(self, task: Task, result: object) -> None:
        with self._cond:
            self._running -= 1
            task.result = result
            if self._transition(task, TaskStatus.COMPLETED):
                self._completed.append(task.task_id)
                self._emit(
                    TaskEvent(
                        event_type=events.TASK_COMPLETED,
                        task_id=task.task_id,
                        status_from=TaskStatus.RUNNING,
                        status_to=TaskStatus.COMPLETED,
                        attempt=task.attempts,
                    ),
                )
                for ready in self.resolver.find_newly_ready(task.task_id):
                    if ready.task_id in self._blocked:
                        continue
                    self._enqueue(ready)
            else:
                self._reject(task, TaskStatus.COMPLETED)
            self._cond.notify_all()

    def _on_failure(self, task: Task, error: Exception) -> None:
        with self._cond:
            self._running -= 1
            task.last_error = _error_summary(error)
            decision = self.retry_policy.should_retry(task, error)
            if decision.retry:
                if self._transition(task, TaskStatus.PENDING):
                    self._delayed.push(task, self.clock.now() + decision.delay)
                    self._emit(
                        TaskEvent(
                            event_type=events.TASK_RETRY_SCHEDULED,
                            task_id=task.task_id,
                            status_from=TaskStatus.RUNNING,
                            status_to=TaskStatus.PENDING,
                            attempt=task.attempts,
                            details={
                                "retry_count": task.retry_count,
                                "delay_seconds": round(decision.delay, 3),
                                "error": task.last_error,
                            },
                        ),
                    )
                else:
                    self._reject(task, TaskStatus.PENDING)
            elif self._transition(task, TaskStatus.FAILED):
                self._failed.append(task.task_id)
                self._emit(
                    TaskEvent(
                        event_type=events.TASK_FAILED,
                        task_id=task.task_id,
                        status_from=TaskStatus.RUNNING,
                        status_to=TaskStatus.FAILED,
                        attempt=task.attempts,
                        details={"retry_count": task.retry_count, "error": task.last_error},
                    ),
                )
                self._block_dependents(task)
            else:
                self._reject(task, TaskStatus.FAILED)
            self._cond.notify_all()

    def _block_dependents(self, failed: Task) -> None:
        for task in self.resolver.blocked_by(failed.task_id):
            if task.task_id in self._blocked:
                continue
            self._blocked.add(task.task_id)
            self._emit(
                TaskEvent(
                    event_type=events.TASK_BLOCKED,
                    task_id=task.task_id,
                    details={"failed_dependency": failed.task_id},
                ),
            )

    def _promote_due(self) -> None:
        for task in self._delayed.pop_due(self.clock.now()):
            if self._transition(task, TaskStatus.READY):
                self._ready.push(task)
                self._emit_ready(task)
            else:
                self._reject(task, TaskStatus.READY)

    def _enqueue(self, task: Task) -> None:
        self._ready.push(task)
        self._emit_ready(task)

    def _emit_ready(self, task: Task) -> None:
        self._emit(
            TaskEvent(
                event_type=events.TASK_READY,
                task_id=task.task_id,
                status_from=TaskStatus.PENDING,
                status_to=TaskStatus.READY,
                details={"priority": task.priority},
            ),
        )

    def _transition(self, task: Task, status: TaskStatus) -> bool:
        try:
            self.registry.set_status(task.task_id, status)
        except IllegalTransitionError:
            if self.strict_transitions:
                raise
            logger.exception("Ignoring illegal transition for task %s", task.task_id)
            return False
        return True

    def _reject(self, task: Task, requested: TaskStatus) -> None:
        """Report a task whose status change was refused as failed.

        Only reached with ``strict_transitions=False``. Downstream tasks are
        blocked, since the rejected task can no longer satisfy them.
        """

        task.last_error = _error_summary(
            IllegalTransitionError(task.task_id, task.status, requested),
        )
        self._failed.append(task.task_id)
        self._emit(
            TaskEvent(
                event_type=events.TASK_FAILED,
                task_id=task.task_id,
                status_from=task.status,
                attempt=task.attempts,
                details={"error": task.last_error},
            ),
        )
        self._block_dependents(task)

    def _build_summary(self, token: CancelToken) -> RunSummary:
        summary = RunSummary(
            completed=list(self._completed),
            failed=list(self._failed),
            was_cancelled=token.is_cancelled,
        )
        failed = set(self._failed)
        for task in self.registry.tasks():
            summary.attempts[task.task_id] = task.attempts
            if task.task_id in failed and task.last_error is not None:
                summary.errors[task.task_id] = task.last_error
            if task.is_terminal or task.task_id in failed:
                continue
            if task.task_id in self._blocked:
                summary.blocked.append(task.task_id)
                continue
            summary.cancelled.append(task.task_id)
            self._emit(
                TaskEvent(
                    event_type=events.TASK_CANCELLED,
                    task_id=task.task_id,
                    status_from=task.status,
                    details={"reason": token.reason or "run stopped"},
                ),
            )
        logger.info(
            "Run finished: completed=%d failed=%d blocked=%d cancelled=%d",
            len(summary.completed),
            len(summary.failed),
            len(summary.blocked),
            len(summary.cancelled),
        )
        return summary

    def _emit(self, event: TaskEvent) -> None:
        self.event_sink.emit(event)


def _error_summary(error: BaseException) -> str:
    text = str(error)
    summary = f"{type(error).__name__}: {text}" if text else type(error).__name__
    return summary[:_ERROR_SUMMARY_LIMIT]
