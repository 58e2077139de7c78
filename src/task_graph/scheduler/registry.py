"""Task registry: definitions, status table, and DAG validation."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from datetime import UTC, datetime
from typing import Any

from task_graph.scheduler.backend import as_runnable
from task_graph.scheduler.errors import (
    CyclicDependencyError,
    DuplicateTaskError,
    IllegalTransitionError,
    InvalidTaskError,
    UnknownDependencyError,
)
from task_graph.scheduler.models import ALLOWED_TRANSITIONS, Runnable, Task, TaskStatus


class TaskRegistry:
    """Single source of truth for tasks and their statuses.

    The registry is not synchronized on its own; the execution engine holds
    its lock around every mutation.
    """

    def __init__(
        self,
        *,
        allow_forward_references: bool = False,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.allow_forward_references = allow_forward_references
        self._now = now or (lambda: datetime.now(tz=UTC))
        self._tasks: dict[str, Task] = {}
        self._dependents: dict[str, set[str]] = {}
        self._next_sequence = 0
        self._validated_order: list[str] | None = None

    def register(  # noqa: PLR0913
        self,
        task_id: str,
        priority: int,
        dependencies: Iterable[str],
        work: Runnable | Callable[[], Any],
        max_retries: int,
    ) -> Task:
        if not task_id or not task_id.strip():
            raise InvalidTaskError("Task id must be a non-empty string.")
        if not isinstance(priority, int) or isinstance(priority, bool):
            raise InvalidTaskError(
                f"Task {task_id}: priority must be an integer, got {priority!r}.",
            )
        if isinstance(dependencies, str):
            raise InvalidTaskError(
                f"Task {task_id}: dependencies must be a collection of task ids, not a string.",
            )
        if max_retries < 1:
            raise InvalidTaskError(f"Task {task_id}: max_retries must be >= 1, got {max_retries}.")
        if task_id in self._tasks:
            raise DuplicateTaskError(task_id)

        deps = frozenset(dependencies)
        if task_id in deps:
            raise CyclicDependencyError([task_id, task_id])
        if not self.allow_forward_references:
            missing = [dep for dep in deps if dep not in self._tasks]
            if missing:
                raise UnknownDependencyError(task_id, missing)

        task = Task(
            task_id=task_id,
            priority=priority,
            dependencies=deps,
            work=as_runnable(work),
            max_retries=max_retries,
            created_at=self._now(),
            sequence=self._next_sequence,
        )
        self._next_sequence += 1
        self._tasks[task_id] = task
        for dep in deps:
            self._dependents.setdefault(dep, set()).add(task_id)
        self._validated_order = None
        return task

    def validate(self) -> list[str]:
        """Check the full graph and return a deterministic topological order."""

        for task in self._tasks.values():
            missing = [dep for dep in task.dependencies if dep not in self._tasks]
            if missing:
                raise UnknownDependencyError(task.task_id, missing)

        cycle = self._find_cycle()
        if cycle is not None:
            raise CyclicDependencyError(cycle)

        self._validated_order = self._topological_order()
        return list(self._validated_order)

    @property
    def is_validated(self) -> bool:
        return self._validated_order is not None

    def get(self, task_id: str) -> Task:
        try:
            return self._tasks[task_id]
        except KeyError:
            raise KeyError(f"Unknown task: {task_id}") from None

    def get_status(self, task_id: str) -> TaskStatus:
        return self.get(task_id).status

    def set_status(self, task_id: str, new_status: TaskStatus) -> TaskStatus:
        """Apply a legal transition and return the previous status."""

        task = self.get(task_id)
        current = task.status
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise IllegalTransitionError(task_id, current, new_status)
        task.status = new_status
        return current

    def dependents_of(self, task_id: str) -> frozenset[str]:
        return frozenset(self._dependents.get(task_id, ()))

    def tasks(self) -> list[Task]:
        """All tasks in registration order."""

        return list(self._tasks.values())

    def reset_runtime(self) -> None:
        """Return every task to PENDING for a fresh run."""

        for task in self._tasks.values():
            task.status = TaskStatus.PENDING
            task.retry_count = 0
            task.attempts = 0
            task.last_error = None
            task.result = None

    def clear(self) -> None:
        self._tasks.clear()
        self._dependents.clear()
        self._next_sequence = 0
        self._validated_order = None

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def _find_cycle(self) -> list[str] | None:
        # Iterative three-color DFS; dependency edges point task -> dependency.
        white, grey, black = 0, 1, 2
        color = dict.fromkeys(self._tasks, white)
        for root in self._tasks:
            if color[root] != white:
                continue
            path: list[str] = [root]
            stack: list[Iterator[str]] = [iter(self._sorted_deps(root))]
            color[root] = grey
            while stack:
                dep = next(stack[-1], None)
                if dep is None:
                    color[path.pop()] = black
                    stack.pop()
                    continue
                if color[dep] == grey:
                    start = path.index(dep)
                    return [*path[start:], dep]
                if color[dep] == white:
                    color[dep] = grey
                    path.append(dep)
                    stack.append(iter(self._sorted_deps(dep)))
        return None

    def _sorted_deps(self, task_id: str) -> list[str]:
        return sorted(self._tasks[task_id].dependencies, key=lambda dep: self._tasks[dep].sequence)

    def _topological_order(self) -> list[str]:
        remaining = {task_id: len(task.dependencies) for task_id, task in self._tasks.items()}
        frontier = [task_id for task_id, count in remaining.items() if count == 0]
        order: list[str] = []
        while frontier:
            frontier.sort(key=lambda task_id: self._tasks[task_id].sequence)
            current = frontier.pop(0)
            order.append(current)
            for dependent in self._dependents.get(current, ()):
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    frontier.append(dependent)
        return order
