"""Dependency resolution: which pending tasks may run now."""

from __future__ import annotations

from collections import deque

from task_graph.scheduler.models import Task, TaskStatus
from task_graph.scheduler.registry import TaskRegistry


class DependencyResolver:
    """Promotes PENDING tasks to READY once every dependency COMPLETED."""

    def __init__(self, registry: TaskRegistry) -> None:
        self.registry = registry

    def initial_ready(self) -> list[Task]:
        """Promote and return dependency-free tasks in registration order."""

        promoted: list[Task] = []
        for task in self.registry.tasks():
            if task.dependencies or task.status != TaskStatus.PENDING:
                continue
            self.registry.set_status(task.task_id, TaskStatus.READY)
            promoted.append(task)
        return promoted

    def find_newly_ready(self, completed_task_id: str) -> list[Task]:
        """Promote dependents unblocked by ``completed_task_id``."""

        candidates = sorted(
            (self.registry.get(task_id) for task_id in self.registry.dependents_of(completed_task_id)),
            key=lambda task: task.sequence,
        )
        promoted: list[Task] = []
        for task in candidates:
            if task.status != TaskStatus.PENDING:
                continue
            if not self.is_satisfied(task):
                continue
            self.registry.set_status(task.task_id, TaskStatus.READY)
            promoted.append(task)
        return promoted

    def is_satisfied(self, task: Task) -> bool:
        return all(
            self.registry.get_status(dep) == TaskStatus.COMPLETED for dep in task.dependencies
        )

    def blocked_by(self, failed_task_id: str) -> list[Task]:
        """Every task downstream of ``failed_task_id``, in registration order."""

        seen: set[str] = set()
        queue = deque(self.registry.dependents_of(failed_task_id))
        while queue:
            task_id = queue.popleft()
            if task_id in seen:
                continue
            seen.add(task_id)
            queue.extend(self.registry.dependents_of(task_id))
        return sorted((self.registry.get(task_id) for task_id in seen), key=lambda t: t.sequence)
