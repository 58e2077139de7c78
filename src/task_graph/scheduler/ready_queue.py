"""Priority queue of runnable tasks and the delayed queue for retries."""

from __future__ import annotations

import heapq

from task_graph.scheduler.errors import EmptyQueueError, TaskNotReadyError
from task_graph.scheduler.models import Task, TaskStatus


class ReadyQueue:
    """Highest priority first; equal priorities pop in registration order.

    Callers check ``len(queue)`` before ``pop()``.
    """

    def __init__(self) -> None:
        self._heap: list[tuple[int, int, str, Task]] = []

    def push(self, task: Task) -> None:
        if task.status != TaskStatus.READY:
            raise TaskNotReadyError(task.task_id, task.status)
        heapq.heappush(self._heap, (-task.priority, task.sequence, task.task_id, task))

    def pop(self) -> Task:
        if not self._heap:
            raise EmptyQueueError("Ready queue is empty.")
        return heapq.heappop(self._heap)[-1]

    def drain(self) -> list[Task]:
        """Remove and return every queued task in pop order."""

        drained = [entry[-1] for entry in sorted(self._heap)]
        self._heap.clear()
        return drained

    def task_ids(self) -> list[str]:
        return [entry[2] for entry in sorted(self._heap)]

    def __len__(self) -> int:
        return len(self._heap)


class DelayedQueue:
    """Retries waiting out their backoff, ordered by due time."""

    def __init__(self) -> None:
        self._heap: list[tuple[float, int, str, Task]] = []

    def push(self, task: Task, due_at: float) -> None:
        heapq.heappush(self._heap, (due_at, task.sequence, task.task_id, task))

    def next_due(self) -> float | None:
        return self._heap[0][0] if self._heap else None

    def pop_due(self, now: float) -> list[Task]:
        due: list[Task] = []
        while self._heap and self._heap[0][0] <= now:
            due.append(heapq.heappop(self._heap)[-1])
        return due

    def drain(self) -> list[Task]:
        drained = [entry[-1] for entry in sorted(self._heap)]
        self._heap.clear()
        return drained

    def __len__(self) -> int:
        return len(self._heap)
