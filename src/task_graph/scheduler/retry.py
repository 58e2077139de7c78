"""Retry policy with capped exponential backoff."""

from __future__ import annotations

import random
from typing import NamedTuple

from task_graph.scheduler.errors import NonRetryableTaskError
from task_graph.scheduler.models import Task


class RetryDecision(NamedTuple):
    retry: bool
    delay: float


class RetryPolicy:
    """Decide whether a failed attempt gets another try.

    ``max_retries`` on the task is the attempt budget: a task that always
    fails is attempted exactly ``max_retries`` times.
    """

    def __init__(
        self,
        *,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        if base_delay < 0 or max_delay < 0:
            raise ValueError("Retry delays must be >= 0.")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._random = rng or random.Random()  # noqa: S311

    def should_retry(self, task: Task, error: BaseException) -> RetryDecision:
        """Count the failed attempt and decide; caller holds the engine lock."""

        task.retry_count += 1
        if isinstance(error, NonRetryableTaskError):
            return RetryDecision(retry=False, delay=0.0)
        if task.retry_count >= task.max_retries:
            return RetryDecision(retry=False, delay=0.0)
        return RetryDecision(retry=True, delay=self.compute_delay(retry_number=task.retry_count))

    def compute_delay(self, *, retry_number: int) -> float:
        capped = min(self.base_delay * (2 ** max(retry_number - 1, 0)), self.max_delay)
        if not self.jitter:
            return capped
        return capped * (0.5 + self._random.random())
