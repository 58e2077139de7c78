"""Shared test fixtures."""

from __future__ import annotations

import threading
from collections.abc import Callable

import pytest

from task_graph.scheduler import (
    MemoryEventSink,
    RetryPolicy,
    Scheduler,
    VirtualClock,
)


class CallLog:
    """Thread-safe record of task invocations in call order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.calls: list[str] = []

    def record(self, task_id: str) -> None:
        with self._lock:
            self.calls.append(task_id)

    def count(self, task_id: str) -> int:
        with self._lock:
            return self.calls.count(task_id)

    def ok(self, task_id: str) -> Callable[[], str]:
        def _work() -> str:
            self.record(task_id)
            return task_id

        return _work

    def failing(self, task_id: str, *, times: int | None = None) -> Callable[[], str]:
        """Fail the first ``times`` calls (all calls when None)."""

        def _work() -> str:
            self.record(task_id)
            if times is None or self.count(task_id) <= times:
                raise RuntimeError(f"{task_id} boom")
            return task_id

        return _work


@pytest.fixture()
def call_log() -> CallLog:
    return CallLog()


@pytest.fixture()
def virtual_clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture()
def event_sink() -> MemoryEventSink:
    return MemoryEventSink()


@pytest.fixture()
def make_scheduler(virtual_clock, event_sink) -> Callable[..., Scheduler]:
    """Scheduler factory: one worker, virtual clock, deterministic backoff."""

    def _make(**overrides) -> Scheduler:
        options = {
            "workers": 1,
            "clock": virtual_clock,
            "event_sink": event_sink,
            "retry_policy": RetryPolicy(base_delay=1.0, max_delay=30.0, jitter=False),
        }
        options.update(overrides)
        return Scheduler(**options)

    return _make
