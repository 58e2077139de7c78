"""Clock abstraction so backoff can be tested without sleeping."""

from __future__ import annotations

import threading
import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic time source plus a way to wait on the engine condition."""

    def now(self) -> float:
        """Monotonic seconds."""
        raise NotImplementedError

    def wait(self, condition: threading.Condition, timeout: float | None) -> None:
        """Block on ``condition`` (already held) for at most ``timeout`` seconds."""
        raise NotImplementedError


class SystemClock:
    """Wall-clock implementation."""

    def now(self) -> float:
        return time.monotonic()

    def wait(self, condition: threading.Condition, timeout: float | None) -> None:
        condition.wait(timeout)


class VirtualClock:
    """Manual clock: timed waits advance virtual time instead of sleeping.

    Untimed waits still block on the condition, since only another worker can
    make progress for the waiter.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._lock = threading.Lock()
        self.waited: list[float] = []

    def now(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._now += max(0.0, seconds)

    def wait(self, condition: threading.Condition, timeout: float | None) -> None:
        if timeout is None:
            condition.wait()
            return
        with self._lock:
            self.waited.append(timeout)
        self.advance(timeout)
