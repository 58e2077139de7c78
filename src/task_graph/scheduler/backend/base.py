"""Runnable adapters for in-process work."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from task_graph.scheduler.errors import InvalidTaskError
from task_graph.scheduler.models import Runnable


@dataclass(slots=True)
class CallableRunnable:
    """Wrap a zero-argument callable as a runnable."""

    func: Callable[[], Any]

    def execute(self) -> Any:
        return self.func()

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", None) or repr(self.func)
        return f"CallableRunnable({name})"


def as_runnable(work: Runnable | Callable[[], Any]) -> Runnable:
    """Accept either a runnable or a plain callable."""

    if isinstance(work, Runnable):
        return work
    if callable(work):
        return CallableRunnable(work)
    raise InvalidTaskError(f"Task work must be callable or expose execute(), got {type(work)!r}.")
