"""Work backends: adapters that turn callables and commands into runnables."""

from task_graph.scheduler.backend.base import CallableRunnable, as_runnable
from task_graph.scheduler.backend.command import (
    CommandFailedError,
    CommandResult,
    CommandRunnable,
    NonRetryableCommandError,
)

__all__ = [
    "CallableRunnable",
    "CommandFailedError",
    "CommandResult",
    "CommandRunnable",
    "NonRetryableCommandError",
    "as_runnable",
]
