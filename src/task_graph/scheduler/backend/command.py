"""Subprocess-backed work for plan files."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from task_graph.scheduler.errors import NonRetryableTaskError

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
_PREVIEW_LIMIT = 1200


class CommandFailedError(RuntimeError):
    """Command exited non-zero or could not be started; retryable."""

    def __init__(self, message: str, *, exit_code: int | None, timed_out: bool = False) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.timed_out = timed_out


class NonRetryableCommandError(NonRetryableTaskError):
    """Command failure that another attempt cannot fix."""

    def __init__(self, message: str, *, exit_code: int | None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


@dataclass(slots=True)
class CommandResult:
    """Captured outcome of a successful command."""

    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int


@dataclass(slots=True)
class CommandRunnable:
    """Run a shell-style command; non-zero exit fails the attempt."""

    command: str | Sequence[str]
    timeout_seconds: float | None = None
    cwd: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    non_retryable_exit_codes: frozenset[int] = frozenset()

    def execute(self) -> CommandResult:
        args = self.args()
        env = os.environ.copy()
        env.update(self.env)
        started = time.monotonic()
        try:
            completed = subprocess.run(  # noqa: S603
                args,
                cwd=self.cwd,
                env=env,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as error:
            raise CommandFailedError(
                f"Command timed out after {self.timeout_seconds}s: {args[0]}",
                exit_code=TIMEOUT_EXIT_CODE,
                timed_out=True,
            ) from error
        except FileNotFoundError as error:
            raise NonRetryableCommandError(
                f"Command not found: {args[0]}",
                exit_code=None,
            ) from error
        except OSError as error:
            raise CommandFailedError(
                f"Command failed to start: {error}",
                exit_code=None,
            ) from error

        duration_ms = int((time.monotonic() - started) * 1000)
        if completed.returncode != 0:
            message = (
                f"Command exited with code {completed.returncode}: "
                f"{_preview(completed.stderr) or _preview(completed.stdout) or args[0]}"
            )
            if completed.returncode in self.non_retryable_exit_codes:
                raise NonRetryableCommandError(message, exit_code=completed.returncode)
            raise CommandFailedError(message, exit_code=completed.returncode)

        logger.debug("Command %s finished in %d ms", args[0], duration_ms)
        return CommandResult(
            exit_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            duration_ms=duration_ms,
        )

    def args(self) -> list[str]:
        if isinstance(self.command, str):
            args = shlex.split(self.command)
        else:
            args = [str(part) for part in self.command]
        if not args:
            raise NonRetryableCommandError("Command is empty.", exit_code=None)
        return args


def _preview(text: str | None) -> str:
    if not text:
        return ""
    stripped = text.strip()
    if len(stripped) <= _PREVIEW_LIMIT:
        return stripped
    return stripped[-_PREVIEW_LIMIT:]
