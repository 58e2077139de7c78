"""Controllers for scheduler CLI commands."""

from __future__ import annotations

import json
import logging
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path

from task_graph.config import Settings
from task_graph.scheduler.cancellation import CancelToken
from task_graph.scheduler.plan import build_scheduler, read_plan
from task_graph.scheduler.services import Scheduler

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ValidatePlanCommand:
    """CLI input for plan validation."""

    plan_path: Path


@dataclass(slots=True)
class RunPlanCommand:
    """CLI input for plan execution."""

    plan_path: Path
    workers: int | None = None
    retry_base_seconds: float | None = None
    retry_max_seconds: float | None = None
    output_json: bool = False


@dataclass(slots=True)
class PlanRunOutput:
    """Lines to print plus overall success flag."""

    lines: list[str]
    ok: bool


class SchedulerCliController:
    """Loads plans, runs them, and renders summaries."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    def validate_plan(self, command: ValidatePlanCommand) -> list[str]:
        settings = self._load_settings()
        plan = read_plan(command.plan_path)
        scheduler = build_scheduler(
            plan,
            Scheduler.from_settings(settings, allow_forward_references=True),
            default_timeout_seconds=settings.worker.command_timeout_seconds,
        )
        order = scheduler.validate()
        return [
            f"Plan is valid: tasks={len(order)}",
            *(f"{index}. {task_id}" for index, task_id in enumerate(order, start=1)),
        ]

    def run_plan(self, command: RunPlanCommand) -> PlanRunOutput:
        settings = self._load_settings()
        if command.workers is not None:
            settings = replace(settings, worker=replace(settings.worker, workers=command.workers))
        if command.retry_base_seconds is not None or command.retry_max_seconds is not None:
            settings = replace(
                settings,
                retry=replace(
                    settings.retry,
                    base_seconds=_pick(command.retry_base_seconds, settings.retry.base_seconds),
                    max_seconds=_pick(command.retry_max_seconds, settings.retry.max_seconds),
                ),
            )
        settings.validate()

        plan = read_plan(command.plan_path)
        scheduler = build_scheduler(
            plan,
            Scheduler.from_settings(settings, allow_forward_references=True),
            default_timeout_seconds=settings.worker.command_timeout_seconds,
        )
        scheduler.validate()

        token = CancelToken()
        with _signal_handlers(token):
            summary = scheduler.run(token)

        if command.output_json:
            return PlanRunOutput(
                lines=[json.dumps(summary.to_dict(), indent=2, sort_keys=True)],
                ok=summary.ok,
            )

        lines = [
            "Run summary: "
            f"completed={len(summary.completed)} failed={len(summary.failed)} "
            f"blocked={len(summary.blocked)} cancelled={len(summary.cancelled)} "
            f"duration={summary.duration_seconds:.2f}s",
        ]
        lines.extend(f"completed: {task_id}" for task_id in summary.completed)
        lines.extend(
            f"failed: {task_id} attempts={summary.attempts.get(task_id, 0)} "
            f"error={summary.errors.get(task_id, '-')}"
            for task_id in summary.failed
        )
        lines.extend(f"blocked: {task_id}" for task_id in summary.blocked)
        lines.extend(f"cancelled: {task_id}" for task_id in summary.cancelled)
        return PlanRunOutput(lines=lines, ok=summary.ok)

    def _load_settings(self) -> Settings:
        settings = self._settings or Settings.from_env()
        settings.validate()
        return settings


def _pick(value: float | None, default: float) -> float:
    return default if value is None else value


@contextmanager
def _signal_handlers(token: CancelToken) -> Iterator[None]:
    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handler(signum: int, _: object | None) -> None:
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        logger.warning("Received %s, finishing running tasks before stopping", name)
        token.cancel(reason=f"signal {name}")

    try:
        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
    except ValueError:
        # Signal handlers can only be installed in main thread.
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)
