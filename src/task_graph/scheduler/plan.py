"""JSON plan files describing command task graphs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from task_graph.scheduler.backend import CommandRunnable
from task_graph.scheduler.errors import PlanError
from task_graph.scheduler.services import Scheduler

PLAN_VERSION = 1


@dataclass(slots=True)
class PlanTask:
    """One task entry from a plan file."""

    task_id: str
    command: str | list[str]
    priority: int = 0
    depends_on: tuple[str, ...] = ()
    max_retries: int | None = None
    timeout_seconds: float | None = None
    env: dict[str, str] = field(default_factory=dict)
    non_retryable_exit_codes: frozenset[int] = frozenset()


@dataclass(slots=True)
class Plan:
    """Parsed plan document."""

    tasks: list[PlanTask]
    path: Path | None = None
    workdir: Path | None = None


def read_plan(path: Path) -> Plan:
    try:
        payload = json.loads(path.read_text("utf-8"))
    except FileNotFoundError as error:
        raise PlanError(f"Plan file not found: {path}") from error
    except json.JSONDecodeError as error:
        raise PlanError(f"Plan file is not valid JSON: {path}: {error}") from error
    plan = parse_plan(payload)
    plan.path = path
    if plan.workdir is None:
        plan.workdir = path.parent
    elif not plan.workdir.is_absolute():
        plan.workdir = path.parent / plan.workdir
    return plan


def parse_plan(payload: Any) -> Plan:
    if not isinstance(payload, dict):
        raise PlanError("Plan must be a JSON object.")
    version = payload.get("version", PLAN_VERSION)
    if version != PLAN_VERSION:
        raise PlanError(f"Unsupported plan version: {version!r}")
    raw_tasks = payload.get("tasks")
    if not isinstance(raw_tasks, list) or not raw_tasks:
        raise PlanError("Plan must contain a non-empty 'tasks' list.")

    workdir = payload.get("workdir")
    return Plan(
        tasks=[_parse_task(raw, index=index) for index, raw in enumerate(raw_tasks)],
        workdir=Path(workdir) if isinstance(workdir, str) and workdir else None,
    )


def build_scheduler(
    plan: Plan,
    scheduler: Scheduler,
    *,
    default_timeout_seconds: float | None = None,
) -> Scheduler:
    """Register every plan task as a command runnable.

    Tasks may list dependencies declared later in the file, so the scheduler
    must allow forward references; ``validate()`` catches dangling ids.
    """

    if not scheduler.registry.allow_forward_references:
        raise PlanError("Plan scheduling requires a scheduler with allow_forward_references=True.")
    for task in plan.tasks:
        scheduler.register(
            task.task_id,
            task.priority,
            task.depends_on,
            CommandRunnable(
                command=task.command,
                timeout_seconds=task.timeout_seconds or default_timeout_seconds,
                cwd=plan.workdir,
                env=task.env,
                non_retryable_exit_codes=task.non_retryable_exit_codes,
            ),
            task.max_retries,
        )
    return scheduler


def _parse_task(raw: Any, *, index: int) -> PlanTask:
    if not isinstance(raw, dict):
        raise PlanError(f"tasks[{index}] must be an object.")
    task_id = raw.get("id")
    if not isinstance(task_id, str) or not task_id.strip():
        raise PlanError(f"tasks[{index}].id must be a non-empty string.")

    command = raw.get("command")
    if isinstance(command, list):
        if not command or not all(isinstance(part, str) for part in command):
            raise PlanError(f"Task {task_id}: command list must contain strings.")
    elif not isinstance(command, str) or not command.strip():
        raise PlanError(f"Task {task_id}: command must be a non-empty string or list.")

    depends_on = raw.get("depends_on", [])
    if not isinstance(depends_on, list) or not all(isinstance(dep, str) for dep in depends_on):
        raise PlanError(f"Task {task_id}: depends_on must be a list of task ids.")

    env = raw.get("env", {})
    if not isinstance(env, dict) or not all(
        isinstance(key, str) and isinstance(value, str) for key, value in env.items()
    ):
        raise PlanError(f"Task {task_id}: env must map strings to strings.")

    codes = raw.get("non_retryable_exit_codes", [])
    if not isinstance(codes, list) or not all(_is_int(code) for code in codes):
        raise PlanError(f"Task {task_id}: non_retryable_exit_codes must be a list of integers.")

    return PlanTask(
        task_id=task_id,
        command=command,
        priority=_int_field(raw, "priority", task_id=task_id, default=0),
        depends_on=tuple(depends_on),
        max_retries=_optional_int_field(raw, "max_retries", task_id=task_id),
        timeout_seconds=_optional_positive_float(raw, "timeout_seconds", task_id=task_id),
        env=dict(env),
        non_retryable_exit_codes=frozenset(codes),
    )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _int_field(raw: dict[str, Any], key: str, *, task_id: str, default: int) -> int:
    value = raw.get(key, default)
    if not _is_int(value):
        raise PlanError(f"Task {task_id}: {key} must be an integer.")
    return value


def _optional_int_field(raw: dict[str, Any], key: str, *, task_id: str) -> int | None:
    value = raw.get(key)
    if value is None:
        return None
    if not _is_int(value):
        raise PlanError(f"Task {task_id}: {key} must be an integer.")
    return value


def _optional_positive_float(raw: dict[str, Any], key: str, *, task_id: str) -> float | None:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        raise PlanError(f"Task {task_id}: {key} must be a positive number.")
    return float(value)
