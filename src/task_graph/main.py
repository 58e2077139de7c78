"""CLI entrypoint for task-graph."""

import logging
from pathlib import Path

import rich_click as click

from task_graph import __version__
from task_graph.config import Settings
from task_graph.scheduler.controllers import (
    RunPlanCommand,
    SchedulerCliController,
    ValidatePlanCommand,
)
from task_graph.scheduler.errors import TaskGraphError

click.rich_click.USE_MARKDOWN = True
SCHEDULER_CONTROLLER = SchedulerCliController()


@click.group()
@click.version_option(version=__version__, prog_name="task-graph")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override TASK_GRAPH_LOG_LEVEL.",
)
def task_graph(log_level: str | None) -> None:
    """Dependency-aware task graph runner."""

    try:
        level = log_level or Settings.from_env().log_level
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@task_graph.command("validate")
@click.argument("plan_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(plan_path: Path) -> None:
    """Check a plan for unknown dependencies and cycles, print execution order."""

    try:
        lines = SCHEDULER_CONTROLLER.validate_plan(ValidatePlanCommand(plan_path=plan_path))
    except (TaskGraphError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@task_graph.command("run")
@click.argument("plan_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help="Worker threads. Defaults to TASK_GRAPH_WORKERS or CPU count.",
)
@click.option(
    "--retry-base-seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Base delay for exponential retry backoff.",
)
@click.option(
    "--retry-max-seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Cap for retry backoff delay.",
)
@click.option("--json", "output_json", is_flag=True, help="Print the run summary as JSON.")
def run(
    plan_path: Path,
    workers: int | None,
    retry_base_seconds: float | None,
    retry_max_seconds: float | None,
    output_json: bool,
) -> None:
    """Run every task of a plan; exit code 1 unless all tasks completed."""

    try:
        output = SCHEDULER_CONTROLLER.run_plan(
            RunPlanCommand(
                plan_path=plan_path,
                workers=workers,
                retry_base_seconds=retry_base_seconds,
                retry_max_seconds=retry_max_seconds,
                output_json=output_json,
            ),
        )
    except (TaskGraphError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(output.lines)
    if not output.ok:
        raise SystemExit(1)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    task_graph()
