from __future__ import annotations

import json
import sys
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from task_graph import __version__
from task_graph.main import task_graph

pytestmark = [
    allure.epic("Task Graph"),
    allure.feature("CLI"),
]


@pytest.fixture(autouse=True)
def _fast_retries(monkeypatch) -> None:
    monkeypatch.setenv("TASK_GRAPH_RETRY_BASE_SECONDS", "0")
    monkeypatch.setenv("TASK_GRAPH_RETRY_MAX_SECONDS", "0")
    monkeypatch.setenv("TASK_GRAPH_WORKERS", "1")


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def _write_plan(tmp_path: Path, tasks: list[dict]) -> Path:
    path = tmp_path / "plan.json"
    path.write_text(json.dumps({"tasks": tasks}), "utf-8")
    return path


def _diamond(*, b_command: list[str] | None = None) -> list[dict]:
    ok = _python("pass")
    return [
        {"id": "D", "command": ok, "depends_on": ["B", "C"]},
        {"id": "A", "command": ok},
        {"id": "B", "command": b_command or ok, "depends_on": ["A"], "max_retries": 2},
        {"id": "C", "command": ok, "depends_on": ["A"]},
    ]


def test_version_option() -> None:
    result = CliRunner().invoke(task_graph, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_validate_prints_execution_order(tmp_path: Path) -> None:
    result = CliRunner().invoke(task_graph, ["validate", str(_write_plan(tmp_path, _diamond()))])

    assert result.exit_code == 0, result.output
    assert "Plan is valid: tasks=4" in result.output
    lines = [line for line in result.output.splitlines() if line[:1].isdigit()]
    assert lines == ["1. A", "2. B", "3. C", "4. D"]


def test_validate_reports_cycle(tmp_path: Path) -> None:
    plan = _write_plan(
        tmp_path,
        [
            {"id": "a", "command": "x", "depends_on": ["b"]},
            {"id": "b", "command": "x", "depends_on": ["a"]},
        ],
    )

    result = CliRunner().invoke(task_graph, ["validate", str(plan)])

    assert result.exit_code == 1
    assert "Dependency cycle detected: a -> b -> a" in result.output


def test_validate_reports_unknown_dependency(tmp_path: Path) -> None:
    plan = _write_plan(tmp_path, [{"id": "a", "command": "x", "depends_on": ["ghost"]}])

    result = CliRunner().invoke(task_graph, ["validate", str(plan)])

    assert result.exit_code == 1
    assert "unknown task(s): ghost" in result.output


def test_run_succeeds_when_all_tasks_complete(tmp_path: Path) -> None:
    result = CliRunner().invoke(task_graph, ["run", str(_write_plan(tmp_path, _diamond()))])

    assert result.exit_code == 0, result.output
    assert "Run summary: completed=4 failed=0 blocked=0 cancelled=0" in result.output
    completed = [line for line in result.output.splitlines() if line.startswith("completed: ")]
    assert completed == ["completed: A", "completed: B", "completed: C", "completed: D"]


def test_run_reports_failure_and_blocked_tasks(tmp_path: Path) -> None:
    plan = _write_plan(tmp_path, _diamond(b_command=_python("import sys; sys.exit(7)")))

    result = CliRunner().invoke(task_graph, ["run", str(plan), "--workers", "2"])

    assert result.exit_code == 1
    assert "failed: B attempts=2" in result.output
    assert "code 7" in result.output
    assert "blocked: D" in result.output


def test_run_json_output(tmp_path: Path) -> None:
    plan = _write_plan(tmp_path, _diamond(b_command=_python("import sys; sys.exit(7)")))

    result = CliRunner().invoke(task_graph, ["run", str(plan), "--json"])

    assert result.exit_code == 1
    payload = json.loads(result.stdout[result.stdout.index("{") :])
    assert payload["completed"] == ["A", "C"]
    assert payload["failed"] == ["B"]
    assert payload["blocked"] == ["D"]
    assert payload["cancelled"] == []
    assert payload["attempts"]["B"] == 2
    assert payload["was_cancelled"] is False


def test_run_rejects_invalid_retry_window(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        task_graph,
        ["run", str(_write_plan(tmp_path, _diamond())), "--retry-base-seconds", "5"],
    )

    assert result.exit_code == 1
    assert "TASK_GRAPH_RETRY_MAX_SECONDS" in result.output


def test_invalid_environment_value_is_reported_without_traceback(
    tmp_path: Path,
    monkeypatch,
) -> None:
    monkeypatch.setenv("TASK_GRAPH_WORKERS", "many")
    plan = str(_write_plan(tmp_path, _diamond()))

    result = CliRunner().invoke(task_graph, ["run", plan])
    with_level = CliRunner().invoke(task_graph, ["--log-level", "INFO", "run", plan])

    for outcome in (result, with_level):
        assert outcome.exit_code == 1
        assert isinstance(outcome.exception, SystemExit)
        assert "Invalid integer value for TASK_GRAPH_WORKERS: 'many'" in outcome.output
