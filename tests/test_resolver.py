from __future__ import annotations

import allure

from task_graph.scheduler.models import TaskStatus
from task_graph.scheduler.registry import TaskRegistry
from task_graph.scheduler.resolver import DependencyResolver

pytestmark = [
    allure.epic("Task Graph"),
    allure.feature("Dependency Resolver"),
]


def _diamond() -> TaskRegistry:
    registry = TaskRegistry()
    registry.register("a", 0, [], lambda: None, 1)
    registry.register("b", 0, ["a"], lambda: None, 1)
    registry.register("c", 0, ["a"], lambda: None, 1)
    registry.register("d", 0, ["b", "c"], lambda: None, 1)
    registry.register("e", 0, [], lambda: None, 1)
    registry.validate()
    return registry


def _complete(registry: TaskRegistry, task_id: str) -> None:
    registry.set_status(task_id, TaskStatus.RUNNING)
    registry.set_status(task_id, TaskStatus.COMPLETED)


def test_initial_ready_promotes_dependency_free_tasks_in_registration_order() -> None:
    registry = _diamond()
    resolver = DependencyResolver(registry)

    ready = resolver.initial_ready()

    assert [task.task_id for task in ready] == ["a", "e"]
    assert registry.get_status("a") == TaskStatus.READY
    assert registry.get_status("b") == TaskStatus.PENDING


def test_find_newly_ready_waits_for_every_dependency() -> None:
    registry = _diamond()
    resolver = DependencyResolver(registry)
    resolver.initial_ready()

    _complete(registry, "a")
    assert [task.task_id for task in resolver.find_newly_ready("a")] == ["b", "c"]

    registry.set_status("b", TaskStatus.RUNNING)
    registry.set_status("b", TaskStatus.COMPLETED)
    assert resolver.find_newly_ready("b") == []
    assert registry.get_status("d") == TaskStatus.PENDING

    _complete(registry, "c")
    assert [task.task_id for task in resolver.find_newly_ready("c")] == ["d"]
    assert registry.get_status("d") == TaskStatus.READY


def test_find_newly_ready_skips_tasks_already_promoted() -> None:
    registry = _diamond()
    resolver = DependencyResolver(registry)
    resolver.initial_ready()
    _complete(registry, "a")
    resolver.find_newly_ready("a")

    assert resolver.find_newly_ready("a") == []


def test_blocked_by_is_transitive() -> None:
    registry = _diamond()
    registry.register("f", 0, ["d"], lambda: None, 1)
    registry.register("g", 0, ["e"], lambda: None, 1)
    resolver = DependencyResolver(registry)

    assert [task.task_id for task in resolver.blocked_by("b")] == ["d", "f"]
    assert [task.task_id for task in resolver.blocked_by("a")] == ["b", "c", "d", "f"]
    assert resolver.blocked_by("g") == []
