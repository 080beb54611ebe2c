"""
Shared pytest fixtures for designflow tests.

This module provides:
- ScriptedExecutor: an executor with per-task delays, failures and hangs
  that records how many tasks were in flight at once
- Sample design task sets (fan-out, failure isolation, full feature build)
- Isolation of settings cache and structlog configuration between tests
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

import pytest
import structlog

from designflow.core.settings import clear_settings_cache
from designflow.execution.models import TaskResult
from designflow.orchestration.task import Task


class ScriptedExecutor:
    """Executor whose behaviour per task id is scripted by the test.

    Args:
        delays: task id -> seconds to sleep (default ``default_delay``)
        failures: task id -> exception raised after the delay, or a list of
            exceptions consumed one per attempt (then success)
        hang: task ids that never resolve
        results: task id -> raw value returned instead of a TaskResult
    """

    def __init__(
        self,
        delays: Mapping[str, float] | None = None,
        failures: Mapping[str, Any] | None = None,
        hang: Iterable[str] = (),
        results: Mapping[str, Any] | None = None,
        default_delay: float = 0.01,
    ):
        self.delays = dict(delays or {})
        self.failures = {k: list(v) if isinstance(v, list) else v for k, v in (failures or {}).items()}
        self.hang = set(hang)
        self.results = dict(results or {})
        self.default_delay = default_delay

        self.calls: list[str] = []
        self.running: set[str] = set()
        self.max_running = 0
        self.concurrent_with: dict[str, frozenset[str]] = {}
        self.cancelled: list[str] = []

    async def execute(self, task: Task) -> Any:
        self.calls.append(task.id)
        self.running.add(task.id)
        self.max_running = max(self.max_running, len(self.running))
        self.concurrent_with[task.id] = frozenset(self.running)
        try:
            if task.id in self.hang:
                await asyncio.Event().wait()
            await asyncio.sleep(self.delays.get(task.id, self.default_delay))

            failure = self.failures.get(task.id)
            if isinstance(failure, list):
                failure = failure.pop(0) if failure else None
            if failure is not None:
                raise failure

            if task.id in self.results:
                return self.results[task.id]
            return TaskResult(files=task.config.files, summary=f"{task.id} done", elapsed=0.01)
        except asyncio.CancelledError:
            self.cancelled.append(task.id)
            raise
        finally:
            self.running.discard(task.id)


@pytest.fixture(autouse=True)
def _isolate_global_state():
    """Reset cached settings and structlog configuration around each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
    structlog.reset_defaults()


@pytest.fixture
def fan_out_tasks() -> list[dict[str, Any]]:
    """A -> (B, C) -> D."""
    return [
        {"id": "A"},
        {"id": "B", "dependencies": ["A"]},
        {"id": "C", "dependencies": ["A"]},
        {"id": "D", "dependencies": ["B", "C"]},
    ]


@pytest.fixture
def isolation_tasks() -> list[dict[str, Any]]:
    """A fails, B depends on A, C is independent."""
    return [
        {"id": "A"},
        {"id": "B", "dependencies": ["A"]},
        {"id": "C"},
    ]


@pytest.fixture
def shop_tasks() -> list[dict[str, Any]]:
    """A complete feature build: design system, pages, components, nav, validation."""
    pages = ["home", "login", "dashboard", "profile"]
    tasks: list[dict[str, Any]] = [
        {
            "id": "design-system",
            "kind": "design-system",
            "priority": 1,
            "files": ["UI/shop/design-system.html"],
            "estimatedEffort": 10,
        },
        {
            "id": "component-library",
            "kind": "component",
            "priority": 2,
            "dependencies": ["design-system"],
            "files": ["UI/shop/components/index.html"],
        },
    ]
    for n, page in enumerate(pages):
        tasks.append(
            {
                "id": f"page-{page}",
                "kind": "page",
                "priority": 3 + n,
                "dependencies": ["design-system"],
                "files": [f"UI/shop/pages/main/{page}.html"],
            }
        )
    tasks.append(
        {
            "id": "navigation",
            "kind": "navigation",
            "priority": 10,
            "dependencies": [f"page-{p}" for p in pages],
        }
    )
    tasks.append(
        {
            "id": "validation",
            "kind": "validation",
            "priority": 11,
            "dependencies": ["navigation", "component-library"],
        }
    )
    return tasks


@pytest.fixture
def make_executor():
    """Factory for ScriptedExecutor instances."""
    return ScriptedExecutor
