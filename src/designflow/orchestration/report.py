"""Execution report: summary statistics over a terminal task snapshot.

``summarize`` is a pure function: it reads task state, never mutates it, and
returns identical output for identical input however often it is called.

Efficiency expresses parallelism gain::

    efficiency = total_busy_time / wall_clock_time * 100

    4 tasks x 10s on 4 slots, all in parallel  → 400.0
    4 tasks x 10s run one after another        → 100.0
    nothing ever ran                           → 0.0
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from designflow.execution.models import TaskStatus
from designflow.orchestration.task import Task


@dataclass(frozen=True)
class ExecutionReport:
    """Read-only summary of a finished run."""

    total_tasks: int
    completed_count: int
    failed_count: int
    blocked_count: int
    total_busy_time: float
    wall_clock_time: float
    efficiency: float
    average_duration: float
    breakdown: dict[str, int] = field(default_factory=dict)
    failed_tasks: tuple[str, ...] = ()
    blocked_tasks: tuple[str, ...] = ()
    max_concurrency: int | None = None

    @property
    def run_failed(self) -> bool:
        """True when a non-empty task set produced no completed task."""
        return self.total_tasks > 0 and self.completed_count == 0

    @property
    def fully_succeeded(self) -> bool:
        return self.completed_count == self.total_tasks

    def to_dict(self) -> dict[str, Any]:
        """Serialise for logging / JSON output."""
        return {
            "total_tasks": self.total_tasks,
            "completed_count": self.completed_count,
            "failed_count": self.failed_count,
            "blocked_count": self.blocked_count,
            "total_busy_time": self.total_busy_time,
            "wall_clock_time": self.wall_clock_time,
            "efficiency": self.efficiency,
            "average_duration": self.average_duration,
            "breakdown": dict(self.breakdown),
            "failed_tasks": list(self.failed_tasks),
            "blocked_tasks": list(self.blocked_tasks),
            "max_concurrency": self.max_concurrency,
            "run_failed": self.run_failed,
        }


def summarize(
    tasks: Iterable[Task],
    *,
    max_concurrency: int | None = None,
) -> ExecutionReport:
    """
    Aggregate a terminal task snapshot into an :class:`ExecutionReport`.

    Args:
        tasks: Every task of the run (any order)
        max_concurrency: Slot count the run used, echoed into the report

    Returns:
        ExecutionReport; ``efficiency`` is 0.0 when nothing ever ran
    """
    tasks = list(tasks)
    by_status = Counter(task.status for task in tasks)

    ran = [
        task for task in tasks
        if task.status in (TaskStatus.COMPLETED, TaskStatus.FAILED) and task.duration is not None
    ]
    total_busy_time = sum((task.duration for task in ran), 0.0)

    started = [task.started_at for task in tasks if task.started_at is not None]
    finished = [task.finished_at for task in tasks if task.finished_at is not None]
    if started and finished:
        wall_clock_time = max((max(finished) - min(started)).total_seconds(), 0.0)
    else:
        wall_clock_time = 0.0

    if wall_clock_time > 0:
        efficiency = round(total_busy_time / wall_clock_time * 100, 2)
    else:
        efficiency = 0.0

    breakdown = Counter(task.kind for task in tasks if task.is_terminal)

    return ExecutionReport(
        total_tasks=len(tasks),
        completed_count=by_status[TaskStatus.COMPLETED],
        failed_count=by_status[TaskStatus.FAILED],
        blocked_count=by_status[TaskStatus.BLOCKED],
        total_busy_time=total_busy_time,
        wall_clock_time=wall_clock_time,
        efficiency=efficiency,
        average_duration=total_busy_time / len(ran) if ran else 0.0,
        breakdown={kind: breakdown[kind] for kind in sorted(breakdown)},
        failed_tasks=tuple(sorted(t.id for t in tasks if t.status is TaskStatus.FAILED)),
        blocked_tasks=tuple(sorted(t.id for t in tasks if t.status is TaskStatus.BLOCKED)),
        max_concurrency=max_concurrency,
    )
