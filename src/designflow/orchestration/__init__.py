"""
designflow orchestration: dependency-aware design task scheduling.

WHY
───
A feature build is a handful of design tasks with prerequisites: the design
system before any page, the pages before navigation, everything before
validation.  Orchestration turns those declarations into a bounded-parallel
run and a report of how much parallelism was actually gained.

ARCHITECTURE
────────────
::

    TaskConfig / Task       ─ descriptor + mutable execution state
    TaskRegistry            ─ ids, edges, status partitions, readiness
    Scheduler               ─ asyncio loop, completion race, blocked propagation
    summarize()             ─ ExecutionReport from a terminal snapshot

    Supporting:
      plan.py               ─ YAML / JSON design plan files
      exceptions.py         ─ registry / graph / scheduling errors

MODULE MAP (recommended reading order)
──────────────────────────────────────
1. exceptions.py   ─ error hierarchy
2. task.py         ─ TaskConfig + Task
3. registry.py     ─ TaskRegistry
4. report.py       ─ ExecutionReport + summarize
5. scheduler.py    ─ Scheduler + RunResult
6. plan.py         ─ DesignPlanSpec + load_plan

Example:
    from designflow.execution import SimulatedExecutor
    from designflow.orchestration import Scheduler, TaskRegistry

    registry = TaskRegistry([
        {"id": "design-system", "kind": "design-system", "priority": 1},
        {"id": "page-home", "dependencies": ["design-system"]},
        {"id": "page-login", "dependencies": ["design-system"]},
    ])
    result = await Scheduler(registry, SimulatedExecutor(), max_concurrency=2).run()
    print(result.report.efficiency)
"""

from designflow.orchestration.exceptions import (
    CyclicDependencyError,
    DeadlockError,
    DuplicateIdError,
    InvalidPlanError,
    UnknownDependencyError,
    UnknownTaskError,
)
from designflow.orchestration.plan import DesignPlanSpec, load_plan
from designflow.orchestration.registry import TaskRegistry
from designflow.orchestration.report import ExecutionReport, summarize
from designflow.orchestration.scheduler import RunResult, Scheduler, run_tasks
from designflow.orchestration.task import Task, TaskConfig

__all__ = [
    # Exceptions
    "CyclicDependencyError",
    "DeadlockError",
    "DuplicateIdError",
    "InvalidPlanError",
    "UnknownDependencyError",
    "UnknownTaskError",
    # Tasks
    "Task",
    "TaskConfig",
    "TaskRegistry",
    # Execution
    "RunResult",
    "Scheduler",
    "run_tasks",
    # Reporting
    "ExecutionReport",
    "summarize",
    # Plans
    "DesignPlanSpec",
    "load_plan",
]
