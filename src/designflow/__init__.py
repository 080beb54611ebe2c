"""
designflow - dependency-aware, bounded-parallel design task scheduling.

Subpackages:
- designflow.core: errors, structured logging, settings
- designflow.execution: task state machine, executor capability, timeouts, retries
- designflow.orchestration: registry, scheduler, report, plan files
- designflow.cli: command line interface
"""

__version__ = "0.1.0"

from designflow.execution import SimulatedExecutor, TaskExecutor, TaskResult, TaskStatus
from designflow.orchestration import (
    ExecutionReport,
    RunResult,
    Scheduler,
    Task,
    TaskConfig,
    TaskRegistry,
    load_plan,
    run_tasks,
    summarize,
)

__all__ = [
    "__version__",
    "ExecutionReport",
    "RunResult",
    "Scheduler",
    "SimulatedExecutor",
    "Task",
    "TaskConfig",
    "TaskExecutor",
    "TaskRegistry",
    "TaskResult",
    "TaskStatus",
    "load_plan",
    "run_tasks",
    "summarize",
]
