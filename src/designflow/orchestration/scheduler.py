"""Scheduler: dependency-aware, concurrency-bounded execution of design tasks.

WHY
───
Design tasks (design system, pages, component library, navigation,
validation) depend on each other but are otherwise independent units of
agent work.  Running them one by one wastes wall-clock time; running them
all at once ignores prerequisites.  The Scheduler starts each task as soon as
its prerequisites have completed, keeps at most ``max_concurrency`` in
flight, and frees a slot the moment *any* in-flight task finishes.

ARCHITECTURE
────────────
::

    Scheduler.run()
      │
      ├── registry.validate()            ─ unknown deps / cycles, before any dispatch
      │
      └── loop while tasks are unfinished
            ├── dispatch ready tasks      ─ up to free slots, registry order
            ├── nothing in flight?        ─ DeadlockError (invariant violation)
            ├── asyncio.wait(FIRST_COMPLETED)
            │                             ─ completion race, not a join
            └── settle each finished task
                  ├── completed           ─ result stored
                  └── failed              ─ error stored, pending dependents → blocked

    All registry mutation happens in this loop; the in-flight executor calls
    only return a completion record.

FAILURE POLICY
──────────────
A failed task never aborts its siblings.  Only tasks that transitively
depend on it are marked ``blocked``; independent branches keep running and
partial success is reported normally.  This replaces the race-and-throw
behaviour where one rejected task aborted the whole wait and stranded the
other in-flight operations.

Example::

    registry = TaskRegistry(configs)
    scheduler = Scheduler(registry, executor, max_concurrency=4, task_timeout=600)
    result = await scheduler.run()

    result.completion_order        # ['design-system', 'page-home', ...]
    result.report.efficiency       # 231.57
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from designflow.core.errors import (
    ConfigError,
    DesignflowError,
    OrchestrationError,
    TaskExecutionError,
)
from designflow.core.logging import LogContext, get_logger
from designflow.execution.executor import TaskExecutor
from designflow.execution.models import TaskResult, TaskStatus, utcnow
from designflow.execution.retry import NoRetry, RetryStrategy
from designflow.execution.timeout import resolve_timeout, run_with_deadline
from designflow.orchestration.exceptions import DeadlockError
from designflow.orchestration.registry import TaskLike, TaskRegistry
from designflow.orchestration.report import ExecutionReport, summarize
from designflow.orchestration.task import Task

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Completion:
    """What an in-flight executor call hands back to the loop."""

    task_id: str
    sequence: int
    finished_at: datetime
    attempts: int
    result: TaskResult | None = None
    error: TaskExecutionError | None = None


@dataclass
class RunResult:
    """Outcome of one scheduler run."""

    run_id: str
    outcomes: list[Task]
    report: ExecutionReport

    @property
    def completion_order(self) -> list[str]:
        """Ids of completed tasks, in the order they completed."""
        return [t.id for t in self.outcomes if t.status is TaskStatus.COMPLETED]

    @property
    def succeeded(self) -> bool:
        return not self.report.run_failed

    @property
    def failed(self) -> bool:
        """True when tasks were declared but none completed."""
        return self.report.run_failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "outcomes": [t.to_dict() for t in self.outcomes],
            "report": self.report.to_dict(),
        }


class Scheduler:
    """
    Drives a :class:`TaskRegistry` to completion through an executor.

    Args:
        registry: Tasks to run; the scheduler owns their state while running
        executor: Capability that performs each task
        max_concurrency: Default slot count (overridable per run)
        task_timeout: Default per-attempt timeout in seconds (None = none);
            a task's own ``timeout_seconds`` takes precedence
        retry: Strategy for retryable executor failures (default: NoRetry)
        clock: Source of timezone-aware timestamps
    """

    def __init__(
        self,
        registry: TaskRegistry,
        executor: TaskExecutor,
        *,
        max_concurrency: int = 4,
        task_timeout: float | None = None,
        retry: RetryStrategy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if task_timeout is not None and task_timeout <= 0:
            raise ConfigError(f"task_timeout must be positive, got {task_timeout}")
        self._registry = registry
        self._executor = executor
        self._max_concurrency = self._check_concurrency(max_concurrency)
        self._task_timeout = task_timeout
        self._retry = retry or NoRetry()
        self._clock = clock
        self._run_id: str | None = None
        self._sequence = 0

    @staticmethod
    def _check_concurrency(value: int) -> int:
        if value < 1:
            raise ConfigError(f"max_concurrency must be at least 1, got {value}")
        return value

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def is_running(self) -> bool:
        return self._run_id is not None

    # =========================================================================
    # Execution loop
    # =========================================================================

    async def run(self, max_concurrency: int | None = None) -> RunResult:
        """
        Run every registered task to a terminal state.

        Args:
            max_concurrency: Slot count for this run (default: constructor value)

        Returns:
            RunResult with tasks in terminal order and the ExecutionReport

        Raises:
            ConfigError: If max_concurrency < 1
            UnknownDependencyError, CyclicDependencyError: Before any dispatch
            DeadlockError: If no progress is possible (invariant violation)
        """
        limit = self._check_concurrency(
            self._max_concurrency if max_concurrency is None else max_concurrency
        )
        if self.is_running:
            raise OrchestrationError("Scheduler is already running")

        self._registry.validate()

        run_id = str(uuid.uuid4())
        self._run_id = run_id
        outcomes: list[Task] = []
        in_flight: dict[asyncio.Task[_Completion], str] = {}

        try:
            async with LogContext(run_id=run_id):
                logger.info(
                    "scheduler.started",
                    task_count=len(self._registry),
                    max_concurrency=limit,
                )

                while self._registry.has_unfinished:
                    self._dispatch_ready(limit, in_flight)

                    if not in_flight:
                        raise DeadlockError(sorted(self._registry.pending))

                    done, _ = await asyncio.wait(
                        in_flight.keys(), return_when=asyncio.FIRST_COMPLETED
                    )
                    completions = [self._collect(fut, in_flight.pop(fut)) for fut in done]
                    completions.sort(key=lambda c: (c.finished_at, c.sequence))
                    for completion in completions:
                        outcomes.extend(self._settle(completion))

                report = summarize(self._registry.tasks(), max_concurrency=limit)
                logger.info(
                    "scheduler.finished",
                    completed=report.completed_count,
                    failed=report.failed_count,
                    blocked=report.blocked_count,
                    wall_clock_time=report.wall_clock_time,
                    efficiency=report.efficiency,
                )
                return RunResult(run_id=run_id, outcomes=outcomes, report=report)
        finally:
            if in_flight:
                logger.warning(
                    "scheduler.cancelling_in_flight",
                    run_id=run_id,
                    task_ids=sorted(in_flight.values()),
                )
                for fut in in_flight:
                    fut.cancel()
                await asyncio.gather(*in_flight, return_exceptions=True)
            self._run_id = None

    def _dispatch_ready(
        self,
        limit: int,
        in_flight: dict[asyncio.Task[_Completion], str],
    ) -> None:
        """Start ready tasks until slots or ready tasks run out."""
        free_slots = limit - len(in_flight)
        if free_slots <= 0:
            return

        for task in self._registry.ready_tasks()[:free_slots]:
            self._registry.mark_running(task.id)
            task.started_at = self._clock()
            self._sequence += 1
            fut = asyncio.create_task(
                self._perform(task, self._sequence),
                name=f"designflow:{task.id}",
            )
            in_flight[fut] = task.id

            logger.info(
                "scheduler.task_started",
                task_id=task.id,
                kind=task.kind,
                priority=task.priority,
                running=len(in_flight),
            )

    def _collect(self, fut: asyncio.Task[_Completion], task_id: str) -> _Completion:
        """Turn a finished in-flight future into a completion record."""
        if fut.cancelled():
            return _Completion(
                task_id=task_id,
                sequence=0,
                finished_at=self._clock(),
                attempts=max(self._registry.get(task_id).attempts, 1),
                error=TaskExecutionError(task_id, "Executor operation was cancelled"),
            )
        return fut.result()

    def _settle(self, completion: _Completion) -> list[Task]:
        """Apply a completion to the registry; returns tasks made terminal."""
        task = self._registry.get(completion.task_id)
        task.finished_at = completion.finished_at
        task.attempts = completion.attempts

        if completion.error is None:
            self._registry.mark_completed(task.id, completion.result)
            logger.info(
                "scheduler.task_completed",
                task_id=task.id,
                duration_seconds=task.duration,
                attempts=task.attempts,
            )
            return [task]

        self._registry.mark_failed(task.id, completion.error)
        logger.warning(
            "scheduler.task_failed",
            task_id=task.id,
            duration_seconds=task.duration,
            attempts=task.attempts,
            error=completion.error.to_dict(),
        )
        return [task, *self._propagate_failure(task.id)]

    def _propagate_failure(self, failed_id: str) -> list[Task]:
        """Block every pending task that transitively depends on *failed_id*."""
        blocked = []
        for dependent_id in self._registry.dependents_of(failed_id):
            if self._registry.get(dependent_id).status is TaskStatus.PENDING:
                blocked.append(self._registry.mark_blocked(dependent_id, blocked_by=failed_id))

        if blocked:
            logger.warning(
                "scheduler.tasks_blocked",
                failed_task_id=failed_id,
                blocked=[t.id for t in blocked],
            )
        return blocked

    # =========================================================================
    # In-flight operation
    # =========================================================================

    async def _perform(self, task: Task, sequence: int) -> _Completion:
        """Call the executor (with deadline and retries); never mutates state."""
        timeout = resolve_timeout(task.config.timeout_seconds, self._task_timeout)
        attempt = 0

        while True:
            attempt += 1
            try:
                raw = await run_with_deadline(self._executor.execute(task), timeout, task.id)
                return _Completion(
                    task_id=task.id,
                    sequence=sequence,
                    finished_at=self._clock(),
                    attempts=attempt,
                    result=self._coerce_result(task, raw),
                )
            except Exception as e:
                error = self._wrap_error(task, e)

            if not self._retry.should_retry(attempt - 1, error):
                return _Completion(
                    task_id=task.id,
                    sequence=sequence,
                    finished_at=self._clock(),
                    attempts=attempt,
                    error=error,
                )

            delay = self._retry.next_delay(attempt - 1)
            logger.warning(
                "scheduler.task_retrying",
                task_id=task.id,
                attempt=attempt,
                delay_seconds=round(delay, 3),
                error=error.message,
            )
            await asyncio.sleep(delay)

    @staticmethod
    def _coerce_result(task: Task, raw: Any) -> TaskResult:
        if isinstance(raw, TaskResult):
            return raw
        if isinstance(raw, Mapping):
            return TaskResult.from_dict(raw)
        raise TaskExecutionError(
            task.id,
            f"Executor returned unsupported result type: {type(raw).__name__}",
        )

    def _wrap_error(self, task: Task, error: Exception) -> TaskExecutionError:
        """Normalize any executor failure into a TaskExecutionError."""
        if isinstance(error, TaskExecutionError):
            wrapped = error
        elif isinstance(error, DesignflowError):
            wrapped = TaskExecutionError(
                task.id, error.message, retryable=error.retryable, cause=error
            )
        else:
            wrapped = TaskExecutionError(
                task.id, str(error) or type(error).__name__, cause=error
            )
        wrapped.with_context(task_id=task.id, run_id=self._run_id, kind=task.kind)
        return wrapped


async def run_tasks(
    tasks: Iterable[TaskLike],
    executor: TaskExecutor,
    *,
    max_concurrency: int = 4,
    external: Iterable[str] = (),
    task_timeout: float | None = None,
    retry: RetryStrategy | None = None,
) -> RunResult:
    """Register *tasks* in a fresh registry and run them.

    Example::

        result = await run_tasks(plan.tasks, SimulatedExecutor(), max_concurrency=2)
    """
    registry = TaskRegistry(tasks, external=external)
    scheduler = Scheduler(
        registry,
        executor,
        max_concurrency=max_concurrency,
        task_timeout=task_timeout,
        retry=retry,
    )
    return await scheduler.run()
