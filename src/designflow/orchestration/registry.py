"""
Task Registry - declared tasks, dependency edges and status partitions.

The registry is the single source of truth for readiness.  Every registered
task id sits in exactly one of five disjoint partitions (pending, running,
completed, failed, blocked); the ``mark_*`` methods move an id between
partitions and update the Task in the same call, so no observer ever sees a
half-applied transition.

Responsibilities:
1. Reject duplicate ids and self-dependencies at registration
2. Validate the graph before execution (unknown dependencies, cycles)
3. Answer "which tasks are ready?" in a stable, biased order
4. Enforce the task state machine on every transition

Design Principles:
- No execution (that's for the Scheduler)
- No process-wide state: callers own their registry instance
- Clear error messages for all failure modes
"""

from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from designflow.core.errors import DesignflowError, OrchestrationError
from designflow.core.logging import get_logger
from designflow.execution.models import TaskResult, TaskStatus, validate_task_transition
from designflow.orchestration.exceptions import (
    CyclicDependencyError,
    DuplicateIdError,
    UnknownDependencyError,
    UnknownTaskError,
)
from designflow.orchestration.task import Task, TaskConfig

logger = get_logger(__name__)

TaskLike = Task | TaskConfig | Mapping[str, Any]


class TaskRegistry:
    """
    Holds declared tasks and their dependency edges.

    Not thread-safe: the scheduler serializes all mutation through its own
    event loop.

    Example:
        registry = TaskRegistry()
        registry.register({"id": "design-system", "kind": "design-system", "priority": 1})
        registry.register({"id": "page-home", "dependencies": ["design-system"]})
        registry.validate()
        [t.id for t in registry.ready_tasks()]   # ['design-system']
    """

    def __init__(
        self,
        tasks: Iterable[TaskLike] | None = None,
        *,
        external: Iterable[str] = (),
    ):
        self._tasks: dict[str, Task] = {}
        self._order: dict[str, int] = {}
        self._dependents: dict[str, set[str]] = defaultdict(set)
        self._partitions: dict[TaskStatus, set[str]] = {status: set() for status in TaskStatus}
        self._external: set[str] = set()

        self.declare_external(*external)
        if tasks is not None:
            self.register_many(tasks)

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, task: TaskLike) -> Task:
        """
        Register a task.

        Args:
            task: A pending Task, a TaskConfig, or a mapping validated into one

        Returns:
            The registered Task

        Raises:
            DuplicateIdError: If the id is already registered or external
            CyclicDependencyError: If the task depends on itself
            pydantic.ValidationError: If a mapping is not a valid TaskConfig
        """
        if isinstance(task, Mapping):
            task = TaskConfig.model_validate(task)
        if isinstance(task, TaskConfig):
            task = Task(config=task)

        if task.status is not TaskStatus.PENDING:
            raise OrchestrationError(
                f"Task '{task.id}' is {task.status.value}; only pending tasks can be registered"
            )
        if task.id in self._tasks or task.id in self._external:
            raise DuplicateIdError(task.id)
        if task.id in task.dependencies:
            raise CyclicDependencyError([task.id, task.id])

        self._order[task.id] = len(self._order)
        self._tasks[task.id] = task
        self._partitions[TaskStatus.PENDING].add(task.id)
        for dep in task.config.dependencies:
            self._dependents[dep].add(task.id)

        logger.debug(
            "registry.registered",
            task_id=task.id,
            kind=task.kind,
            dependencies=list(task.config.dependencies),
        )
        return task

    def register_many(self, tasks: Iterable[TaskLike]) -> list[Task]:
        """Register tasks in order; stops at the first failure."""
        return [self.register(task) for task in tasks]

    def declare_external(self, *task_ids: str) -> None:
        """Declare ids that count as already completed prerequisites.

        External ids are not tasks: they never run, never appear in a
        partition and never show up in reports.
        """
        for task_id in task_ids:
            if task_id in self._tasks:
                raise DuplicateIdError(task_id)
            self._external.add(task_id)

    # =========================================================================
    # Validation
    # =========================================================================

    def validate(self) -> None:
        """
        Validate the dependency graph before any execution.

        Raises:
            UnknownDependencyError: If a dependency is neither registered nor external
            CyclicDependencyError: If dependencies contain a cycle
        """
        for task in self._tasks.values():
            missing = [
                dep for dep in task.config.dependencies
                if dep not in self._tasks and dep not in self._external
            ]
            if missing:
                raise UnknownDependencyError(task.id, missing)

        self._validate_no_cycles()

        logger.debug(
            "registry.validated",
            task_count=len(self._tasks),
            external_count=len(self._external),
        )

    def _validate_no_cycles(self) -> None:
        """
        Validate the dependency graph is a DAG (no cycles).

        Uses depth-first search with three-color marking:
        - WHITE (0): Unvisited
        - GRAY (1): Currently visiting (on current path)
        - BLACK (2): Finished visiting

        If we encounter a GRAY node, we've found a cycle.
        """
        WHITE, GRAY, BLACK = 0, 1, 2

        graph = {
            task_id: [dep for dep in task.config.dependencies if dep in self._tasks]
            for task_id, task in self._tasks.items()
        }
        color = {task_id: WHITE for task_id in graph}

        for root in graph:
            if color[root] != WHITE:
                continue

            # path[i] is the node whose neighbours stack[i] is iterating
            path = [root]
            stack = [iter(graph[root])]
            color[root] = GRAY

            while stack:
                neighbor = next(stack[-1], None)
                if neighbor is None:
                    color[path.pop()] = BLACK
                    stack.pop()
                elif color[neighbor] == GRAY:
                    cycle_start = path.index(neighbor)
                    raise CyclicDependencyError(path[cycle_start:] + [neighbor])
                elif color[neighbor] == WHITE:
                    color[neighbor] = GRAY
                    path.append(neighbor)
                    stack.append(iter(graph[neighbor]))

    # =========================================================================
    # Readiness
    # =========================================================================

    def is_satisfied(self, task_id: str) -> bool:
        """True if *task_id* is completed or declared external."""
        return task_id in self._external or task_id in self._partitions[TaskStatus.COMPLETED]

    def ready_tasks(self) -> list[Task]:
        """
        Pending tasks whose dependencies are all satisfied.

        Ordered by ascending dependency count, then descending priority,
        then registration order.
        """
        ready = [
            self._tasks[task_id]
            for task_id in self._partitions[TaskStatus.PENDING]
            if all(self.is_satisfied(dep) for dep in self._tasks[task_id].config.dependencies)
        ]
        ready.sort(key=lambda t: (len(t.config.dependencies), -t.priority, self._order[t.id]))
        return ready

    def dependents_of(self, task_id: str) -> list[str]:
        """All tasks that transitively depend on *task_id*, in registration order."""
        self._require(task_id)
        seen: set[str] = set()
        queue = deque(self._dependents.get(task_id, ()))
        while queue:
            node = queue.popleft()
            if node in seen:
                continue
            seen.add(node)
            queue.extend(self._dependents.get(node, ()))
        return sorted(seen, key=self._order.__getitem__)

    # =========================================================================
    # Transitions
    # =========================================================================

    def mark_running(self, task_id: str) -> Task:
        """pending → running."""
        return self._transition(task_id, TaskStatus.RUNNING)

    def mark_completed(self, task_id: str, result: TaskResult) -> Task:
        """running → completed, storing the executor's result."""
        task = self._transition(task_id, TaskStatus.COMPLETED)
        task.result = result
        task.error = None
        return task

    def mark_failed(self, task_id: str, error: DesignflowError) -> Task:
        """running → failed, storing the error."""
        task = self._transition(task_id, TaskStatus.FAILED)
        task.error = error
        task.result = None
        return task

    def mark_blocked(self, task_id: str, blocked_by: str | None = None) -> Task:
        """pending → blocked: a prerequisite can never complete."""
        task = self._transition(task_id, TaskStatus.BLOCKED)
        task.blocked_by = blocked_by
        return task

    def _transition(self, task_id: str, target: TaskStatus) -> Task:
        task = self._require(task_id)
        validate_task_transition(task_id, task.status, target)
        self._partitions[task.status].discard(task_id)
        self._partitions[target].add(task_id)
        task.status = target
        return task

    def _require(self, task_id: str) -> Task:
        try:
            return self._tasks[task_id]
        except KeyError:
            raise UnknownTaskError(task_id) from None

    # =========================================================================
    # Inspection
    # =========================================================================

    def get(self, task_id: str) -> Task:
        return self._require(task_id)

    def tasks(self) -> list[Task]:
        """All tasks in registration order."""
        return list(self._tasks.values())

    def ids_with_status(self, status: TaskStatus) -> frozenset[str]:
        return frozenset(self._partitions[status])

    @property
    def pending(self) -> frozenset[str]:
        return self.ids_with_status(TaskStatus.PENDING)

    @property
    def running(self) -> frozenset[str]:
        return self.ids_with_status(TaskStatus.RUNNING)

    @property
    def completed(self) -> frozenset[str]:
        return self.ids_with_status(TaskStatus.COMPLETED)

    @property
    def failed(self) -> frozenset[str]:
        return self.ids_with_status(TaskStatus.FAILED)

    @property
    def blocked(self) -> frozenset[str]:
        return self.ids_with_status(TaskStatus.BLOCKED)

    @property
    def external(self) -> frozenset[str]:
        return frozenset(self._external)

    @property
    def has_unfinished(self) -> bool:
        """True while any task is pending or running."""
        return bool(self._partitions[TaskStatus.PENDING] or self._partitions[TaskStatus.RUNNING])

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())
