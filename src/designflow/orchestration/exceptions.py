"""Orchestration exceptions: registry, dependency-graph and scheduling errors.

All orchestration exceptions inherit from
``designflow.core.errors.OrchestrationError`` so that callers can catch the
entire family with a single ``except`` clause.

Hierarchy::

    OrchestrationError  (from designflow.core.errors)
      ├── DuplicateIdError         ── task id registered twice
      ├── UnknownDependencyError   ── dependency names no task or external id
      ├── UnknownTaskError         ── transition requested for unknown id
      ├── CyclicDependencyError    ── dependency graph has a cycle
      ├── DeadlockError            ── nothing running, nothing ready, work left
      └── InvalidPlanError         ── plan file is malformed
"""

from designflow.core.errors import ErrorCategory, ErrorContext, OrchestrationError


class DuplicateIdError(OrchestrationError):
    """Raised when a task id is registered (or declared external) twice."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(
            f"Task id already registered: {task_id}",
            context=ErrorContext(task_id=task_id),
        )


class UnknownDependencyError(OrchestrationError):
    """Raised when a task depends on ids that are not registered."""

    def __init__(self, task_id: str, missing_deps: list[str]):
        self.task_id = task_id
        self.missing_deps = missing_deps
        deps_str = ", ".join(missing_deps)
        super().__init__(
            f"Task '{task_id}' depends on unknown tasks: {deps_str}",
            context=ErrorContext(task_id=task_id),
        )


class UnknownTaskError(OrchestrationError, KeyError):
    """Raised when a registry operation names an unregistered task."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(
            f"Task not registered: {task_id}",
            context=ErrorContext(task_id=task_id),
        )

    def __str__(self) -> str:
        return self.message


class CyclicDependencyError(OrchestrationError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        cycle_str = " -> ".join(cycle)
        super().__init__(f"Cycle detected in dependency graph: {cycle_str}")


class DeadlockError(OrchestrationError):
    """Raised when the scheduler can make no progress.

    Only reachable if graph validation or blocked-propagation is defective:
    no task is running, none is ready, yet some are not terminal.
    """

    def __init__(self, stuck: list[str]):
        self.stuck = stuck
        super().__init__(
            "Scheduling deadlock: no task running or ready, "
            f"but {len(stuck)} not terminal: {', '.join(stuck)}"
        )


class InvalidPlanError(OrchestrationError):
    """Raised when a design plan file is invalid."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)
