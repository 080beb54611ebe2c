"""
Structured error types for designflow.

Every error raised by designflow extends :class:`DesignflowError` and carries:

- **Category:** What kind of error (validation, orchestration, execution, ...)
- **Retryable:** Whether the scheduler may retry the failed executor call
- **Context:** Task id, run id, task kind and free-form metadata
- **Cause:** The underlying exception, chained for tracebacks

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      DesignflowError                             │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ConfigError        OrchestrationError     TaskExecutionError    │
        │  (CONFIG)           (ORCHESTRATION)        (EXECUTION)           │
        │                          │                       │               │
        │                     registry / graph        TaskTimeoutError     │
        │                     errors (see             (TIMEOUT, retryable) │
        │                     orchestration.                               │
        │                     exceptions)                                  │
        │                                                                  │
        │  InvalidTransitionError (INTERNAL, see execution.models)         │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    Wrapping an executor failure:

    >>> try:
    ...     raise ConnectionError("agent unavailable")
    ... except ConnectionError as e:
    ...     error = TaskExecutionError("page-login", str(e), cause=e)
    >>> error.context.task_id
    'page-login'
    >>> error.to_dict()["category"]
    'EXECUTION'

    Adding context fluently:

    >>> TaskExecutionError("page-help", "boom").with_context(run_id="r-1").context.run_id
    'r-1'

Guardrails:
    ❌ DON'T: Raise bare Exception from scheduler code paths
    ✅ DO: Use the DesignflowError subclass matching the failure

    ❌ DON'T: Drop the executor's original exception
    ✅ DO: Pass it as cause= so it is chained
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    VALIDATION = "VALIDATION"        # Malformed task configuration or plan file
    CONFIG = "CONFIG"                # Invalid settings or scheduler arguments
    ORCHESTRATION = "ORCHESTRATION"  # Registry / dependency graph / scheduling
    EXECUTION = "EXECUTION"          # Executor reported a failure
    TIMEOUT = "TIMEOUT"              # Executor did not resolve in time
    INTERNAL = "INTERNAL"            # Bugs, state machine misuse


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields (plus ``metadata``) end up in :meth:`to_dict`.

    Attributes:
        task_id: Task the error relates to
        run_id: Scheduler run identifier
        kind: Task kind (page, component, ...)
        metadata: Additional key-value pairs
    """

    task_id: str | None = None
    run_id: str | None = None
    kind: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["task_id", "run_id", "kind"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class DesignflowError(Exception):
    """
    Base exception for all designflow errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain; both can be overridden per instance.

    Examples:
        >>> error = DesignflowError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DesignflowError:
        """
        Add context to this error (fluent API).

        Usage:
            raise TaskExecutionError("page-home", "failed").with_context(
                run_id=run_id,
                attempt=2,
            )
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class ConfigError(DesignflowError):
    """Invalid settings or scheduler arguments."""

    default_category = ErrorCategory.CONFIG


class OrchestrationError(DesignflowError):
    """Base for registry, dependency-graph and scheduling errors."""

    default_category = ErrorCategory.ORCHESTRATION


class TaskExecutionError(DesignflowError):
    """
    The executor capability reported a failure for a task.

    Recovered locally by the scheduler: only the failing task and its
    transitive dependents are affected.
    """

    default_category = ErrorCategory.EXECUTION

    def __init__(
        self,
        task_id: str,
        message: str,
        *,
        retryable: bool | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(
            message,
            retryable=retryable,
            context=ErrorContext(task_id=task_id),
            cause=cause,
        )
        self.task_id = task_id


class TaskTimeoutError(TaskExecutionError):
    """The executor did not resolve a task within its deadline."""

    default_category = ErrorCategory.TIMEOUT
    default_retryable = True

    def __init__(self, task_id: str, timeout: float, elapsed: float | None = None):
        msg = f"Task '{task_id}' timed out after {timeout}s"
        if elapsed is not None:
            msg += f" (ran for {elapsed:.2f}s)"
        super().__init__(task_id, msg)
        self.timeout = timeout
        self.elapsed = elapsed


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DesignflowError",
    "ConfigError",
    "OrchestrationError",
    "TaskExecutionError",
    "TaskTimeoutError",
]
