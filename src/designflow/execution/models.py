"""Task lifecycle status and transition rules.

Defines the state machine every task follows inside a scheduler run:
- TaskStatus: the five lifecycle states
- TASK_VALID_TRANSITIONS: which moves are legal
- validate_task_transition(): the guard used by the registry
- TaskResult: what the executor capability hands back
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from designflow.core.errors import DesignflowError, ErrorCategory, ErrorContext


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


class InvalidTransitionError(DesignflowError):
    """Raised when an illegal state transition is attempted.

    The scheduler is the only caller of the registry's ``mark_*`` methods,
    so this error always indicates a defect, never a runtime condition.

    New transitions go into TASK_VALID_TRANSITIONS; the guard stays.
    """

    default_category = ErrorCategory.INTERNAL

    def __init__(self, task_id: str, current: str, target: str) -> None:
        self.task_id = task_id
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid TaskStatus transition for '{task_id}': {current} → {target}",
            context=ErrorContext(task_id=task_id),
        )


class TaskStatus(str, Enum):
    """Status of a task within a scheduler run.

    Valid transition graph::

        PENDING   → RUNNING | BLOCKED
        RUNNING   → COMPLETED | FAILED
        COMPLETED → (terminal)
        FAILED    → (terminal)
        BLOCKED   → (terminal)
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: frozenset[TaskStatus] = frozenset({
    TaskStatus.COMPLETED,
    TaskStatus.FAILED,
    TaskStatus.BLOCKED,
})


TASK_VALID_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({
        TaskStatus.RUNNING,
        TaskStatus.BLOCKED,
    }),
    TaskStatus.RUNNING: frozenset({
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
    }),
    TaskStatus.COMPLETED: frozenset(),  # terminal
    TaskStatus.FAILED: frozenset(),  # terminal
    TaskStatus.BLOCKED: frozenset(),  # terminal
}


def validate_task_transition(
    task_id: str,
    current: TaskStatus,
    target: TaskStatus,
) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal.

    Example:
        >>> validate_task_transition("a", TaskStatus.RUNNING, TaskStatus.COMPLETED)
        >>> # OK, no exception
        >>> validate_task_transition("a", TaskStatus.COMPLETED, TaskStatus.RUNNING)
        InvalidTransitionError: Invalid TaskStatus transition for 'a': completed → running
    """
    allowed = TASK_VALID_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(task_id, current.value, target.value)


@dataclass(frozen=True)
class TaskResult:
    """What the executor capability returns for a successful task.

    Attributes:
        files: Files the executor produced or touched
        summary: Human-readable summary of the work
        elapsed: Executor-reported working time in seconds
    """

    files: tuple[str, ...] = ()
    summary: str = ""
    elapsed: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaskResult:
        """Build from a mapping; ``duration`` is accepted for ``elapsed``."""
        files = data.get("files") or ()
        if isinstance(files, str):
            raise TypeError(f"files must be a list of paths, got str: {files!r}")
        elapsed = data.get("elapsed", data.get("duration", 0.0))
        return cls(
            files=tuple(files),
            summary=str(data.get("summary") or ""),
            elapsed=float(elapsed or 0.0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": list(self.files),
            "summary": self.summary,
            "elapsed": self.elapsed,
        }
