"""Design task descriptor and execution state.

A task is split in two:

- :class:`TaskConfig`: the immutable, validated descriptor declared by the
  caller (or loaded from a plan file).  Everything except ``id`` and
  ``dependencies`` is opaque payload forwarded to the executor.
- :class:`Task`: the descriptor plus the mutable state owned by the
  scheduler loop (status, timestamps, result or error).

Example::

    task = Task.create(
        "page-dashboard",
        kind="page",
        priority=3,
        dependencies=["design-system"],
        files=["UI/shop/pages/main/dashboard.html"],
    )
    task.status          # TaskStatus.PENDING
    task.dependencies    # frozenset({'design-system'})
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from designflow.core.errors import DesignflowError
from designflow.execution.models import TaskResult, TaskStatus


class TaskConfig(BaseModel):
    """Validated task configuration.

    Accepts both snake_case and camelCase keys (``estimated_effort`` or
    ``estimatedEffort``).  Unknown keys are rejected.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(..., min_length=1, description="Unique task identifier")
    kind: str = Field(default="page", min_length=1, description="page, component, design-system, ...")
    priority: int = Field(default=0, description="Higher runs first among equally ready tasks")
    dependencies: tuple[str, ...] = Field(default=(), description="Ids that must complete first")
    files: tuple[str, ...] = Field(default=(), description="Output files for the executor")
    description: str = Field(default="")
    estimated_effort: float = Field(default=5, ge=0, description="Estimated effort in minutes")
    prompt: str = Field(default="", description="Task-specific prompt text")
    agent: str = Field(default="general-purpose", description="Executor agent type")
    timeout_seconds: float | None = Field(default=None, gt=0, description="Per-task timeout override")

    @field_validator("id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("id must not be blank")
        return value

    @field_validator("dependencies")
    @classmethod
    def _dedupe_dependencies(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for dep in value:
            dep = dep.strip()
            if not dep:
                raise ValueError("dependency ids must not be blank")
            seen.setdefault(dep, None)
        return tuple(seen)


@dataclass(eq=False)
class Task:
    """A registered task and its execution state.

    Only the scheduler loop mutates the state fields, always through the
    registry's ``mark_*`` transitions.  Identity equality: two Task objects
    are the same task only if they are the same object.
    """

    config: TaskConfig
    status: TaskStatus = TaskStatus.PENDING
    started_at: datetime | None = None
    finished_at: datetime | None = None
    result: TaskResult | None = None
    error: DesignflowError | None = None
    attempts: int = 0
    blocked_by: str | None = None

    @classmethod
    def create(cls, task_id: str, **fields: Any) -> Task:
        """Build a pending task from keyword fields (validated by TaskConfig)."""
        return cls(config=TaskConfig(id=task_id, **fields))

    # ── Descriptor shortcuts ─────────────────────────────────────

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def kind(self) -> str:
        return self.config.kind

    @property
    def priority(self) -> int:
        return self.config.priority

    @property
    def dependencies(self) -> frozenset[str]:
        return frozenset(self.config.dependencies)

    # ── Derived state ────────────────────────────────────────────

    @property
    def duration(self) -> float | None:
        """Seconds between start and finish, if both are recorded."""
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging / JSON output."""
        return {
            "id": self.id,
            "kind": self.kind,
            "priority": self.priority,
            "dependencies": sorted(self.dependencies),
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration,
            "attempts": self.attempts,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error.message if self.error else None,
            "blocked_by": self.blocked_by,
        }

    def __repr__(self) -> str:
        return f"Task(id={self.id!r}, kind={self.kind!r}, status={self.status.value})"
