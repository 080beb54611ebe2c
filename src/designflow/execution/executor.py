"""Executor capability: the boundary where design work is actually done.

The scheduler never performs a task itself.  It hands each task to an object
satisfying :class:`TaskExecutor` and treats the call as an asynchronous black
box: it cannot pause, resume or inspect it, only await the outcome.

ARCHITECTURE
────────────
::

    Scheduler ──execute(task)──▶ TaskExecutor
                                   ├── SimulatedExecutor   ─ random latency, canned result
                                   └── (host supplied)     ─ real agent / LLM call

    Outcome:
      TaskResult | Mapping       ─ success (mapping coerced via TaskResult.from_dict)
      raise Exception            ─ failure (wrapped in TaskExecutionError)

:func:`build_task_prompt` renders the standard prompt a host executor sends
to its agent: task kind, description, output files, the shared front-end
requirements, then the task's own prompt.
"""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from designflow.core.logging import get_logger
from designflow.execution.models import TaskResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from designflow.orchestration.task import Task

logger = get_logger(__name__)


DEFAULT_REQUIREMENTS: tuple[str, ...] = (
    "Use HTML + Tailwind CSS + JavaScript",
    "Make the layout responsive",
    "Use the Unsplash image service for imagery",
    "Wire up correct navigation between pages",
    "Keep components reusable",
)


@runtime_checkable
class TaskExecutor(Protocol):
    """Anything that can perform a design task.

    ``execute`` returns a :class:`TaskResult` (or a mapping with ``files``,
    ``summary`` and ``elapsed`` keys) or raises to signal failure.
    """

    async def execute(self, task: Task) -> TaskResult | Mapping[str, Any]: ...


def build_task_prompt(
    task: Task,
    requirements: tuple[str, ...] = DEFAULT_REQUIREMENTS,
) -> str:
    """Render the prompt sent to the agent performing *task*."""
    config = task.config
    lines = [
        "As a senior front-end engineer, carry out the following UI design task:",
        "",
        f"Task kind: {config.kind}",
        f"Description: {config.description}",
        f"Output files: {', '.join(config.files)}",
        "",
        "Requirements:",
    ]
    lines.extend(f"{n}. {item}" for n, item in enumerate(requirements, start=1))
    if config.prompt.strip():
        lines.extend(["", config.prompt.strip()])
    return "\n".join(lines)


class SimulatedExecutor:
    """Stand-in executor that sleeps for a random delay and reports success.

    Used by the CLI to exercise a plan end to end without a real agent.
    Pass ``seed`` for reproducible latencies.

    Parameters
    ----------
    min_delay, max_delay : float
        Bounds of the simulated latency in seconds.
    fail_ids : set of task ids that raise instead of succeeding.
    seed : optional random seed.
    """

    def __init__(
        self,
        min_delay: float = 1.0,
        max_delay: float = 4.0,
        *,
        fail_ids: set[str] | None = None,
        seed: int | None = None,
    ) -> None:
        if min_delay < 0 or max_delay < min_delay:
            raise ValueError(f"Invalid delay bounds: {min_delay}..{max_delay}")
        self._min_delay = min_delay
        self._max_delay = max_delay
        self._fail_ids = set(fail_ids or ())
        self._random = random.Random(seed)
        self.prompts: dict[str, str] = {}

    async def execute(self, task: Task) -> TaskResult:
        prompt = build_task_prompt(task)
        self.prompts[task.id] = prompt
        delay = self._random.uniform(self._min_delay, self._max_delay)

        logger.debug(
            "simulated_executor.execute",
            task_id=task.id,
            agent=task.config.agent,
            delay=round(delay, 3),
            prompt_chars=len(prompt),
        )

        await asyncio.sleep(delay)

        if task.id in self._fail_ids:
            raise RuntimeError(f"Simulated failure for task '{task.id}'")

        return TaskResult(
            files=task.config.files,
            summary=f"{task.config.description or task.id} completed",
            elapsed=delay,
        )
