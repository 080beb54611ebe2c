"""Per-task deadline enforcement for executor calls.

An executor that never resolves would hold its concurrency slot forever.
Every executor attempt therefore runs under a deadline; on expiry the
attempt is cancelled and :class:`~designflow.core.errors.TaskTimeoutError`
is raised so the scheduler can fail the task and release the slot.

Examples:
    >>> result = await run_with_deadline(executor.execute(task), 30.0, task.id)

    No deadline (``seconds=None``) awaits the operation as-is:

    >>> result = await run_with_deadline(executor.execute(task), None, task.id)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

from designflow.core.errors import TaskTimeoutError

T = TypeVar("T")


def resolve_timeout(*candidates: float | None) -> float | None:
    """Return the first configured timeout, or None.

    Used to layer ``task.timeout_seconds`` over the scheduler default.
    """
    for value in candidates:
        if value is not None:
            return value
    return None


async def run_with_deadline(
    operation: Awaitable[T],
    seconds: float | None,
    task_id: str,
) -> T:
    """Await *operation*, failing with TaskTimeoutError after *seconds*.

    Args:
        operation: Awaitable returned by the executor
        seconds: Deadline in seconds, or None for no deadline
        task_id: Task the operation belongs to (for the error message)

    Raises:
        TaskTimeoutError: If the deadline is exceeded
        ValueError: If seconds <= 0
    """
    if seconds is None:
        return await operation

    if seconds <= 0:
        if asyncio.iscoroutine(operation):
            operation.close()
        raise ValueError(f"Timeout must be positive, got {seconds}")

    start = time.monotonic()
    deadline = asyncio.timeout(seconds)
    try:
        async with deadline:
            return await operation
    except TimeoutError as e:
        if not deadline.expired():
            raise
        raise TaskTimeoutError(
            task_id,
            timeout=seconds,
            elapsed=time.monotonic() - start,
        ) from e
