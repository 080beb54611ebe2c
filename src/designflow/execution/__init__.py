"""designflow execution -- task state machine, executor capability, timeouts, retries.

Architecture::

    models.py      TaskStatus, allowed transitions, TaskResult
    executor.py    TaskExecutor protocol, build_task_prompt, SimulatedExecutor
    timeout.py     Per-attempt deadline (asyncio.timeout)
    retry.py       RetryStrategy, ExponentialBackoff, NoRetry
"""

from designflow.execution.executor import (
    DEFAULT_REQUIREMENTS,
    SimulatedExecutor,
    TaskExecutor,
    build_task_prompt,
)
from designflow.execution.models import (
    TASK_VALID_TRANSITIONS,
    TERMINAL_STATUSES,
    InvalidTransitionError,
    TaskResult,
    TaskStatus,
    validate_task_transition,
)
from designflow.execution.retry import ExponentialBackoff, NoRetry, RetryStrategy, is_retryable
from designflow.execution.timeout import resolve_timeout, run_with_deadline

__all__ = [
    "DEFAULT_REQUIREMENTS",
    "SimulatedExecutor",
    "TaskExecutor",
    "build_task_prompt",
    "TASK_VALID_TRANSITIONS",
    "TERMINAL_STATUSES",
    "InvalidTransitionError",
    "TaskResult",
    "TaskStatus",
    "validate_task_transition",
    "ExponentialBackoff",
    "NoRetry",
    "RetryStrategy",
    "is_retryable",
    "resolve_timeout",
    "run_with_deadline",
]
