#!/usr/bin/env python3
"""Parallel design run: the shop plan with a custom executor.

Demonstrates:
    1. Loading a design plan and building its registry
    2. Plugging in a host executor (here: prompt capture + fake latency)
    3. Failure isolation: one page fails, only its dependents are blocked
    4. Reading the ExecutionReport

Run::

    python examples/01_parallel_design_run.py
"""

import asyncio
import random
from pathlib import Path

from designflow.core.logging import configure_logging
from designflow.execution import TaskResult, build_task_prompt
from designflow.orchestration import Scheduler, load_plan

PLAN = Path(__file__).parent / "plans" / "shop.yaml"


class PromptCaptureExecutor:
    """Renders each prompt and pretends an agent worked on it."""

    def __init__(self, fail: str | None = None):
        self.fail = fail

    async def execute(self, task):
        prompt = build_task_prompt(task)
        delay = random.uniform(0.1, 0.4)
        await asyncio.sleep(delay)
        if task.id == self.fail:
            raise ConnectionError("agent connection reset")
        return TaskResult(files=task.config.files, summary=f"{len(prompt)} char prompt", elapsed=delay)


async def main() -> None:
    configure_logging(level="WARNING", json_format=False)

    plan = load_plan(PLAN)
    scheduler = Scheduler(
        plan.to_registry(),
        PromptCaptureExecutor(fail="page-product-list"),
        max_concurrency=plan.spec.max_concurrency or 4,
    )
    result = await scheduler.run()

    for task in result.outcomes:
        print(f"{task.status.value:>9}  {task.id}")

    report = result.report
    print()
    print(f"completed={report.completed_count} failed={report.failed_count} blocked={report.blocked_count}")
    print(f"wall clock {report.wall_clock_time:.2f}s, efficiency {report.efficiency:.0f}%")
    print(f"by kind: {report.breakdown}")


if __name__ == "__main__":
    asyncio.run(main())
