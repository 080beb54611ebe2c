"""Tests for the Scheduler execution loop."""

import asyncio

import pytest
from structlog.testing import capture_logs

from designflow.core.errors import (
    ConfigError,
    OrchestrationError,
    TaskExecutionError,
    TaskTimeoutError,
)
from designflow.execution.models import TaskResult, TaskStatus
from designflow.execution.retry import ExponentialBackoff
from designflow.orchestration.exceptions import (
    CyclicDependencyError,
    DeadlockError,
    UnknownDependencyError,
)
from designflow.orchestration.registry import TaskRegistry
from designflow.orchestration.scheduler import RunResult, Scheduler, run_tasks


def _assert_no_premature_start(registry: TaskRegistry) -> None:
    for task in registry:
        if task.started_at is None:
            continue
        for dep in task.config.dependencies:
            if dep in registry:
                assert task.started_at >= registry.get(dep).finished_at, (task.id, dep)


class TestOrdering:
    @pytest.mark.asyncio
    async def test_fan_out_dispatch_shape(self, fan_out_tasks, make_executor):
        registry = TaskRegistry(fan_out_tasks)
        executor = make_executor(delays={"B": 0.03, "C": 0.05})
        result = await Scheduler(registry, executor, max_concurrency=2).run()

        assert executor.calls[0] == "A"
        assert executor.concurrent_with["A"] == {"A"}
        assert max(len(executor.concurrent_with[t]) for t in ("B", "C")) == 2
        assert executor.concurrent_with["D"] == {"D"}
        assert executor.max_running == 2

        order = result.completion_order
        assert order[0] == "A"
        assert order[-1] == "D"
        assert set(order[1:3]) == {"B", "C"}
        _assert_no_premature_start(registry)

    @pytest.mark.asyncio
    async def test_no_premature_start_in_feature_build(self, shop_tasks, make_executor):
        registry = TaskRegistry(shop_tasks)
        executor = make_executor(
            delays={"page-home": 0.04, "page-login": 0.01, "component-library": 0.05}
        )
        await Scheduler(registry, executor, max_concurrency=3).run()
        _assert_no_premature_start(registry)

    @pytest.mark.asyncio
    async def test_priority_breaks_ties_at_dispatch(self, make_executor):
        registry = TaskRegistry([
            {"id": "low", "priority": 1},
            {"id": "high", "priority": 5},
            {"id": "mid", "priority": 3},
        ])
        executor = make_executor()
        await Scheduler(registry, executor, max_concurrency=1).run()
        assert executor.calls == ["high", "mid", "low"]

    @pytest.mark.asyncio
    async def test_slot_freed_by_first_finisher(self, make_executor):
        """A slow task does not hold back dispatch of later tasks."""
        registry = TaskRegistry([{"id": "slow"}, {"id": "fast"}, {"id": "next"}])
        executor = make_executor(delays={"slow": 0.2, "fast": 0.01, "next": 0.01})
        result = await Scheduler(registry, executor, max_concurrency=2).run()

        assert result.completion_order == ["fast", "next", "slow"]
        assert registry.get("next").started_at < registry.get("slow").finished_at


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrency_bound(self, make_executor):
        registry = TaskRegistry([{"id": f"page-{n}"} for n in range(10)])
        executor = make_executor(default_delay=0.02)
        result = await Scheduler(registry, executor, max_concurrency=3).run()

        assert executor.max_running == 3
        assert result.report.completed_count == 10

    @pytest.mark.asyncio
    async def test_run_argument_overrides_default(self, make_executor):
        registry = TaskRegistry([{"id": f"t{n}"} for n in range(4)])
        executor = make_executor()
        result = await Scheduler(registry, executor, max_concurrency=4).run(max_concurrency=1)

        assert executor.max_running == 1
        assert result.report.max_concurrency == 1

    @pytest.mark.asyncio
    async def test_parallel_efficiency(self, make_executor):
        registry = TaskRegistry([{"id": f"t{n}"} for n in range(4)])
        result = await Scheduler(registry, make_executor(default_delay=0.1), max_concurrency=4).run()
        assert result.report.efficiency > 250

    @pytest.mark.asyncio
    async def test_sequential_efficiency_at_most_100(self, make_executor):
        registry = TaskRegistry([{"id": f"t{n}"} for n in range(3)])
        result = await Scheduler(registry, make_executor(), max_concurrency=1).run()
        assert 0 < result.report.efficiency <= 100.0

    @pytest.mark.parametrize("value", [0, -2])
    def test_invalid_default_concurrency(self, value, make_executor):
        with pytest.raises(ConfigError):
            Scheduler(TaskRegistry(), make_executor(), max_concurrency=value)

    @pytest.mark.asyncio
    async def test_invalid_run_concurrency(self, make_executor):
        executor = make_executor()
        scheduler = Scheduler(TaskRegistry([{"id": "a"}]), executor)
        with pytest.raises(ConfigError):
            await scheduler.run(max_concurrency=0)
        assert executor.calls == []

    def test_invalid_task_timeout(self, make_executor):
        with pytest.raises(ConfigError):
            Scheduler(TaskRegistry(), make_executor(), task_timeout=0)


class TestTermination:
    @pytest.mark.asyncio
    async def test_every_task_terminal(self, shop_tasks, make_executor):
        registry = TaskRegistry(shop_tasks)
        result = await Scheduler(registry, make_executor(), max_concurrency=4).run()

        assert all(task.is_terminal for task in registry)
        assert not registry.has_unfinished
        assert result.succeeded
        assert result.report.fully_succeeded
        assert result.completion_order[0] == "design-system"
        assert result.completion_order[-1] == "validation"
        assert len(result.outcomes) == len(shop_tasks)

    @pytest.mark.asyncio
    async def test_results_stored(self, make_executor):
        registry = TaskRegistry([{"id": "a", "files": ["a.html"]}])
        await Scheduler(registry, make_executor()).run()

        task = registry.get("a")
        assert task.status is TaskStatus.COMPLETED
        assert task.result.files == ("a.html",)
        assert task.attempts == 1
        assert task.duration is not None and task.duration > 0

    @pytest.mark.asyncio
    async def test_empty_registry(self, make_executor):
        result = await Scheduler(TaskRegistry(), make_executor()).run()

        assert isinstance(result, RunResult)
        assert result.outcomes == []
        assert result.report.total_tasks == 0
        assert result.report.efficiency == 0.0
        assert result.succeeded

    @pytest.mark.asyncio
    async def test_external_dependencies_are_satisfied(self, make_executor):
        registry = TaskRegistry(
            [{"id": "page-home", "dependencies": ["design-system"]}],
            external=["design-system"],
        )
        result = await Scheduler(registry, make_executor()).run()
        assert result.completion_order == ["page-home"]

    @pytest.mark.asyncio
    async def test_run_tasks_helper(self, fan_out_tasks, make_executor):
        result = await run_tasks(fan_out_tasks, make_executor(), max_concurrency=2)
        assert result.report.completed_count == 4


class TestValidationBeforeDispatch:
    @pytest.mark.asyncio
    async def test_cycle_rejected_before_dispatch(self, make_executor):
        registry = TaskRegistry([
            {"id": "A", "dependencies": ["B"]},
            {"id": "B", "dependencies": ["C"]},
            {"id": "C", "dependencies": ["A"]},
            {"id": "free"},
        ])
        executor = make_executor()
        with pytest.raises(CyclicDependencyError):
            await Scheduler(registry, executor).run()

        assert executor.calls == []
        assert registry.pending == {"A", "B", "C", "free"}

    @pytest.mark.asyncio
    async def test_unknown_dependency_rejected_before_dispatch(self, make_executor):
        registry = TaskRegistry([{"id": "free"}, {"id": "page", "dependencies": ["ghost"]}])
        executor = make_executor()
        with pytest.raises(UnknownDependencyError):
            await Scheduler(registry, executor).run()
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_deadlock_safety_net(self, make_executor, monkeypatch):
        registry = TaskRegistry([{"id": "free"}, {"id": "stuck", "dependencies": ["ghost"]}])
        monkeypatch.setattr(registry, "validate", lambda: None)
        executor = make_executor()

        with pytest.raises(DeadlockError) as exc_info:
            await Scheduler(registry, executor).run()

        assert exc_info.value.stuck == ["stuck"]
        assert executor.calls == ["free"]


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_failed_blocked_completed(self, isolation_tasks, make_executor):
        registry = TaskRegistry(isolation_tasks)
        executor = make_executor(failures={"A": RuntimeError("agent crashed")}, delays={"C": 0.05})
        result = await Scheduler(registry, executor, max_concurrency=2).run()

        report = result.report
        assert (report.completed_count, report.failed_count, report.blocked_count) == (1, 1, 1)
        assert registry.get("A").status is TaskStatus.FAILED
        assert registry.get("B").status is TaskStatus.BLOCKED
        assert registry.get("C").status is TaskStatus.COMPLETED
        assert registry.get("B").blocked_by == "A"
        assert "B" not in executor.calls
        assert not result.failed

    @pytest.mark.asyncio
    async def test_error_wraps_executor_exception(self, isolation_tasks, make_executor):
        cause = RuntimeError("agent crashed")
        registry = TaskRegistry(isolation_tasks)
        await Scheduler(registry, make_executor(failures={"A": cause})).run()

        error = registry.get("A").error
        assert isinstance(error, TaskExecutionError)
        assert error.message == "agent crashed"
        assert error.cause is cause
        assert error.context.task_id == "A"
        assert error.context.kind == "page"
        assert error.context.run_id is not None
        assert registry.get("A").result is None

    @pytest.mark.asyncio
    async def test_blocking_is_transitive(self, fan_out_tasks, make_executor):
        registry = TaskRegistry(fan_out_tasks)
        result = await Scheduler(registry, make_executor(failures={"A": RuntimeError("x")})).run()

        assert registry.blocked == {"B", "C", "D"}
        assert [t.id for t in result.outcomes] == ["A", "B", "C", "D"]
        assert result.failed
        assert result.report.run_failed

    @pytest.mark.asyncio
    async def test_partial_branch_failure(self, fan_out_tasks, make_executor):
        registry = TaskRegistry(fan_out_tasks)
        executor = make_executor(failures={"B": RuntimeError("x")}, delays={"C": 0.05})
        result = await Scheduler(registry, executor, max_concurrency=2).run()

        assert registry.get("C").status is TaskStatus.COMPLETED
        assert registry.get("D").status is TaskStatus.BLOCKED
        assert result.completion_order == ["A", "C"]
        assert result.report.failed_tasks == ("B",)
        assert result.report.blocked_tasks == ("D",)

    @pytest.mark.asyncio
    async def test_unsupported_result_type_fails_task(self, make_executor):
        registry = TaskRegistry([{"id": "a"}, {"id": "b"}])
        executor = make_executor(results={"a": {"files": ["a.html"], "duration": 2}, "b": 42})
        await Scheduler(registry, executor).run()

        assert registry.get("a").result == TaskResult(files=("a.html",), elapsed=2.0)
        assert registry.get("b").status is TaskStatus.FAILED
        assert "unsupported result type" in registry.get("b").error.message

    @pytest.mark.asyncio
    async def test_string_files_in_mapping_result_fails_task(self, make_executor):
        registry = TaskRegistry([{"id": "a"}, {"id": "b", "dependencies": ["a"]}])
        executor = make_executor(results={"a": {"files": "a.html"}})
        result = await Scheduler(registry, executor).run()

        assert registry.get("a").status is TaskStatus.FAILED
        assert "files must be a list" in registry.get("a").error.message
        assert registry.get("b").status is TaskStatus.BLOCKED
        assert result.completion_order == []


class TestTimeoutsAndRetries:
    @pytest.mark.asyncio
    async def test_timeout_releases_slot(self, make_executor):
        registry = TaskRegistry([{"id": "stuck", "priority": 1}, {"id": "quick"}])
        executor = make_executor(hang=["stuck"])
        result = await Scheduler(registry, executor, max_concurrency=1, task_timeout=0.05).run()

        stuck = registry.get("stuck")
        assert stuck.status is TaskStatus.FAILED
        assert isinstance(stuck.error, TaskTimeoutError)
        assert executor.cancelled == ["stuck"]
        assert result.completion_order == ["quick"]

    @pytest.mark.asyncio
    async def test_task_timeout_overrides_default(self, make_executor):
        registry = TaskRegistry([{"id": "stuck", "timeout_seconds": 0.05}])
        await Scheduler(registry, make_executor(hang=["stuck"]), task_timeout=60).run()
        assert registry.get("stuck").error.timeout == 0.05

    @pytest.mark.asyncio
    async def test_retryable_failure_is_retried(self, make_executor):
        registry = TaskRegistry([{"id": "a"}])
        executor = make_executor(
            failures={"a": [TaskExecutionError("a", "rate limited", retryable=True)]}
        )
        retry = ExponentialBackoff(max_retries=2, base_delay=0.001, jitter=False)
        result = await Scheduler(registry, executor, retry=retry).run()

        assert result.completion_order == ["a"]
        assert registry.get("a").attempts == 2
        assert executor.calls == ["a", "a"]

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, make_executor):
        registry = TaskRegistry([{"id": "a"}])
        executor = make_executor(hang=["a"])
        retry = ExponentialBackoff(max_retries=1, base_delay=0.001, jitter=False)
        await Scheduler(registry, executor, task_timeout=0.02, retry=retry).run()

        task = registry.get("a")
        assert task.status is TaskStatus.FAILED
        assert task.attempts == 2

    @pytest.mark.asyncio
    async def test_non_retryable_failure_not_retried(self, make_executor):
        registry = TaskRegistry([{"id": "a"}])
        executor = make_executor(failures={"a": RuntimeError("bad prompt")})
        retry = ExponentialBackoff(max_retries=3, base_delay=0.001)
        await Scheduler(registry, executor, retry=retry).run()

        assert executor.calls == ["a"]
        assert registry.get("a").attempts == 1


class _Fatal(BaseException):
    pass


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelling_run_cancels_in_flight(self, make_executor):
        registry = TaskRegistry([{"id": "x"}, {"id": "y"}])
        executor = make_executor(hang=["x", "y"])
        scheduler = Scheduler(registry, executor, max_concurrency=2)

        run = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.05)
        run.cancel()
        with pytest.raises(asyncio.CancelledError):
            await run

        assert sorted(executor.cancelled) == ["x", "y"]
        assert not scheduler.is_running

    @pytest.mark.asyncio
    async def test_fatal_error_cancels_in_flight(self, make_executor):
        registry = TaskRegistry([{"id": "boom", "priority": 1}, {"id": "hung"}])
        executor = make_executor(failures={"boom": _Fatal()}, hang=["hung"])

        with pytest.raises(_Fatal):
            await Scheduler(registry, executor, max_concurrency=2).run()
        assert executor.cancelled == ["hung"]

    @pytest.mark.asyncio
    async def test_concurrent_run_rejected(self, make_executor):
        registry = TaskRegistry([{"id": "a"}])
        scheduler = Scheduler(registry, make_executor(default_delay=0.05))

        first = asyncio.create_task(scheduler.run())
        await asyncio.sleep(0.01)
        with pytest.raises(OrchestrationError, match="already running"):
            await scheduler.run()
        await first


class TestLogging:
    @pytest.mark.asyncio
    async def test_lifecycle_events(self, isolation_tasks, make_executor):
        registry = TaskRegistry(isolation_tasks)
        with capture_logs() as logs:
            await Scheduler(registry, make_executor(failures={"A": RuntimeError("x")})).run()

        events = [entry["event"] for entry in logs if entry["event"].startswith("scheduler.")]
        assert events[0] == "scheduler.started"
        assert events[-1] == "scheduler.finished"
        assert "scheduler.task_failed" in events
        assert "scheduler.tasks_blocked" in events
        assert events.count("scheduler.task_started") == 2
