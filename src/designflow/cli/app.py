"""
Root Typer application for the designflow CLI.

Commands:
    validate   Check a design plan file (schema, dependencies, cycles)
    run        Run a design plan with the simulated executor and report
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from typer import Typer

from designflow.cli.utils import (
    fail,
    output_json,
    print_outcomes,
    print_plan,
    print_report,
)
from designflow.core.errors import DesignflowError
from designflow.core.logging import configure_logging
from designflow.core.settings import DesignflowSettings, get_settings
from designflow.execution.executor import SimulatedExecutor
from designflow.execution.retry import ExponentialBackoff, NoRetry, RetryStrategy
from designflow.execution.timeout import resolve_timeout
from designflow.orchestration.plan import DesignPlanSpec, load_plan
from designflow.orchestration.scheduler import Scheduler

app = Typer(
    name="designflow",
    help="designflow: dependency-aware, bounded-parallel design task runner.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from designflow import __version__

        typer.echo(f"designflow {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """designflow CLI: validate and run design plans."""


# ── Helpers ──────────────────────────────────────────────────────────────


def _setup(log_level: str | None) -> DesignflowSettings:
    try:
        settings = get_settings()
    except ValueError as e:
        raise fail(e) from e
    configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)
    return settings


def _load(path: Path) -> DesignPlanSpec:
    try:
        plan = load_plan(path)
        plan.to_registry()
    except (FileNotFoundError, DesignflowError) as e:
        raise fail(e) from e
    return plan


def _first(*values: int | None) -> int:
    """CLI option, then plan, then settings."""
    return next(v for v in values if v is not None)


def _retry_strategy(retries: int, settings: DesignflowSettings) -> RetryStrategy:
    if retries <= 0:
        return NoRetry()
    return ExponentialBackoff(max_retries=retries, base_delay=settings.retry_base_delay)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("validate")
def validate_plan(
    plan_path: Path = typer.Argument(..., help="Design plan file (YAML or JSON)"),
    json_out: bool = typer.Option(False, "--json"),
    log_level: str | None = typer.Option(None, "--log-level", help="Override DESIGNFLOW_LOG_LEVEL"),
) -> None:
    """Validate a design plan without running it."""
    _setup(log_level)
    plan = _load(plan_path)

    if json_out:
        output_json({"valid": True, "plan": plan.model_dump(mode="json")})
        return

    print_plan(plan)
    typer.echo(f"Plan '{plan.metadata.name}' is valid ({len(plan.tasks)} tasks).")


@app.command("run")
def run_plan(
    plan_path: Path = typer.Argument(..., help="Design plan file (YAML or JSON)"),
    max_concurrency: int | None = typer.Option(
        None, "--max-concurrency", "-c", help="Tasks in flight at once (default: plan, then settings)"
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Per-task timeout in seconds (default: plan, then settings)"
    ),
    retries: int | None = typer.Option(None, "--retries", help="Retries for retryable failures"),
    min_delay: float | None = typer.Option(None, "--min-delay", help="Simulated latency lower bound"),
    max_delay: float | None = typer.Option(None, "--max-delay", help="Simulated latency upper bound"),
    seed: int | None = typer.Option(None, "--seed", help="Seed for reproducible simulated latency"),
    fail_ids: list[str] = typer.Option([], "--fail", help="Task id the simulation should fail (repeatable)"),
    json_out: bool = typer.Option(False, "--json"),
    log_level: str | None = typer.Option(None, "--log-level", help="Override DESIGNFLOW_LOG_LEVEL"),
) -> None:
    """Run a design plan with the simulated executor and print the report."""
    settings = _setup(log_level)
    plan = _load(plan_path)

    concurrency = _first(max_concurrency, plan.spec.max_concurrency, settings.max_concurrency)
    task_timeout = resolve_timeout(timeout, plan.spec.task_timeout_seconds, settings.task_timeout_seconds)

    try:
        executor = SimulatedExecutor(
            settings.simulated_min_delay if min_delay is None else min_delay,
            settings.simulated_max_delay if max_delay is None else max_delay,
            fail_ids=set(fail_ids),
            seed=seed,
        )
        scheduler = Scheduler(
            plan.to_registry(),
            executor,
            max_concurrency=concurrency,
            task_timeout=task_timeout,
            retry=_retry_strategy(settings.max_retries if retries is None else retries, settings),
        )
        result = asyncio.run(scheduler.run())
    except (ValueError, DesignflowError) as e:
        raise fail(e) from e

    if json_out:
        output_json({"plan": plan.metadata.name, **result.to_dict()})
    else:
        print_outcomes(result.outcomes)
        print_report(result.report)

    if result.failed:
        raise typer.Exit(code=1)
