"""
CLI utility helpers: output formatting.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from designflow.core.errors import DesignflowError
from designflow.execution.models import TaskStatus
from designflow.orchestration.plan import DesignPlanSpec
from designflow.orchestration.report import ExecutionReport
from designflow.orchestration.task import Task

console = Console()
err_console = Console(stderr=True)

_STATUS_STYLE = {
    TaskStatus.PENDING: "dim",
    TaskStatus.RUNNING: "cyan",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.BLOCKED: "yellow",
}


def fail(error: Exception, *, code: int = 1) -> typer.Exit:
    """Print *error* to stderr and return the Exit to raise."""
    if isinstance(error, DesignflowError):
        err_console.print(
            f"[bold red]Error[/bold red] ({error.category.value}): {escape(error.message)}"
        )
    else:
        err_console.print(f"[bold red]Error[/bold red]: {escape(str(error))}")
    return typer.Exit(code=code)


def output_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_plan(plan: DesignPlanSpec) -> None:
    """Render a validated plan as a task table."""
    table = Table(title=f"Plan: {plan.metadata.name}", show_lines=False, pad_edge=False)
    table.add_column("id", overflow="fold")
    table.add_column("kind")
    table.add_column("priority", justify="right")
    table.add_column("depends on", overflow="fold")
    table.add_column("files", overflow="fold")

    for task in plan.tasks:
        table.add_row(
            task.id,
            task.kind,
            str(task.priority),
            ", ".join(task.dependencies) or "-",
            ", ".join(task.files) or "-",
        )
    console.print(table)

    if plan.spec.external:
        console.print(f"[dim]External prerequisites: {', '.join(plan.spec.external)}[/dim]")


def print_outcomes(tasks: list[Task]) -> None:
    """Render tasks in the order they reached a terminal state."""
    table = Table(title="Tasks", show_lines=False, pad_edge=False)
    table.add_column("#", justify="right")
    table.add_column("id", overflow="fold")
    table.add_column("kind")
    table.add_column("status")
    table.add_column("duration", justify="right")
    table.add_column("detail", overflow="fold")

    for n, task in enumerate(tasks, start=1):
        style = _STATUS_STYLE[task.status]
        if task.error is not None:
            detail = task.error.message
        elif task.blocked_by:
            detail = f"blocked by {task.blocked_by}"
        elif task.result is not None:
            detail = task.result.summary
        else:
            detail = ""
        table.add_row(
            str(n),
            task.id,
            task.kind,
            f"[{style}]{task.status.value}[/{style}]",
            f"{task.duration:.2f}s" if task.duration is not None else "-",
            detail,
        )
    console.print(table)


def print_report(report: ExecutionReport) -> None:
    """Render the execution report as key-value pairs."""
    console.print("[bold]Execution report[/bold]")
    rows = [
        ("Total tasks", report.total_tasks),
        ("Completed", report.completed_count),
        ("Failed", report.failed_count),
        ("Blocked", report.blocked_count),
        ("Busy time", f"{report.total_busy_time:.2f}s"),
        ("Wall clock", f"{report.wall_clock_time:.2f}s"),
        ("Average duration", f"{report.average_duration:.2f}s"),
        ("Efficiency", f"{report.efficiency:.2f}%"),
        ("Max concurrency", report.max_concurrency),
    ]
    for label, value in rows:
        console.print(f"  [cyan]{label}:[/cyan] {value}")

    if report.breakdown:
        console.print("  [cyan]By kind:[/cyan]")
        for kind, count in report.breakdown.items():
            console.print(f"    {kind}: {count}")

    if report.run_failed:
        console.print("[bold red]Run failed: no task completed.[/bold red]")
    elif not report.fully_succeeded:
        console.print("[yellow]Partial success.[/yellow]")
