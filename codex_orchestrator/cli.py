"""CLI for the Orchestrator.

Provides command-line interface for running implementation plans and
inspecting resume state.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from codex_orchestrator.branch_tracker import check_existing_work
from codex_orchestrator.config import OrchestratorConfig
from codex_orchestrator.context import ExecutionContext
from codex_orchestrator.errors import OrchestratorError
from codex_orchestrator.git import GitRepository
from codex_orchestrator.lock import RunLock
from codex_orchestrator.models import Job, Plan
from codex_orchestrator.plan_parser import load_plan
from codex_orchestrator.runner import run_plan
from codex_orchestrator.telemetry import create_metrics, setup_telemetry
from codex_orchestrator.validation import sanitize_path, validate_plan_path

console = Console()

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

STATUS_COLORS = {
    "completed": "green",
    "failed": "red",
    "running": "yellow",
    "pending": "white",
}


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=_CONSOLE_FORMAT,
        stream=sys.stderr,
    )


def _load_plan(plan_file: str, config: OrchestratorConfig) -> Plan:
    """Validate the plan location and parse it."""
    sanitize_path(plan_file)
    relative = os.path.relpath(Path(plan_file).resolve(), Path(config.repo_path).resolve())
    validate_plan_path(relative)
    return load_plan(plan_file)


@click.group()
@click.version_option(package_name="codex-orchestrator")
def cli() -> None:
    """Codex Orchestrator - phase execution for agent-driven plans."""
    pass


@cli.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def run(plan_file: str, verbose: bool) -> None:
    """Run every phase of a plan, resuming completed tasks from git."""
    _configure_logging(verbose)
    sys.exit(asyncio.run(_run(plan_file)))


async def _run(plan_file: str) -> int:
    """Internal async implementation of plan execution. Returns exit code."""
    config = OrchestratorConfig.from_env()
    tracer, meter = setup_telemetry(config)
    create_metrics(meter)

    try:
        plan = _load_plan(plan_file, config)
        with RunLock(config.lock_dir, plan.run_id):
            console.print(
                f"[bold]Starting run:[/bold] {plan.run_id} "
                f"({plan.title}, {len(plan.phases)} phases)"
            )
            ctx = ExecutionContext.from_config(config)
            ctx.tracer = tracer
            job = await run_plan(plan, ctx)
    except OrchestratorError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    _print_job_summary(job)
    return 0 if job.status == "completed" else 1


def _print_job_summary(job: Job) -> None:
    """Print task table and final run status."""
    table = Table(title=f"Run {job.run_id}")
    table.add_column("Task")
    table.add_column("Status")
    table.add_column("Branch")
    table.add_column("Error")

    for entry in job.tasks:
        color = STATUS_COLORS.get(entry.status, "white")
        table.add_row(
            entry.id,
            f"[{color}]{entry.status}[/{color}]",
            entry.branch or "",
            entry.error or "",
        )
    console.print(table)

    color = STATUS_COLORS.get(job.status, "white")
    console.print(
        f"\n[bold {color}]Run {job.status.upper()}[/bold {color}] "
        f"(phase {job.phase}/{job.total_phases})"
    )
    if job.error:
        console.print(f"  [red]{job.error}[/red]")
    for warning in job.warnings:
        console.print(f"  [yellow]Warning:[/yellow] {warning}")


@cli.command()
@click.argument("plan_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--phase", "-p", "phase_id", type=int, default=None, help="Only check this phase")
def check(plan_file: str, phase_id: int | None) -> None:
    """Show which tasks git already records as complete (read-only)."""
    sys.exit(asyncio.run(_check(plan_file, phase_id)))


async def _check(plan_file: str, phase_id: int | None) -> int:
    config = OrchestratorConfig.from_env()

    try:
        plan = _load_plan(plan_file, config)
        phases = plan.phases
        if phase_id is not None:
            phase = plan.get_phase(phase_id)
            if phase is None:
                console.print(f"[red]Phase {phase_id} not found in {plan_file}[/red]")
                return 1
            phases = [phase]

        repo = GitRepository(Path(config.repo_path))
        table = Table(title=f"Resume state for {plan.run_id}")
        table.add_column("Phase")
        table.add_column("Task")
        table.add_column("Status")
        table.add_column("Branch")
        table.add_column("Commits")

        for phase in phases:
            work = await check_existing_work(phase, plan.run_id, repo, config.base_ref)
            for done in work.completed_tasks:
                table.add_row(
                    str(phase.id),
                    done.id,
                    "[green]completed[/green]",
                    done.branch or "",
                    str(done.commit_count),
                )
            for task in work.pending_tasks:
                table.add_row(str(phase.id), task.id, "pending", "", "")
    except OrchestratorError as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1

    console.print(table)
    return 0


def main() -> None:
    """Main entry point for the orchestrator CLI."""
    cli()


if __name__ == "__main__":
    main()
