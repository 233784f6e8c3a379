"""Run coordination: phases in order, each gated by code review.

execute_phases drives one plan through its phases. For every phase it
dispatches to the parallel or sequential executor, applies the task failure
policy, then runs the review loop in the run's main worktree. Phase N+1
never starts before phase N has been approved.

start_run is the asynchronous entry point: it registers a Job with the
JobTracker, schedules the run as a background task and returns the run id
immediately. run_plan is the foreground equivalent used by the CLI.
"""

import asyncio
import logging

from codex_orchestrator.code_review import run_code_review
from codex_orchestrator.context import ExecutionContext
from codex_orchestrator.discord_notifier import (
    DiscordEmbed,
    format_run_completed,
    format_run_failed,
    format_run_started,
    send_discord_message,
)
from codex_orchestrator.errors import TaskExecutionError
from codex_orchestrator.jobs import JobTracker
from codex_orchestrator.models import Job, Phase, Plan
from codex_orchestrator.parallel_phase import execute_parallel_phase
from codex_orchestrator.sequential_phase import execute_sequential_phase
from codex_orchestrator.stacking import get_stacking_backend

logger = logging.getLogger(__name__)


async def execute_phases(plan: Plan, job: Job, ctx: ExecutionContext) -> Job:
    """Execute every phase of a plan in order.

    Args:
        plan: Parsed plan
        job: Job updated in place as the run progresses
        ctx: Execution collaborators

    Returns:
        The completed job

    Raises:
        StackingError: Plan needs stacking and the backend is unavailable
        TaskExecutionError: A task failed (sequential) or, with
            fail_on_task_error, a parallel phase finished with failed tasks
        VerdictParseError, ReviewEscalationError: Review loop failed
        GitCommandError: Git could not be queried or a worktree not created

        In every case the job is marked failed before the error propagates.
    """
    with ctx.tracer.start_as_current_span("orchestrator.run") as span:
        span.set_attribute("run.id", plan.run_id)
        span.set_attribute("run.total_phases", len(plan.phases))

        try:
            await _resolve_stacking(plan, ctx)

            for phase in plan.phases:
                job.phase = phase.id
                logger.info(
                    f"Phase {phase.id}/{len(plan.phases)}: {phase.name} ({phase.strategy})"
                )
                await _execute_phase(phase, plan, job, ctx)
                _check_task_failures(phase, job, ctx)
                await _review_phase(phase, plan, job, ctx)

        except Exception as e:
            if not job.is_terminal:
                job.mark_failed(str(e))
            span.set_attribute("run.status", "failed")
            raise

        job.mark_completed()
        span.set_attribute("run.status", "completed")
        span.set_attribute("run.warnings", len(job.warnings))

    logger.info(f"Run {plan.run_id} completed")
    return job


async def _resolve_stacking(plan: Plan, ctx: ExecutionContext) -> None:
    """Verify the stacking backend up front when any phase is parallel."""
    if ctx.stacking is not None:
        return
    if not any(phase.strategy == "parallel" for phase in plan.phases):
        return
    ctx.stacking = await get_stacking_backend(ctx.config.stacking_backend)


async def _execute_phase(
    phase: Phase, plan: Plan, job: Job, ctx: ExecutionContext
) -> None:
    if phase.strategy == "parallel":
        await execute_parallel_phase(phase, plan, job, ctx)
    else:
        await execute_sequential_phase(phase, plan, job, ctx)


def _check_task_failures(phase: Phase, job: Job, ctx: ExecutionContext) -> None:
    """Fail the job if the phase left failed tasks and policy says so."""
    failed = job.failed_task_ids([task.id for task in phase.tasks])
    if not failed:
        return

    message = f"Phase {phase.id} had failed tasks: {', '.join(failed)}"
    if not ctx.config.fail_on_task_error:
        logger.warning(f"{message} (continuing)")
        return

    job.mark_failed(message)
    raise TaskExecutionError(message, failed)


async def _review_phase(
    phase: Phase, plan: Plan, job: Job, ctx: ExecutionContext
) -> None:
    workdir = await ctx.worktree_manager.ensure_main_worktree(plan.run_id)
    try:
        await run_code_review(phase, plan, ctx, workdir)
    except Exception as e:
        job.mark_failed(f"Code review failed for phase {phase.id}: {e}")
        raise


async def _notify(ctx: ExecutionContext, embed: DiscordEmbed) -> None:
    if ctx.config.discord_enabled:
        await send_discord_message(ctx.config.discord_webhook_url, embed)


async def _drive(plan: Plan, job: Job, ctx: ExecutionContext) -> None:
    """Run the plan to a terminal status. Errors end up on the job."""
    await _notify(ctx, format_run_started(plan.run_id, plan.title, len(plan.phases)))

    try:
        await execute_phases(plan, job, ctx)
    except Exception as e:
        if not job.is_terminal:
            job.mark_failed(str(e))
        logger.error(f"Run {plan.run_id} failed: {job.error}")
        await _notify(ctx, format_run_failed(job))
        return

    await _notify(ctx, format_run_completed(job))


async def start_run(plan: Plan, tracker: JobTracker, ctx: ExecutionContext) -> str:
    """Start a run in the background and return its run id immediately.

    Progress is observable through tracker.snapshot(run_id).

    Raises:
        JobAlreadyRunningError: If the run is already in progress
    """
    job = tracker.create(plan.run_id, len(plan.phases))
    task = asyncio.create_task(_drive(plan, job, ctx), name=f"run-{plan.run_id}")
    tracker.attach(plan.run_id, task)
    logger.info(f"Started run {plan.run_id} ({len(plan.phases)} phases)")
    return plan.run_id


async def run_plan(
    plan: Plan, ctx: ExecutionContext, tracker: JobTracker | None = None
) -> Job:
    """Run a plan in the foreground and return its terminal Job."""
    tracker = tracker or JobTracker()
    job = tracker.create(plan.run_id, len(plan.phases))
    await _drive(plan, job, ctx)
    return job
