"""Parallel phase execution.

Runs every pending task of a phase concurrently, each in its own worktree.
The phase waits for all tasks to settle; a failing task never cancels its
siblings. Successful branches are handed to the stacking backend, then
every worktree is removed.

Only setup/coordination failures raise. Individual task failures are
recorded on the job.
"""

import asyncio
import logging
import time
from pathlib import Path

from codex_orchestrator import telemetry
from codex_orchestrator.agent import execute, extract_branch_name
from codex_orchestrator.branch_tracker import check_existing_work, warn_if_untracked
from codex_orchestrator.context import ExecutionContext
from codex_orchestrator.models import Job, Phase, Plan, Task, ThreadResult
from codex_orchestrator.prompts import build_task_prompt

logger = logging.getLogger(__name__)


async def execute_parallel_phase(
    phase: Phase, plan: Plan, job: Job, ctx: ExecutionContext
) -> None:
    """Execute a phase by running all pending tasks concurrently.

    Steps:
    1. Check existing work in git and record completed tasks
    2. Create one worktree per pending task (detached at HEAD)
    3. Run all tasks concurrently and wait for every one to settle
    4. Record completed/failed status per task
    5. Stack successful branches onto the base ref (failure is a warning)
    6. Remove every worktree created in step 2

    Args:
        phase: Phase to execute
        plan: Plan the phase belongs to
        job: Job updated in place with task results
        ctx: Execution collaborators

    Raises:
        Exception: Any setup/coordination failure; the job is marked failed first
    """
    worktrees = ctx.worktree_manager
    created: list[Path] = []

    with ctx.tracer.start_as_current_span("orchestrator.phase") as span:
        span.set_attribute("phase.id", phase.id)
        span.set_attribute("phase.strategy", "parallel")
        span.set_attribute("run.id", plan.run_id)

        try:
            existing = await check_existing_work(
                phase, plan.run_id, ctx.repo, ctx.config.base_ref
            )
            for done in existing.completed_tasks:
                job.upsert_task(done.id, "completed", branch=done.branch)

            pending = existing.pending_tasks
            span.set_attribute("phase.pending_tasks", len(pending))
            if not pending:
                logger.info(f"Phase {phase.id}: all tasks already complete")
                return

            try:
                for task in pending:
                    created.append(
                        await worktrees.create_task_worktree(plan.run_id, task.id)
                    )

                logger.info(f"Phase {phase.id}: running {len(pending)} tasks in parallel")
                results = await asyncio.gather(
                    *(
                        _run_task(task, path, plan, job, ctx)
                        for task, path in zip(pending, created)
                    ),
                    return_exceptions=True,
                )

                branches = _collect_branches(pending, results, job)
                await _stack_branches(branches, phase, plan, job, ctx)
            finally:
                await worktrees.cleanup(created)

        except Exception as e:
            job.mark_failed(str(e))
            span.set_attribute("phase.status", "failed")
            telemetry.record_phase(plan.run_id, "parallel", "failed")
            raise

        failed = job.failed_task_ids([task.id for task in pending])
        span.set_attribute("phase.failed_tasks", len(failed))
        telemetry.record_phase(
            plan.run_id, "parallel", "partial" if failed else "completed"
        )


async def _run_task(
    task: Task, worktree: Path, plan: Plan, job: Job, ctx: ExecutionContext
) -> ThreadResult:
    """Run one task in its worktree and record its outcome on the job.

    Never raises for agent failures; those become a failed ThreadResult.
    """
    job.upsert_task(task.id, "running")
    start_time = time.monotonic()

    with ctx.tracer.start_as_current_span("orchestrator.task") as span:
        span.set_attribute("task.id", task.id)
        span.set_attribute("task.name", task.name)

        try:
            prompt = build_task_prompt(task, plan, worktree)
            reply = await execute(ctx.agent, prompt, worktree)
        except Exception as e:
            logger.warning(f"Task {task.id} failed: {e}")
            result = ThreadResult(task_id=task.id, success=False, error=str(e))
        else:
            result = ThreadResult(
                task_id=task.id,
                success=True,
                branch=extract_branch_name(reply.raw_output),
            )

        status = "completed" if result.success else "failed"
        span.set_attribute("task.status", status)

    _record_result(task, result, job)
    telemetry.record_task(plan.run_id, status, time.monotonic() - start_time)
    return result


def _record_result(task: Task, result: ThreadResult, job: Job) -> None:
    if result.success:
        task.branch = result.branch
        job.upsert_task(task.id, "completed", branch=result.branch)
        if result.branch is None:
            logger.warning(f"Task {task.id} completed without reporting a branch")
        warn_if_untracked(result.branch, job.run_id, task.id)
    else:
        task.error = result.error
        job.upsert_task(task.id, "failed", error=result.error)


def _collect_branches(
    tasks: list[Task], results: list[ThreadResult | BaseException], job: Job
) -> list[str]:
    """Return branches of successful tasks, in task order.

    Results that are exceptions (the task coroutine itself blew up) are
    recorded as failed tasks.
    """
    branches: list[str] = []
    for task, result in zip(tasks, results):
        if isinstance(result, BaseException):
            _record_result(
                task,
                ThreadResult(task_id=task.id, success=False, error=str(result)),
                job,
            )
            continue
        if result.success and result.branch:
            branches.append(result.branch)
    return branches


async def _stack_branches(
    branches: list[str], phase: Phase, plan: Plan, job: Job, ctx: ExecutionContext
) -> None:
    """Stack branches onto the base ref. Failures become job warnings."""
    if not branches:
        return
    if ctx.stacking is None:
        logger.info(f"Phase {phase.id}: no stacking backend, branches left unstacked")
        return

    try:
        await ctx.stacking.stack_branches(branches, ctx.config.base_ref, ctx.repo.path)
        logger.info(f"Phase {phase.id}: stacked {len(branches)} branches")
    except Exception as e:
        warning = f"Phase {phase.id}: stacking failed: {e}"
        logger.warning(warning)
        job.warnings.append(warning)
        telemetry.record_stacking_failure(plan.run_id)
