"""Sequential phase execution.

Runs pending tasks one at a time, in task order, inside the run's shared
main worktree. Each task commits on top of the previous one, so branches
stack naturally. The first failure stops the phase: later tasks are never
attempted.
"""

import logging
import time

from codex_orchestrator import telemetry
from codex_orchestrator.agent import execute, extract_branch_name
from codex_orchestrator.branch_tracker import check_existing_work, warn_if_untracked
from codex_orchestrator.context import ExecutionContext
from codex_orchestrator.errors import TaskExecutionError
from codex_orchestrator.models import Job, Phase, Plan
from codex_orchestrator.prompts import build_task_prompt

logger = logging.getLogger(__name__)


async def execute_sequential_phase(
    phase: Phase, plan: Plan, job: Job, ctx: ExecutionContext
) -> None:
    """Execute a phase by running pending tasks one by one (fail fast).

    Args:
        phase: Phase to execute
        plan: Plan the phase belongs to
        job: Job updated in place with task results
        ctx: Execution collaborators

    Raises:
        TaskExecutionError: On the first failing task
        Exception: Any setup failure; the job is marked failed first
    """
    with ctx.tracer.start_as_current_span("orchestrator.phase") as span:
        span.set_attribute("phase.id", phase.id)
        span.set_attribute("phase.strategy", "sequential")
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

            workdir = await ctx.worktree_manager.ensure_main_worktree(plan.run_id)

            for task in pending:
                job.upsert_task(task.id, "running")
                logger.info(f"Task {task.id}: starting ({task.name})")
                start_time = time.monotonic()

                with ctx.tracer.start_as_current_span("orchestrator.task") as task_span:
                    task_span.set_attribute("task.id", task.id)
                    task_span.set_attribute("task.name", task.name)
                    try:
                        reply = await execute(
                            ctx.agent, build_task_prompt(task, plan, workdir), workdir
                        )
                    except Exception as e:
                        task.error = str(e)
                        job.upsert_task(task.id, "failed", error=str(e))
                        task_span.set_attribute("task.status", "failed")
                        telemetry.record_task(
                            plan.run_id, "failed", time.monotonic() - start_time
                        )
                        raise TaskExecutionError(
                            f"Task {task.id} failed: {e}", [task.id]
                        ) from e

                    task.branch = extract_branch_name(reply.raw_output)
                    warn_if_untracked(task.branch, plan.run_id, task.id)
                    job.upsert_task(task.id, "completed", branch=task.branch)
                    task_span.set_attribute("task.status", "completed")

                telemetry.record_task(
                    plan.run_id, "completed", time.monotonic() - start_time
                )
                logger.info(f"Task {task.id}: completed (branch: {task.branch})")

        except Exception as e:
            job.mark_failed(str(e))
            span.set_attribute("phase.status", "failed")
            telemetry.record_phase(plan.run_id, "sequential", "failed")
            raise

        telemetry.record_phase(plan.run_id, "sequential", "completed")
