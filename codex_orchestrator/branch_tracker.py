"""Resume logic: derive task completion from git branches.

Git branches are the source of truth. A task is complete when a branch named
{run_id}-task-{task_id}-* exists and carries at least one commit that the
base ref does not. Nothing here is cached: every call replays git state, and
no call mutates the repository.
"""

import logging

from codex_orchestrator.errors import ValidationError
from codex_orchestrator.git import GitRepository
from codex_orchestrator.models import CompletedTask, ExistingWork, Phase, Task
from codex_orchestrator.validation import validate_branch_name

logger = logging.getLogger(__name__)


def task_branch_prefix(run_id: str, task_id: str) -> str:
    """Branch name prefix for a task, e.g. "abc123-task-1-1-"."""
    return f"{run_id}-task-{task_id}-"


async def find_task_branch(
    task: Task, run_id: str, repo: GitRepository, base_ref: str = "main"
) -> tuple[str, int] | None:
    """Find the branch and commit count for a completed task.

    When several branches match, the lexicographically-first one wins.
    Branch names are expected to be unique per task.

    Returns:
        (branch, commit_count) if the task is complete, None otherwise
    """
    branch = await repo.find_branch(task_branch_prefix(run_id, task.id))
    if branch is None:
        return None

    commit_count = await repo.count_commits_ahead(branch, base_ref)
    if commit_count == 0:
        # Empty branch means the task never got past setup
        logger.debug(f"Branch {branch} has no commits ahead of {base_ref}")
        return None
    return branch, commit_count


async def is_task_complete(
    task: Task, run_id: str, repo: GitRepository, base_ref: str = "main"
) -> bool:
    """Check if a task has a branch with commits ahead of base_ref."""
    return await find_task_branch(task, run_id, repo, base_ref) is not None


async def check_existing_work(
    phase: Phase, run_id: str, repo: GitRepository, base_ref: str = "main"
) -> ExistingWork:
    """Partition a phase's tasks into completed and pending using git state.

    Args:
        phase: Phase containing tasks to check
        run_id: Run identifier (branch prefix)
        repo: Repository to query
        base_ref: Ref that task commits are counted against

    Returns:
        ExistingWork with completed tasks (branch + commit count) and
        pending tasks, both in phase order

    Raises:
        GitCommandError: If git cannot be queried
    """
    work = ExistingWork()

    for task in phase.tasks:
        found = await find_task_branch(task, run_id, repo, base_ref)
        if found is None:
            work.pending_tasks.append(task)
            continue

        branch, commit_count = found
        work.completed_tasks.append(CompletedTask.from_task(task, branch, commit_count))

    logger.info(
        f"Phase {phase.id}: {len(work.completed_tasks)} completed, "
        f"{len(work.pending_tasks)} pending"
    )
    return work


def warn_if_untracked(branch: str | None, run_id: str, task_id: str) -> None:
    """Log a warning when a reported branch will not be seen by resume checks."""
    if branch is None:
        return
    try:
        validate_branch_name(branch, run_id)
    except ValidationError as e:
        logger.warning(f"Task {task_id}: {e}; resume will not detect it")
        return
    if not branch.startswith(task_branch_prefix(run_id, task_id)):
        logger.warning(
            f"Task {task_id}: branch {branch} does not match "
            f"{task_branch_prefix(run_id, task_id)}*; resume will not detect it"
        )
