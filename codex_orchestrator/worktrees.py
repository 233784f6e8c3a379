"""Worktree lifecycle for task execution.

Parallel tasks each get their own worktree, named from run id and task id.
Sequential tasks and the review loop share one "main" worktree per run.
"""

import logging
import shutil
from pathlib import Path

from codex_orchestrator.git import GitRepository

logger = logging.getLogger(__name__)


class WorktreeManager:
    """Creates and destroys worktrees under a single root directory."""

    def __init__(self, repo: GitRepository, root: Path) -> None:
        """Initialize manager.

        Args:
            repo: Repository the worktrees belong to
            root: Directory worktrees are created in (e.g. <repo>/.worktrees)
        """
        self.repo = repo
        self.root = root

    def task_path(self, run_id: str, task_id: str) -> Path:
        return self.root / f"{run_id}-task-{task_id}"

    def main_path(self, run_id: str) -> Path:
        return self.root / f"{run_id}-main"

    async def create_task_worktree(self, run_id: str, task_id: str) -> Path:
        """Create a fresh worktree for a task, detached at HEAD.

        A worktree left at the same path by an interrupted run is removed
        first. Its branch, if any, stays and is what resume inspects.
        """
        path = self.task_path(run_id, task_id)
        await self._discard_leftover(path)
        await self.repo.create_worktree(path, "HEAD")
        logger.info(f"Created worktree {path.name}")
        return path

    async def _discard_leftover(self, path: Path) -> None:
        registered = path.resolve() in [p.resolve() for p in await self.repo.list_worktrees()]
        if not registered and not path.exists():
            return

        logger.warning(f"Removing leftover worktree {path.name}")
        if registered:
            await self.repo.remove_worktree(path)
        if path.exists():
            shutil.rmtree(path)
        await self.repo.prune_worktrees()

    async def ensure_main_worktree(self, run_id: str) -> Path:
        """Return the run's main worktree, creating it at HEAD if missing."""
        path = self.main_path(run_id)
        if path.exists():
            return path
        # Directory deleted by hand but still registered with git
        await self._discard_leftover(path)
        await self.repo.create_worktree(path, "HEAD")
        logger.info(f"Created main worktree {path.name}")
        return path

    async def cleanup(self, paths: list[Path]) -> None:
        """Remove every worktree in paths. Failures are logged, never raised."""
        for path in paths:
            if not await self.repo.remove_worktree(path):
                logger.warning(f"Could not remove worktree {path}")
