"""Git access for branch state queries and worktree lifecycle.

All commands run through asyncio subprocesses so callers can await them
alongside concurrent agent calls. Commands issued through one GitRepository
are serialized behind a single lock: branch listing and worktree add/remove
are not safe to run concurrently against the same repository.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from codex_orchestrator.errors import GitCommandError

logger = logging.getLogger(__name__)


@dataclass
class GitRepository:
    """Async wrapper around the git CLI for one repository.

    Attributes:
        path: Working directory git commands run in
    """

    path: Path
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def run(self, *args: str, cwd: Path | None = None) -> str:
        """Run a git command and return its stdout.

        Args:
            *args: Arguments passed to git
            cwd: Directory to run in (defaults to the repository path)

        Returns:
            Command stdout, decoded

        Raises:
            GitCommandError: If git exits with non-zero status
        """
        command = ["git", *args]
        async with self._lock:
            logger.debug(f"Running {' '.join(command)}")
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(cwd or self.path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()

        if proc.returncode != 0:
            raise GitCommandError(command, proc.returncode or 1, stderr.decode())
        return stdout.decode()

    async def list_branches(self, prefix: str) -> list[str]:
        """List local branches whose names start with prefix, sorted."""
        output = await self.run(
            "branch", "--list", "--format=%(refname:short)", f"{prefix}*"
        )
        return sorted(line.strip() for line in output.splitlines() if line.strip())

    async def find_branch(self, prefix: str) -> str | None:
        """Return the lexicographically-first branch starting with prefix."""
        branches = await self.list_branches(prefix)
        return branches[0] if branches else None

    async def count_commits_ahead(self, branch: str, base_ref: str) -> int:
        """Count commits on branch that are not reachable from base_ref."""
        output = await self.run("rev-list", "--count", f"{base_ref}..{branch}")
        return int(output.strip() or "0")

    async def create_worktree(self, path: Path, base_ref: str = "HEAD") -> None:
        """Create a detached worktree at path rooted at base_ref."""
        path.parent.mkdir(parents=True, exist_ok=True)
        await self.run("worktree", "add", "--detach", str(path), base_ref)

    async def remove_worktree(self, path: Path) -> bool:
        """Remove a worktree, best-effort.

        A missing worktree is not an error.

        Returns:
            True if the worktree was removed, False otherwise
        """
        try:
            await self.run("worktree", "remove", "--force", str(path))
        except GitCommandError as e:
            logger.debug(f"Worktree {path} not removed: {e.stderr.strip()}")
            return False
        return True

    async def prune_worktrees(self) -> None:
        """Drop registrations of worktrees whose directories are gone."""
        await self.run("worktree", "prune")

    async def list_worktrees(self) -> list[Path]:
        """List all worktrees of the repository (main checkout included)."""
        output = await self.run("worktree", "list", "--porcelain")
        return [
            Path(line[len("worktree ") :])
            for line in output.splitlines()
            if line.startswith("worktree ")
        ]
