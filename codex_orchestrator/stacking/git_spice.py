"""git-spice stacking backend.

Stacks branches with `gs upstack onto`. Requires the git-spice CLI (`gs`)
on PATH.
"""

import asyncio
import logging
from pathlib import Path

from codex_orchestrator.errors import StackingError

logger = logging.getLogger(__name__)


async def _run(command: list[str], cwd: Path | None = None) -> str:
    """Run a command and return stdout, raising StackingError on failure."""
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise StackingError(f"{command[0]} command not found") from e

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise StackingError(
            f"{' '.join(command)} failed ({proc.returncode}): {stderr.decode().strip()}"
        )
    return stdout.decode()


class GitSpiceBackend:
    """Branch stacking backed by git-spice."""

    name = "git-spice"

    async def detect_backend(self) -> bool:
        """Check that `gs --version` runs successfully."""
        try:
            await _run(["gs", "--version"])
        except StackingError:
            return False
        return True

    async def stack_branches(
        self, branches: list[str], base_ref: str, workdir: Path
    ) -> None:
        """Stack branches in linear order.

        For each branch: check it out, then `gs upstack onto <previous>`,
        where previous is base_ref for the first branch.
        """
        previous = base_ref
        for branch in branches:
            await _run(["git", "checkout", branch], cwd=workdir)
            await _run(["gs", "upstack", "onto", previous], cwd=workdir)
            logger.debug(f"Stacked {branch} onto {previous}")
            previous = branch
