"""Stacking backend interface.

A stacking backend rewrites an ordered list of task branches into a single
linear chain: branches[0] onto the base ref, branches[1] onto branches[0],
and so on.
"""

from pathlib import Path
from typing import Protocol


class StackingBackend(Protocol):
    """Protocol for branch stacking backends (git-spice, graphite, ...)."""

    name: str

    async def detect_backend(self) -> bool:
        """Return True if the backend's CLI is installed and usable."""
        ...

    async def stack_branches(
        self, branches: list[str], base_ref: str, workdir: Path
    ) -> None:
        """Stack branches in order onto base_ref. Empty input is a no-op.

        Raises:
            StackingError: If a stacking command fails
        """
        ...
