"""Per-run PID lock.

Two orchestrator processes must never drive the same run: both would create
the same worktrees and race on the same task branches. The lock is a file
named after the run id holding the owner's PID, created atomically.
"""

import logging
import os
from pathlib import Path
from types import TracebackType

from codex_orchestrator.errors import OrchestratorError

logger = logging.getLogger(__name__)


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    return True


class RunLock:
    """Exclusive lock on one run id.

    Usage:
        with RunLock(config.lock_dir, plan.run_id):
            job = await run_plan(plan, ctx)

    A lock whose PID is dead or unreadable is stale and gets taken over.

    Attributes:
        run_id: Run the lock guards
        lock_path: {lock_dir}/{run_id}.lock
    """

    def __init__(self, state_dir: Path, run_id: str) -> None:
        self.run_id = run_id
        self.lock_path = Path(state_dir) / f"{run_id}.lock"

    def acquire(self) -> bool:
        """Create the lock file, taking over a stale one.

        Returns:
            True if this process now holds the lock, False if a live
            process holds it
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)

        # Second attempt only after removing a stale lock
        for _ in range(2):
            try:
                fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                holder = self.get_holder_pid()
                if holder is not None and _pid_alive(holder):
                    return False
                logger.warning(f"Taking over stale lock for run {self.run_id} (PID: {holder})")
                self.lock_path.unlink(missing_ok=True)
                continue

            with os.fdopen(fd, "w") as f:
                f.write(str(os.getpid()))
            return True

        return False

    def release(self) -> None:
        """Remove the lock if this process holds it."""
        if self.get_holder_pid() == os.getpid():
            self.lock_path.unlink(missing_ok=True)

    def get_holder_pid(self) -> int | None:
        """PID recorded in the lock file, or None if absent or unreadable."""
        try:
            return int(self.lock_path.read_text().strip())
        except (FileNotFoundError, ValueError):
            return None

    def __enter__(self) -> "RunLock":
        if not self.acquire():
            raise OrchestratorError(
                f"Run already in progress (PID: {self.get_holder_pid()})"
            )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()
