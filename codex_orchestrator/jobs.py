"""Job tracking for in-flight runs.

JobTracker is the per-process store mapping run ids to Jobs. It is passed
explicitly to whoever starts or queries runs. Jobs live in memory only;
the durable record of task completion is the git branches.
"""

import asyncio
import copy
import logging
from typing import Any

from codex_orchestrator.errors import JobAlreadyRunningError
from codex_orchestrator.models import Job

logger = logging.getLogger(__name__)


class JobTracker:
    """In-memory map from run id to Job, plus the background task driving it."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._runs: dict[str, asyncio.Task[None]] = {}

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def create(self, run_id: str, total_phases: int) -> Job:
        """Register a new running Job for run_id.

        A terminal Job with the same run id is replaced (re-run).

        Raises:
            JobAlreadyRunningError: If a Job for run_id is still running
        """
        existing = self._jobs.get(run_id)
        if existing is not None and existing.status == "running":
            raise JobAlreadyRunningError(f"Job {run_id} is already running")

        job = Job(run_id=run_id, total_phases=total_phases)
        self._jobs[run_id] = job
        self._runs.pop(run_id, None)
        return job

    def get(self, run_id: str) -> Job | None:
        """Return the live Job for run_id, or None if unknown."""
        return self._jobs.get(run_id)

    def snapshot(self, run_id: str) -> dict[str, Any] | None:
        """Return a point-in-time copy of the Job as a dict, or None."""
        job = self._jobs.get(run_id)
        if job is None:
            return None
        return copy.deepcopy(job.to_dict())

    def attach(self, run_id: str, task: "asyncio.Task[None]") -> None:
        """Associate the background task executing run_id."""
        self._runs[run_id] = task

    async def wait(self, run_id: str) -> Job | None:
        """Wait for the background task of run_id to finish.

        Returns:
            The Job once it is terminal, or None for unknown run ids
        """
        task = self._runs.get(run_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self._jobs.get(run_id)

    def discard(self, run_id: str) -> bool:
        """Forget a terminal Job.

        Running jobs are kept.

        Returns:
            True if a Job was removed
        """
        job = self._jobs.get(run_id)
        if job is None or not job.is_terminal:
            return False

        del self._jobs[run_id]
        self._runs.pop(run_id, None)
        logger.debug(f"Discarded job {run_id} ({job.status})")
        return True
