"""Data models for the Orchestrator.

Defines dataclasses for plans, phases, tasks, the resume view derived from
git, agent results, and the mutable Job that tracks one in-flight run.
Jobs are JSON serializable via Job.to_dict() for status queries.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Literal

JobStatus = Literal["running", "completed", "failed"]
TaskState = Literal["pending", "running", "completed", "failed"]
PhaseStrategy = Literal["parallel", "sequential"]


@dataclass
class Task:
    """A task extracted from an implementation plan.

    Task ids have the form "{phase}-{index}" (e.g. "2-3") and are unique
    within a plan. Dependencies are informational only; scheduling is
    decided by phase grouping.
    """

    id: str
    name: str
    description: str = ""
    files: list[str] = field(default_factory=list)
    acceptance_criteria: list[str] = field(default_factory=list)
    dependencies: list[str] | None = None
    # Populated after execution
    branch: str | None = None
    error: str | None = None


@dataclass
class Phase:
    """An ordered group of tasks sharing one execution strategy."""

    id: int
    name: str
    strategy: PhaseStrategy
    tasks: list[Task]


@dataclass
class Plan:
    """A fully parsed implementation plan for one run."""

    run_id: str
    phases: list[Phase]
    feature_slug: str = "unknown-feature"
    title: str | None = None

    def get_phase(self, phase_id: int) -> Phase | None:
        for phase in self.phases:
            if phase.id == phase_id:
                return phase
        return None


@dataclass
class CompletedTask(Task):
    """A task whose branch exists in git with commits ahead of the base ref."""

    commit_count: int = 0

    @classmethod
    def from_task(cls, task: Task, branch: str, commit_count: int) -> "CompletedTask":
        values = {f.name: getattr(task, f.name) for f in fields(Task)}
        values["branch"] = branch
        return cls(**values, commit_count=commit_count)


@dataclass
class ExistingWork:
    """Resume view of a phase, recomputed from git on every phase entry."""

    completed_tasks: list[CompletedTask] = field(default_factory=list)
    pending_tasks: list[Task] = field(default_factory=list)


@dataclass
class AgentResult:
    """Raw reply from one agent turn."""

    raw_output: str


@dataclass
class ThreadResult:
    """Outcome of running one task through the agent.

    Captures success/failure, the branch the agent reported (if any), and
    the error text for failed tasks.
    """

    task_id: str
    success: bool
    branch: str | None = None
    error: str | None = None


@dataclass
class TaskStatus:
    """Status entry for one task inside a Job."""

    id: str
    status: TaskState
    branch: str | None = None
    error: str | None = None


@dataclass
class Job:
    """Mutable runtime state of one in-flight run.

    A Job holds exactly one TaskStatus per touched task. Entries are never
    removed, only appended or replaced in place by task id.

    Attributes:
        run_id: Run identifier this job tracks
        total_phases: Number of phases in the plan
        phase: Phase currently executing (1-based)
        status: running, completed or failed
        tasks: Task statuses in insertion order
        started_at: When the run started
        completed_at: When the run reached a terminal status
        error: Top-level error for failed runs
        warnings: Non-fatal problems (e.g. stacking failures)
    """

    run_id: str
    total_phases: int
    phase: int = 1
    status: JobStatus = "running"
    tasks: list[TaskStatus] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")

    def get_task(self, task_id: str) -> TaskStatus | None:
        for entry in self.tasks:
            if entry.id == task_id:
                return entry
        return None

    def upsert_task(
        self,
        task_id: str,
        status: TaskState,
        branch: str | None = None,
        error: str | None = None,
    ) -> TaskStatus:
        """Replace the entry for task_id in place, or append a new one."""
        entry = TaskStatus(id=task_id, status=status, branch=branch, error=error)
        for index, existing in enumerate(self.tasks):
            if existing.id == task_id:
                self.tasks[index] = entry
                return entry
        self.tasks.append(entry)
        return entry

    def failed_task_ids(self, task_ids: list[str] | None = None) -> list[str]:
        """IDs of failed tasks, optionally restricted to task_ids."""
        return [
            entry.id
            for entry in self.tasks
            if entry.status == "failed" and (task_ids is None or entry.id in task_ids)
        ]

    def mark_completed(self) -> None:
        self.status = "completed"
        self.completed_at = datetime.now()

    def mark_failed(self, error: str) -> None:
        self.status = "failed"
        self.error = error
        self.completed_at = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        """Serialize for status queries (snake_case, ISO timestamps)."""
        data: dict[str, Any] = {
            "run_id": self.run_id,
            "status": self.status,
            "phase": self.phase,
            "total_phases": self.total_phases,
            "tasks": [_task_status_dict(entry) for entry in self.tasks],
            "started_at": self.started_at.isoformat(),
            "warnings": list(self.warnings),
        }
        if self.completed_at is not None:
            data["completed_at"] = self.completed_at.isoformat()
        if self.error is not None:
            data["error"] = self.error
        return data


def _task_status_dict(entry: TaskStatus) -> dict[str, Any]:
    data: dict[str, Any] = {"id": entry.id, "status": entry.status}
    if entry.branch is not None:
        data["branch"] = entry.branch
    if entry.error is not None:
        data["error"] = entry.error
    return data
