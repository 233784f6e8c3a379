"""Collaborators shared by the phase executors and the review loop."""

from dataclasses import dataclass, field

from opentelemetry import trace

from codex_orchestrator.agent import AgentClient, CodexCliAgent
from codex_orchestrator.config import OrchestratorConfig
from codex_orchestrator.git import GitRepository
from codex_orchestrator.stacking import StackingBackend
from codex_orchestrator.telemetry import get_tracer
from codex_orchestrator.worktrees import WorktreeManager


@dataclass
class ExecutionContext:
    """Everything an executor needs besides the phase, plan and job.

    Attributes:
        repo: Repository the run operates on
        agent: Task agent client (injected; stubbed in tests)
        config: Orchestrator configuration
        stacking: Verified stacking backend, or None to skip stacking
        tracer: OpenTelemetry tracer for spans
        worktrees: Worktree manager (rooted at config.worktrees_root if omitted)
    """

    repo: GitRepository
    agent: AgentClient
    config: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    stacking: StackingBackend | None = None
    tracer: trace.Tracer = field(default_factory=get_tracer)
    worktrees: WorktreeManager | None = None

    def __post_init__(self) -> None:
        if self.worktrees is None:
            self.worktrees = WorktreeManager(self.repo, self.config.worktrees_root)

    @property
    def worktree_manager(self) -> WorktreeManager:
        assert self.worktrees is not None
        return self.worktrees

    @classmethod
    def from_config(
        cls, config: OrchestratorConfig, agent: AgentClient | None = None
    ) -> "ExecutionContext":
        """Build a context for the repository named in config."""
        return cls(
            repo=GitRepository(config.repo_path),
            agent=agent or CodexCliAgent.from_config(config),
            config=config,
        )
