"""Shared fixtures for orchestrator tests."""

import shutil
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fakes import commit_file, git, make_phase

from codex_orchestrator.config import OrchestratorConfig
from codex_orchestrator.context import ExecutionContext
from codex_orchestrator.git import GitRepository
from codex_orchestrator.models import Plan


@pytest.fixture
def run_id() -> str:
    return "abc123"


@pytest.fixture
def plan(run_id: str) -> Plan:
    """Two-phase plan: parallel phase 1, sequential phase 2."""
    return Plan(
        run_id=run_id,
        feature_slug="user-auth",
        title="Implementation Plan: User Auth",
        phases=[
            make_phase(1, "parallel", ["1-1", "1-2", "1-3"]),
            make_phase(2, "sequential", ["2-1", "2-2"]),
        ],
    )


@pytest.fixture
def mock_worktrees(tmp_path: Path) -> MagicMock:
    """WorktreeManager stand-in that hands out paths without touching git."""
    worktrees = MagicMock()
    root = tmp_path / ".worktrees"

    async def _create(run_id: str, task_id: str) -> Path:
        return root / f"{run_id}-task-{task_id}"

    async def _main(run_id: str) -> Path:
        return root / f"{run_id}-main"

    worktrees.create_task_worktree = AsyncMock(side_effect=_create)
    worktrees.ensure_main_worktree = AsyncMock(side_effect=_main)
    worktrees.cleanup = AsyncMock()
    return worktrees


@pytest.fixture
def make_ctx(tmp_path: Path, mock_worktrees: MagicMock):
    """Factory for ExecutionContext with mocked worktrees."""

    def _make(agent, stacking=None, **config_overrides) -> ExecutionContext:
        config = OrchestratorConfig(repo_path=tmp_path, **config_overrides)
        return ExecutionContext(
            repo=GitRepository(tmp_path),
            agent=agent,
            config=config,
            stacking=stacking,
            worktrees=mock_worktrees,
        )

    return _make


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A real git repository with one commit on main."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "checkout", "-q", "-b", "main")
    git(repo, "config", "user.name", "Test User")
    git(repo, "config", "user.email", "test@example.com")
    git(repo, "config", "commit.gpgsign", "false")
    commit_file(repo, "README.md", "# test\n", "initial commit")
    return repo
