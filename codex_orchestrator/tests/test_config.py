"""Tests for orchestrator configuration module.

These tests verify config defaults and environment variable overrides.
"""

import os
from pathlib import Path
from unittest.mock import patch

from codex_orchestrator.config import DEFAULT_AGENT_ARGS, OrchestratorConfig
from codex_orchestrator.context import ExecutionContext


class TestOrchestratorConfigDefaults:
    """Test that config loads with sensible defaults."""

    def test_repository_layout_defaults(self):
        """Worktrees live in .worktrees and resume compares against main."""
        with patch.dict(os.environ, {}, clear=True):
            config = OrchestratorConfig()

        assert config.worktrees_dir == ".worktrees"
        assert config.base_ref == "main"
        assert config.worktrees_root == config.repo_path / ".worktrees"

    def test_agent_defaults(self):
        """Default agent is the codex CLI reading its prompt from stdin."""
        config = OrchestratorConfig()

        assert config.agent_bin == "codex"
        assert config.agent_args == DEFAULT_AGENT_ARGS
        assert config.agent_args[-1] == "-"
        assert config.agent_timeout_seconds == 1800

    def test_review_and_policy_defaults(self):
        config = OrchestratorConfig()

        assert config.max_rejections == 3
        assert config.fail_on_task_error is True
        assert config.stacking_backend == "git-spice"

    def test_otlp_endpoint_default(self):
        """Default OTLP endpoint should be localhost:4317."""
        with patch.dict(os.environ, {}, clear=True):
            config = OrchestratorConfig()
            assert config.otlp_endpoint == "http://localhost:4317"

    def test_service_name_and_state_dir_defaults(self):
        config = OrchestratorConfig()

        assert config.service_name == "codex-orchestrator"
        assert config.state_dir == Path("state")

    def test_discord_disabled_without_url(self):
        with patch.dict(os.environ, {}, clear=True):
            config = OrchestratorConfig()

        assert config.discord_webhook_url == ""
        assert config.discord_enabled is False

    def test_agent_args_are_not_shared_between_instances(self):
        first = OrchestratorConfig()
        first.agent_args.append("--extra")

        assert OrchestratorConfig().agent_args == DEFAULT_AGENT_ARGS


class TestOrchestratorConfigFromEnv:
    """Test environment variable overrides."""

    def test_from_env_overrides(self, tmp_path: Path):
        env = {
            "CODEX_ORCHESTRATOR_REPO": str(tmp_path),
            "CODEX_ORCHESTRATOR_WORKTREES_DIR": "wt",
            "CODEX_ORCHESTRATOR_BASE_REF": "develop",
            "CODEX_ORCHESTRATOR_MAX_REJECTIONS": "5",
            "CODEX_ORCHESTRATOR_AGENT_TIMEOUT": "60",
            "CODEX_ORCHESTRATOR_STATE_DIR": "/tmp/state",
            "CODEX_SUBAGENT_BIN": "/usr/local/bin/codex",
            "CODEX_SUBAGENT_ARGS": '["exec", "--json", "-"]',
            "STACKING_BACKEND": "GIT-SPICE",
            "DISCORD_WEBHOOK_URL": "https://discord.com/api/webhooks/1/x",
        }
        with patch.dict(os.environ, env, clear=True):
            config = OrchestratorConfig.from_env()

        assert config.repo_path == tmp_path
        assert config.worktrees_dir == "wt"
        assert config.worktrees_root == tmp_path / "wt"
        assert config.base_ref == "develop"
        assert config.max_rejections == 5
        assert config.agent_timeout_seconds == 60
        assert config.state_dir == Path("/tmp/state")
        assert config.agent_bin == "/usr/local/bin/codex"
        assert config.agent_args == ["exec", "--json", "-"]
        assert config.stacking_backend == "git-spice"
        assert config.discord_enabled is True

    def test_from_env_defaults_to_cwd(self):
        with patch.dict(os.environ, {}, clear=True):
            config = OrchestratorConfig.from_env()

        assert config.repo_path == Path.cwd()

    def test_invalid_agent_args_fall_back_to_defaults(self):
        with patch.dict(os.environ, {"CODEX_SUBAGENT_ARGS": "not json"}, clear=True):
            config = OrchestratorConfig.from_env()

        assert config.agent_args == DEFAULT_AGENT_ARGS

    def test_non_list_agent_args_fall_back_to_defaults(self):
        with patch.dict(os.environ, {"CODEX_SUBAGENT_ARGS": '{"a": 1}'}, clear=True):
            config = OrchestratorConfig.from_env()

        assert config.agent_args == DEFAULT_AGENT_ARGS

    def test_fail_on_task_error_can_be_disabled(self):
        for raw in ("false", "0", "no", "off"):
            env = {"CODEX_ORCHESTRATOR_FAIL_ON_TASK_ERROR": raw}
            with patch.dict(os.environ, env, clear=True):
                assert OrchestratorConfig.from_env().fail_on_task_error is False

    def test_fail_on_task_error_empty_keeps_default(self):
        env = {"CODEX_ORCHESTRATOR_FAIL_ON_TASK_ERROR": ""}
        with patch.dict(os.environ, env, clear=True):
            assert OrchestratorConfig.from_env().fail_on_task_error is True


class TestDerivedPaths:
    """Paths computed from repo_path."""

    def test_relative_state_dir_resolves_against_repo(self, tmp_path: Path, monkeypatch):
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        monkeypatch.chdir(elsewhere)

        config = OrchestratorConfig(repo_path=tmp_path / "repo", state_dir=Path("state"))

        assert config.lock_dir == (tmp_path / "repo" / "state").resolve()

    def test_absolute_state_dir_is_kept(self, tmp_path: Path):
        config = OrchestratorConfig(repo_path=tmp_path / "repo", state_dir=tmp_path / "locks")

        assert config.lock_dir == tmp_path / "locks"

    def test_context_uses_worktrees_root(self, tmp_path: Path):
        config = OrchestratorConfig(repo_path=tmp_path, worktrees_dir="wt")

        ctx = ExecutionContext.from_config(config)

        assert ctx.worktree_manager.root == config.worktrees_root == tmp_path / "wt"
