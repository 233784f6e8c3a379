"""Configuration for the Orchestrator.

Provides centralized configuration with sensible defaults and environment
variable overrides for repository layout, the agent subprocess, the review
loop, stacking, and telemetry.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_AGENT_ARGS = ["exec", "--dangerously-bypass-approvals-and-sandbox", "-"]


def _parse_agent_args(raw: str | None) -> list[str]:
    """Parse CODEX_SUBAGENT_ARGS as a JSON list of strings.

    Falls back to DEFAULT_AGENT_ARGS when unset or malformed.
    """
    if not raw:
        return list(DEFAULT_AGENT_ARGS)

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("CODEX_SUBAGENT_ARGS is not valid JSON, using defaults")
        return list(DEFAULT_AGENT_ARGS)

    if isinstance(parsed, list) and all(isinstance(arg, str) for arg in parsed):
        return parsed

    logger.warning("CODEX_SUBAGENT_ARGS must be a JSON list of strings, using defaults")
    return list(DEFAULT_AGENT_ARGS)


def _parse_bool(raw: str | None, default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class OrchestratorConfig:
    """Configuration for orchestrator execution.

    All settings have sensible defaults but can be overridden via environment
    variables using the from_env() factory method.
    """

    # Repository layout
    repo_path: Path = field(default_factory=Path.cwd)
    worktrees_dir: str = ".worktrees"
    base_ref: str = "main"

    # Agent subprocess settings
    agent_bin: str = "codex"
    agent_args: list[str] = field(default_factory=lambda: list(DEFAULT_AGENT_ARGS))
    agent_timeout_seconds: int = 1800

    # Review loop and phase policy
    max_rejections: int = 3
    fail_on_task_error: bool = True

    # Stacking
    stacking_backend: str = "git-spice"

    # Telemetry settings
    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv("OTLP_ENDPOINT", "http://localhost:4317")
    )
    service_name: str = "codex-orchestrator"

    # Run locks
    state_dir: Path = field(default_factory=lambda: Path("state"))

    # Discord notifications (optional)
    discord_webhook_url: str = field(
        default_factory=lambda: os.getenv("DISCORD_WEBHOOK_URL", "")
    )

    @property
    def discord_enabled(self) -> bool:
        """Discord notifications are enabled when a webhook URL is set."""
        return bool(self.discord_webhook_url)

    @property
    def worktrees_root(self) -> Path:
        """Absolute directory holding all worktrees for this repository."""
        return Path(self.repo_path) / self.worktrees_dir

    @property
    def lock_dir(self) -> Path:
        """Directory holding run locks.

        A relative state_dir is taken relative to repo_path, so every process
        driving the same repository contends for the same lock files.
        """
        state_dir = Path(self.state_dir)
        if state_dir.is_absolute():
            return state_dir
        return (Path(self.repo_path) / state_dir).resolve()

    @classmethod
    def from_env(cls) -> "OrchestratorConfig":
        """Load config with environment variable overrides.

        Environment variables:
            CODEX_ORCHESTRATOR_REPO: Repository path (default: cwd)
            CODEX_ORCHESTRATOR_WORKTREES_DIR: Worktree directory (default: .worktrees)
            CODEX_ORCHESTRATOR_BASE_REF: Base ref for resume checks (default: main)
            CODEX_ORCHESTRATOR_MAX_REJECTIONS: Review rejection bound (default: 3)
            CODEX_ORCHESTRATOR_FAIL_ON_TASK_ERROR: Fail run on parallel task failure
                (default: true)
            CODEX_ORCHESTRATOR_AGENT_TIMEOUT: Agent call timeout seconds (default: 1800)
            CODEX_ORCHESTRATOR_STATE_DIR: Lock file directory, relative to the repo
                (default: state)
            CODEX_SUBAGENT_BIN: Agent executable (default: codex)
            CODEX_SUBAGENT_ARGS: JSON list of agent arguments
            STACKING_BACKEND: Stacking backend name (default: git-spice)
            OTLP_ENDPOINT: Override otlp_endpoint (default: http://localhost:4317)
            DISCORD_WEBHOOK_URL: Discord webhook for run notifications
        """
        repo = os.getenv("CODEX_ORCHESTRATOR_REPO")
        return cls(
            repo_path=Path(repo) if repo else Path.cwd(),
            worktrees_dir=os.getenv("CODEX_ORCHESTRATOR_WORKTREES_DIR", ".worktrees"),
            base_ref=os.getenv("CODEX_ORCHESTRATOR_BASE_REF", "main"),
            agent_bin=os.getenv("CODEX_SUBAGENT_BIN", "codex"),
            agent_args=_parse_agent_args(os.getenv("CODEX_SUBAGENT_ARGS")),
            agent_timeout_seconds=int(
                os.getenv("CODEX_ORCHESTRATOR_AGENT_TIMEOUT", "1800")
            ),
            max_rejections=int(os.getenv("CODEX_ORCHESTRATOR_MAX_REJECTIONS", "3")),
            fail_on_task_error=_parse_bool(
                os.getenv("CODEX_ORCHESTRATOR_FAIL_ON_TASK_ERROR"), True
            ),
            stacking_backend=os.getenv("STACKING_BACKEND", "git-spice").lower(),
            otlp_endpoint=os.getenv("OTLP_ENDPOINT", "http://localhost:4317"),
            state_dir=Path(os.getenv("CODEX_ORCHESTRATOR_STATE_DIR", "state")),
            discord_webhook_url=os.getenv("DISCORD_WEBHOOK_URL", ""),
        )
