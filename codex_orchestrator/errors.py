"""Shared error types for the codex_orchestrator package."""


class OrchestratorError(Exception):
    """Base exception for orchestrator errors.

    Use this for user-facing errors that should have actionable messages.
    """

    pass


class ValidationError(OrchestratorError):
    """Invalid user input (plan path, run id, branch name)."""

    pass


class PlanParseError(OrchestratorError):
    """Plan markdown could not be turned into a Plan."""

    pass


class GitCommandError(OrchestratorError):
    """A git command exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"git command failed ({returncode}): {' '.join(command)}: {stderr.strip()}"
        )


class AgentError(OrchestratorError):
    """The task agent failed, exited non-zero, or timed out."""

    pass


class TaskExecutionError(OrchestratorError):
    """One or more tasks failed during phase execution."""

    def __init__(self, message: str, task_ids: list[str] | None = None) -> None:
        self.task_ids = task_ids or []
        super().__init__(message)


class VerdictParseError(OrchestratorError):
    """Review output did not contain a VERDICT token."""

    pass


class ReviewEscalationError(OrchestratorError):
    """Code review rejected the phase more times than allowed."""

    def __init__(self, max_rejections: int) -> None:
        self.max_rejections = max_rejections
        super().__init__(f"Code review exceeded {max_rejections} rejections")


class StackingError(OrchestratorError):
    """Stacking backend unsupported, unavailable, or a stacking command failed."""

    pass


class JobAlreadyRunningError(OrchestratorError):
    """A run was started while its previous job is still running."""

    pass
