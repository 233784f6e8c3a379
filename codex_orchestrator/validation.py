"""Input validation for run ids, plan paths and branch names.

Run ids and branch names end up in git refs and worktree paths, so they are
validated before any command is built from them.
"""

import re
import secrets

from codex_orchestrator.errors import ValidationError

RUN_ID_PATTERN = re.compile(r"^[0-9a-f]{6}$")
SHELL_METACHARACTERS = re.compile(r"[;&|`$]")


def generate_run_id() -> str:
    """Generate a fresh 6-character lowercase hex run id."""
    return secrets.token_hex(3)


def validate_run_id(run_id: str) -> None:
    """Validate run id format (6-character lowercase hex).

    Raises:
        ValidationError: If run_id is malformed
    """
    if not RUN_ID_PATTERN.match(run_id):
        raise ValidationError(
            f'Invalid run_id "{run_id}": must be 6-character lowercase hex (e.g. "abc123")'
        )


def validate_plan_path(path: str) -> None:
    """Validate a plan path lives under specs/ with no path traversal.

    Raises:
        ValidationError: If the path is outside specs/ or contains ".."
    """
    normalized = path.replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    if not normalized.startswith("specs/"):
        raise ValidationError("Invalid plan path: must be under specs/ directory")
    if ".." in normalized.split("/"):
        raise ValidationError("Invalid plan path: path traversal detected")


def validate_branch_name(branch_name: str, run_id: str) -> None:
    """Validate that a branch carries the run id prefix.

    Raises:
        ValidationError: If branch_name does not start with "{run_id}-"
    """
    if not branch_name.startswith(f"{run_id}-"):
        raise ValidationError(
            f'Invalid branch name "{branch_name}": must start with "{run_id}-"'
        )


def sanitize_path(path: str) -> str:
    """Reject paths containing shell metacharacters.

    Returns:
        The path unchanged when valid

    Raises:
        ValidationError: If the path contains ; & | ` or $
    """
    if SHELL_METACHARACTERS.search(path):
        raise ValidationError("Invalid path: contains shell metacharacters")
    return path
