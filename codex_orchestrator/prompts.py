"""Prompt construction for task execution, code review and fixes.

Prompts carry the two output contracts the orchestrator relies on:
task runs end with "BRANCH: <name>", reviews contain
"VERDICT: APPROVED" or "VERDICT: REJECTED".
"""

from pathlib import Path

from codex_orchestrator.branch_tracker import task_branch_prefix
from codex_orchestrator.models import Phase, Plan, Task


def _bullets(items: list[str], empty: str = "(none listed)") -> str:
    if not items:
        return f"- {empty}"
    return "\n".join(f"- {item}" for item in items)


def build_task_prompt(task: Task, plan: Plan, worktree_path: Path) -> str:
    """Build the prompt for executing one task in its worktree.

    Args:
        task: Task to execute
        plan: Plan the task belongs to (run id, feature slug)
        worktree_path: Directory the agent works in

    Returns:
        Prompt text ending with the BRANCH reporting contract
    """
    branch_prefix = task_branch_prefix(plan.run_id, task.id)
    spec_path = f"specs/{plan.run_id}-{plan.feature_slug}/spec.md"

    return f"""You are implementing Task {task.id}: {task.name}

## Task Context

Description: {task.description or "(no description)"}

Files to create or modify:
{_bullets(task.files)}

Acceptance criteria:
{_bullets(task.acceptance_criteria)}

Feature specification: {spec_path}

## Process

1. Work only inside {worktree_path}.
2. Write a failing test first, then the minimal code that makes it pass.
3. Run the project's test, type-check and lint commands; fix failures
   before committing.
4. Create a branch named {branch_prefix}<short-kebab-name> from the current
   HEAD, stage your changes and commit them with a message describing the task.
5. Run `git switch --detach` so the worktree can be removed afterwards.

## Report

Finish your reply with exactly one line:

BRANCH: <branch-name>
"""


def build_review_prompt(phase: Phase, plan: Plan) -> str:
    """Build the code review prompt for a finished phase."""
    task_lines = "\n".join(
        f"- Task {task.id}: {task.name} (files: {', '.join(task.files) or 'n/a'})"
        for task in phase.tasks
    )
    task_ids = ", ".join(task.id for task in phase.tasks)

    return f"""# Code Review for Phase {phase.id}: {phase.name}

Run ID: {plan.run_id}
Strategy: {phase.strategy}
Tasks: {task_ids}

## Tasks to Review

{task_lines}

## Checklist

- Each task meets its acceptance criteria.
- Tests exist for new behavior and the full test suite passes.
- Type checking and linting pass.
- Branches follow the pattern {plan.run_id}-task-<id>-<name>.
- No changes outside the scope of the listed tasks.

## Verdict

Reply with exactly one of:

VERDICT: APPROVED
VERDICT: REJECTED

If rejected, list every issue with its location, severity (blocking or
warning) and the required fix. The same conversation will be asked to fix
them.
"""


def build_fixer_prompt(review_output: str, plan: Plan) -> str:
    """Build the prompt that asks the agent to fix a rejected review."""
    return f"""# Fix Code Review Issues

Run ID: {plan.run_id}

The review rejected the phase with these findings:

{review_output.strip()}

## Instructions

- Fix every blocking issue first, then the warnings.
- Do not add features the review did not ask for.
- Re-run tests, type checking and linting.
- Commit the fixes on the affected task branches.

Reply with a short summary of what you changed.
"""
