"""Tests for sequential phase execution."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from fakes import ScriptedAgent, make_phase, task_id_from_prompt

from codex_orchestrator.errors import AgentError, TaskExecutionError
from codex_orchestrator.models import CompletedTask, ExistingWork, Job, Plan
from codex_orchestrator.sequential_phase import execute_sequential_phase

PATCH_TARGET = "codex_orchestrator.sequential_phase.check_existing_work"


def _agent(run_id: str, failing: set[str] = frozenset()) -> ScriptedAgent:
    def _respond(prompt: str, workdir: Path, turn: int) -> str:
        task_id = task_id_from_prompt(prompt)
        if task_id in failing:
            raise AgentError(f"tests failing in {task_id}")
        return f"BRANCH: {run_id}-task-{task_id}-step"

    return ScriptedAgent(_respond)


@pytest.fixture
def phase():
    return make_phase(4, "sequential", ["4-1", "4-2", "4-3"])


class TestExecuteSequentialPhase:
    """Tests for execute_sequential_phase()."""

    @pytest.mark.asyncio
    async def test_runs_tasks_in_order_in_main_worktree(
        self, phase, plan: Plan, make_ctx, mock_worktrees, tmp_path: Path
    ):
        agent = _agent(plan.run_id)
        ctx = make_ctx(agent)
        job = Job(run_id=plan.run_id, total_phases=4)

        with patch(PATCH_TARGET, AsyncMock(return_value=ExistingWork(pending_tasks=phase.tasks))):
            await execute_sequential_phase(phase, plan, job, ctx)

        assert [task_id_from_prompt(p) for p, _ in agent.calls] == ["4-1", "4-2", "4-3"]
        main = tmp_path / ".worktrees" / "abc123-main"
        assert all(workdir == main for _, workdir in agent.calls)
        mock_worktrees.ensure_main_worktree.assert_awaited_once_with("abc123")
        mock_worktrees.create_task_worktree.assert_not_awaited()
        assert [(e.id, e.status) for e in job.tasks] == [
            ("4-1", "completed"),
            ("4-2", "completed"),
            ("4-3", "completed"),
        ]
        assert job.get_task("4-3").branch == "abc123-task-4-3-step"
        assert job.status == "running"

    @pytest.mark.asyncio
    async def test_first_failure_stops_the_phase(self, phase, plan: Plan, make_ctx):
        """Task 4-3 is never attempted once 4-2 fails."""
        agent = _agent(plan.run_id, failing={"4-2"})
        ctx = make_ctx(agent)
        job = Job(run_id=plan.run_id, total_phases=4)

        with patch(PATCH_TARGET, AsyncMock(return_value=ExistingWork(pending_tasks=phase.tasks))):
            with pytest.raises(TaskExecutionError) as exc_info:
                await execute_sequential_phase(phase, plan, job, ctx)

        assert exc_info.value.task_ids == ["4-2"]
        assert [task_id_from_prompt(p) for p, _ in agent.calls] == ["4-1", "4-2"]
        assert [(e.id, e.status) for e in job.tasks] == [
            ("4-1", "completed"),
            ("4-2", "failed"),
        ]
        assert job.get_task("4-3") is None
        assert job.status == "failed"
        assert job.error.startswith("Task 4-2 failed:")
        assert "tests failing in 4-2" in job.get_task("4-2").error

    @pytest.mark.asyncio
    async def test_resume_skips_completed_tasks(
        self, phase, plan: Plan, make_ctx
    ):
        agent = _agent(plan.run_id)
        ctx = make_ctx(agent)
        job = Job(run_id=plan.run_id, total_phases=4)
        partial = ExistingWork(
            completed_tasks=[
                CompletedTask.from_task(phase.tasks[0], "abc123-task-4-1-step", 1)
            ],
            pending_tasks=phase.tasks[1:],
        )

        with patch(PATCH_TARGET, AsyncMock(return_value=partial)):
            await execute_sequential_phase(phase, plan, job, ctx)

        assert [task_id_from_prompt(p) for p, _ in agent.calls] == ["4-2", "4-3"]
        assert [e.id for e in job.tasks] == ["4-1", "4-2", "4-3"]

    @pytest.mark.asyncio
    async def test_all_complete_does_not_touch_worktrees(
        self, phase, plan: Plan, make_ctx, mock_worktrees
    ):
        agent = _agent(plan.run_id)
        ctx = make_ctx(agent)
        job = Job(run_id=plan.run_id, total_phases=4)
        done = ExistingWork(
            completed_tasks=[
                CompletedTask.from_task(t, f"abc123-task-{t.id}-step", 1) for t in phase.tasks
            ]
        )

        with patch(PATCH_TARGET, AsyncMock(return_value=done)):
            await execute_sequential_phase(phase, plan, job, ctx)

        assert agent.calls == []
        mock_worktrees.ensure_main_worktree.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_each_task_gets_a_fresh_thread(self, phase, plan: Plan, make_ctx):
        agent = _agent(plan.run_id)
        ctx = make_ctx(agent)
        job = Job(run_id=plan.run_id, total_phases=4)

        with patch(PATCH_TARGET, AsyncMock(return_value=ExistingWork(pending_tasks=phase.tasks))):
            await execute_sequential_phase(phase, plan, job, ctx)

        assert len(agent.threads) == 3
        assert all(len(thread.prompts) == 1 for thread in agent.threads)


class TestStaleJobState:
    @pytest.mark.asyncio
    async def test_git_completion_replaces_stale_entries(self, phase, plan: Plan, make_ctx):
        """Git state wins over whatever an earlier attempt left in the job."""
        agent = _agent(plan.run_id)
        ctx = make_ctx(agent)
        job = Job(run_id=plan.run_id, total_phases=4)
        job.upsert_task("4-1", "failed", error="old")
        job.upsert_task("4-2", "pending")
        existing = ExistingWork(
            completed_tasks=[
                CompletedTask.from_task(phase.tasks[0], "abc123-task-4-1-done", 1),
                CompletedTask.from_task(phase.tasks[1], "abc123-task-4-2-done", 3),
            ],
            pending_tasks=phase.tasks[2:],
        )

        with patch(PATCH_TARGET, AsyncMock(return_value=existing)):
            await execute_sequential_phase(phase, plan, job, ctx)

        assert [(e.id, e.status, e.branch, e.error) for e in job.tasks] == [
            ("4-1", "completed", "abc123-task-4-1-done", None),
            ("4-2", "completed", "abc123-task-4-2-done", None),
            ("4-3", "completed", "abc123-task-4-3-step", None),
        ]
        assert [task_id_from_prompt(p) for p, _ in agent.calls] == ["4-3"]
