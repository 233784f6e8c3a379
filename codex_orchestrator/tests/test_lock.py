"""Tests for run lock manager."""

import os
from pathlib import Path

import pytest

from codex_orchestrator.errors import OrchestratorError
from codex_orchestrator.lock import RunLock


class TestRunLockAcquire:
    """Tests for RunLock.acquire()."""

    def test_acquire_writes_current_pid(self, tmp_path: Path) -> None:
        lock = RunLock(tmp_path, "abc123")

        assert lock.acquire() is True
        assert (tmp_path / "abc123.lock").read_text().strip() == str(os.getpid())

    def test_acquire_creates_state_dir(self, tmp_path: Path) -> None:
        state_dir = tmp_path / "nested" / "state"
        lock = RunLock(state_dir, "abc123")

        assert lock.acquire() is True
        assert (state_dir / "abc123.lock").exists()

    def test_acquire_fails_when_lock_held_by_running_process(
        self, tmp_path: Path
    ) -> None:
        (tmp_path / "abc123.lock").write_text(str(os.getpid()))

        assert RunLock(tmp_path, "abc123").acquire() is False

    def test_acquire_takes_over_stale_lock(self, tmp_path: Path) -> None:
        """A lock left by a dead process can be taken over."""
        lock_file = tmp_path / "abc123.lock"
        lock_file.write_text("99999999")

        assert RunLock(tmp_path, "abc123").acquire() is True
        assert lock_file.read_text().strip() == str(os.getpid())

    def test_acquire_succeeds_with_invalid_content(self, tmp_path: Path) -> None:
        (tmp_path / "abc123.lock").write_text("not_a_pid")

        assert RunLock(tmp_path, "abc123").acquire() is True

    def test_locks_are_per_run(self, tmp_path: Path) -> None:
        assert RunLock(tmp_path, "abc123").acquire() is True
        assert RunLock(tmp_path, "def456").acquire() is True


class TestRunLockContextManager:
    """Tests for RunLock as a context manager."""

    def test_acquires_and_releases(self, tmp_path: Path) -> None:
        lock_file = tmp_path / "abc123.lock"

        with RunLock(tmp_path, "abc123"):
            assert lock_file.exists()

        assert not lock_file.exists()

    def test_raises_when_lock_held(self, tmp_path: Path) -> None:
        (tmp_path / "abc123.lock").write_text(str(os.getpid()))

        with pytest.raises(OrchestratorError, match="already in progress"):
            with RunLock(tmp_path, "abc123"):
                pass

    def test_releases_on_exception(self, tmp_path: Path) -> None:
        lock_file = tmp_path / "abc123.lock"

        with pytest.raises(ValueError):
            with RunLock(tmp_path, "abc123"):
                raise ValueError("boom")

        assert not lock_file.exists()

    def test_release_is_idempotent(self, tmp_path: Path) -> None:
        lock = RunLock(tmp_path, "abc123")

        lock.release()
        lock.release()

    def test_release_keeps_lock_of_other_process(self, tmp_path: Path) -> None:
        lock_file = tmp_path / "abc123.lock"
        lock_file.write_text(str(os.getpid() + 1))

        RunLock(tmp_path, "abc123").release()

        assert lock_file.exists()

    def test_get_holder_pid(self, tmp_path: Path) -> None:
        lock = RunLock(tmp_path, "abc123")
        assert lock.get_holder_pid() is None

        (tmp_path / "abc123.lock").write_text("12345")

        assert lock.get_holder_pid() == 12345
