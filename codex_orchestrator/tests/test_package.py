"""Tests for codex_orchestrator package structure.

These tests verify the basic package setup and entry point functionality.
"""

import subprocess
import sys
from pathlib import Path


class TestPackageImportable:
    """Test that the package is properly importable."""

    def test_package_has_version(self):
        import codex_orchestrator

        assert isinstance(codex_orchestrator.__version__, str)
        assert len(codex_orchestrator.__version__) > 0

    def test_stacking_exports(self):
        from codex_orchestrator import stacking

        assert set(stacking.__all__) == {
            "GitSpiceBackend",
            "StackingBackend",
            "get_stacking_backend",
        }


class TestCLIEntryPoint:
    """Test that the CLI entry point works correctly."""

    def test_module_help_works(self):
        """Running 'python -m codex_orchestrator --help' should succeed."""
        result = subprocess.run(
            [sys.executable, "-m", "codex_orchestrator", "--help"],
            capture_output=True,
            text=True,
            timeout=30,
        )
        assert result.returncode == 0, result.stderr
        assert "usage" in result.stdout.lower()
        assert "check" in result.stdout


class TestTypeHints:
    """Test that type hints are enabled via py.typed marker."""

    def test_py_typed_marker_exists(self):
        import codex_orchestrator

        package_dir = Path(codex_orchestrator.__file__).parent
        assert (package_dir / "py.typed").exists()
