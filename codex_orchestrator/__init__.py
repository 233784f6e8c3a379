"""
Codex Orchestrator - Phase orchestration for multi-task execution plans.

This package runs implementation plans phase by phase, delegating each task
to a code-writing agent, using git branches as the durable record of task
completion, and gating every phase behind a bounded review/fix loop.
"""

__version__ = "0.1.0"
