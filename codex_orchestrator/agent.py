"""Task agent client.

The orchestrator treats the code-writing agent as an opaque call that takes
a prompt and a working directory and returns raw text. A "thread" is a
conversation bound to one working directory; successive turns on the same
thread see the earlier turns.

AgentClient and AgentThread are protocols so tests can inject deterministic
stubs. CodexCliAgent is the production implementation that shells out to
the Codex CLI (binary and arguments are configurable).
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from codex_orchestrator.config import DEFAULT_AGENT_ARGS, OrchestratorConfig
from codex_orchestrator.errors import AgentError
from codex_orchestrator.models import AgentResult

logger = logging.getLogger(__name__)

BRANCH_PATTERN = re.compile(r"BRANCH:\s*(\S+)")


def extract_branch_name(output: str) -> str | None:
    """Extract the branch name from a "BRANCH: <name>" marker.

    Returns:
        Branch name if the marker is present, None otherwise
    """
    match = BRANCH_PATTERN.search(output)
    return match.group(1) if match else None


class AgentThread(Protocol):
    """A persistent agent conversation bound to one working directory."""

    async def run(self, prompt: str) -> AgentResult:
        """Send one turn and return the agent's reply."""
        ...


class AgentClient(Protocol):
    """Factory for agent threads."""

    def start_thread(self, workdir: Path) -> AgentThread:
        """Open a new conversation rooted at workdir."""
        ...


async def execute(agent: AgentClient, prompt: str, workdir: Path) -> AgentResult:
    """Run a single prompt on a fresh thread."""
    return await agent.start_thread(workdir).run(prompt)


@dataclass
class CodexCliAgent:
    """Agent backed by the Codex CLI.

    The prompt is piped to the CLI's stdin, so the arguments must make the
    CLI read its prompt from stdin.
    """

    bin: str = "codex"
    args: list[str] = field(default_factory=lambda: list(DEFAULT_AGENT_ARGS))
    timeout_seconds: int = 1800

    @classmethod
    def from_config(cls, config: OrchestratorConfig) -> "CodexCliAgent":
        return cls(
            bin=config.agent_bin,
            args=list(config.agent_args),
            timeout_seconds=config.agent_timeout_seconds,
        )

    def start_thread(self, workdir: Path) -> "CodexCliThread":
        return CodexCliThread(agent=self, workdir=workdir)

    async def invoke(self, prompt: str, workdir: Path) -> str:
        """Invoke the CLI once in workdir and return its stdout.

        Raises:
            AgentError: If the CLI is missing, exits non-zero, or times out
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                self.bin,
                *self.args,
                cwd=str(workdir),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise AgentError(f"Agent executable not found: {self.bin}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(prompt.encode()), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise AgentError(
                f"Agent timed out after {self.timeout_seconds}s in {workdir}"
            ) from e

        if proc.returncode != 0:
            raise AgentError(
                f"Agent exited with status {proc.returncode}: {stderr.decode().strip()}"
            )
        return stdout.decode()


@dataclass
class CodexCliThread:
    """Conversation on top of one-shot CLI calls.

    Each turn replays the earlier turns as a transcript ahead of the new
    prompt, so the agent keeps cross-turn context.
    """

    agent: CodexCliAgent
    workdir: Path
    history: list[tuple[str, str]] = field(default_factory=list)

    def _compose(self, prompt: str) -> str:
        if not self.history:
            return prompt

        parts = ["# Conversation so far", ""]
        for number, (previous_prompt, reply) in enumerate(self.history, start=1):
            parts.append(f"## Turn {number} - request\n\n{previous_prompt}\n")
            parts.append(f"## Turn {number} - your reply\n\n{reply}\n")
        parts.append("# New request\n")
        parts.append(prompt)
        return "\n".join(parts)

    async def run(self, prompt: str) -> AgentResult:
        logger.debug(f"Agent turn {len(self.history) + 1} in {self.workdir}")
        output = await self.agent.invoke(self._compose(prompt), self.workdir)
        self.history.append((prompt, output))
        return AgentResult(raw_output=output)
