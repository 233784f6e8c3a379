"""Code review loop gating phase completion.

Runs review -> fix -> re-review on a single agent thread so the fixer sees
exactly what the reviewer said. The loop ends when a review approves, or
escalates once the rejection count exceeds the bound. For k rejections
followed by an approval the thread sees 2k + 1 turns.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from codex_orchestrator import telemetry
from codex_orchestrator.context import ExecutionContext
from codex_orchestrator.errors import ReviewEscalationError, VerdictParseError
from codex_orchestrator.models import Phase, Plan
from codex_orchestrator.prompts import build_fixer_prompt, build_review_prompt

logger = logging.getLogger(__name__)

MAX_REJECTIONS = 3

VERDICT_PATTERN = re.compile(r"VERDICT:\s*(APPROVED|REJECTED)", re.IGNORECASE)

ReviewVerdict = Literal["approved", "rejected"]
ReviewState = Literal["reviewing", "fixing", "approved", "escalated"]


@dataclass
class ReviewResult:
    """Outcome of an approved review loop.

    Attributes:
        state: Terminal state (always "approved" when returned)
        rejections: Number of rejections before approval
        turns: Agent turns used on the review thread
    """

    state: ReviewState
    rejections: int
    turns: int


def parse_verdict(review_output: str) -> ReviewVerdict:
    """Parse the verdict token from review output (case-insensitive).

    Raises:
        VerdictParseError: If no VERDICT: APPROVED/REJECTED token is present
    """
    match = VERDICT_PATTERN.search(review_output)
    if not match:
        raise VerdictParseError("Could not parse verdict from review result")

    verdict = match.group(1).lower()
    if verdict == "approved":
        return "approved"
    return "rejected"


async def run_code_review(
    phase: Phase,
    plan: Plan,
    ctx: ExecutionContext,
    workdir: Path,
    max_rejections: int | None = None,
) -> ReviewResult:
    """Run the review/fix loop for a phase on one persistent thread.

    Args:
        phase: Phase to review
        plan: Plan the phase belongs to
        ctx: Execution collaborators (agent, tracer, config)
        workdir: Directory the review thread runs in
        max_rejections: Rejection bound (defaults to config.max_rejections)

    Returns:
        ReviewResult for an approved phase

    Raises:
        VerdictParseError: Review output had no verdict (not retried)
        ReviewEscalationError: More than max_rejections rejections
    """
    limit = ctx.config.max_rejections if max_rejections is None else max_rejections
    thread = ctx.agent.start_thread(workdir)

    state: ReviewState = "reviewing"
    rejections = 0
    turns = 0
    last_review = ""

    with ctx.tracer.start_as_current_span("orchestrator.code_review") as span:
        span.set_attribute("phase.id", phase.id)
        span.set_attribute("review.max_rejections", limit)

        while state in ("reviewing", "fixing"):
            if state == "reviewing":
                reply = await thread.run(build_review_prompt(phase, plan))
                turns += 1
                verdict = parse_verdict(reply.raw_output)

                if verdict == "approved":
                    state = "approved"
                    continue

                rejections += 1
                telemetry.record_review_rejection(plan.run_id, phase.id)
                logger.info(f"Phase {phase.id}: review rejected ({rejections}/{limit})")

                if rejections > limit:
                    state = "escalated"
                    span.set_attribute("review.state", state)
                    span.set_attribute("review.turns", turns)
                    raise ReviewEscalationError(limit)

                last_review = reply.raw_output
                state = "fixing"

            else:
                # Fix output is not parsed; it is taken as applied changes
                await thread.run(build_fixer_prompt(last_review, plan))
                turns += 1
                state = "reviewing"

        span.set_attribute("review.state", state)
        span.set_attribute("review.turns", turns)

    logger.info(f"Phase {phase.id}: review approved after {rejections} rejections")
    return ReviewResult(state=state, rejections=rejections, turns=turns)
