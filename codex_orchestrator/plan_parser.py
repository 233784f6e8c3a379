"""Plan parser for implementation plan markdown files.

Parses plan.md files into Plan objects for orchestrator execution. Expected
layout:

    # Implementation Plan: <title>
    Run ID: <run id>
    Feature: <feature slug>

    ## Phase 1: <name> (Parallel|Sequential)

    ### Task 1-1: <name>
    **Description:** <text>
    **Files:**
    - <path>
    **Acceptance Criteria:**
    - <criterion>
    **Dependencies:** 1-2, 1-3 | None
"""

import re
from pathlib import Path

from codex_orchestrator.errors import PlanParseError
from codex_orchestrator.models import Phase, PhaseStrategy, Plan, Task
from codex_orchestrator.validation import validate_run_id

PHASE_PATTERN = re.compile(
    r"^## Phase (\d+): (.+?) \((Parallel|Sequential)\)\s*$",
    re.MULTILINE | re.IGNORECASE,
)
TASK_PATTERN = re.compile(r"^### Task ([\d-]+): (.+?)\s*$", re.MULTILINE)
PLAN_PATH_PATTERN = re.compile(r"specs/([^/]+)/plan\.md$")


def extract_run_id(plan_path: str | Path) -> str:
    """Extract the run id from a specs/{run_id}-{feature}/plan.md path.

    Raises:
        PlanParseError: If the path does not follow the layout
        ValidationError: If the run id is not 6 lowercase hex characters
    """
    match = PLAN_PATH_PATTERN.search(Path(plan_path).as_posix())
    if not match:
        raise PlanParseError(
            "Invalid plan path: must be specs/{runId}-{feature}/plan.md"
        )

    run_id = match.group(1).split("-")[0]
    validate_run_id(run_id)
    return run_id


def load_plan(plan_path: str | Path) -> Plan:
    """Read and parse a plan file, taking the run id from its path."""
    plan_path = Path(plan_path)
    return parse_plan(plan_path.read_text(), extract_run_id(plan_path))


def parse_plan(markdown: str, expected_run_id: str) -> Plan:
    """Parse plan markdown into a Plan.

    Args:
        markdown: Contents of plan.md
        expected_run_id: Run id the plan must declare

    Returns:
        Plan with phases in document order

    Raises:
        PlanParseError: Missing or mismatched Run ID, no phases, or a phase
            without tasks
    """
    title_match = re.search(r"^# (.+)$", markdown, re.MULTILINE)
    title = title_match.group(1).strip() if title_match else "Untitled Plan"

    run_id_match = re.search(r"^Run ID:\s*(.+)$", markdown, re.MULTILINE)
    if not run_id_match or not run_id_match.group(1).strip():
        raise PlanParseError("Plan missing 'Run ID:' field")

    content_run_id = run_id_match.group(1).strip()
    if content_run_id != expected_run_id:
        raise PlanParseError(
            f"runId mismatch: expected {expected_run_id}, found {content_run_id}"
        )

    feature_match = re.search(r"^Feature:\s*(.+)$", markdown, re.MULTILINE)
    feature_slug = feature_match.group(1).strip() if feature_match else "unknown-feature"

    phases = _parse_phases(markdown)
    if not phases:
        raise PlanParseError("No phases found in plan")

    return Plan(
        run_id=expected_run_id,
        phases=phases,
        feature_slug=feature_slug,
        title=title,
    )


def _split_sections(pattern: re.Pattern[str], content: str) -> list[tuple[re.Match[str], str]]:
    """Split content at each header match; each section runs to the next header."""
    matches = list(pattern.finditer(content))
    sections = []
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        sections.append((match, content[match.start() : end]))
    return sections


def _parse_phases(markdown: str) -> list[Phase]:
    phases = []
    for match, section in _split_sections(PHASE_PATTERN, markdown):
        phase_id = int(match.group(1))
        strategy: PhaseStrategy = (
            "sequential" if match.group(3).lower() == "sequential" else "parallel"
        )
        tasks = [
            _parse_task(task_match, task_section)
            for task_match, task_section in _split_sections(TASK_PATTERN, section)
        ]
        if not tasks:
            raise PlanParseError(f"Phase {phase_id} has no tasks")

        phases.append(
            Phase(
                id=phase_id,
                name=match.group(2).strip(),
                strategy=strategy,
                tasks=tasks,
            )
        )
    return phases


def _parse_task(match: re.Match[str], section: str) -> Task:
    description_match = re.search(r"\*\*Description:\*\*\s*(.+)", section)

    return Task(
        id=match.group(1),
        name=match.group(2).strip(),
        description=description_match.group(1).strip() if description_match else "",
        files=_extract_list(section, "Files"),
        acceptance_criteria=_extract_list(section, "Acceptance Criteria"),
        dependencies=_extract_dependencies(section),
    )


def _extract_list(section: str, label: str) -> list[str]:
    """Extract the bullet list following a **Label:** field."""
    match = re.search(rf"\*\*{label}:\*\*\s*\n((?:\s*-\s*.+\n?)+)", section)
    if not match:
        return []

    items = []
    for line in match.group(1).splitlines():
        item = re.sub(r"^\s*-\s*(?:\[[ xX]\]\s*)?", "", line).strip().strip("`")
        if item:
            items.append(item)
    return items


def _extract_dependencies(section: str) -> list[str] | None:
    match = re.search(r"\*\*Dependencies:\*\*\s*(.+)", section)
    if not match:
        return None

    raw = match.group(1).strip()
    if raw.lower() == "none":
        return []
    return [dep.strip() for dep in raw.split(",") if dep.strip()]
