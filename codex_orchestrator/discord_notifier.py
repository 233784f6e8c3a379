"""Discord webhook notifications for run lifecycle events.

A run posts at most three embeds: started, then completed or failed.
Delivery is best effort. Webhook problems are logged and swallowed so a
broken webhook can never fail a run.
"""

import logging
from dataclasses import dataclass

import httpx

from codex_orchestrator.models import Job

logger = logging.getLogger(__name__)

WEBHOOK_USERNAME = "codex-orchestrator"
WEBHOOK_TIMEOUT_SECONDS = 5.0

COLORS = {
    "started": 0x3498DB,  # Blue
    "completed": 0x2ECC71,  # Green
    "failed": 0xE74C3C,  # Red
    "warning": 0xF39C12,  # Orange
}

# Discord rejects embed descriptions above this length
MAX_DESCRIPTION_LENGTH = 4096
TRUNCATION_SUFFIX = "... [truncated]"


@dataclass
class DiscordEmbed:
    """One Discord embed.

    Attributes:
        title: Bold title line
        description: Body text (at most MAX_DESCRIPTION_LENGTH chars)
        color: RGB color as an int
        fields: Optional name/value/inline dicts shown under the body
        timestamp: Optional ISO 8601 timestamp shown in the footer
    """

    title: str
    description: str
    color: int
    fields: list[dict] | None = None
    timestamp: str | None = None

    def to_dict(self) -> dict:
        data: dict = {
            "title": self.title,
            "description": self.description,
            "color": self.color,
        }
        if self.fields is not None:
            data["fields"] = self.fields
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data


async def send_discord_message(webhook_url: str, embed: DiscordEmbed) -> None:
    """Post one embed to a webhook. Never raises for delivery problems.

    Args:
        webhook_url: Discord webhook URL
        embed: Embed to post
    """
    payload = {"username": WEBHOOK_USERNAME, "embeds": [embed.to_dict()]}

    try:
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS) as client:
            response = await client.post(webhook_url, json=payload)
    except httpx.TimeoutException:
        logger.warning("Discord webhook request timed out")
        return
    except httpx.ConnectError:
        logger.warning("Failed to connect to Discord webhook")
        return
    except httpx.HTTPError as e:
        logger.warning(f"Discord webhook error: {e}")
        return

    if response.status_code >= 400:
        logger.warning(f"Discord webhook returned {response.status_code}: {response.text}")


def _truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - len(TRUNCATION_SUFFIX)] + TRUNCATION_SUFFIX


def _format_duration(seconds: float) -> str:
    """Human duration: "45s", "2m 30s", "1h 15m"."""
    if seconds < 60:
        return f"{seconds:.0f}s"
    if seconds < 3600:
        minutes, secs = divmod(int(seconds), 60)
        return f"{minutes}m {secs}s" if secs else f"{minutes}m"
    hours, rest = divmod(int(seconds), 3600)
    minutes = rest // 60
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


def _job_duration(job: Job) -> float:
    if job.completed_at is None:
        return 0.0
    return (job.completed_at - job.started_at).total_seconds()


def _finished_at(job: Job) -> str | None:
    return job.completed_at.isoformat() if job.completed_at else None


def format_run_started(run_id: str, title: str | None, total_phases: int) -> DiscordEmbed:
    return DiscordEmbed(
        title=f"🚀 Run Started: {run_id}",
        description=f"{title or 'Untitled Plan'}: executing {total_phases} phases.",
        color=COLORS["started"],
    )


def format_run_completed(job: Job) -> DiscordEmbed:
    """Embed for a completed run.

    Stacking failures and tolerated task failures leave warnings on the job;
    those switch the embed to the warning color and are listed.
    """
    completed = sum(1 for entry in job.tasks if entry.status == "completed")
    duration = _format_duration(_job_duration(job))

    description = f"Completed {completed} tasks across {job.total_phases} phases in {duration}."
    if job.warnings:
        description += "\n\n**Warnings:**\n" + "\n".join(f"• {w}" for w in job.warnings)

    return DiscordEmbed(
        title=f"🎉 Run Complete: {job.run_id}",
        description=_truncate_text(description, MAX_DESCRIPTION_LENGTH),
        color=COLORS["warning"] if job.warnings else COLORS["completed"],
        fields=[
            {"name": "Tasks", "value": str(completed), "inline": True},
            {"name": "Duration", "value": duration, "inline": True},
        ],
        timestamp=_finished_at(job),
    )


def format_run_failed(job: Job) -> DiscordEmbed:
    """Embed for a failed run: the phase it stopped in, the error, failed tasks."""
    lines = [
        f"Run {job.run_id} failed in phase {job.phase}/{job.total_phases}.",
        "",
        "**Error:**",
        job.error or "unknown error",
    ]
    failed = job.failed_task_ids()
    if failed:
        lines += ["", f"**Failed tasks:** {', '.join(failed)}"]

    return DiscordEmbed(
        title="❌ Run Failed",
        description=_truncate_text("\n".join(lines), MAX_DESCRIPTION_LENGTH),
        color=COLORS["failed"],
        fields=[{"name": "Phase", "value": f"{job.phase}/{job.total_phases}", "inline": True}],
        timestamp=_finished_at(job),
    )
