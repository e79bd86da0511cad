"""Merging of cron, tool and subagent activity into one timeline."""

import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Sequence

from clawtop.decoders import read_latest_cron_run, read_tool_events
from clawtop.models import CronJob, Event, Level, Source, SubagentRun

logger = logging.getLogger(__name__)

MAX_EVENTS = 40
TOOL_LOG_LINES = 400
MAX_TOOL_EVENTS = 25
TASK_DETAIL_CHARS = 90

# Returns the session log to read tool results from, or None if there is none
ActiveLogResolver = Callable[[], Path | None]


def truncate(text: str, limit: int) -> str:
    """Collapse text to one line and cut it to limit characters, marking the cut with '…'."""
    text = text.replace("\r", " ").replace("\n", " ").strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def cron_run_file(runs_dir: Path, job_id: str) -> Path:
    return runs_dir / f"{job_id}.jsonl"


def newest_session_log(sessions_dir: Path) -> Path | None:
    """Return the most recently modified *.jsonl file in sessions_dir."""
    newest: Path | None = None
    newest_mtime = 0.0
    try:
        candidates = list(sessions_dir.glob("*.jsonl"))
    except OSError:
        return None
    for path in candidates:
        try:
            mtime = path.stat().st_mtime
        except OSError:
            continue  # Removed between glob and stat
        if newest is None or mtime > newest_mtime:
            newest, newest_mtime = path, mtime
    return newest


def merge_events(*groups: Iterable[Event], limit: int = MAX_EVENTS) -> list[Event]:
    """
    Merge event groups into one list, newest first, keeping at most limit.

    Events with equal timestamps keep their relative input order.
    """
    merged = [event for group in groups for event in group]
    merged.sort(key=lambda e: e.at, reverse=True)
    return merged[:limit]


def cron_events(jobs: Sequence[CronJob], runs_dir: Path) -> list[Event]:
    """Latest finished run of every job that has a run log."""
    events = []
    for job in jobs:
        path = cron_run_file(runs_dir, job.id)
        if not path.is_file():
            continue
        try:
            event = read_latest_cron_run(path)
        except OSError as e:
            logger.debug("Can't read cron run log %s: %s", path, e)
            continue
        if event is not None:
            events.append(replace(event, title=f"cron: {job.name}"))
    return events


def tool_events(resolve_active_log: ActiveLogResolver, now: datetime) -> list[Event]:
    """Recent tool results from the active session log, oldest first. Untimed results get now."""
    path = resolve_active_log()
    if path is None:
        return []
    try:
        return read_tool_events(path, max_lines=TOOL_LOG_LINES, max_events=MAX_TOOL_EVENTS, now=now)
    except OSError as e:
        logger.debug("Can't read session log %s: %s", path, e)
        return []


def subagent_events(runs: Sequence[SubagentRun]) -> list[Event]:
    """One creation event per subagent run."""
    return [
        Event(
            at=run.created_at,
            level=Level.INFO,
            source=Source.SUBAGENT,
            title=f"subagent: {run.label}",
            detail=truncate(run.task, TASK_DETAIL_CHARS),
        )
        for run in runs
    ]


def build_timeline(
    jobs: Sequence[CronJob],
    runs: Sequence[SubagentRun],
    cron_runs_dir: Path,
    resolve_active_log: ActiveLogResolver,
    now: datetime,
) -> list[Event]:
    """Collect cron, tool and subagent events and merge them."""
    return merge_events(
        cron_events(jobs, cron_runs_dir),
        tool_events(resolve_active_log, now),
        subagent_events(runs),
    )
