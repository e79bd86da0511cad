"""Decoders for OpenClaw state files.

Whole-document readers (sessions, subagent runs, cron jobs) raise on an
unreadable or malformed file and leave it to the caller to decide whether
that is fatal. JSON-Lines readers skip malformed lines one at a time.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Sequence

import orjson

from clawtop.models import CronJob, Event, Level, Session, Source, SubagentRun, TokenSample
from clawtop.tail import tail_lines

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Lines scanned from the end of a cron run log
CRON_RUN_TAIL_LINES = 200


def from_ms(ms: int | float) -> datetime:
    """
    Convert a millisecond epoch value to an aware UTC datetime.

    Raises:
        ValueError: If the value is outside the representable date range.
    """
    try:
        return EPOCH + timedelta(milliseconds=ms)
    except OverflowError as e:
        raise ValueError(f"timestamp out of range: {ms}") from e


def first_line(text: str) -> str:
    """Return the first line of text, stripped. Every str.splitlines() boundary ends a line."""
    return text.splitlines()[0].strip() if text else ""


def format_duration(ms: int) -> str:
    """Format a millisecond interval as e.g. 1h0m0s, 1m30s, 2.5s or 500ms."""
    if ms == 0:
        return "0s"
    sign = "-" if ms < 0 else ""
    ms = abs(ms)
    if ms < 1000:
        return f"{sign}{ms}ms"

    hours, rem = divmod(ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, millis = divmod(rem, 1000)
    seconds = f"{secs}.{millis:03d}".rstrip("0") if millis else str(secs)

    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{sign}{minutes}m{seconds}s"
    return f"{sign}{seconds}s"


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _num(value: Any) -> int | float:
    # bool is an int subclass but never a valid counter
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _optional_ms(raw: dict, key: str) -> datetime | None:
    """Missing or null means unset; any number (zero included) is a time."""
    value = raw.get(key)
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return from_ms(value)


def _nonzero_ms(raw: dict, key: str) -> datetime | None:
    """A stored zero means unset."""
    value = _num(raw.get(key))
    return from_ms(value) if value else None


def _loads_line(line: str) -> dict | None:
    line = line.strip()
    if not line:
        return None
    try:
        raw = orjson.loads(line)
    except orjson.JSONDecodeError as e:
        logger.debug("Skipping malformed JSON line: %s", e)
        return None
    return raw if isinstance(raw, dict) else None


def read_json_document(path: str | Path) -> Any:
    """
    Read and parse a whole JSON file.

    Raises:
        OSError: If the file can't be read.
        orjson.JSONDecodeError: If the file isn't valid JSON.
    """
    return orjson.loads(Path(path).read_bytes())


# ---------------------------------------------------------------------------
# Whole-document registries
# ---------------------------------------------------------------------------


def decode_sessions(doc: Any) -> list[Session]:
    """Decode the session registry, newest update first."""
    if not isinstance(doc, dict):
        raise ValueError("session registry is not a JSON object")

    sessions = []
    for key, raw in doc.items():
        if not isinstance(raw, dict):
            logger.debug("Skipping session %s: not an object", key)
            continue
        try:
            updated_at = from_ms(_num(raw.get("updatedAt")))
        except ValueError as e:
            logger.debug("Skipping session %s: %s", key, e)
            continue
        sessions.append(
            Session(
                key=key,
                label=_str(raw.get("label")),
                model=_str(raw.get("model")),
                provider=_str(raw.get("modelProvider")),
                updated_at=updated_at,
                input_tokens=int(_num(raw.get("inputTokens"))),
                output_tokens=int(_num(raw.get("outputTokens"))),
                total_tokens=int(_num(raw.get("totalTokens"))),
            )
        )
    sessions.sort(key=lambda s: s.updated_at, reverse=True)
    return sessions


def read_sessions(path: str | Path) -> list[Session]:
    return decode_sessions(read_json_document(path))


def decode_subagent_runs(doc: Any) -> list[SubagentRun]:
    """Decode the subagent registry, newest creation first."""
    runs = _dict(doc).get("runs")
    if runs is None:
        return []
    if not isinstance(runs, dict):
        raise ValueError("subagent registry 'runs' is not a JSON object")

    out = []
    for run_id, raw in runs.items():
        if not isinstance(raw, dict):
            logger.debug("Skipping subagent run %s: not an object", run_id)
            continue
        try:
            run = SubagentRun(
                run_id=_str(raw.get("runId")) or run_id,
                child_session_key=_str(raw.get("childSessionKey")),
                label=_str(raw.get("label")),
                task=_str(raw.get("task")),
                model=_str(raw.get("model")),
                created_at=from_ms(_num(raw.get("createdAt"))),
                started_at=_optional_ms(raw, "startedAt"),
                finished_at=_optional_ms(raw, "finishedAt"),
            )
        except ValueError as e:
            logger.debug("Skipping subagent run %s: %s", run_id, e)
            continue
        out.append(run)
    out.sort(key=lambda r: r.created_at, reverse=True)
    return out


def read_subagent_runs(path: str | Path) -> list[SubagentRun]:
    return decode_subagent_runs(read_json_document(path))


def describe_schedule(schedule: dict) -> str:
    """Human readable form of a cron job schedule."""
    kind = _str(schedule.get("kind"))
    if kind == "cron":
        return _str(schedule.get("expr"))
    if kind == "at":
        return "at " + _str(schedule.get("at"))
    if kind == "every":
        return "every " + format_duration(int(_num(schedule.get("everyMs"))))
    return kind


def decode_cron_jobs(doc: Any) -> list[CronJob]:
    """Decode the cron registry, soonest next run first and unscheduled jobs last."""
    jobs = _dict(doc).get("jobs")
    if jobs is None:
        return []
    if not isinstance(jobs, list):
        raise ValueError("cron registry 'jobs' is not a JSON array")

    out = []
    for raw in jobs:
        if not isinstance(raw, dict):
            logger.debug("Skipping cron job entry: not an object")
            continue
        schedule = _dict(raw.get("schedule"))
        state = _dict(raw.get("state"))
        try:
            job = CronJob(
                id=_str(raw.get("id")),
                name=_str(raw.get("name")),
                enabled=raw.get("enabled") is True,
                schedule=describe_schedule(schedule),
                tz=_str(schedule.get("tz")),
                next_run=_nonzero_ms(state, "nextRunAtMs"),
                last_run=_nonzero_ms(state, "lastRunAtMs"),
                last_status=_str(state.get("lastStatus")),
                last_error=_str(state.get("lastError")),
            )
        except ValueError as e:
            logger.debug("Skipping cron job %s: %s", raw.get("id"), e)
            continue
        out.append(job)
    out.sort(key=lambda j: (j.next_run is None, j.next_run or EPOCH))
    return out


def read_cron_jobs(path: str | Path) -> list[CronJob]:
    return decode_cron_jobs(read_json_document(path))


# ---------------------------------------------------------------------------
# JSON-Lines logs
# ---------------------------------------------------------------------------


def decode_latest_cron_run(lines: Sequence[str]) -> Event | None:
    """
    Find the most recent finished run in a cron run log.

    Returns None when the lines hold no finished record.
    """
    for line in reversed(lines):
        rec = _loads_line(line)
        if rec is None or rec.get("action") != "finished":
            continue
        try:
            at = from_ms(_num(rec.get("ts")))
        except ValueError as e:
            logger.debug("Skipping cron run record: %s", e)
            continue
        level = Level.ERROR if rec.get("status") == "error" else Level.INFO
        detail = _str(rec.get("error")) or first_line(_str(rec.get("summary")))
        return Event(
            at=at,
            level=level,
            source=Source.CRON,
            title=_str(rec.get("jobId")),
            detail=first_line(detail),
        )
    return None


def read_latest_cron_run(path: str | Path) -> Event | None:
    return decode_latest_cron_run(tail_lines(path, CRON_RUN_TAIL_LINES))


def decode_tool_events(lines: Sequence[str], max_events: int, now: datetime) -> list[Event]:
    """
    Extract tool results from session log lines.

    The newest max_events results are kept and returned oldest first.
    Records without a timestamp are stamped with ``now``.
    """
    events: list[Event] = []
    for line in reversed(lines):
        if len(events) >= max_events:
            break
        rec = _loads_line(line)
        if rec is None or rec.get("type") != "message":
            continue
        message = _dict(rec.get("message"))
        if message.get("role") != "toolResult":
            continue

        ts = _num(message.get("timestamp"))
        try:
            at = from_ms(ts) if ts else now
        except ValueError as e:
            logger.debug("Skipping tool result record: %s", e)
            continue
        detail = ""
        content = message.get("content")
        if isinstance(content, list) and content:
            detail = first_line(_str(_dict(content[0]).get("text")))

        events.append(
            Event(
                at=at,
                level=Level.ERROR if message.get("isError") is True else Level.INFO,
                source=Source.TOOL,
                title=_str(message.get("toolName")),
                detail=detail,
            )
        )
    events.reverse()
    return events


def read_tool_events(
    path: str | Path,
    max_lines: int = 400,
    max_events: int = 25,
    now: datetime | None = None,
) -> list[Event]:
    if now is None:
        now = datetime.now(timezone.utc)
    return decode_tool_events(tail_lines(path, max_lines), max_events, now)


def decode_token_samples(lines: Iterable[str], max_samples: int = 0) -> list[TokenSample]:
    """Decode token usage lines, oldest first, keeping the newest max_samples."""
    samples = []
    for line in lines:
        rec = _loads_line(line)
        if rec is None:
            continue
        try:
            at = from_ms(_num(rec.get("ts")))
        except ValueError as e:
            logger.debug("Skipping token sample: %s", e)
            continue
        samples.append(
            TokenSample(
                at=at,
                total_tokens=int(_num(_dict(rec.get("openclaw")).get("total"))),
                cost_usd=float(_num(_dict(rec.get("claudeCode")).get("costUSD"))),
            )
        )
    samples.sort(key=lambda s: s.at)
    if max_samples > 0:
        samples = samples[-max_samples:]
    return samples


def read_token_samples(path: str | Path, max_samples: int = 48) -> list[TokenSample]:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return decode_token_samples(f, max_samples)
