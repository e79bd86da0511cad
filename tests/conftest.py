"""Shared test fixtures for clawtop."""

import json
from pathlib import Path

import pytest

from clawtop.config import Paths

# 2023-11-14T22:13:20Z
T0 = 1700000000000


def write_jsonl(path: Path, records: list) -> None:
    """Write records as JSON lines; str entries are written verbatim."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n")


def write_json(path: Path, doc) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(doc))


@pytest.fixture
def openclaw_root(tmp_path) -> Path:
    """Create a populated OpenClaw state directory."""
    root = tmp_path / ".openclaw"
    paths = Paths.for_root(root)

    write_json(
        paths.sessions_json,
        {
            "agent:main:main": {
                "label": "Main",
                "model": "openai/gpt-5.2",
                "modelProvider": "openai-codex",
                "updatedAt": T0,
                "inputTokens": 1,
                "outputTokens": 2,
                "totalTokens": 3,
            },
            "agent:main:cron:1": {"label": "Cron", "model": "openai/gpt-5.2", "updatedAt": T0 - 60_000},
        },
    )
    write_json(
        paths.subagent_runs,
        {
            "version": 1,
            "runs": {
                "r1": {
                    "runId": "r1",
                    "childSessionKey": "agent:main:subagent:r1",
                    "label": "research",
                    "task": "Look up the release notes",
                    "model": "gpt-5.2",
                    "createdAt": T0 + 1000,
                    "startedAt": T0 + 2000,
                },
            },
        },
    )
    write_json(
        paths.cron_jobs,
        {
            "version": 1,
            "jobs": [
                {
                    "id": "job-a",
                    "name": "nightly",
                    "enabled": True,
                    "schedule": {"kind": "cron", "expr": "0 3 * * *", "tz": "UTC"},
                    "state": {"nextRunAtMs": T0 + 3_600_000, "lastRunAtMs": T0 - 3_600_000, "lastStatus": "ok"},
                },
                {
                    "id": "job-b",
                    "name": "hourly",
                    "enabled": False,
                    "schedule": {"kind": "every", "everyMs": 3_600_000},
                    "state": {},
                },
            ],
        },
    )
    write_jsonl(
        paths.cron_runs_dir / "job-a.jsonl",
        [
            {"ts": T0 - 3_600_000, "action": "started", "jobId": "job-a"},
            {"ts": T0 - 3_590_000, "action": "finished", "status": "ok", "summary": "done\nmore", "jobId": "job-a"},
        ],
    )
    write_jsonl(
        paths.sessions_dir / "current.jsonl",
        [
            {
                "type": "message",
                "message": {
                    "role": "toolResult",
                    "toolName": "exec",
                    "isError": False,
                    "timestamp": T0 + 5000,
                    "content": [{"type": "text", "text": "ok"}],
                },
            },
        ],
    )
    write_jsonl(
        paths.tokens_jsonl,
        [
            {"ts": T0, "openclaw": {"total": 10}, "claudeCode": {"costUSD": 1.2}},
            {"ts": T0 + 3_600_000, "openclaw": {"total": 20}, "claudeCode": {"costUSD": 2.2}},
        ],
    )
    return root


@pytest.fixture
def openclaw_paths(openclaw_root) -> Paths:
    return Paths.for_root(openclaw_root)
