"""Verification Test: Load Test - Tail multi-megabyte session logs.

Session logs and cron run logs are append-only and can grow without bound.
Every refresh reads them, so reads must stay bounded by the tail window
regardless of file size, and a full refresh must stay fast enough not to
fall behind the minimum refresh interval.
"""

import json
import time
from datetime import datetime, timezone
from queue import Queue

import pytest

from clawtop.decoders import read_tool_events
from clawtop.models import Source
from clawtop.monitor import RefreshMonitor, RefreshOrchestrator, RefreshResult
from clawtop.tail import TAIL_WINDOW, tail_lines

from conftest import T0

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)

# Roughly 20 MB of log lines
NUM_RECORDS = 100_000


def tool_record(i: int) -> str:
    return json.dumps(
        {
            "type": "message",
            "message": {
                "role": "toolResult",
                "toolName": f"tool-{i}",
                "timestamp": T0 + i,
                "isError": i % 10 == 0,
                "content": [{"type": "text", "text": f"result {i}\n" + "x" * 80}],
            },
        }
    )


@pytest.fixture
def large_log(tmp_path):
    """Write a session log far larger than the tail window."""
    path = tmp_path / "big.jsonl"
    with open(path, "w", encoding="utf-8") as f:
        for i in range(NUM_RECORDS):
            f.write(tool_record(i))
            f.write("\n")
    assert path.stat().st_size > 50 * TAIL_WINDOW
    return path


class TestLoadTest:
    """Load test verification suite tests."""

    def test_tail_returns_newest_complete_lines(self, large_log):
        """
        Test that tailing a huge file yields only whole, newest lines.

        Every returned line must decode as JSON and the last one must be
        the final record written.
        """
        lines = tail_lines(large_log, 400)

        assert len(lines) == 400
        for line in lines:
            json.loads(line)
        assert json.loads(lines[-1])["message"]["toolName"] == f"tool-{NUM_RECORDS - 1}"
        assert json.loads(lines[0])["message"]["toolName"] == f"tool-{NUM_RECORDS - 400}"

    def test_tail_read_time_under_threshold(self, large_log):
        """
        Test that tail reads do not scale with file size.

        (2 seconds for 20 reads is generous to account for CI variability)
        """
        start_time = time.perf_counter()
        for _ in range(20):
            tail_lines(large_log, 400)
        elapsed = time.perf_counter() - start_time

        assert elapsed < 2.0, f"Tail reads took {elapsed:.2f}s, expected < 2.0s"

    def test_tool_events_bounded(self, large_log):
        """Test that tool events from a huge log are capped and ordered oldest first."""
        events = read_tool_events(large_log, now=NOW)

        assert len(events) == 25
        assert events[-1].title == f"tool-{NUM_RECORDS - 1}"
        assert [e.at for e in events] == sorted(e.at for e in events)
        assert all(e.detail.startswith("result ") for e in events)

    def test_refresh_cycles_with_large_logs(self, openclaw_paths, large_log):
        """
        Test that the refresh thread keeps producing results with large logs.

        Refreshes must complete within the minimum refresh interval so
        the refresh thread never falls behind.
        """
        queue: Queue[RefreshResult] = Queue()
        orchestrator = RefreshOrchestrator(openclaw_paths, resolve_active_log=lambda: large_log)
        monitor = RefreshMonitor(orchestrator, queue, poll_rate=0.5)

        monitor.start()

        try:
            results = [queue.get(timeout=5.0) for _ in range(3)]
        finally:
            monitor.stop()

        assert all(r.ok for r in results)
        assert [r.seq for r in results] == [1, 2, 3]
        tool_titles = [e.title for e in results[-1].snapshot.events if e.source == Source.TOOL]
        assert f"tool-{NUM_RECORDS - 1}" in tool_titles
