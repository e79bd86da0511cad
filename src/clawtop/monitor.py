"""Refresh engine for clawtop."""

import itertools
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from queue import Queue
from typing import Callable, TypeVar

from clawtop.config import MIN_REFRESH, Paths
from clawtop.decoders import read_cron_jobs, read_sessions, read_subagent_runs, read_token_samples
from clawtop.host import sample_host
from clawtop.models import (
    CounterSample,
    CronJob,
    Event,
    HostSnapshot,
    Session,
    SubagentRun,
    TokenSample,
)
from clawtop.timeline import ActiveLogResolver, build_timeline, newest_session_log

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_TOKEN_SAMPLES = 48


@dataclass(slots=True, frozen=True)
class Snapshot:
    """One complete, internally consistent view of OpenClaw and host state."""

    at: datetime
    host: HostSnapshot
    sessions: tuple[Session, ...]
    subagents: tuple[SubagentRun, ...]
    cron_jobs: tuple[CronJob, ...]
    events: tuple[Event, ...]
    token_samples: tuple[TokenSample, ...]


@dataclass(slots=True, frozen=True)
class RefreshResult:
    """Outcome of one refresh: a snapshot on success, an error message on failure."""

    seq: int
    at: datetime
    snapshot: Snapshot | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _optional(name: str, read: Callable[[], list[T]]) -> tuple[T, ...]:
    """Read an optional source, degrading to an empty tuple on failure."""
    try:
        return tuple(read())
    except FileNotFoundError:
        return ()
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable %s: %s", name, e)
        return ()


def build_snapshot(
    paths: Paths,
    prev: CounterSample | None,
    now: datetime,
    resolve_active_log: ActiveLogResolver,
) -> tuple[Snapshot, CounterSample | None]:
    """
    Read every source and assemble one snapshot.

    Only the session registry is required; its read errors propagate.
    Everything else degrades to empty.

    Raises:
        OSError: If the session registry can't be read.
        ValueError: If the session registry isn't valid JSON.
    """
    host, counters = sample_host(prev, now)

    sessions = tuple(read_sessions(paths.sessions_json))
    subagents = _optional("subagent registry", lambda: read_subagent_runs(paths.subagent_runs))
    cron_jobs = _optional("cron registry", lambda: read_cron_jobs(paths.cron_jobs))
    token_samples = _optional(
        "token log", lambda: read_token_samples(paths.tokens_jsonl, MAX_TOKEN_SAMPLES)
    )

    events = build_timeline(cron_jobs, subagents, paths.cron_runs_dir, resolve_active_log, now)

    snapshot = Snapshot(
        at=now,
        host=host,
        sessions=sessions,
        subagents=subagents,
        cron_jobs=cron_jobs,
        events=tuple(events),
        token_samples=token_samples,
    )
    return snapshot, counters


class RefreshOrchestrator:
    """
    Produces the next snapshot on demand.

    Owns the previous CPU counter sample, the only state carried from one
    refresh to the next, and stamps every refresh with an increasing
    sequence number when it starts.
    """

    def __init__(
        self,
        paths: Paths,
        resolve_active_log: ActiveLogResolver | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._paths = paths
        self._resolve_active_log = resolve_active_log or (
            lambda: newest_session_log(paths.sessions_dir)
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self._prev_counters: CounterSample | None = None

    @property
    def paths(self) -> Paths:
        return self._paths

    @property
    def prev_counters(self) -> CounterSample | None:
        with self._lock:
            return self._prev_counters

    def refresh(self) -> RefreshResult:
        """Run one refresh. Never raises for a failed source read."""
        with self._lock:
            seq = next(self._seq)
            prev = self._prev_counters
        now = self._clock()

        try:
            snapshot, counters = build_snapshot(self._paths, prev, now, self._resolve_active_log)
        except (OSError, ValueError) as e:
            logger.warning("Refresh %d failed: %s", seq, e)
            return RefreshResult(seq=seq, at=now, error=str(e))
        except Exception as e:
            # Report like a failed read so the refresh loop keeps running
            logger.exception("Refresh %d failed unexpectedly", seq)
            return RefreshResult(seq=seq, at=now, error=str(e) or type(e).__name__)

        if counters is not None:
            with self._lock:
                self._prev_counters = counters
        return RefreshResult(seq=seq, at=now, snapshot=snapshot)


class SnapshotHolder:
    """
    The snapshot currently on display.

    Results are applied newest-wins by sequence number, so a slow refresh
    finishing late never replaces a newer one. A failed refresh keeps the
    last good snapshot and records the error next to it.
    """

    def __init__(self) -> None:
        self._snapshot: Snapshot | None = None
        self._error: str | None = None
        self._last_update: datetime | None = None
        self._applied_seq = 0

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def last_update(self) -> datetime | None:
        return self._last_update

    @property
    def applied_seq(self) -> int:
        return self._applied_seq

    def offer(self, result: RefreshResult) -> bool:
        """Apply result if it is newer than what is shown. Returns True if applied."""
        if result.seq <= self._applied_seq:
            return False
        self._applied_seq = result.seq
        self._last_update = result.at
        if result.ok:
            self._snapshot = result.snapshot
            self._error = None
        else:
            self._error = result.error
        return True


class RefreshMonitor:
    """
    Runs refreshes on a background daemon thread and pushes results to a Queue.

    One thread means refreshes never overlap. request_refresh() wakes the
    thread early for a manual refresh.
    """

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        update_queue: Queue[RefreshResult],
        poll_rate: float = 2.0,
    ) -> None:
        """
        Initialize the RefreshMonitor.

        Args:
            orchestrator: Produces each snapshot.
            update_queue: Thread-safe queue to push results to.
            poll_rate: Seconds between refreshes. Default 2.0s.
        """
        self._orchestrator = orchestrator
        self._queue = update_queue
        self._poll_rate = max(MIN_REFRESH, poll_rate)
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def poll_rate(self) -> float:
        """Get the current poll rate."""
        return self._poll_rate

    @poll_rate.setter
    def poll_rate(self, value: float) -> None:
        """Set the poll rate."""
        self._poll_rate = max(MIN_REFRESH, value)

    @property
    def is_running(self) -> bool:
        """Check if the refresh thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the refresh thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="RefreshMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the refresh thread.

        Args:
            timeout: How long to wait for an in-flight refresh to finish (seconds).
        """
        self._stop_event.set()
        self._wake_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def request_refresh(self) -> None:
        """Refresh as soon as the thread is free."""
        self._wake_event.set()

    def _poll_loop(self) -> None:
        """Main refresh loop running in the background thread."""
        while not self._stop_event.is_set():
            self._queue.put(self._orchestrator.refresh())

            # Wait for poll_rate seconds, a manual refresh or a stop request
            self._wake_event.wait(timeout=self._poll_rate)
            self._wake_event.clear()
