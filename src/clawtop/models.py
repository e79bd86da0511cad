"""Data models for clawtop."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Level(Enum):
    """Severity of a timeline event."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    DEBUG = "debug"


class Source(Enum):
    """Where a timeline event came from."""

    CRON = "cron"
    SUBAGENT = "subagent"
    TOOL = "tool"


@dataclass(slots=True, frozen=True)
class CounterSample:
    """Cumulative CPU time-in-state counters since boot."""

    user: float = 0
    nice: float = 0
    system: float = 0
    idle: float = 0
    iowait: float = 0
    irq: float = 0
    softirq: float = 0
    steal: float = 0

    @property
    def idle_total(self) -> float:
        return self.idle + self.iowait

    @property
    def busy_total(self) -> float:
        return self.user + self.nice + self.system + self.irq + self.softirq + self.steal


@dataclass(slots=True, frozen=True)
class HostSnapshot:
    """Point-in-time host metrics."""

    at: datetime
    cpu_percent: float  # 0.0 - 100.0, whole machine
    mem_used: int  # Bytes, total - available
    mem_total: int  # Bytes
    load_avg: tuple[float, float, float]


@dataclass(slots=True, frozen=True)
class Session:
    """One agent conversation session."""

    key: str
    label: str
    model: str
    provider: str
    updated_at: datetime
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass(slots=True, frozen=True)
class SubagentRun:
    """One delegated sub-task execution."""

    run_id: str
    child_session_key: str
    label: str
    task: str
    model: str
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class CronJob:
    """A scheduled job definition with its last known runtime state."""

    id: str
    name: str
    enabled: bool
    schedule: str  # Human readable, e.g. "every 1h0m0s"
    tz: str
    next_run: datetime | None = None
    last_run: datetime | None = None
    last_status: str = ""
    last_error: str = ""


@dataclass(slots=True, frozen=True)
class Event:
    """Normalized single-line activity record from any source."""

    at: datetime
    level: Level
    source: Source
    title: str
    detail: str


@dataclass(slots=True, frozen=True)
class TokenSample:
    """One usage/cost data point."""

    at: datetime
    total_tokens: int
    cost_usd: float
