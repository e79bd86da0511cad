"""View filters for the dashboard.

Filters are immutable; toggling one returns a new value.
"""

from collections import Counter
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable

from clawtop.models import Event, Level, Session, Source

MAIN_SESSION_KEY = "agent:main:main"


@dataclass(slots=True, frozen=True)
class EventFilter:
    """Which event levels and sources are shown."""

    error: bool = True
    warn: bool = True
    info: bool = True
    debug: bool = False
    cron: bool = True
    subagent: bool = True
    tool: bool = True

    def toggle(self, name: str) -> "EventFilter":
        """Flip one level or source by its value name, e.g. "error" or "cron"."""
        return replace(self, **{name: not getattr(self, name)})

    def allows(self, event: Event) -> bool:
        return getattr(self, event.level.value) and getattr(self, event.source.value)

    def apply(self, events: Iterable[Event]) -> list[Event]:
        return [e for e in events if self.allows(e)]

    def is_on(self, variant: Level | Source) -> bool:
        return getattr(self, variant.value)


@dataclass(slots=True, frozen=True)
class SessionFilter:
    """Session list filters."""

    only_24h: bool = False
    hide_runs: bool = False
    primary_model_only: bool = False
    primary_model: str = ""

    def toggle(self, name: str) -> "SessionFilter":
        return replace(self, **{name: not getattr(self, name)})

    def with_primary_model(self, model: str) -> "SessionFilter":
        return replace(self, primary_model=model)

    def apply(self, sessions: Iterable[Session], now: datetime) -> list[Session]:
        cutoff = now - timedelta(hours=24)
        out = []
        for s in sessions:
            if self.only_24h and s.updated_at < cutoff:
                continue
            if self.hide_runs and ":run:" in s.key:
                continue
            if self.primary_model_only and self.primary_model and s.model != self.primary_model:
                continue
            out.append(s)
        return out


def guess_primary_model(sessions: Iterable[Session]) -> str:
    """Model of the main session, else the most common session model."""
    sessions = list(sessions)
    for s in sessions:
        if s.key == MAIN_SESSION_KEY and s.model:
            return s.model
    counts = Counter(s.model for s in sessions if s.model)
    if not counts:
        return ""
    return counts.most_common(1)[0][0]


# Key bindings that toggle a filter field
LEVEL_KEYS = {
    "e": Level.ERROR,
    "w": Level.WARN,
    "i": Level.INFO,
    "d": Level.DEBUG,
}

SOURCE_KEYS = {
    "c": Source.CRON,
    "s": Source.SUBAGENT,
    "t": Source.TOOL,
}

EVENT_FILTER_KEYS = {key: variant.value for key, variant in {**LEVEL_KEYS, **SOURCE_KEYS}.items()}

SESSION_FILTER_KEYS = {
    "1": "only_24h",
    "2": "hide_runs",
    "3": "primary_model_only",
}
