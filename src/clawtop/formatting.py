"""Text formatting helpers for the dashboard."""

from datetime import datetime
from typing import Sequence

SPARK_BLOCKS = "▁▂▃▄▅▆▇█"


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M"]:
        if size < 1024:
            return f"{size}B" if unit == "B" else f"{size:.1f}{unit}"
        size = size / 1024
    return f"{size:.1f}G"


def rel_time(at: datetime | None, now: datetime) -> str:
    """How long ago ``at`` was, e.g. "now", "12s ago", "3h ago"."""
    if at is None:
        return "-"
    seconds = (now - at).total_seconds()
    if seconds < 1:
        return "now"
    if seconds < 60:
        return f"{int(seconds)}s ago"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    return f"{int(seconds // 3600)}h ago"


def time_until(at: datetime, now: datetime) -> str:
    """How long until ``at``, or "due" if it has passed."""
    seconds = (at - now).total_seconds()
    if seconds < 0:
        return "due"
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m"
    return f"{int(seconds // 3600)}h"


def clock(at: datetime) -> str:
    """Local wall-clock time of day."""
    return at.astimezone().strftime("%H:%M:%S")


def sparkline(values: Sequence[float]) -> str:
    if not values:
        return ""
    low, high = min(values), max(values)
    if high == low:
        return SPARK_BLOCKS[len(SPARK_BLOCKS) // 2] * len(values)
    top = len(SPARK_BLOCKS) - 1
    return "".join(SPARK_BLOCKS[int((v - low) / (high - low) * top)] for v in values)


def short_model(model: str) -> str:
    """Last path segment of a model id, "-" if empty."""
    if not model:
        return "-"
    return model.rsplit("/", 1)[-1]
