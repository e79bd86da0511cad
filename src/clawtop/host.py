"""Host metric sampling for clawtop."""

import logging
from datetime import datetime

import psutil

from clawtop.models import CounterSample, HostSnapshot

logger = logging.getLogger(__name__)

# Fields of psutil.cpu_times() that make up a CounterSample; missing ones read as 0
COUNTER_FIELDS = ("user", "nice", "system", "idle", "iowait", "irq", "softirq", "steal")


def read_counters() -> CounterSample:
    """Read the aggregate CPU time-in-state counters."""
    times = psutil.cpu_times()
    return CounterSample(**{name: getattr(times, name, 0.0) for name in COUNTER_FIELDS})


def read_load_average() -> tuple[float, float, float]:
    """Read the 1, 5 and 15 minute load averages."""
    l1, l5, l15 = psutil.getloadavg()
    return float(l1), float(l5), float(l15)


def read_memory() -> tuple[int, int]:
    """Read (total, available) memory in bytes."""
    mem = psutil.virtual_memory()
    return int(mem.total), int(mem.available)


def cpu_percent(prev: CounterSample, cur: CounterSample) -> float:
    """
    Compute whole-machine CPU utilization between two counter samples.

    Returns 0.0 when no time elapsed between the samples (or the counters
    were reset), and never leaves the 0-100 range.
    """
    delta_idle = cur.idle_total - prev.idle_total
    delta_total = delta_idle + (cur.busy_total - prev.busy_total)
    if delta_total <= 0:
        return 0.0
    pct = (delta_total - delta_idle) / delta_total * 100.0
    return min(100.0, max(0.0, pct))


def sample_host(
    prev: CounterSample | None,
    now: datetime,
) -> tuple[HostSnapshot, CounterSample | None]:
    """
    Take one host snapshot.

    Each metric is read independently; a failed read leaves that metric at
    zero instead of failing the whole sample. Without a previous counter
    sample the CPU figure is 0.0.

    Returns:
        The snapshot and the counter sample to keep for the next call
        (None if the counters couldn't be read).
    """
    counters: CounterSample | None = None
    try:
        counters = read_counters()
    except (OSError, psutil.Error) as e:
        logger.debug("CPU counters unavailable: %s", e)

    load_avg = (0.0, 0.0, 0.0)
    try:
        load_avg = read_load_average()
    except (OSError, AttributeError, psutil.Error) as e:
        logger.debug("Load average unavailable: %s", e)

    mem_total, mem_available = 0, 0
    try:
        mem_total, mem_available = read_memory()
    except (OSError, psutil.Error) as e:
        logger.debug("Memory info unavailable: %s", e)

    pct = 0.0
    if prev is not None and counters is not None:
        pct = cpu_percent(prev, counters)

    snapshot = HostSnapshot(
        at=now,
        cpu_percent=pct,
        mem_used=max(0, mem_total - mem_available),
        mem_total=mem_total,
        load_avg=load_avg,
    )
    return snapshot, counters
