"""clawtop - Main Textual application."""

import argparse
import logging
import sys
from datetime import datetime, timezone
from queue import Empty, Queue
from typing import Sequence

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.logging import TextualHandler
from textual.widgets import DataTable, Footer, Static

from clawtop.config import (
    DEFAULT_REFRESH,
    REFRESH_STEP,
    Config,
    PathDiscoveryError,
    discover_paths,
)
from clawtop.filters import (
    EVENT_FILTER_KEYS,
    LEVEL_KEYS,
    SESSION_FILTER_KEYS,
    SOURCE_KEYS,
    EventFilter,
    SessionFilter,
    guess_primary_model,
)
from clawtop.formatting import clock, format_bytes, rel_time, short_model, sparkline, time_until
from clawtop.models import CronJob, Event, HostSnapshot, Level, Session, SubagentRun, TokenSample
from clawtop.monitor import RefreshMonitor, RefreshOrchestrator, RefreshResult, SnapshotHolder
from clawtop.timeline import truncate

logger = logging.getLogger(__name__)

MAX_SHOWN_EVENTS = 20
MAX_SHOWN_CRONS = 12
MAX_SHOWN_SUBAGENTS = 6

LEVEL_STYLES = {
    Level.ERROR: "red",
    Level.WARN: "yellow",
    Level.INFO: "green",
    Level.DEBUG: "dim",
}


def on_off(flag: bool) -> str:
    return "on" if flag else "off"


def render_host(host: HostSnapshot | None) -> str:
    if host is None:
        return "[b]Host[/b]\nLoading host info..."
    l1, l5, l15 = host.load_avg
    return (
        "[b]Host[/b]\n"
        f"CPU: {host.cpu_percent:5.1f}%   "
        f"Mem: {format_bytes(host.mem_used)}/{format_bytes(host.mem_total)}   "
        f"Load: {l1:.2f} {l5:.2f} {l15:.2f}"
    )


def render_tokens(samples: Sequence[TokenSample]) -> str:
    if not samples:
        return "[b]Tokens[/b]\n[dim](no tokens.jsonl)[/dim]"
    last = samples[-1]
    return (
        "[b]Tokens[/b]\n"
        f"OpenClaw total: {last.total_tokens}   Claude cost: ${last.cost_usd:.2f}\n"
        f"{sparkline([s.total_tokens for s in samples])}"
    )


def render_sessions(
    sessions: Sequence[Session],
    subagents: Sequence[SubagentRun],
    session_filter: SessionFilter,
    now: datetime,
) -> str:
    lines = ["[b]Sessions / Subagents[/b]"]
    for s in session_filter.apply(sessions, now):
        label = s.label or s.key
        lines.append(
            f"{escape(truncate(s.key, 28)):<28}  {escape(truncate(label, 24)):<24}  "
            f"{escape(short_model(s.model)):<16}[dim]  {rel_time(s.updated_at, now)}[/dim]"
        )
    if subagents:
        lines.append("[dim]subagents:[/dim]")
        for run in subagents[:MAX_SHOWN_SUBAGENTS]:
            lines.append(
                f"{escape(truncate(run.label, 20)):<20}  [dim]{rel_time(run.created_at, now)}[/dim]"
            )
        if len(subagents) > MAX_SHOWN_SUBAGENTS:
            lines.append("[dim]…[/dim]")
    return "\n".join(lines)


def render_crons(jobs: Sequence[CronJob], now: datetime) -> str:
    lines = ["[b]Crons[/b]"]
    if not jobs:
        lines.append("[dim](no jobs.json)[/dim]")
        return "\n".join(lines)
    for job in jobs[:MAX_SHOWN_CRONS]:
        next_run = time_until(job.next_run, now) if job.next_run else "-"
        last_run = rel_time(job.last_run, now) if job.last_run else "-"
        style = {"ok": "green", "error": "red"}.get(job.last_status, "dim")
        err = escape(truncate(job.last_error, 40)) or "-"
        lines.append(
            f"{escape(truncate(job.name, 20)):<20} [dim]{on_off(job.enabled)}[/dim] "
            f"next:{next_run} last:{last_run} [{style}]err:{err}[/{style}]"
        )
    if len(jobs) > MAX_SHOWN_CRONS:
        lines.append("[dim]…[/dim]")
    return "\n".join(lines)


class HeaderBar(Static):
    """Title line with refresh state and the active filters."""

    DEFAULT_CSS = """
    HeaderBar {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def update_status(
        self,
        refresh: float,
        holder: SnapshotHolder,
        event_filter: EventFilter,
        session_filter: SessionFilter,
        now: datetime,
    ) -> None:
        status = f"refresh={refresh:.1f}s  updated={rel_time(holder.last_update, now)}"
        if holder.error:
            status += f"  [red]err={escape(holder.error)}[/red]"
        levels = " ".join(f"{key}:{on_off(event_filter.is_on(v))}" for key, v in LEVEL_KEYS.items())
        sources = " ".join(f"{key}:{on_off(event_filter.is_on(v))}" for key, v in SOURCE_KEYS.items())
        filters = (
            f"\\[1]24h:{on_off(session_filter.only_24h)} "
            f"\\[2]hide:run:{on_off(session_filter.hide_runs)} "
            f"\\[3]primary({escape(session_filter.primary_model)}):"
            f"{on_off(session_filter.primary_model_only)}  "
            f"levels {levels}  src {sources}"
        )
        self.update(f"[b]clawtop[/b]  {status}\n{filters}")


class EventTable(Container):
    """Container for the latest events table."""

    DEFAULT_CSS = """
    EventTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize EventTable."""
        super().__init__(*args, **kwargs)
        self._row_count = 0

    @property
    def row_count(self) -> int:
        return self._row_count

    def compose(self) -> ComposeResult:
        """Compose the event table."""
        yield DataTable(id="event-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#event-table", DataTable)
        table.cursor_type = "row"
        table.add_column("Time", key="time", width=8)
        table.add_column("Level", key="level", width=5)
        table.add_column("Source", key="source", width=8)
        table.add_column("Task", key="task")

    def update_events(self, events: Sequence[Event], event_filter: EventFilter) -> None:
        """Replace the table rows with the filtered events, newest first."""
        table = self.query_one("#event-table", DataTable)
        table.clear()
        shown = event_filter.apply(events)[:MAX_SHOWN_EVENTS]
        for event in shown:
            style = LEVEL_STYLES[event.level]
            table.add_row(
                clock(event.at),
                f"[{style}]{event.level.value}[/{style}]",
                event.source.value,
                escape(truncate(f"{event.title}: {event.detail}", 80)),
            )
        self._row_count = len(shown)


class ClawtopApp(App):
    """Main clawtop application."""

    TITLE = "clawtop"
    SUB_TITLE = "OpenClaw activity monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #body {
        height: 1fr;
    }

    #left, #right {
        width: 1fr;
    }

    #left Static, #cron-panel {
        padding: 0 1 1 1;
    }

    #cron-panel {
        height: auto;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("plus", "faster", "Faster"),
        ("minus", "slower", "Slower"),
        *[
            Binding(key, f"toggle_sessions('{name}')", name, show=False)
            for key, name in SESSION_FILTER_KEYS.items()
        ],
        *[
            Binding(key, f"toggle_events('{name}')", name, show=False)
            for key, name in EVENT_FILTER_KEYS.items()
        ],
    ]

    def __init__(self, config: Config, orchestrator: RefreshOrchestrator | None = None) -> None:
        """Initialize the ClawtopApp."""
        super().__init__()
        self._config = config
        self._update_queue: Queue[RefreshResult] = Queue()
        self._orchestrator = orchestrator or RefreshOrchestrator(config.paths)
        self._monitor = RefreshMonitor(self._orchestrator, self._update_queue, poll_rate=config.refresh)
        self._holder = SnapshotHolder()
        self._event_filter = EventFilter()
        self._session_filter = SessionFilter()

    @property
    def holder(self) -> SnapshotHolder:
        return self._holder

    @property
    def event_filter(self) -> EventFilter:
        return self._event_filter

    @property
    def session_filter(self) -> SessionFilter:
        return self._session_filter

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderBar(id="header-bar")
        with Horizontal(id="body"):
            with Vertical(id="left"):
                yield Static(render_host(None), id="host-panel")
                yield Static(render_tokens(()), id="tokens-panel")
                yield Static("[b]Sessions / Subagents[/b]", id="sessions-panel")
            with Vertical(id="right"):
                yield EventTable()
                yield Static(render_crons((), datetime.now(timezone.utc)), id="cron-panel")
        yield Footer()

    def on_mount(self) -> None:
        """Start the refresh thread when the app is mounted."""
        self._monitor.start()
        # Drain finished refreshes on the event loop
        self.set_interval(0.25, self._check_for_updates)
        self._update_header()

    def _check_for_updates(self) -> None:
        """Apply any finished refreshes and redraw."""
        applied = False
        while True:
            try:
                result = self._update_queue.get_nowait()
            except Empty:
                break
            applied = self.apply_result(result) or applied

        if applied:
            self._update_ui()
        else:
            self._update_header()

    def apply_result(self, result: RefreshResult) -> bool:
        """Hand a refresh result to the snapshot holder. Returns True if it was newer."""
        if not self._holder.offer(result):
            logger.debug("Dropping stale refresh %d", result.seq)
            return False
        snapshot = self._holder.snapshot
        if snapshot is not None and not self._session_filter.primary_model:
            self._session_filter = self._session_filter.with_primary_model(
                guess_primary_model(snapshot.sessions)
            )
        return True

    def _update_header(self) -> None:
        self.query_one("#header-bar", HeaderBar).update_status(
            self._monitor.poll_rate,
            self._holder,
            self._event_filter,
            self._session_filter,
            datetime.now(timezone.utc),
        )

    def _update_ui(self) -> None:
        """Redraw every panel from the current snapshot."""
        self._update_header()
        snapshot = self._holder.snapshot
        if snapshot is None:
            return

        now = datetime.now(timezone.utc)
        self.query_one("#host-panel", Static).update(render_host(snapshot.host))
        self.query_one("#tokens-panel", Static).update(render_tokens(snapshot.token_samples))
        self.query_one("#sessions-panel", Static).update(
            render_sessions(snapshot.sessions, snapshot.subagents, self._session_filter, now)
        )
        self.query_one(EventTable).update_events(snapshot.events, self._event_filter)
        self.query_one("#cron-panel", Static).update(render_crons(snapshot.cron_jobs, now))

    def action_refresh(self) -> None:
        """Refresh now instead of waiting for the next tick."""
        self._monitor.request_refresh()

    def action_faster(self) -> None:
        self._monitor.poll_rate = self._monitor.poll_rate - REFRESH_STEP
        self._update_header()

    def action_slower(self) -> None:
        self._monitor.poll_rate = self._monitor.poll_rate + REFRESH_STEP
        self._update_header()

    def action_toggle_events(self, name: str) -> None:
        self._event_filter = self._event_filter.toggle(name)
        self._update_ui()

    def action_toggle_sessions(self, name: str) -> None:
        self._session_filter = self._session_filter.toggle(name)
        self._update_ui()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def configure_logging(log_file: str | None, debug: bool) -> None:
    """Send logs to a file, or to the Textual devtools console so the screen stays clean."""
    level = logging.DEBUG if debug else logging.WARNING
    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    if log_file:
        logging.basicConfig(filename=log_file, level=level, format=fmt)
    else:
        logging.basicConfig(level=level, format=fmt, handlers=[TextualHandler()])


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="clawtop", description="Terminal dashboard for OpenClaw activity")
    parser.add_argument(
        "--openclaw-root",
        help="OpenClaw root dir (default: $OPENCLAW_ROOT or ~/.openclaw)",
    )
    parser.add_argument("--workspace", help="Workspace dir (default: <openclaw-root>/workspace)")
    parser.add_argument(
        "--refresh",
        type=float,
        default=DEFAULT_REFRESH,
        help="Refresh interval in seconds, 0 or less for the default (default: %(default)s)",
    )
    parser.add_argument("--log-file", help="Write logs to this file")
    parser.add_argument("--debug", action="store_true", help="Log at debug level")
    args = parser.parse_args(argv)
    if args.refresh <= 0:
        args.refresh = DEFAULT_REFRESH
    return args


def main(argv: list[str] | None = None) -> int:
    """Entry point for clawtop application."""
    args = parse_args(argv)
    configure_logging(args.log_file, args.debug)

    try:
        paths = discover_paths(args.openclaw_root, args.workspace)
    except PathDiscoveryError as e:
        print(e, file=sys.stderr)
        return 2

    app = ClawtopApp(Config(paths=paths, refresh=args.refresh))
    app.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
