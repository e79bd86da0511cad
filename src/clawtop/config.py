"""Path discovery and runtime configuration for clawtop."""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_REFRESH = 2.0
MIN_REFRESH = 0.5
REFRESH_STEP = 0.5

ROOT_ENV_VAR = "OPENCLAW_ROOT"


class PathDiscoveryError(Exception):
    """Raised when the OpenClaw root directory can't be used."""


@dataclass(slots=True, frozen=True)
class Paths:
    """
    Resolved locations of OpenClaw state files.

    All paths are read-only for clawtop. Optional files (subagent runs, cron
    registry, token log) may not exist.
    """

    root: Path
    workspace: Path
    sessions_json: Path
    sessions_dir: Path
    subagent_runs: Path
    cron_jobs: Path
    cron_runs_dir: Path
    tokens_jsonl: Path

    @classmethod
    def for_root(cls, root: Path, workspace: Path | None = None) -> "Paths":
        """Build the standard layout under root."""
        if workspace is None:
            workspace = root / "workspace"
        sessions_dir = root / "agents" / "main" / "sessions"
        return cls(
            root=root,
            workspace=workspace,
            sessions_json=sessions_dir / "sessions.json",
            sessions_dir=sessions_dir,
            subagent_runs=root / "subagents" / "runs.json",
            cron_jobs=root / "cron" / "jobs.json",
            cron_runs_dir=root / "cron" / "runs",
            tokens_jsonl=workspace / "dashboard" / "metrics" / "tokens.jsonl",
        )


@dataclass(slots=True, frozen=True)
class Config:
    """Runtime configuration handed to the dashboard."""

    paths: Paths
    refresh: float = DEFAULT_REFRESH

    def __post_init__(self) -> None:
        if self.refresh < MIN_REFRESH:
            object.__setattr__(self, "refresh", MIN_REFRESH)


def discover_paths(root: str | Path | None = None, workspace: str | Path | None = None) -> Paths:
    """
    Resolve the OpenClaw root and the state file locations under it.

    Args:
        root: Root override. Defaults to $OPENCLAW_ROOT, then ~/.openclaw.
        workspace: Workspace override. Defaults to <root>/workspace.

    Raises:
        PathDiscoveryError: If the root is missing or not a directory.
    """
    if not root:
        root = os.environ.get(ROOT_ENV_VAR) or Path.home() / ".openclaw"
    root_path = Path(root).expanduser().absolute()

    if not root_path.is_dir():
        raise PathDiscoveryError(f"openclaw root not found: {root_path}")

    workspace_path = Path(workspace).expanduser().absolute() if workspace else None
    return Paths.for_root(root_path, workspace_path)
