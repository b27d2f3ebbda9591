"""Workspace detection and paths.

The workspace is the root of the downstream fork checkout. It is identified
by the presence of a ``fork.toml`` file, or by ``FK_WORKSPACE_ROOT``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .config import Config
from .result import Err, Ok, Result

__all__ = [
    "Workspace",
    "WorkspaceError",
    "detect_workspace",
    "is_workspace_root",
]

WORKSPACE_ENV = "FK_WORKSPACE_ROOT"
CONFIG_FILENAME = "fork.toml"


@dataclass(frozen=True)
class WorkspaceError:
    """Error when workspace cannot be detected."""

    message: str
    searched_from: Path | None = None


@dataclass(frozen=True, slots=True)
class Workspace:
    """A detected fork checkout.

    The workspace root contains:
    - fork.toml (marker and configuration)
    - .fork/ state (ledger, reconcile report, build records, branch lock)
    - the upstream project sources (e.g. codex-rs/)
    """

    root: Path

    @property
    def config_path(self) -> Path:
        return self.root / CONFIG_FILENAME

    def state_dir(self, config: Config) -> Path:
        return self.root / config.paths.state_dir

    def ledger_path(self, config: Config) -> Path:
        return self.root / config.paths.ledger

    def report_path(self, config: Config) -> Path:
        """Where the last reconcile report is persisted."""
        return self.state_dir(config) / "reconcile-report.json"

    def lock_path(self, config: Config) -> Path:
        """Lock file held while the base branch is being rewritten."""
        return self.state_dir(config) / "branch.lock"

    def builds_dir(self, config: Config) -> Path:
        """Per-tag checksum records for reproducibility checks."""
        return self.state_dir(config) / "builds"

    def worktrees_dir(self, config: Config) -> Path:
        """Isolated per-target checkouts used by builds."""
        return self.state_dir(config) / "worktrees"

    def dist_dir(self, config: Config) -> Path:
        return self.root / config.paths.dist

    def manifest_path(self, config: Config) -> Path:
        return self.root / config.release.manifest


def is_workspace_root(path: Path) -> bool:
    return (path / CONFIG_FILENAME).is_file()


def detect_workspace(start: Path | None = None) -> Result[Workspace, WorkspaceError]:
    """Find the workspace from FK_WORKSPACE_ROOT or by walking up from start."""
    env = os.environ.get(WORKSPACE_ENV)
    if env:
        root = Path(env).expanduser().resolve()
        if is_workspace_root(root):
            return Ok(Workspace(root=root))
        return Err(
            WorkspaceError(
                message=f"{WORKSPACE_ENV}={root} has no {CONFIG_FILENAME}",
                searched_from=root,
            )
        )

    origin = (start or Path.cwd()).resolve()
    for candidate in (origin, *origin.parents):
        if is_workspace_root(candidate):
            return Ok(Workspace(root=candidate))

    return Err(
        WorkspaceError(
            message=f"no {CONFIG_FILENAME} found in {origin} or any parent",
            searched_from=origin,
        )
    )
