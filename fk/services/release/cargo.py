"""Per-target cargo builds in isolated worktrees."""

from __future__ import annotations

import shutil
import threading
from pathlib import Path

from fk.core.result import Err, Ok, Result
from fk.git.repository import Repository
from fk.platform.files import sha256_file
from fk.platform.process import run as run_process
from fk.services.release.build import BuildFailure, ReleaseArtifact
from fk.services.release.targets import PlatformTarget

_CARGO_TIMEOUT_SECONDS = 90 * 60.0


class CargoBuilder:
    """Builds one binary per target from a detached checkout of the commit.

    Each target gets its own worktree, so concurrent builds share nothing
    but the immutable commit.
    """

    def __init__(
        self,
        *,
        repo: Repository,
        worktrees_dir: Path,
        out_dir: Path,
        manifest: str,
        binary: str,
    ) -> None:
        self.repo = repo
        self.worktrees_dir = worktrees_dir
        self.out_dir = out_dir
        self.manifest = manifest
        self.binary = binary
        # worktree add/remove share .git/worktrees state.
        self._git_lock = threading.Lock()

    def build(self, target: PlatformTarget, commit: str) -> Result[ReleaseArtifact, BuildFailure]:
        worktree = self.worktrees_dir / f"{commit[:12]}-{target.triple}"
        with self._git_lock:
            added = self.repo.add_worktree(worktree, commit)
        if isinstance(added, Err):
            return Err(BuildFailure(target=target, message=added.error.message))

        try:
            return self._build_in(worktree, target)
        finally:
            with self._git_lock:
                self.repo.remove_worktree(worktree)

    def _build_in(self, worktree: Path, target: PlatformTarget) -> Result[ReleaseArtifact, BuildFailure]:
        crate_dir = worktree / Path(self.manifest).parent
        env = {"CARGO_INCREMENTAL": "0", "CARGO_TARGET_DIR": str(crate_dir / "target")}

        built = run_process(
            ["cargo", "build", "--release", "--locked", "--target", target.triple, "--bin", self.binary],
            cwd=crate_dir,
            env=env,
            timeout=_CARGO_TIMEOUT_SECONDS,
        )
        if isinstance(built, Err):
            lines = built.error.detail.splitlines()
            return Err(BuildFailure(target=target, message=lines[-1] if lines else str(built.error)))

        name = f"{self.binary}{target.exe_suffix}"
        produced = crate_dir / "target" / target.triple / "release" / name
        if not produced.is_file():
            return Err(BuildFailure(target=target, message=f"cargo produced no {name}"))

        dest = self.out_dir / target.triple / name
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(produced, dest)
        except OSError as e:
            return Err(BuildFailure(target=target, message=f"failed to collect {name}: {e}"))

        return Ok(ReleaseArtifact(target=target, blob_ref=dest, checksum=sha256_file(dest)))
