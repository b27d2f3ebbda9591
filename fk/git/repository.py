"""Git repository abstraction.

``Repository`` drives the git CLI for the handful of operations the fork
workflow needs: a non-committing upstream merge, single-file commits,
annotated tags, compare-and-swap branch moves and detached worktrees.
All operations return Result types.

``VersionControl`` is the protocol services depend on, so reconcile and
stamp logic can run against an in-memory fake in tests.

Usage:
    repo = Repository(Path("/path/to/fork"))

    match repo.merge("upstream/main"):
        case Ok(outcome):
            print(f"conflicts: {outcome.conflicted}")
        case Err(e):
            print(f"merge failed: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from fk.core.result import Err, Ok, Result
from fk.platform.files import atomic_write_text
from fk.platform.process import ProcessError
from fk.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

__all__ = [
    "GitError",
    "MergeOutcome",
    "Repository",
    "VersionControl",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class MergeOutcome:
    """Result of a non-committing merge.

    Attributes:
        ref: The merged ref
        conflicted: Paths git left with conflict markers
        up_to_date: The ref was already merged; nothing is pending
    """

    ref: str
    conflicted: tuple[str, ...] = field(default_factory=tuple)
    up_to_date: bool = False

    @property
    def is_clean(self) -> bool:
        return not self.conflicted


class VersionControl(Protocol):
    """Operations the reconcile and release services need from a VCS."""

    def head(self, branch: str) -> Result[str, GitError]: ...

    def read_file(self, path: str) -> str | None: ...

    def write_file(self, path: str, content: str) -> None: ...

    def read_file_at(self, rev: str, path: str) -> Result[str, GitError]: ...

    def merge(self, ref: str) -> Result[MergeOutcome, GitError]: ...

    def abort_merge(self) -> Result[None, GitError]: ...

    def commit(self, message: str, *, paths: tuple[str, ...] | None = None) -> Result[str, GitError]: ...

    def create_tag(self, name: str, target: str, message: str) -> Result[None, GitError]: ...

    def tag_target(self, name: str) -> Result[str, GitError]: ...

    def move_branch(self, branch: str, new: str, expected_old: str) -> Result[None, GitError]: ...


class Repository:
    """Git repository driven through the git CLI.

    Attributes:
        path: Path to the repository root (the fork workspace)
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a valid git repository."""
        return (self.path / ".git").exists()

    def head(self, branch: str) -> Result[str, GitError]:
        """Commit SHA that refs/heads/<branch> points at."""
        return self._git_out(["rev-parse", "--verify", f"refs/heads/{branch}^{{commit}}"])

    def current_branch(self) -> str | None:
        """Checked-out branch name, None on detached HEAD or error."""
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def is_clean(self) -> bool:
        """True if the working tree has no tracked changes.

        Returns False if status cannot be determined.
        """
        result = self._run(["status", "--porcelain", "--untracked-files=no"])
        match result:
            case Ok(stdout):
                return stdout.strip() == ""
            case Err(_):
                return False

    def read_file(self, path: str) -> str | None:
        """Working-tree content of path, None if it does not exist."""
        target = self.path / path
        if not target.is_file():
            return None
        return target.read_text(encoding="utf-8")

    def write_file(self, path: str, content: str) -> None:
        atomic_write_text(self.path / path, content, encoding="utf-8")

    def read_file_at(self, rev: str, path: str) -> Result[str, GitError]:
        """Content of path as recorded in rev."""
        result = self._run(["show", f"{rev}:{path}"])
        match result:
            case Err(e):
                return Err(_git_error("show", e))
            case Ok(stdout):
                return Ok(stdout)

    def merge(self, ref: str) -> Result[MergeOutcome, GitError]:
        """Three-way merge of ref into the checked-out branch, without committing.

        A merge that stops on conflicts is not an error: the conflicted
        paths are reported and the repository stays mid-merge.
        """
        result = self._run(["merge", "--no-ff", "--no-commit", ref])
        if isinstance(result, Ok):
            up_to_date = "Already up to date" in result.value
            return Ok(MergeOutcome(ref=ref, up_to_date=up_to_date))

        e = result.error
        if "CONFLICT" not in e.stdout:
            return Err(_git_error(f"merge {ref}", e))

        conflicted = self.conflicted_paths()
        if isinstance(conflicted, Err):
            return conflicted
        return Ok(MergeOutcome(ref=ref, conflicted=conflicted.value))

    def conflicted_paths(self) -> Result[tuple[str, ...], GitError]:
        out = self._git_out(["diff", "--name-only", "--diff-filter=U"])
        if isinstance(out, Err):
            return out
        return Ok(tuple(ln.strip() for ln in out.value.splitlines() if ln.strip()))

    def abort_merge(self) -> Result[None, GitError]:
        result = self._run(["merge", "--abort"])
        if isinstance(result, Err):
            return Err(_git_error("merge --abort", result.error))
        return Ok(None)

    def commit(self, message: str, *, paths: tuple[str, ...] | None = None) -> Result[str, GitError]:
        """Commit on the checked-out branch and return the new HEAD.

        With ``paths``, only those paths are committed (``git commit --only``);
        without, every tracked change (including a pending merge) is.
        """
        if paths:
            args = ["commit", "--only", "-m", message, "--", *paths]
        else:
            add = self._run(["add", "--update"])
            if isinstance(add, Err):
                return Err(_git_error("add --update", add.error))
            args = ["commit", "--no-verify", "-m", message]

        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error("commit", result.error))
        return self._git_out(["rev-parse", "HEAD"])

    def create_tag(self, name: str, target: str, message: str) -> Result[None, GitError]:
        """Create an annotated tag; fails if the tag already exists."""
        result = self._run(["tag", "--annotate", "-m", message, name, target])
        if isinstance(result, Err):
            return Err(_git_error(f"tag {name}", result.error))
        return Ok(None)

    def tag_target(self, name: str) -> Result[str, GitError]:
        """Commit SHA the tag (annotated or lightweight) points at."""
        return self._git_out(["rev-parse", "--verify", f"refs/tags/{name}^{{commit}}"])

    def move_branch(self, branch: str, new: str, expected_old: str) -> Result[None, GitError]:
        """Compare-and-swap the branch pointer from expected_old to new.

        When the branch is checked out, the working tree follows the move
        (``git reset --keep``) after HEAD was checked against expected_old.
        """
        if self.current_branch() == branch:
            head = self.head(branch)
            if isinstance(head, Err):
                return Err(head.error)
            if head.value != expected_old:
                return Err(
                    GitError(
                        command=f"reset {branch}",
                        message=f"{branch} is at {head.value[:8]}, expected {expected_old[:8]}",
                    )
                )
            result = self._run(["reset", "--keep", new])
            if isinstance(result, Err):
                return Err(_git_error(f"reset --keep {new[:8]}", result.error))
            return Ok(None)

        result = self._run(
            ["update-ref", "-m", f"fk: move {branch}", f"refs/heads/{branch}", new, expected_old]
        )
        if isinstance(result, Err):
            return Err(_git_error(f"update-ref {branch}", result.error))
        return Ok(None)

    def add_worktree(self, path: Path, commit: str) -> Result[None, GitError]:
        """Create a detached worktree of commit at path."""
        result = self._run(["worktree", "add", "--force", "--detach", str(path), commit])
        if isinstance(result, Err):
            return Err(_git_error("worktree add", result.error))
        return Ok(None)

    def remove_worktree(self, path: Path) -> Result[None, GitError]:
        result = self._run(["worktree", "remove", "--force", str(path)])
        if isinstance(result, Err):
            return Err(_git_error("worktree remove", result.error))
        return Ok(None)

    def fetch(self, remote: str) -> Result[str, GitError]:
        result = self._run(["fetch", "--tags", remote])
        match result:
            case Err(e):
                return Err(_git_error(f"fetch {remote}", e))
            case Ok(stdout):
                return Ok(stdout.strip())

    def push(self, remote: str, refspec: str) -> Result[str, GitError]:
        result = self._run(["push", remote, refspec])
        match result:
            case Err(e):
                return Err(_git_error(f"push {remote} {refspec}", e))
            case Ok(stdout):
                return Ok(stdout.strip())

    def _git_out(self, args: list[str]) -> Result[str, GitError]:
        result = self._run(args)
        match result:
            case Err(e):
                return Err(_git_error(" ".join(args[:2]), e))
            case Ok(stdout):
                return Ok(stdout.strip())

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS
            if command in {"fetch", "pull", "push", "clone"}
            else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)


def _git_error(command: str, e: ProcessError) -> GitError:
    return GitError(command=command, message=e.detail, returncode=e.returncode)
