"""Explicit base-branch handles.

The base branch pointer is shared state. Instead of reading and writing it
ambiently, services take a ``BranchHandle`` (branch + the head they saw),
and every move is a compare-and-swap from that handle to a new one. A move
from a stale handle fails instead of clobbering someone else's update.
"""

from __future__ import annotations

from dataclasses import dataclass

from fk.core.result import Err, Ok, Result
from fk.git.repository import GitError, VersionControl

__all__ = ["BranchHandle", "advance", "take_handle", "verify_handle"]


@dataclass(frozen=True, slots=True)
class BranchHandle:
    branch: str
    head: str

    @property
    def short_head(self) -> str:
        return self.head[:8]


def take_handle(vcs: VersionControl, branch: str) -> Result[BranchHandle, GitError]:
    head = vcs.head(branch)
    if isinstance(head, Err):
        return head
    return Ok(BranchHandle(branch=branch, head=head.value))


def verify_handle(vcs: VersionControl, handle: BranchHandle) -> Result[BranchHandle, GitError]:
    """Check the branch still points where the handle says."""
    head = vcs.head(handle.branch)
    if isinstance(head, Err):
        return head
    if head.value != handle.head:
        return Err(
            GitError(
                command=f"verify {handle.branch}",
                message=(
                    f"{handle.branch} moved to {head.value[:8]} "
                    f"(expected {handle.short_head})"
                ),
            )
        )
    return Ok(handle)


def advance(vcs: VersionControl, prior: BranchHandle, new_head: str) -> Result[BranchHandle, GitError]:
    """Move the branch from prior.head to new_head and return the new handle."""
    moved = vcs.move_branch(prior.branch, new_head, prior.head)
    if isinstance(moved, Err):
        return moved
    return Ok(BranchHandle(branch=prior.branch, head=new_head))
