"""Git operations.

- Repository: git CLI backend implementing VersionControl
- BranchHandle: compare-and-swap view of the base branch pointer

Usage:
    from fk.git import Repository, take_handle

    repo = Repository(Path("/path/to/fork"))
    handle = take_handle(repo, "main")
"""

from fk.git.branch import BranchHandle, advance, take_handle, verify_handle
from fk.git.repository import GitError, MergeOutcome, Repository, VersionControl

__all__ = [
    "BranchHandle",
    "GitError",
    "MergeOutcome",
    "Repository",
    "VersionControl",
    "advance",
    "take_handle",
    "verify_handle",
]
