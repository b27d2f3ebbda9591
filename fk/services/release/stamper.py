"""Ephemeral release versions.

The base branch always carries the sentinel version. A release is one commit
that changes only the manifest version, plus an annotated tag on it. Right
after tagging, the branch is moved back to the commit it had before, so the
release commit is reachable only through its tag.

    prior ── release (tag rust-v1.2.3)      tag: permanent
      ▲
      └── main (after reset)                branch: back at prior
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from fk.core.result import Err, Ok, Result
from fk.git.branch import BranchHandle, advance, take_handle, verify_handle
from fk.git.repository import VersionControl
from fk.output.console import ConsoleProtocol
from fk.platform.files import LockHeld, exclusive_lock
from fk.services.errors import ReleaseError
from fk.services.release.manifest import manifest_version, with_manifest_version
from fk.services.release.tag import DEFAULT_GRAMMAR, TagGrammar, VersionTag, parse_version


@dataclass(frozen=True, slots=True)
class StampedRelease:
    """A release commit and its tag, while the branch still points at it.

    Attributes:
        prior: Branch handle from before the stamp (sentinel version).
        handle: Branch handle at the release commit.
        tag: The created tag.
    """

    prior: BranchHandle
    handle: BranchHandle
    tag: VersionTag

    @property
    def release_commit(self) -> str:
        return self.handle.head


def stamp_release(
    *,
    vcs: VersionControl,
    branch: str,
    version: str,
    manifest: str,
    sentinel: str,
    lock_path: Path,
    console: ConsoleProtocol,
    grammar: TagGrammar = DEFAULT_GRAMMAR,
) -> Result[StampedRelease, ReleaseError]:
    """Commit ``version`` into the manifest and tag that commit.

    The branch must be checked out, at the sentinel version. Holds the branch
    lock only for the stamp itself; call ``reset_to_sentinel`` afterwards.
    """
    target = parse_version(version, grammar=grammar, prefix=grammar.prefix)
    if target is None:
        return Err(
            ReleaseError(
                kind="malformed_tag",
                message=f"not a release version: {version!r}",
                hint=f"expected X.Y.Z[-(alpha|beta|{grammar.product_channel})[.N]]",
            )
        )
    if target.version == sentinel:
        return Err(ReleaseError(kind="invalid_input", message="cannot release the sentinel version"))

    try:
        with exclusive_lock(lock_path):
            return _stamp_locked(
                vcs=vcs,
                branch=branch,
                target=target,
                manifest=manifest,
                sentinel=sentinel,
                console=console,
            )
    except LockHeld as e:
        return Err(
            ReleaseError(kind="branch_locked", message=f"{branch} is being updated by another run", hint=str(e))
        )


def _stamp_locked(
    *,
    vcs: VersionControl,
    branch: str,
    target: VersionTag,
    manifest: str,
    sentinel: str,
    console: ConsoleProtocol,
) -> Result[StampedRelease, ReleaseError]:
    prior = take_handle(vcs, branch)
    if isinstance(prior, Err):
        return Err(ReleaseError(kind="git_failed", message=prior.error.message, hint=branch))

    if isinstance(vcs.tag_target(target.raw), Ok):
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"tag {target.raw} already exists",
                hint="pick a new version; released tags are never moved",
            )
        )

    text = vcs.read_file(manifest)
    if text is None:
        return Err(ReleaseError(kind="io_failed", message=f"manifest not found: {manifest}"))
    current = manifest_version(text, manifest=manifest)
    if isinstance(current, Err):
        return current
    if current.value != sentinel:
        return Err(
            ReleaseError(
                kind="not_sentinel",
                message=f"{manifest} holds {current.value}, expected sentinel {sentinel}",
                hint="a previous release was not reset; restore the sentinel first",
            )
        )

    stamped = with_manifest_version(text, target.version, manifest=manifest)
    if isinstance(stamped, Err):
        return stamped
    vcs.write_file(manifest, stamped.value)

    committed = vcs.commit(f"Release {target.version}", paths=(manifest,))
    if isinstance(committed, Err):
        # Leave the tree as we found it.
        vcs.write_file(manifest, text)
        return Err(ReleaseError(kind="git_failed", message=committed.error.message))
    release_sha = committed.value

    release = BranchHandle(branch=branch, head=release_sha)
    handle = verify_handle(vcs, release)
    if isinstance(handle, Err):
        return _roll_back(vcs, release, prior.value, ReleaseError(kind="branch_moved", message=handle.error.message))

    tagged = vcs.create_tag(target.raw, release_sha, f"Release {target.version}")
    if isinstance(tagged, Err):
        error = ReleaseError(kind="git_failed", message=tagged.error.message, hint=target.raw)
        return _roll_back(vcs, release, prior.value, error)

    console.success(f"{target.raw} -> {release_sha[:8]} (on {branch})")
    return Ok(StampedRelease(prior=prior.value, handle=handle.value, tag=target))


def _roll_back(
    vcs: VersionControl,
    release: BranchHandle,
    prior: BranchHandle,
    error: ReleaseError,
) -> Err[ReleaseError]:
    """Put the branch back on the sentinel commit after a failed stamp."""
    moved = advance(vcs, release, prior.head)
    if isinstance(moved, Err):
        return Err(
            ReleaseError(
                kind=error.kind,
                message=error.message,
                hint=f"{release.branch} left off the sentinel ({moved.error.message}); reset it to {prior.short_head}",
            )
        )
    return Err(error)


def reset_to_sentinel(
    *,
    vcs: VersionControl,
    stamped: StampedRelease,
    lock_path: Path,
    console: ConsoleProtocol,
) -> Result[BranchHandle, ReleaseError]:
    """Move the branch back to the pre-stamp commit; the tag stays."""
    try:
        with exclusive_lock(lock_path):
            pointed = vcs.tag_target(stamped.tag.raw)
            if isinstance(pointed, Err):
                return Err(ReleaseError(kind="git_failed", message=pointed.error.message))
            if pointed.value != stamped.release_commit:
                return Err(
                    ReleaseError(
                        kind="branch_moved",
                        message=f"{stamped.tag.raw} points at {pointed.value[:8]}, not the release commit",
                    )
                )

            moved = advance(vcs, stamped.handle, stamped.prior.head)
            if isinstance(moved, Err):
                return Err(ReleaseError(kind="branch_moved", message=moved.error.message))
    except LockHeld as e:
        return Err(
            ReleaseError(
                kind="branch_locked",
                message=f"{stamped.handle.branch} is being updated by another run",
                hint=str(e),
            )
        )

    console.success(f"{moved.value.branch} reset to {moved.value.short_head} (sentinel)")
    return Ok(moved.value)
