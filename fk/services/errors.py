"""Error payload shared by the reconcile and release services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from fk.core.errors import ErrorCode

ErrorKind = Literal[
    # Tag gate
    "malformed_tag",
    "version_mismatch",
    # Reconciliation
    "stale_rule",
    "unresolvable_conflict",
    # Build fan-out
    "build_failed",
    "non_reproducible",
    # Publishing
    "publish_rejected",
    # Infrastructure
    "invalid_input",
    "git_failed",
    "io_failed",
    "branch_moved",
    "branch_locked",
    "not_sentinel",
]

_EXIT_CODES: dict[str, ErrorCode] = {
    "malformed_tag": ErrorCode.RELEASE_REJECTED,
    "version_mismatch": ErrorCode.RELEASE_REJECTED,
    "not_sentinel": ErrorCode.RELEASE_REJECTED,
    "stale_rule": ErrorCode.USER_ERROR,
    "unresolvable_conflict": ErrorCode.MERGE_CONFLICT,
    "build_failed": ErrorCode.BUILD_ERROR,
    "non_reproducible": ErrorCode.BUILD_ERROR,
    "publish_rejected": ErrorCode.NETWORK_ERROR,
    "invalid_input": ErrorCode.USER_ERROR,
    "git_failed": ErrorCode.ENV_ERROR,
    "io_failed": ErrorCode.IO_ERROR,
    "branch_moved": ErrorCode.ENV_ERROR,
    "branch_locked": ErrorCode.ENV_ERROR,
}


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical error payload.

    Stable across services so the CLI can render it without importing
    implementation details.
    """

    kind: ErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message

    @property
    def exit_code(self) -> ErrorCode:
        return _EXIT_CODES.get(self.kind, ErrorCode.USER_ERROR)
