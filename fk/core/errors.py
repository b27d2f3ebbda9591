"""Process exit codes.

Every CLI command maps its outcome to one of these codes. A CI job gates the
next stage on them, so the numeric values must stay stable.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success
    - 1: User error (bad arguments, invalid ledger edit)
    - 2: Environment error (no workspace, missing git/cargo/npm)
    - 3: Build error (a required target failed or was not reproducible)
    - 4: Network error (push or publish rejected by a remote)
    - 5: I/O error (manifest or ledger unreadable)
    - 6: Release rejected (malformed tag, version mismatch)
    - 7: Merge conflict needs manual resolution
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    RELEASE_REJECTED = 6
    MERGE_CONFLICT = 7
