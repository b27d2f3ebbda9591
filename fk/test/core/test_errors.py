from __future__ import annotations

from fk.core.errors import ErrorCode
from fk.services.errors import ReleaseError


def test_error_codes_are_distinct() -> None:
    values = [code.value for code in ErrorCode]
    assert len(values) == len(set(values))
    assert ErrorCode.OK == 0


def test_release_error_exit_codes() -> None:
    assert ReleaseError(kind="malformed_tag", message="x").exit_code == ErrorCode.RELEASE_REJECTED
    assert ReleaseError(kind="version_mismatch", message="x").exit_code == ErrorCode.RELEASE_REJECTED
    assert ReleaseError(kind="unresolvable_conflict", message="x").exit_code == ErrorCode.MERGE_CONFLICT
    assert ReleaseError(kind="build_failed", message="x").exit_code == ErrorCode.BUILD_ERROR
    assert ReleaseError(kind="publish_rejected", message="x").exit_code == ErrorCode.NETWORK_ERROR


def test_pretty_includes_hint() -> None:
    assert ReleaseError(kind="invalid_input", message="bad").pretty() == "bad"
    assert ReleaseError(kind="invalid_input", message="bad", hint="fix it").pretty() == "bad (hint: fix it)"
