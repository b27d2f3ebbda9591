"""The versioned manifest (``codex-rs/Cargo.toml``).

The workspace version lives in ``[workspace.package]`` (falling back to
``[package]`` for single-crate manifests). Edits are textual so comments and
layout of the rest of the file survive a stamp.
"""

from __future__ import annotations

import re

from fk.core.result import Err, Ok, Result
from fk.git.repository import VersionControl
from fk.services.errors import ReleaseError

_SECTIONS = ("[workspace.package]", "[package]")
_VERSION_RE = re.compile(r'(?m)^version\s*=\s*"([^"]+)"\s*$')
_HEADER_RE = re.compile(r"(?m)^\[")


def _version_span(text: str, *, manifest: str) -> Result[tuple[int, int, str], ReleaseError]:
    for section in _SECTIONS:
        start = _find_header(text, section)
        if start < 0:
            continue
        body_start = start + len(section)
        nxt = _HEADER_RE.search(text, body_start)
        body_end = nxt.start() if nxt else len(text)
        m = _VERSION_RE.search(text, body_start, body_end)
        if m is None:
            return Err(
                ReleaseError(
                    kind="invalid_input",
                    message=f"missing version in {section} of {manifest}",
                    hint=manifest,
                )
            )
        return Ok((m.start(1), m.end(1), m.group(1)))

    return Err(
        ReleaseError(
            kind="invalid_input",
            message=f"no [workspace.package] or [package] section in {manifest}",
            hint=manifest,
        )
    )


def _find_header(text: str, section: str) -> int:
    m = re.search(rf"(?m)^{re.escape(section)}\s*$", text)
    return m.start() if m else -1


def manifest_version(text: str, *, manifest: str = "Cargo.toml") -> Result[str, ReleaseError]:
    span = _version_span(text, manifest=manifest)
    if isinstance(span, Err):
        return span
    return Ok(span.value[2])


def with_manifest_version(text: str, version: str, *, manifest: str = "Cargo.toml") -> Result[str, ReleaseError]:
    """Return text with the workspace version replaced."""
    span = _version_span(text, manifest=manifest)
    if isinstance(span, Err):
        return span
    start, end, _ = span.value
    return Ok(text[:start] + version + text[end:])


def read_version(vcs: VersionControl, manifest: str) -> Result[str, ReleaseError]:
    """Version in the working tree manifest."""
    text = vcs.read_file(manifest)
    if text is None:
        return Err(ReleaseError(kind="io_failed", message=f"manifest not found: {manifest}", hint=manifest))
    return manifest_version(text, manifest=manifest)


def committed_version_at(vcs: VersionControl, rev: str, manifest: str) -> Result[str, ReleaseError]:
    """Version recorded in the manifest of rev (a tag or commit)."""
    text = vcs.read_file_at(rev, manifest)
    if isinstance(text, Err):
        return Err(
            ReleaseError(
                kind="git_failed",
                message=f"cannot read {manifest} at {rev}: {text.error.message}",
            )
        )
    return manifest_version(text.value, manifest=manifest)
