"""Release tag grammar and the validation gate.

Tags look like ``rust-v<major>.<minor>.<patch>`` with an optional
``-<channel>[.<n>]`` suffix where channel is ``alpha``, ``beta`` or the
fork's product channel. Numbers never carry leading zeros, so a parsed tag
formats back to exactly the same string.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Literal

from fk.core.config import DEFAULT_PRODUCT_CHANNEL, DEFAULT_TAG_PREFIX
from fk.core.result import Err, Ok, Result
from fk.services.errors import ReleaseError

__all__ = [
    "Channel",
    "Rejection",
    "TagGrammar",
    "VersionTag",
    "DEFAULT_GRAMMAR",
    "format_tag",
    "parse_tag",
    "parse_version",
    "validate",
]

_NUM = r"(0|[1-9]\d*)"


class Channel(Enum):
    """Release channel. Closed: every consumer must handle all four."""

    NONE = "none"
    ALPHA = "alpha"
    BETA = "beta"
    PRODUCT = "product"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TagGrammar:
    prefix: str = DEFAULT_TAG_PREFIX
    product_channel: str = DEFAULT_PRODUCT_CHANNEL

    def __post_init__(self) -> None:
        if self.product_channel in ("alpha", "beta") or not re.fullmatch(r"[a-z][a-z0-9]*", self.product_channel):
            raise ValueError(f"invalid product channel: {self.product_channel!r}")

    @cached_property
    def version_re(self) -> re.Pattern[str]:
        labels = "|".join(re.escape(x) for x in ("alpha", "beta", self.product_channel))
        return re.compile(rf"^{_NUM}\.{_NUM}\.{_NUM}(?:-({labels})(?:\.{_NUM})?)?$")

    def channel_for(self, label: str) -> Channel:
        match label:
            case "":
                return Channel.NONE
            case "alpha":
                return Channel.ALPHA
            case "beta":
                return Channel.BETA
            case _ if label == self.product_channel:
                return Channel.PRODUCT
            case _:
                raise AssertionError(f"unexpected channel label: {label}")


DEFAULT_GRAMMAR = TagGrammar()


@dataclass(frozen=True, slots=True)
class VersionTag:
    major: int
    minor: int
    patch: int
    channel: Channel
    # Literal pre-release word ("" for plain semver).
    label: str
    sequence: int | None
    prefix: str
    raw: str

    @property
    def version(self) -> str:
        """The version string without the tag prefix (e.g. ``0.88.0-beta.2``)."""
        out = f"{self.major}.{self.minor}.{self.patch}"
        if self.label:
            out += f"-{self.label}"
            if self.sequence is not None:
                out += f".{self.sequence}"
        return out

    @property
    def is_prerelease(self) -> bool:
        return self.channel in (Channel.ALPHA, Channel.BETA)

    def key(self) -> tuple[int, int, int, Channel, int | None]:
        return (self.major, self.minor, self.patch, self.channel, self.sequence)


RejectionReason = Literal["malformed", "version-mismatch"]


@dataclass(frozen=True, slots=True)
class Rejection:
    reason: RejectionReason
    message: str

    def to_error(self) -> ReleaseError:
        kind = "malformed_tag" if self.reason == "malformed" else "version_mismatch"
        return ReleaseError(kind=kind, message=self.message, hint=f"reason: {self.reason}")


def parse_version(
    text: str,
    *,
    grammar: TagGrammar = DEFAULT_GRAMMAR,
    prefix: str = "",
) -> VersionTag | None:
    """Parse a bare version (``1.2.3-beta.1``); None if it does not match."""
    m = grammar.version_re.match(text)
    if m is None:
        return None
    label = m.group(4) or ""
    seq = m.group(5)
    return VersionTag(
        major=int(m.group(1)),
        minor=int(m.group(2)),
        patch=int(m.group(3)),
        channel=grammar.channel_for(label),
        label=label,
        sequence=int(seq) if seq is not None else None,
        prefix=prefix,
        raw=f"{prefix}{text}",
    )


def parse_tag(raw: str, *, grammar: TagGrammar = DEFAULT_GRAMMAR) -> Result[VersionTag, Rejection]:
    if not raw.startswith(grammar.prefix):
        return Err(Rejection("malformed", f"tag {raw!r} does not start with {grammar.prefix!r}"))
    parsed = parse_version(raw[len(grammar.prefix) :], grammar=grammar, prefix=grammar.prefix)
    if parsed is None:
        return Err(
            Rejection(
                "malformed",
                f"tag {raw!r} does not match {grammar.prefix}X.Y.Z[-(alpha|beta|{grammar.product_channel})[.N]]",
            )
        )
    return Ok(parsed)


def format_tag(tag: VersionTag) -> str:
    return f"{tag.prefix}{tag.version}"


def validate(
    raw_tag: str,
    committed_version: str,
    *,
    grammar: TagGrammar = DEFAULT_GRAMMAR,
    sentinel: str | None = None,
) -> Result[VersionTag, Rejection]:
    """Gate a release: the tag must parse and equal the committed version.

    Args:
        raw_tag: The pushed tag.
        committed_version: Version recorded in the manifest of the tagged commit.
        sentinel: When given, a tag equal to the sentinel is rejected.
    """
    parsed = parse_tag(raw_tag, grammar=grammar)
    if isinstance(parsed, Err):
        return parsed
    tag = parsed.value

    committed = parse_version(committed_version.strip(), grammar=grammar)
    if committed is None:
        return Err(
            Rejection(
                "version-mismatch",
                f"committed version {committed_version!r} is not a release version",
            )
        )
    if committed.key() != tag.key():
        return Err(
            Rejection(
                "version-mismatch",
                f"tag {raw_tag} does not match committed version {committed.version}",
            )
        )
    if sentinel is not None and tag.version == sentinel:
        return Err(
            Rejection(
                "version-mismatch",
                f"tag {raw_tag} points at the sentinel version; stamp a release first",
            )
        )
    return Ok(tag)
