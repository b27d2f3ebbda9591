"""Customization rules and their pure application.

A rule names a file, an anchor (regular expression) in upstream's version of
that file, and the literal text the fork wants in its place. Applying a rule
is a pure ``content -> content`` function, so it can be tested against
synthetic merge output without running git.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import cached_property
from typing import Literal

from fk.core.result import Err, Ok, Result
from fk.services.errors import ReleaseError

RuleCategory = Literal["rebrand", "ownership", "packaging", "behavior"]
RULE_CATEGORIES: tuple[RuleCategory, ...] = ("rebrand", "ownership", "packaging", "behavior")

_RULE_ID_RE = re.compile(r"^[a-z0-9][a-z0-9._-]*$")

_OURS = "<<<<<<<"
_BASE = "|||||||"
_SPLIT = "======="
_THEIRS = ">>>>>>>"


@dataclass(frozen=True)
class CustomizationRule:
    """A file-scoped override that must hold after every upstream merge.

    Attributes:
        id: Stable slug used to remove or accept the rule.
        scope_path: File the rule governs, relative to the workspace root.
        matcher: Regular expression (multiline) locating upstream's anchor.
        replacement: Literal text the anchor is replaced with.
        category: What kind of customization this is.
    """

    id: str
    scope_path: str
    matcher: str
    replacement: str
    category: RuleCategory = "rebrand"

    @cached_property
    def pattern(self) -> re.Pattern[str]:
        return re.compile(self.matcher, re.MULTILINE)

    def validate(self) -> Result[CustomizationRule, ReleaseError]:
        """Check the rule is well-formed before it enters a ledger."""
        if not _RULE_ID_RE.match(self.id):
            return _invalid(self, "rule id must be a lowercase slug")
        if not self.scope_path or self.scope_path.startswith("/") or ".." in self.scope_path.split("/"):
            return _invalid(self, f"scope path must be workspace-relative: {self.scope_path!r}")
        if not self.replacement:
            return _invalid(self, "replacement must not be empty")
        if self.category not in RULE_CATEGORIES:
            return _invalid(self, f"unknown category: {self.category}")
        try:
            re.compile(self.matcher, re.MULTILINE)
        except re.error as e:
            return _invalid(self, f"invalid matcher: {e}")
        return Ok(self)


def _invalid(rule: CustomizationRule, message: str) -> Err[ReleaseError]:
    return Err(ReleaseError(kind="invalid_input", message=f"rule {rule.id!r}: {message}"))


def has_conflict_markers(content: str) -> bool:
    return any(
        line.startswith((_OURS + " ", _THEIRS + " ")) or line.rstrip("\r") in (_OURS, _THEIRS)
        for line in content.splitlines()
    )


def resolve_conflicts(content: str, keep: Iterable[str]) -> str:
    """Collapse conflict blocks.

    A block whose "ours" side contains any of ``keep`` keeps ours; every
    other block keeps "theirs" (upstream). diff3-style base sections are
    dropped. Content without markers is returned unchanged. An unterminated
    block is left as-is.
    """
    if _OURS not in content:
        return content

    wanted = tuple(keep)
    lines = content.splitlines(keepends=True)
    out: list[str] = []
    i = 0
    while i < len(lines):
        if not lines[i].startswith(_OURS):
            out.append(lines[i])
            i += 1
            continue

        ours: list[str] = []
        theirs: list[str] = []
        section = ours
        j = i + 1
        closed = False
        while j < len(lines):
            line = lines[j]
            if line.startswith(_BASE):
                section = []
            elif line.startswith(_SPLIT) and line.rstrip("\r\n") == _SPLIT:
                section = theirs
            elif line.startswith(_THEIRS):
                closed = True
                break
            else:
                section.append(line)
            j += 1

        if not closed:
            out.extend(lines[i:])
            break

        ours_text = "".join(ours)
        if any(w in ours_text for w in wanted):
            out.extend(ours)
        else:
            out.extend(theirs)
        i = j + 1

    return "".join(out)


def is_satisfied(rule: CustomizationRule, content: str) -> bool:
    """True if content already carries the rule and needs no reconciliation."""
    return rule.replacement in content and not has_conflict_markers(content)


def apply_rule(
    rule: CustomizationRule,
    content: str,
    *,
    keep: Iterable[str] = (),
) -> Result[str, ReleaseError]:
    """Return content with the rule applied.

    Conflict blocks are collapsed first (favoring sides carrying the rule's
    replacement or any of ``keep``), then the anchor is replaced. Applying a
    rule to content that already contains its replacement changes nothing
    but the conflict collapse, so ``apply(r, apply(r, c)) == apply(r, c)``.

    Returns:
        Err(unresolvable_conflict) when neither the replacement nor the
        anchor can be found.
    """
    resolved = resolve_conflicts(content, (rule.replacement, *keep))
    if rule.replacement in resolved:
        return Ok(resolved)

    if rule.pattern.search(resolved) is None:
        return Err(
            ReleaseError(
                kind="unresolvable_conflict",
                message=f"{rule.scope_path}: anchor for rule {rule.id!r} not found",
                hint=f"upstream restructured the file; matcher was {rule.matcher!r}",
            )
        )

    return Ok(rule.pattern.sub(lambda _m: rule.replacement, resolved))
