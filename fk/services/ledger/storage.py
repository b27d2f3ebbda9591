"""Ledger persistence.

The ledger is a human-edited JSON document; insertion order is application
order and is preserved verbatim on every write.

    {
      "schema": 1,
      "rules": [
        {"id": "npm-name", "scope_path": "codex-cli/package.json",
         "matcher": "\"name\": \"@openai/codex\"",
         "replacement": "\"name\": \"@echoflux537/codex\"",
         "category": "rebrand"}
      ]
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from fk.core.result import Err, Ok, Result
from fk.core.structured import as_str_dict, get_list, get_raw_str, get_str
from fk.platform.files import atomic_write_text
from fk.services.errors import ReleaseError
from fk.services.ledger.rules import RULE_CATEGORIES, CustomizationRule, RuleCategory

LEDGER_SCHEMA = 1


@dataclass(frozen=True, slots=True)
class Ledger:
    """Ordered customization rules. Mutated only by add/remove."""

    rules: tuple[CustomizationRule, ...] = ()

    def __len__(self) -> int:
        return len(self.rules)

    def get(self, rule_id: str) -> CustomizationRule | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def add(self, rule: CustomizationRule) -> Result[Ledger, ReleaseError]:
        """Append a rule; it runs after every existing rule."""
        valid = rule.validate()
        if isinstance(valid, Err):
            return valid
        if self.get(rule.id) is not None:
            return Err(ReleaseError(kind="invalid_input", message=f"duplicate rule id: {rule.id}"))
        return Ok(Ledger(rules=(*self.rules, rule)))

    def remove(self, rule_id: str) -> Result[Ledger, ReleaseError]:
        if self.get(rule_id) is None:
            return Err(ReleaseError(kind="invalid_input", message=f"unknown rule id: {rule_id}"))
        return Ok(Ledger(rules=tuple(r for r in self.rules if r.id != rule_id)))

    def scope_paths(self) -> tuple[str, ...]:
        """Governed files, in first-reference order."""
        return tuple(dict.fromkeys(r.scope_path for r in self.rules))


def read_ledger(*, path: Path) -> Result[Ledger, ReleaseError]:
    """Load the ledger; a missing file is an empty ledger."""
    if not path.exists():
        return Ok(Ledger())

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return Err(
            ReleaseError(kind="io_failed", message=f"failed to read ledger: {e}", hint=str(path))
        )

    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(
            ReleaseError(kind="invalid_input", message=f"invalid JSON in ledger: {e}", hint=str(path))
        )

    data = as_str_dict(obj)
    if data is None:
        return Err(ReleaseError(kind="invalid_input", message="ledger root must be an object", hint=str(path)))

    schema = data.get("schema")
    if schema != LEDGER_SCHEMA:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"unsupported ledger schema: {schema!r}",
                hint=f"expected {LEDGER_SCHEMA}",
            )
        )

    items = get_list(data, "rules")
    if items is None:
        return Err(ReleaseError(kind="invalid_input", message="ledger.rules must be a list", hint=str(path)))

    ledger = Ledger()
    for index, item in enumerate(items):
        parsed = _parse_rule(item, index=index)
        if isinstance(parsed, Err):
            return parsed
        added = ledger.add(parsed.value)
        if isinstance(added, Err):
            return added
        ledger = added.value

    return Ok(ledger)


def write_ledger(*, path: Path, ledger: Ledger) -> Result[None, ReleaseError]:
    payload: dict[str, object] = {
        "schema": LEDGER_SCHEMA,
        "rules": [
            {
                "id": r.id,
                "scope_path": r.scope_path,
                "matcher": r.matcher,
                "replacement": r.replacement,
                "category": r.category,
            }
            for r in ledger.rules
        ],
    }

    try:
        atomic_write_text(path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n")
    except OSError as e:
        return Err(
            ReleaseError(kind="io_failed", message=f"failed to write ledger: {e}", hint=str(path))
        )
    return Ok(None)


def _parse_rule(item: object, *, index: int) -> Result[CustomizationRule, ReleaseError]:
    data = as_str_dict(item)
    if data is None:
        return Err(ReleaseError(kind="invalid_input", message=f"ledger.rules[{index}] must be an object"))

    rule_id = get_str(data, "id")
    scope_path = get_str(data, "scope_path")
    matcher = get_raw_str(data, "matcher")
    replacement = get_raw_str(data, "replacement")
    category = get_str(data, "category") or "rebrand"

    if rule_id is None or scope_path is None or matcher is None or replacement is None:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"ledger.rules[{index}] is missing a field",
                hint="required: id, scope_path, matcher, replacement",
            )
        )
    if category not in RULE_CATEGORIES:
        return Err(
            ReleaseError(
                kind="invalid_input",
                message=f"ledger.rules[{index}]: unknown category {category!r}",
                hint=", ".join(RULE_CATEGORIES),
            )
        )

    cat: RuleCategory = category  # type: ignore[assignment]
    return Ok(
        CustomizationRule(
            id=rule_id,
            scope_path=scope_path,
            matcher=matcher,
            replacement=replacement,
            category=cat,
        )
    )
