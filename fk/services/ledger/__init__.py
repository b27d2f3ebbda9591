"""Customization ledger and merge reconciliation."""

from fk.services.ledger.reconciler import (
    LedgerEvaluation,
    MergeReport,
    ReconciledCommit,
    accept_rules,
    check_ledger,
    evaluate_ledger,
    read_report,
    reconcile,
    write_report,
)
from fk.services.ledger.rules import (
    RULE_CATEGORIES,
    CustomizationRule,
    RuleCategory,
    apply_rule,
    has_conflict_markers,
    is_satisfied,
    resolve_conflicts,
)
from fk.services.ledger.storage import Ledger, read_ledger, write_ledger

__all__ = [
    "RULE_CATEGORIES",
    "CustomizationRule",
    "Ledger",
    "LedgerEvaluation",
    "MergeReport",
    "ReconciledCommit",
    "RuleCategory",
    "accept_rules",
    "apply_rule",
    "check_ledger",
    "evaluate_ledger",
    "has_conflict_markers",
    "is_satisfied",
    "read_ledger",
    "read_report",
    "reconcile",
    "resolve_conflicts",
    "write_ledger",
    "write_report",
]
