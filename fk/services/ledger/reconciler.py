"""Merge upstream and re-apply the customization ledger.

``evaluate_ledger`` is the pure core: given a file reader it walks the ledger
in insertion order and returns the rewritten files plus a report.
``reconcile`` wraps it with the merge, the branch lock and the commit.

Rules are held back (not auto-applied) when they were stale or pending
review in the previous report and their file exists again: upstream
reintroduced the file, possibly with different content, and a human has to
confirm the rule still makes sense (``fk ledger accept``).
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from fk.core.result import Err, Ok, Result
from fk.core.structured import as_str_dict, get_str_list
from fk.git.branch import BranchHandle, take_handle, verify_handle
from fk.git.repository import VersionControl
from fk.output.console import ConsoleProtocol
from fk.platform.files import LockHeld, atomic_write_text, exclusive_lock
from fk.services.errors import ReleaseError
from fk.services.ledger.rules import apply_rule, has_conflict_markers, is_satisfied
from fk.services.ledger.storage import Ledger

REPORT_SCHEMA = 1

FileReader = Callable[[str], str | None]


@dataclass(frozen=True, slots=True)
class MergeReport:
    """What reconciliation did to each ledger rule.

    Attributes:
        upstream_ref: Ref that was merged ("" for a drift check).
        reapplied: Rules whose transformation had to be applied again.
        satisfied: Rules already present after the merge.
        stale: Rules whose file no longer exists.
        needs_review: Rules held back for manual re-validation.
        conflicted: Paths git reported as conflicted.
    """

    upstream_ref: str
    reapplied: tuple[str, ...] = ()
    satisfied: tuple[str, ...] = ()
    stale: tuple[str, ...] = ()
    needs_review: tuple[str, ...] = ()
    conflicted: tuple[str, ...] = ()

    @property
    def held(self) -> frozenset[str]:
        """Rules the next run must not apply without review."""
        return frozenset(self.stale) | frozenset(self.needs_review)


@dataclass(frozen=True, slots=True)
class LedgerEvaluation:
    report: MergeReport
    # Only files whose content changed.
    writes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ReconciledCommit:
    prior: BranchHandle
    handle: BranchHandle
    report: MergeReport

    @property
    def committed(self) -> bool:
        return self.handle.head != self.prior.head


def evaluate_ledger(
    ledger: Ledger,
    read: FileReader,
    *,
    held: frozenset[str] = frozenset(),
    conflicted: tuple[str, ...] = (),
    upstream_ref: str = "",
) -> Result[LedgerEvaluation, ReleaseError]:
    """Apply every rule in ledger order against the files ``read`` returns.

    Returns:
        Err(unresolvable_conflict) if a rule's anchor is gone, or if any
        conflicted path still has markers once all rules ran.
    """
    originals: dict[str, str | None] = {}
    current: dict[str, str] = {}

    def load(path: str) -> str | None:
        if path not in originals:
            content = read(path)
            originals[path] = content
            if content is not None:
                current[path] = content
        return current.get(path)

    keep_by_path: dict[str, list[str]] = {}
    for rule in ledger.rules:
        keep_by_path.setdefault(rule.scope_path, []).append(rule.replacement)

    reapplied: list[str] = []
    satisfied: list[str] = []
    stale: list[str] = []
    needs_review: list[str] = []

    for rule in ledger.rules:
        content = load(rule.scope_path)
        if content is None:
            stale.append(rule.id)
            continue
        if rule.id in held:
            needs_review.append(rule.id)
            continue
        if is_satisfied(rule, content):
            satisfied.append(rule.id)
            continue

        applied = apply_rule(rule, content, keep=keep_by_path[rule.scope_path])
        if isinstance(applied, Err):
            return applied
        current[rule.scope_path] = applied.value
        reapplied.append(rule.id)

    for path in conflicted:
        content = load(path)
        if content is not None and has_conflict_markers(content):
            governed = path in keep_by_path
            return Err(
                ReleaseError(
                    kind="unresolvable_conflict",
                    message=f"{path}: conflict markers remain after reconciliation",
                    hint=(
                        "a customized hunk conflicts outside every rule anchor"
                        if governed
                        else "file is not governed by the ledger; resolve it by hand"
                    ),
                )
            )

    writes = {p: c for p, c in current.items() if originals.get(p) != c}
    report = MergeReport(
        upstream_ref=upstream_ref,
        reapplied=tuple(reapplied),
        satisfied=tuple(satisfied),
        stale=tuple(stale),
        needs_review=tuple(needs_review),
        conflicted=conflicted,
    )
    return Ok(LedgerEvaluation(report=report, writes=writes))


def check_ledger(
    *,
    vcs: VersionControl,
    ledger: Ledger,
    console: ConsoleProtocol,
    held: frozenset[str] = frozenset(),
) -> Result[LedgerEvaluation, ReleaseError]:
    """Evaluate the ledger against the working tree without writing anything."""
    evaluation = evaluate_ledger(ledger, vcs.read_file, held=held)
    if isinstance(evaluation, Ok):
        _warn(console, evaluation.value.report)
    return evaluation


def reconcile(
    *,
    vcs: VersionControl,
    ledger: Ledger,
    branch: str,
    upstream_ref: str,
    lock_path: Path,
    console: ConsoleProtocol,
    held: frozenset[str] = frozenset(),
) -> Result[ReconciledCommit, ReleaseError]:
    """Merge upstream_ref into branch and re-apply the ledger.

    The branch must be checked out. On an unresolvable conflict nothing is
    committed and the working tree stays mid-merge for manual resolution.
    """
    try:
        with exclusive_lock(lock_path):
            return _reconcile_locked(
                vcs=vcs,
                ledger=ledger,
                branch=branch,
                upstream_ref=upstream_ref,
                console=console,
                held=held,
            )
    except LockHeld as e:
        return Err(
            ReleaseError(
                kind="branch_locked",
                message=f"{branch} is being updated by another run",
                hint=str(e),
            )
        )


def _reconcile_locked(
    *,
    vcs: VersionControl,
    ledger: Ledger,
    branch: str,
    upstream_ref: str,
    console: ConsoleProtocol,
    held: frozenset[str],
) -> Result[ReconciledCommit, ReleaseError]:
    prior = take_handle(vcs, branch)
    if isinstance(prior, Err):
        return Err(ReleaseError(kind="git_failed", message=prior.error.message, hint=branch))

    console.header(f"Merging {upstream_ref} into {branch} @ {prior.value.short_head}")
    merged = vcs.merge(upstream_ref)
    if isinstance(merged, Err):
        return Err(ReleaseError(kind="git_failed", message=merged.error.message, hint=upstream_ref))
    outcome = merged.value
    if outcome.conflicted:
        console.info(f"{len(outcome.conflicted)} conflicted path(s): {', '.join(outcome.conflicted)}")

    evaluation = evaluate_ledger(
        ledger,
        vcs.read_file,
        held=held,
        conflicted=outcome.conflicted,
        upstream_ref=upstream_ref,
    )
    if isinstance(evaluation, Err):
        console.error(evaluation.error.pretty())
        console.info("merge left in progress: resolve, then commit (or `git merge --abort`)")
        return evaluation

    for path, content in evaluation.value.writes.items():
        vcs.write_file(path, content)

    report = evaluation.value.report
    _warn(console, report)
    for rule_id in report.reapplied:
        console.print(f"  reapplied {rule_id}")

    if outcome.up_to_date and not evaluation.value.writes:
        console.success(f"{branch} already contains {upstream_ref}; ledger satisfied")
        return Ok(ReconciledCommit(prior=prior.value, handle=prior.value, report=report))

    # Nobody may have moved the branch while we held the merge.
    still = verify_handle(vcs, prior.value)
    if isinstance(still, Err):
        return Err(ReleaseError(kind="branch_moved", message=still.error.message))

    if outcome.up_to_date:
        message = f"Reapply {len(report.reapplied)} fork customization(s)"
    else:
        message = f"Merge {upstream_ref} into {branch}"
        if report.reapplied:
            message += f"\n\nReapplied: {', '.join(report.reapplied)}"

    committed = vcs.commit(message)
    if isinstance(committed, Err):
        return Err(ReleaseError(kind="git_failed", message=committed.error.message))

    handle = BranchHandle(branch=branch, head=committed.value)
    moved = verify_handle(vcs, handle)
    if isinstance(moved, Err):
        return Err(ReleaseError(kind="branch_moved", message=moved.error.message))

    console.success(
        f"{branch} @ {handle.short_head}: {len(report.reapplied)} reapplied, "
        f"{len(report.satisfied)} satisfied"
    )
    return Ok(ReconciledCommit(prior=prior.value, handle=handle, report=report))


def _warn(console: ConsoleProtocol, report: MergeReport) -> None:
    for rule_id in report.stale:
        console.warning(f"stale rule {rule_id}: file no longer exists (remove it from the ledger)")
    for rule_id in report.needs_review:
        console.warning(f"rule {rule_id} needs review: its file reappeared (`fk ledger accept {rule_id}`)")


def write_report(*, path: Path, report: MergeReport) -> Result[None, ReleaseError]:
    payload: dict[str, object] = {
        "schema": REPORT_SCHEMA,
        "upstream_ref": report.upstream_ref,
        "reapplied": list(report.reapplied),
        "satisfied": list(report.satisfied),
        "stale": list(report.stale),
        "needs_review": list(report.needs_review),
        "conflicted": list(report.conflicted),
    }
    try:
        atomic_write_text(path, json.dumps(payload, indent=2) + "\n")
    except OSError as e:
        return Err(ReleaseError(kind="io_failed", message=f"failed to write report: {e}", hint=str(path)))
    return Ok(None)


def read_report(*, path: Path) -> Result[MergeReport | None, ReleaseError]:
    """Load the last persisted report; None if there is none yet."""
    if not path.exists():
        return Ok(None)
    try:
        obj: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        return Err(ReleaseError(kind="io_failed", message=f"failed to read report: {e}", hint=str(path)))

    data = as_str_dict(obj)
    if data is None or data.get("schema") != REPORT_SCHEMA:
        return Err(ReleaseError(kind="invalid_input", message="unsupported reconcile report", hint=str(path)))

    def ids(key: str) -> tuple[str, ...]:
        return tuple(get_str_list(data, key) or ())

    upstream_ref = data.get("upstream_ref")
    return Ok(
        MergeReport(
            upstream_ref=upstream_ref if isinstance(upstream_ref, str) else "",
            reapplied=ids("reapplied"),
            satisfied=ids("satisfied"),
            stale=ids("stale"),
            needs_review=ids("needs_review"),
            conflicted=ids("conflicted"),
        )
    )


def accept_rules(report: MergeReport, rule_ids: tuple[str, ...]) -> MergeReport:
    """Release held rules after a human re-validated them."""
    drop = frozenset(rule_ids)
    return MergeReport(
        upstream_ref=report.upstream_ref,
        reapplied=report.reapplied,
        satisfied=report.satisfied,
        stale=tuple(r for r in report.stale if r not in drop),
        needs_review=tuple(r for r in report.needs_review if r not in drop),
        conflicted=report.conflicted,
    )
