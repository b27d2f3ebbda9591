from __future__ import annotations

import typer

from fk.cli.commands._helpers import fail, held_rules, unwrap_or_exit
from fk.cli.context import build_context
from fk.core.errors import ErrorCode
from fk.output.console import Style, TableRow
from fk.services.ledger.reconciler import accept_rules, check_ledger, read_report, write_report
from fk.services.ledger.rules import RULE_CATEGORIES, CustomizationRule
from fk.services.ledger.storage import read_ledger, write_ledger

ledger_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Edit and check the ledger.")


@ledger_app.command("list")
def list_rules() -> None:
    """Show rules in application order."""
    ctx = build_context()
    ledger = unwrap_or_exit(read_ledger(path=ctx.workspace.ledger_path(ctx.config)), ctx)
    if not ledger.rules:
        ctx.console.print("ledger is empty", Style.DIM)
        return
    rows = [
        TableRow((str(index), rule.id, rule.category, rule.scope_path, f"{rule.matcher!r} -> {rule.replacement!r}"))
        for index, rule in enumerate(ledger.rules, start=1)
    ]
    ctx.console.table(("#", "id", "category", "file", "rewrite"), rows)


@ledger_app.command("add")
def add_rule(
    rule_id: str = typer.Option(..., "--id", help="Unique slug for the rule."),
    path: str = typer.Option(..., "--path", help="Governed file, relative to the workspace."),
    match: str = typer.Option(..., "--match", help="Regex locating upstream's anchor."),
    replace: str = typer.Option(..., "--replace", help="Literal replacement text."),
    category: str = typer.Option("rebrand", "--category", help=f"One of: {', '.join(RULE_CATEGORIES)}."),
) -> None:
    """Append a rule; it runs after every existing rule."""
    ctx = build_context()
    if category not in RULE_CATEGORIES:
        fail(ctx, f"unknown category: {category}", code=ErrorCode.USER_ERROR)

    ledger_path = ctx.workspace.ledger_path(ctx.config)
    ledger = unwrap_or_exit(read_ledger(path=ledger_path), ctx)
    rule = CustomizationRule(
        id=rule_id,
        scope_path=path,
        matcher=match,
        replacement=replace,
        category=category,  # type: ignore[arg-type]
    )
    updated = unwrap_or_exit(ledger.add(rule), ctx)
    unwrap_or_exit(write_ledger(path=ledger_path, ledger=updated), ctx)
    ctx.console.success(f"added {rule_id} (#{len(updated)})")


@ledger_app.command("remove")
def remove_rule(rule_id: str = typer.Argument(..., help="Rule id to remove.")) -> None:
    """Remove a rule (the only way a stale rule leaves the ledger)."""
    ctx = build_context()
    ledger_path = ctx.workspace.ledger_path(ctx.config)
    ledger = unwrap_or_exit(read_ledger(path=ledger_path), ctx)
    updated = unwrap_or_exit(ledger.remove(rule_id), ctx)
    unwrap_or_exit(write_ledger(path=ledger_path, ledger=updated), ctx)
    ctx.console.success(f"removed {rule_id}")


@ledger_app.command("check")
def check() -> None:
    """Report drift between the working tree and the ledger without writing."""
    ctx = build_context()
    ledger = unwrap_or_exit(read_ledger(path=ctx.workspace.ledger_path(ctx.config)), ctx)
    evaluation = unwrap_or_exit(
        check_ledger(vcs=ctx.repo, ledger=ledger, console=ctx.console, held=held_rules(ctx)),
        ctx,
    )
    report = evaluation.report
    for rule_id in report.reapplied:
        ctx.console.warning(f"{rule_id} is not applied in the working tree")
    ctx.console.print(
        f"{len(report.satisfied)} satisfied, {len(report.reapplied)} drifted, "
        f"{len(report.stale)} stale, {len(report.needs_review)} pending review"
    )
    if report.reapplied:
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))


@ledger_app.command("accept")
def accept(rule_ids: list[str] = typer.Argument(..., help="Rules re-validated by hand.")) -> None:
    """Let held rules (stale or pending review) apply again on the next reconcile."""
    ctx = build_context()
    report_path = ctx.workspace.report_path(ctx.config)
    report = unwrap_or_exit(read_report(path=report_path), ctx)
    if report is None:
        fail(ctx, "no reconcile report yet; nothing is held", code=ErrorCode.USER_ERROR)
    unknown = sorted(set(rule_ids) - report.held)
    if unknown:
        fail(ctx, f"not held: {', '.join(unknown)}", code=ErrorCode.USER_ERROR)
    unwrap_or_exit(write_report(path=report_path, report=accept_rules(report, tuple(rule_ids))), ctx)
    ctx.console.success(f"accepted {', '.join(rule_ids)}")
