from __future__ import annotations

import typer

from fk.cli.commands._helpers import fail, held_rules, require_checked_out, unwrap_or_exit
from fk.cli.context import build_context
from fk.core.errors import ErrorCode
from fk.core.result import Err
from fk.services.ledger.reconciler import reconcile as reconcile_service
from fk.services.ledger.reconciler import write_report
from fk.services.ledger.storage import read_ledger


def reconcile(
    upstream: str | None = typer.Argument(None, help="Ref to merge (default: upstream remote/branch)."),
    fetch: bool = typer.Option(True, "--fetch/--no-fetch", help="Fetch the upstream remote first."),
) -> None:
    """Merge upstream and re-apply the customization ledger."""
    ctx = build_context()
    branch = require_checked_out(ctx)
    ref = upstream or ctx.config.upstream.ref

    if fetch:
        fetched = ctx.repo.fetch(ctx.config.upstream.remote)
        if isinstance(fetched, Err):
            fail(ctx, f"fetch failed: {fetched.error.message}", code=ErrorCode.NETWORK_ERROR)

    ledger = unwrap_or_exit(read_ledger(path=ctx.workspace.ledger_path(ctx.config)), ctx)
    result = reconcile_service(
        vcs=ctx.repo,
        ledger=ledger,
        branch=branch,
        upstream_ref=ref,
        lock_path=ctx.workspace.lock_path(ctx.config),
        console=ctx.console,
        held=held_rules(ctx),
    )
    reconciled = unwrap_or_exit(result, ctx)
    unwrap_or_exit(write_report(path=ctx.workspace.report_path(ctx.config), report=reconciled.report), ctx)
