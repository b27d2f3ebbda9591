"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from fk.core.errors import ErrorCode
from fk.core.result import Ok, Result
from fk.output.console import Style
from fk.services.errors import ReleaseError

if TYPE_CHECKING:
    from fk.cli.context import CLIContext


T = TypeVar("T")


def unwrap_or_exit[T](result: Result[T, ReleaseError], ctx: CLIContext) -> T:
    """Return the Ok value, or print the error and exit with its code."""
    if isinstance(result, Ok):
        return result.value
    error = result.error
    ctx.console.error(error.message)
    if error.hint:
        ctx.console.print(f"hint: {error.hint}", Style.DIM)
    raise typer.Exit(code=int(error.exit_code))


def fail(ctx: CLIContext, message: str, *, code: ErrorCode) -> NoReturn:
    ctx.console.error(message)
    raise typer.Exit(code=int(code))


def require_checked_out(ctx: CLIContext) -> str:
    """The configured base branch, which must be checked out and clean."""
    branch = ctx.config.branch.name
    if ctx.repo.current_branch() != branch:
        fail(ctx, f"check out {branch} first", code=ErrorCode.USER_ERROR)
    if not ctx.repo.is_clean():
        fail(ctx, "working tree has uncommitted changes", code=ErrorCode.USER_ERROR)
    return branch


def held_rules(ctx: CLIContext) -> frozenset[str]:
    """Rules held for review by the last report; exits when it cannot be read."""
    from fk.services.ledger.reconciler import read_report

    report = unwrap_or_exit(read_report(path=ctx.workspace.report_path(ctx.config)), ctx)
    return report.held if report is not None else frozenset()
