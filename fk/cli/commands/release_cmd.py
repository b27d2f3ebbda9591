from __future__ import annotations

import typer

from fk.cli.commands._helpers import fail, require_checked_out, unwrap_or_exit
from fk.cli.context import CLIContext, build_context
from fk.core.errors import ErrorCode
from fk.core.result import Err
from fk.output.console import Style
from fk.services.release.build import JsonChecksumRecords
from fk.services.release.cargo import CargoBuilder
from fk.services.release.manifest import committed_version_at
from fk.services.release.npm import DryRunRegistry, NpmPackager, NpmRegistry
from fk.services.release.pipeline import ReleaseTools, run_release_pipeline
from fk.services.release.publish import Registry, decide
from fk.services.release.stamper import reset_to_sentinel, stamp_release
from fk.services.release.tag import parse_tag, validate
from fk.services.release.targets import active_targets

release_app = typer.Typer(add_completion=False, no_args_is_help=True, help="Cut and ship releases.")


@release_app.command("validate")
def validate_cmd(tag: str = typer.Argument(..., help="Release tag, e.g. rust-v0.88.0-beta.1")) -> None:
    """Check a tag against the version committed at it."""
    ctx = build_context()
    committed = unwrap_or_exit(committed_version_at(ctx.repo, tag, ctx.config.release.manifest), ctx)
    checked = validate(tag, committed, grammar=ctx.grammar, sentinel=ctx.config.release.sentinel)
    if isinstance(checked, Err):
        unwrap_or_exit(Err(checked.error.to_error()), ctx)
        return
    ctx.console.success(f"{tag}: {checked.value.version} (channel {checked.value.channel})")


@release_app.command("decide")
def decide_cmd(tag: str = typer.Argument(..., help="Release tag.")) -> None:
    """Show where a tag would be published."""
    ctx = build_context()
    parsed = parse_tag(tag, grammar=ctx.grammar)
    if isinstance(parsed, Err):
        unwrap_or_exit(Err(parsed.error.to_error()), ctx)
        return
    decision = decide(
        parsed.value,
        scope=ctx.config.publish.scope,
        primary_package=ctx.settings.primary_package,
        allowed=ctx.config.publish.allowed,
    )
    ctx.console.print(f"version:  {decision.version}")
    ctx.console.print(f"dist-tag: {decision.dist_tag}")
    for package in ctx.config.publish.packages:
        if decision.allows(package):
            ctx.console.print(f"publish:  {decision.scoped(package)}")
        else:
            ctx.console.print(f"withhold: {package}", Style.DIM)


@release_app.command("cut")
def cut(
    version: str = typer.Argument(..., help="Version to release, e.g. 0.88.0-cometix"),
    push: bool = typer.Option(False, "--push", help="Push the tag (and the reset branch) to the remote."),
) -> None:
    """Stamp a release commit, tag it, and reset the branch to the sentinel."""
    ctx = build_context()
    branch = require_checked_out(ctx)
    lock_path = ctx.workspace.lock_path(ctx.config)

    stamped = unwrap_or_exit(
        stamp_release(
            vcs=ctx.repo,
            branch=branch,
            version=version,
            manifest=ctx.config.release.manifest,
            sentinel=ctx.config.release.sentinel,
            lock_path=lock_path,
            console=ctx.console,
            grammar=ctx.grammar,
        ),
        ctx,
    )

    remote = ctx.config.branch.remote
    if push:
        pushed = ctx.repo.push(remote, f"refs/tags/{stamped.tag.raw}")
        if isinstance(pushed, Err):
            # Reset anyway; the local tag can be pushed later.
            ctx.console.error(f"tag push failed: {pushed.error.message}")

    unwrap_or_exit(reset_to_sentinel(vcs=ctx.repo, stamped=stamped, lock_path=lock_path, console=ctx.console), ctx)

    if push:
        pushed_branch = ctx.repo.push(remote, branch)
        if isinstance(pushed_branch, Err):
            fail(ctx, f"branch push failed: {pushed_branch.error.message}", code=ErrorCode.NETWORK_ERROR)
    else:
        ctx.console.info(f"push with: git push {remote} refs/tags/{stamped.tag.raw}")


def _tools(ctx: CLIContext, *, dry_run: bool) -> ReleaseTools:
    dist_dir = ctx.workspace.dist_dir(ctx.config)
    registry: Registry = DryRunRegistry(ctx.console) if dry_run else NpmRegistry(cwd=ctx.workspace.root)
    return ReleaseTools(
        vcs=ctx.repo,
        builder=CargoBuilder(
            repo=ctx.repo,
            worktrees_dir=ctx.workspace.worktrees_dir(ctx.config),
            out_dir=dist_dir / "bin",
            manifest=ctx.config.release.manifest,
            binary=ctx.config.release.binary,
        ),
        records=JsonChecksumRecords(ctx.workspace.builds_dir(ctx.config)),
        packager=NpmPackager(
            workspace_root=ctx.workspace.root,
            dist_dir=dist_dir,
            binary=ctx.config.release.binary,
        ),
        registry=registry,
        targets=active_targets(),
        console=ctx.console,
    )


@release_app.command("run")
def run(
    tag: str = typer.Argument(..., help="Pushed release tag."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Build and pack, but do not publish."),
) -> None:
    """CI entry point: validate, build, collect, publish."""
    ctx = build_context()
    outcome = run_release_pipeline(raw_tag=tag, settings=ctx.settings, tools=_tools(ctx, dry_run=dry_run))
    ctx.console.print(f"status: {outcome.status}", Style.HEADER)
    raise typer.Exit(code=int(outcome.exit_code))
