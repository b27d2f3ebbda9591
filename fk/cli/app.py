from __future__ import annotations

import os
from pathlib import Path

import typer

from fk import __version__
from fk.cli.commands.ledger_cmd import ledger_app
from fk.cli.commands.reconcile_cmd import reconcile
from fk.cli.commands.release_cmd import release_app
from fk.cli.commands.targets_cmd import targets
from fk.core.errors import ErrorCode
from fk.core.workspace import WORKSPACE_ENV, is_workspace_root


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(reconcile)
app.command()(targets)

# Sub-apps
app.add_typer(ledger_app, name="ledger")
app.add_typer(release_app, name="release")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        help="Fork checkout root (overrides auto detection)",
    ),
) -> None:
    if workspace is not None:
        root = workspace.expanduser().resolve()
        if not is_workspace_root(root):
            typer.echo(f"error: --workspace '{root}' has no fork.toml", err=True)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
        os.environ[WORKSPACE_ENV] = str(root)


def main() -> None:
    app()
