from __future__ import annotations

from dataclasses import dataclass

import typer

from fk.core.config import Config, load_config
from fk.core.errors import ErrorCode
from fk.core.result import Err
from fk.core.workspace import Workspace, detect_workspace
from fk.git.repository import Repository
from fk.output.console import ConsoleProtocol, RichConsole
from fk.services.release.pipeline import ReleaseSettings
from fk.services.release.tag import TagGrammar


@dataclass(frozen=True, slots=True)
class CLIContext:
    workspace: Workspace
    config: Config
    console: ConsoleProtocol
    repo: Repository

    @property
    def grammar(self) -> TagGrammar:
        return TagGrammar(
            prefix=self.config.release.tag_prefix,
            product_channel=self.config.release.product_channel,
        )

    @property
    def settings(self) -> ReleaseSettings:
        return ReleaseSettings(
            manifest=self.config.release.manifest,
            sentinel=self.config.release.sentinel,
            scope=self.config.publish.scope,
            packages=self.config.publish.packages,
            allowed=self.config.publish.allowed,
            grammar=self.grammar,
        )


def build_context() -> CLIContext:
    workspace_result = detect_workspace()
    if isinstance(workspace_result, Err):
        typer.echo(f"error: {workspace_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    workspace = workspace_result.value
    config_result = load_config(workspace.config_path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    try:
        config = config_result.value
        # Surfaces an invalid product channel before any command runs.
        TagGrammar(prefix=config.release.tag_prefix, product_channel=config.release.product_channel)
    except ValueError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(
        workspace=workspace,
        config=config,
        console=RichConsole(),
        repo=Repository(workspace.root),
    )
