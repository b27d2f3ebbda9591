from __future__ import annotations

import typer

from fk.cli.context import build_context
from fk.output.console import Style, TableRow
from fk.services.release.targets import ALL_TARGETS


def targets(all_targets: bool = typer.Option(False, "--all", help="Include unsupported targets.")) -> None:
    """List platform targets a release builds."""
    ctx = build_context()
    rows = [
        TableRow(
            (t.triple, t.runner, t.runner_class, "" if t.supported else "(disabled)"),
            Style.DEFAULT if t.supported else Style.DIM,
        )
        for t in ALL_TARGETS
        if t.supported or all_targets
    ]
    ctx.console.table(("target", "runner", "class", ""), rows)
