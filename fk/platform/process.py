"""The single doorway to git, cargo and npm.

Callers get ``Ok(stdout)`` or ``Err(ProcessError)``; nothing here raises for a
failing tool. Architecture tests keep ``subprocess`` out of every other module.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from fk.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]

_SHOWN_ARGS = 3


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A tool invocation that did not exit 0.

    ``returncode`` is -1 when the tool never started or was killed on timeout.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def tool(self) -> str:
        return self.command[0] if self.command else ""

    @property
    def detail(self) -> str:
        """Most useful single line of output for error messages."""
        return self.stderr.strip() or self.stdout.strip() or str(self)

    def __str__(self) -> str:
        shown = " ".join(self.command[:_SHOWN_ARGS])
        if len(self.command) > _SHOWN_ARGS:
            shown += " ..."
        return f"{shown} failed (exit {self.returncode})"


def run(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run ``cmd`` in ``cwd`` and capture its output as text.

    ``env`` is layered over the current environment, so callers only pass the
    variables they change (``CARGO_TARGET_DIR``, ``npm_config_*``).
    """
    command = tuple(cmd)
    merged_env = {**os.environ, **env} if env else None
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=merged_env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return Err(ProcessError(command, -1, partial, f"{command[0]} timed out after {timeout}s", timed_out=True))
    except OSError as e:
        return Err(ProcessError(command, -1, "", f"cannot start {command[0]}: {e}"))

    if proc.returncode == 0:
        return Ok(proc.stdout)
    return Err(ProcessError(command, proc.returncode, proc.stdout, proc.stderr))
