# SPDX-License-Identifier: MIT
"""Command execution.

The runner is the only place that starts processes. It takes a fully
formed Command, runs it in the project root and reports the exit status
and combined output; it never retries.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from incbuild.core.subst import Command

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one command.

    Attributes:
        returncode: Process exit status (127 if it could not be started).
        output: Combined stdout/stderr text (stderr only when stdout was
            redirected to a file).
    """

    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs commands as subprocesses.

    Attributes:
        cwd: Working directory of every command.
        env: Environment of every command (default: inherited).
    """

    def __init__(self, cwd: Path | str, env: Mapping[str, str] | None = None) -> None:
        self.cwd = Path(cwd)
        self.env = dict(env) if env is not None else os.environ.copy()

    def run(self, command: Command) -> CommandResult:
        """Run one command and wait for it."""
        logger.debug("Running %s", command)
        try:
            if command.stdout is not None:
                stdout_path = self.cwd / command.stdout
                with open(stdout_path, "wb") as f:
                    result = subprocess.run(
                        list(command.argv),
                        cwd=self.cwd,
                        stdout=f,
                        stderr=subprocess.PIPE,
                        env=self.env,
                    )
                output = result.stderr
            else:
                result = subprocess.run(
                    list(command.argv),
                    cwd=self.cwd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    env=self.env,
                )
                output = result.stdout
        except OSError as e:
            return CommandResult(127, f"{command.argv[0]}: {e}")
        text = output.decode("utf-8", "replace").strip()
        return CommandResult(result.returncode, text)

    def __repr__(self) -> str:
        return f"CommandRunner({str(self.cwd)!r})"
