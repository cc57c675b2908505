# SPDX-License-Identifier: MIT
"""Running rules: command execution and incremental scheduling."""

from incbuild.exec.executor import BuildResult, Executor
from incbuild.exec.runner import CommandResult, CommandRunner

__all__ = ["BuildResult", "CommandResult", "CommandRunner", "Executor"]
