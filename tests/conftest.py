# SPDX-License-Identifier: MIT
"""Shared fixtures for incbuild tests."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable
from pathlib import Path

import pytest

from incbuild.core.config import BuildConfiguration, make_config
from incbuild.core.rules import RuleGraph, RuleKind
from incbuild.core.subst import Command
from incbuild.exec.runner import CommandResult


class FakeRunner:
    """Command runner that simulates tools instead of running them.

    Each command is matched to the rule it belongs to; the rule's outputs
    are written (directories created) and, if configured, its dependency
    record is written with the given content.

    Attributes:
        commands: Every command run, in order.
        existed: For each command, whether the rule's primary output
            existed when the command started.
    """

    def __init__(
        self,
        root: Path,
        graph: RuleGraph,
        *,
        depfiles: dict[str, str] | None = None,
        fail: Iterable[str] = (),
    ) -> None:
        self.root = root
        self.depfiles = depfiles or {}
        self.fail = set(fail)
        self.commands: list[Command] = []
        self.existed: list[bool] = []
        self._rules = {cmd: rule for rule in graph.rules for cmd in rule.commands}

    def run(self, command: Command) -> CommandResult:
        self.commands.append(command)
        rule = self._rules[command]
        self.existed.append((self.root / rule.output).exists())
        if rule.output in self.fail:
            return CommandResult(1, f"error: cannot build {rule.output}")
        if rule.kind == RuleKind.MKDIR:
            for path in rule.outputs:
                (self.root / path).mkdir(parents=True, exist_ok=True)
            return CommandResult(0)
        for path in rule.outputs:
            full = self.root / path
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_text(f"built by {rule.template}\n")
        if rule.depfile is not None and rule.depfile in self.depfiles:
            (self.root / rule.depfile).write_text(self.depfiles[rule.depfile])
        return CommandResult(0)

    def argvs(self) -> list[tuple[str, ...]]:
        return [c.argv for c in self.commands]


def write_files(root: Path, files: dict[str, str], mtime: float | None = None) -> None:
    """Create files under root, optionally with a fixed modification time."""
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        if mtime is not None:
            os.utime(path, (mtime, mtime))


@pytest.fixture
def make_project_config(tmp_path: Path) -> Callable[..., BuildConfiguration]:
    """Return a factory creating configurations rooted at tmp_path."""

    def factory(**settings: object) -> BuildConfiguration:
        return make_config(dict(settings), root_dir=tmp_path)

    return factory
