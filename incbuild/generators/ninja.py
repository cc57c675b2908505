# SPDX-License-Identifier: MIT
"""Ninja build file generator.

Writes the rule graph as ``build.ninja`` in the project root. Every
RuleTemplate becomes a ninja ``rule`` and every Rule a ``build``
statement, so group templates stay shared the same way they are in the
graph. Per-edge values ($depfile, $extra_flags) become edge variables.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from incbuild.core.config import DependencyMode
from incbuild.core.errors import GenerateError
from incbuild.core.rules import Rule, RuleKind, RuleTemplate
from incbuild.core.subst import Command, escape, to_shell_command
from incbuild.generators.generator import BaseGenerator

if TYPE_CHECKING:
    from incbuild.core.project import Project

logger = logging.getLogger(__name__)

NINJA_REQUIRED_VERSION = "1.3"


def escape_path(path: str) -> str:
    """Escape a path for use in a ninja build line."""
    return escape(path).replace(" ", "$ ").replace(":", "$:")


class NinjaGenerator(BaseGenerator):
    """Generator for Ninja build files.

    Example:
        generator = NinjaGenerator()
        generator.generate(project)
        # Creates <root>/build.ninja
    """

    filename = "build.ninja"

    def __init__(self) -> None:
        super().__init__("ninja")

    def generate(self, project: Project, output_dir: Path | None = None) -> Path:
        """Write build.ninja; commands run from the project root."""
        if output_dir is not None and (
            Path(output_dir).resolve() != project.root_dir.resolve()
        ):
            raise GenerateError(
                "build.ninja must be written to the project root", str(output_dir)
            )
        return super().generate(project, output_dir)

    def _generate_impl(self, project: Project, output_file: Path) -> None:
        graph = project.graph
        project.prepare()

        if project.config.dependency_mode == DependencyMode.CONSOLIDATED:
            logger.warning(
                "Ninja cannot read the consolidated dependency record; "
                "header changes will not trigger rebuilds in build.ninja"
            )

        with open(output_file, "w") as f:
            self._write_header(f, project)
            for template in graph.templates.values():
                self._write_rule(f, template)
            for rule in graph.rules:
                self._write_build(f, rule)
            f.write("\n")
            if graph.defaults:
                f.write(f"default {' '.join(escape_path(p) for p in graph.defaults)}\n")

        logger.info("Wrote %s", output_file)

    def _write_header(self, f: TextIO, project: Project) -> None:
        f.write(f"# Generated by incbuild for project {project.config.name}\n")
        f.write("# Do not edit; regenerate with 'incbuild generate'.\n\n")
        f.write(f"ninja_required_version = {NINJA_REQUIRED_VERSION}\n")
        f.write("builddir = .\n")

    def _write_rule(self, f: TextIO, template: RuleTemplate) -> None:
        f.write(f"\nrule {template.name}\n")
        if template.pattern:
            f.write(f"  # {template.pattern}\n")
        command = to_shell_command(list(template.commands), shell="ninja")
        f.write(f"  command = {command}\n")
        if template.description:
            f.write(f"  description = {template.description}\n")
        if template.depfile and template.kind == RuleKind.COMPILE:
            f.write("  depfile = $depfile\n")

    def _write_build(self, f: TextIO, rule: Rule) -> None:
        line = "build " + " ".join(escape_path(p) for p in rule.outputs)
        line += f": {rule.template}"
        if rule.inputs:
            line += " " + " ".join(escape_path(p) for p in rule.inputs)
        if rule.implicit:
            line += " | " + " ".join(escape_path(p) for p in rule.implicit)
        if rule.order_only:
            line += " || " + " ".join(escape_path(p) for p in rule.order_only)
        f.write(line + "\n")
        if rule.depfile is not None and rule.kind == RuleKind.COMPILE:
            f.write(f"  depfile = {escape(rule.depfile)}\n")
        if rule.extra_flags:
            flags = Command(tuple(escape(flag) for flag in rule.extra_flags))
            f.write(f"  extra_flags = {to_shell_command(flags, shell='ninja')}\n")
