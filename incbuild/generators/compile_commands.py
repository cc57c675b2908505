# SPDX-License-Identifier: MIT
"""compile_commands.json generator for IDE integration.

Generates a compile_commands.json file that IDEs and tools like
clang-tidy can use for code intelligence.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from incbuild.core.rules import Rule, RuleKind
from incbuild.core.subst import to_shell_command
from incbuild.generators.generator import BaseGenerator

if TYPE_CHECKING:
    from incbuild.core.project import Project

logger = logging.getLogger(__name__)


class CompileCommandsGenerator(BaseGenerator):
    """Generator for compile_commands.json.

    Creates a JSON compilation database in the format expected by
    clang tools, IDEs, and language servers.

    Format:
        [
            {
                "directory": "/path/to/project",
                "file": "src/main.c",
                "arguments": ["gcc", "-Isrc", "-c", "-o", "obj/src/main.o", ...],
                "command": "gcc -Isrc -c -o obj/src/main.o src/main.c",
                "output": "obj/src/main.o"
            },
            ...
        ]
    """

    filename = "compile_commands.json"

    def __init__(self) -> None:
        super().__init__("compile_commands")

    def _generate_impl(self, project: Project, output_file: Path) -> None:
        """Generate compile_commands.json.

        Args:
            project: Configured project to generate for.
            output_file: File to write.
        """
        directory = str(project.root_dir.absolute())
        entries = [
            self._make_entry(rule, directory)
            for rule in project.graph.rules_of_kind(RuleKind.COMPILE)
        ]

        with open(output_file, "w") as f:
            json.dump(entries, f, indent=2)
            f.write("\n")
        logger.info("Wrote %d entries to %s", len(entries), output_file)

    def _make_entry(self, rule: Rule, directory: str) -> dict[str, Any]:
        """Create a compile_commands.json entry for a compile rule."""
        command = rule.commands[0]
        return {
            "directory": directory,
            "file": rule.inputs[0],
            "arguments": list(command.argv),
            "command": to_shell_command(command, shell="bash"),
            "output": rule.output,
        }
