# SPDX-License-Identifier: MIT
"""Generator protocol for build file generation.

Generators take a configured Project and write its rule graph in another
format (a Ninja build file, a compilation database).
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from incbuild.core.project import Project


@runtime_checkable
class Generator(Protocol):
    """Protocol for build file generators."""

    @property
    def name(self) -> str:
        """Generator name (e.g., 'ninja', 'compile_commands')."""
        ...

    def generate(self, project: Project, output_dir: Path | None = None) -> Path:
        """Generate build files for a project.

        Args:
            project: The configured project to generate for.
            output_dir: Directory to write output files to (default: the
                project root).

        Returns:
            The file written.
        """
        ...


class BaseGenerator:
    """Base class for generators with common functionality."""

    # File name written by the generator
    filename = ""

    def __init__(self, name: str) -> None:
        """Initialize a generator.

        Args:
            name: Generator name.
        """
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def generate(self, project: Project, output_dir: Path | None = None) -> Path:
        """Write the output file and return its path."""
        output_dir = Path(output_dir) if output_dir is not None else project.root_dir
        output_dir.mkdir(parents=True, exist_ok=True)
        output_file = output_dir / self.filename
        self._generate_impl(project, output_file)
        return output_file

    def _generate_impl(self, project: Project, output_file: Path) -> None:
        """Generate build files. Subclasses must implement."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"
