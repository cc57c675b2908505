# SPDX-License-Identifier: MIT
"""
incbuild: a configuration-driven incremental build engine.

incbuild reads a declarative project description (sources, include paths,
exclusions, target type), builds a source → object → target rule graph and
rebuilds only what is stale. The same graph can be written out as a Ninja
file or a compile_commands.json database.
"""

from __future__ import annotations

# Re-export commonly used classes for convenient imports
from incbuild.core.config import (
    BuildConfiguration,
    DependencyMode,
    Goal,
    TargetType,
    load_config,
    make_config,
)
from incbuild.core.errors import IncbuildError
from incbuild.core.project import Project

__version__ = "0.1.0"

__all__ = [
    "BuildConfiguration",
    "DependencyMode",
    "Goal",
    "IncbuildError",
    "Project",
    "TargetType",
    "__version__",
    "load_config",
    "make_config",
]
