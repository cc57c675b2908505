# SPDX-License-Identifier: MIT
"""Build file generators for incbuild."""

from incbuild.generators.compile_commands import CompileCommandsGenerator
from incbuild.generators.generator import BaseGenerator, Generator
from incbuild.generators.ninja import NinjaGenerator

__all__ = [
    "BaseGenerator",
    "CompileCommandsGenerator",
    "Generator",
    "NinjaGenerator",
]
