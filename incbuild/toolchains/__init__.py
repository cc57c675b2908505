# SPDX-License-Identifier: MIT
"""Toolchains that know how to compile and link."""

from incbuild.toolchains.gcc import GccToolchain
from incbuild.toolchains.toolchain import BaseToolchain, SourceHandler

__all__ = ["BaseToolchain", "GccToolchain", "SourceHandler"]
