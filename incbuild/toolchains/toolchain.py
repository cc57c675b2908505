# SPDX-License-Identifier: MIT
"""Toolchain base implementation.

A Toolchain is a coordinated set of tools that work together (e.g. the GCC
toolchain: gcc, g++, ar, objcopy, objdump, nm with compatible flags). The
rule generator asks it how to compile each suffix and which driver links.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from incbuild.core.config import TargetType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceHandler:
    """How a toolchain compiles one source suffix.

    Attributes:
        tool: Compiler tool name ("cc" or "cxx").
        language: Language of the source ("c", "cxx", "asm", "asm-cpp").
        deps_style: Dependency output style ("gcc"), or None if the source
            cannot have header dependencies.
    """

    tool: str
    language: str
    deps_style: str | None = "gcc"


class BaseToolchain(ABC):
    """Abstract base class for toolchains."""

    # Default language priorities (higher = stronger)
    DEFAULT_LANGUAGE_PRIORITY: dict[str, int] = {
        "asm": 0,
        "asm-cpp": 0,
        "c": 1,
        "cxx": 2,
    }

    def __init__(self, name: str, prefix: str = "") -> None:
        """Initialize a toolchain.

        Args:
            name: Toolchain name.
            prefix: Prefix prepended to every tool command
                (e.g. "arm-none-eabi-").
        """
        self._name = name
        self.prefix = prefix

    @property
    def name(self) -> str:
        return self._name

    @property
    def language_priority(self) -> dict[str, int]:
        """Override in subclasses if needed."""
        return self.DEFAULT_LANGUAGE_PRIORITY

    @abstractmethod
    def tool_command(self, tool: str) -> str:
        """Return the command for a tool name ("cc", "ar", ...)."""
        ...

    @abstractmethod
    def get_source_handler(self, suffix: str) -> SourceHandler | None:
        """Return handler for source file suffix, or None if not handled."""
        ...

    @abstractmethod
    def default_vars(self) -> dict[str, object]:
        """Return the command templates and tool variables."""
        ...

    def command_template(self, name: str) -> list[str]:
        """Return a command template from default_vars() as a token list."""
        value = self.default_vars()[name]
        if not isinstance(value, list):
            raise KeyError(name)
        return [str(v) for v in value]

    def get_compile_flags_for_target_type(self, target_type: TargetType) -> list[str]:
        return []

    def get_link_flags_for_target_type(self, target_type: TargetType) -> list[str]:
        return []

    def get_linker_for_languages(self, languages: Iterable[str]) -> str:
        """Determine which tool should link based on languages used.

        Unknown languages (sources built by custom commands) rank above
        every known one, so they select the C++ driver. Assembly ranks with
        C, and prebuilt objects and archives carry no language, so only C++
        or custom-built sources switch away from the C driver.

        Args:
            languages: Language names (e.g. {"c", "cxx"}).

        Returns:
            Tool name to use for linking ("cc" or "cxx").
        """
        priority = self.language_priority
        strongest = max(
            (priority.get(lang, max(priority.values()) + 1) for lang in languages),
            default=priority["c"],
        )
        if strongest <= priority["c"]:
            return "cc"
        return "cxx"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r}, prefix={self.prefix!r})"
