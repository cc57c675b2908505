# SPDX-License-Identifier: MIT
"""Custom exceptions for incbuild.

All incbuild exceptions inherit from IncbuildError, which includes
optional context information (usually a path) for better error messages.
"""

from __future__ import annotations


class IncbuildError(Exception):
    """Base class for all incbuild exceptions.

    Attributes:
        message: The error message.
        context: Optional context (config file, rule output) for the error.
    """

    def __init__(self, message: str, context: str | None = None) -> None:
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.context:
            return f"{self.context}: {self.message}"
        return self.message


class ConfigureError(IncbuildError):
    """Invalid build configuration.

    Raised before any rule is generated or any build step runs.
    """


class EmptySourceSetError(ConfigureError):
    """Source discovery produced no source files."""

    def __init__(self, context: str | None = None) -> None:
        super().__init__("no source files found after filtering", context)


class UnknownTargetTypeError(ConfigureError):
    """The configured target type is not recognized.

    Attributes:
        target_type: The unrecognized value.
    """

    def __init__(self, target_type: str, context: str | None = None) -> None:
        self.target_type = target_type
        super().__init__(f"unknown target type: {target_type!r}", context)


class ObjectPathCollisionError(ConfigureError):
    """Two distinct sources map to the same object file.

    Attributes:
        object_path: The contested object path.
        sources: The sources mapping onto it.
    """

    def __init__(
        self, object_path: str, sources: list[str], context: str | None = None
    ) -> None:
        self.object_path = object_path
        self.sources = sources
        joined = ", ".join(sources)
        super().__init__(
            f"object path collision: {object_path} built from {joined}", context
        )


class GenerateError(IncbuildError):
    """Error during rule or build file generation."""


class SubstitutionError(IncbuildError):
    """Error during command template substitution."""


class MissingVariableError(SubstitutionError):
    """Referenced variable does not exist.

    Attributes:
        variable: The name of the missing variable.
    """

    def __init__(self, variable: str, context: str | None = None) -> None:
        self.variable = variable
        super().__init__(f"undefined variable: ${variable}", context)


class DependencyCycleError(IncbuildError):
    """Circular dependency detected in the build graph.

    Attributes:
        cycle: The paths forming the cycle.
    """

    def __init__(self, cycle: list[str], context: str | None = None) -> None:
        self.cycle = cycle
        cycle_str = " -> ".join(cycle)
        super().__init__(f"dependency cycle: {cycle_str}", context)


class MissingSourceError(IncbuildError):
    """An input file does not exist and no rule produces it.

    Attributes:
        path: The path to the missing file.
    """

    def __init__(self, path: str, context: str | None = None) -> None:
        self.path = path
        super().__init__(f"input not found and no rule to make it: {path}", context)


class BuildError(IncbuildError):
    """One or more rules failed during the build.

    Attributes:
        failed: Outputs of the rules that failed.
    """

    def __init__(self, failed: list[str], context: str | None = None) -> None:
        self.failed = failed
        super().__init__(f"build failed: {', '.join(failed)}", context)


class DependencyRecordError(IncbuildError):
    """A dependency record could not be parsed.

    Callers treat the affected objects as having unknown dependencies.
    """
