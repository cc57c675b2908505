# SPDX-License-Identifier: MIT
"""Project: one configured build.

The Project ties the pipeline together: configuration, source discovery,
object mapping and rule generation. It also implements the operations
offered on top of the graph: build, clean and the diagnostic dump.

Example:
    project = Project.from_file("incbuild.toml")
    result = project.build(jobs=8)
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import IO, Any

from incbuild.core.config import (
    DEFAULT_CONFIG_FILE,
    BuildConfiguration,
    Goal,
    load_config,
    write_config_stamp,
    write_inputs_stamp,
)
from incbuild.core.depends import DependencyTracker
from incbuild.core.discovery import SourceSet, discover_sources
from incbuild.core.errors import (
    BuildError,
    ConfigureError,
    DependencyCycleError,
    EmptySourceSetError,
)
from incbuild.core.generator import RuleGenerator
from incbuild.core.graph import find_cycles
from incbuild.core.mapper import ObjectFile
from incbuild.core.node import NodeKind
from incbuild.core.rules import RuleGraph
from incbuild.exec.executor import BuildResult, Executor
from incbuild.exec.runner import CommandRunner
from incbuild.toolchains.toolchain import BaseToolchain

logger = logging.getLogger(__name__)


class Project:
    """A configured build: configuration plus its derived graph.

    Discovery and generation run lazily, once, on first use.

    Attributes:
        config: The build configuration.
        generator: The rule generator (owns toolchain, mapper, dispatcher).
    """

    __slots__ = ("config", "generator", "_source_set", "_objects", "_graph")

    def __init__(
        self,
        config: BuildConfiguration,
        toolchain: BaseToolchain | None = None,
    ) -> None:
        self.config = config
        self.generator = RuleGenerator(config, toolchain)
        self._source_set: SourceSet | None = None
        self._objects: list[ObjectFile] | None = None
        self._graph: RuleGraph | None = None

    @classmethod
    def from_file(
        cls,
        path: Path | str = DEFAULT_CONFIG_FILE,
        overrides: dict[str, str] | None = None,
    ) -> Project:
        """Load a configuration file and create its Project."""
        return cls(load_config(path, overrides))

    @property
    def root_dir(self) -> Path:
        return Path(self.config.root_dir)

    @property
    def source_set(self) -> SourceSet:
        """The discovered sources."""
        if self._source_set is None:
            self._source_set = discover_sources(
                self.config.sources,
                self.config.suffixes,
                self.config.exclude,
                root_dir=self.root_dir,
            )
        return self._source_set

    @property
    def objects(self) -> list[ObjectFile]:
        """Objects of every compiled source."""
        if self._objects is None:
            self._objects = self.generator.map_objects(self.source_set)
        return self._objects

    @property
    def graph(self) -> RuleGraph:
        """The rule graph (generated on first access)."""
        if self._graph is None:
            self._graph = self.generator.generate(self.source_set)
            cycles = find_cycles(self._graph)
            if cycles:
                raise DependencyCycleError(cycles[0])
        return self._graph

    def tracker(self, goal: Goal) -> DependencyTracker:
        return DependencyTracker(self.config, self.graph, goal)

    def prepare(self) -> None:
        """Write the stamps the graph depends on.

        The configuration stamp read by compile rules (unless the project is
        configuration independent) and the inputs stamp read by the final
        link or archive. Each is only rewritten when its content changes.
        """
        if not self.config.config_independent:
            write_config_stamp(self.config)
        link = self.graph.producer(self.generator.dispatcher.link_output)
        assert link is not None
        write_inputs_stamp(self.config, link.inputs)

    # =========================================================================
    # Goals
    # =========================================================================

    def build(
        self,
        targets: Sequence[str] | None = None,
        *,
        runner: CommandRunner | None = None,
        jobs: int | None = None,
        keep_going: bool = False,
        output: IO[str] | None = None,
    ) -> BuildResult:
        """Bring the target (or the given outputs) up to date.

        Args:
            targets: Outputs to build (default: the final target).
            runner: Command runner (default: a CommandRunner in root_dir).
            jobs: Parallel rules (default: configuration, else CPU count).
            keep_going: Continue with rules unaffected by a failure.
            output: Stream for progress lines.

        Returns:
            The executor's BuildResult.

        Raises:
            BuildError: If any rule failed.
        """
        graph = self.graph
        self.prepare()
        executor = Executor(
            graph,
            root_dir=self.root_dir,
            tracker=self.tracker(Goal.BUILD),
            runner=runner,
            jobs=jobs or self.config.jobs,
            keep_going=keep_going,
            verbose=self.config.verbose,
            output=output,
        )
        result = executor.run(targets)
        if not result.ok:
            raise BuildError([r.output for r in result.failed], self.config.name)
        return result

    def clean_paths(self) -> list[str]:
        """Return every file the build writes, final target last.

        Objects, dependency records, the stamps, the consolidated scan
        files and the final artifacts. Directories are not included.
        """
        graph = self.graph
        paths: list[str] = []
        for rule in graph.rules:
            for path in rule.outputs:
                if graph.nodes[path].kind != NodeKind.DIRECTORY:
                    paths.append(path)
            if rule.depfile is not None:
                paths.append(rule.depfile)
        if not self.config.config_independent:
            paths.append(self.config.config_stamp)
        paths.append(self.config.inputs_stamp)
        artifacts = set(self.generator.dispatcher.artifacts())
        ordered = [p for p in paths if p not in artifacts]
        ordered.extend(self.generator.dispatcher.artifacts())
        return list(dict.fromkeys(ordered))

    def clean(self, *, remove_all: bool = False) -> list[str]:
        """Remove build outputs.

        Dependency records are never read or regenerated for cleaning. With
        no sources left the objects cannot be named, so the whole object root
        goes along with the stamps and the final artifacts.

        Args:
            remove_all: Also remove the whole object root.

        Returns:
            Paths that were removed.
        """
        try:
            paths = self.clean_paths()
        except EmptySourceSetError as e:
            logger.warning("%s; removing %s as a whole", e, self.config.object_dir)
            paths = [
                self.config.config_stamp,
                self.config.inputs_stamp,
                *self.generator.dispatcher.artifacts(),
            ]
            remove_all = True

        removed: list[str] = []
        for path in paths:
            full = self.root_dir / path
            with contextlib.suppress(FileNotFoundError):
                os.unlink(full)
                removed.append(path)
                logger.info("Removed %s", path)
        if remove_all:
            object_root = self.root_dir / self.config.object_dir
            if object_root.is_dir() and self.config.object_dir not in (".", "/"):
                shutil.rmtree(object_root)
                removed.append(self.config.object_dir)
                logger.info("Removed %s", self.config.object_dir)
        return removed

    def describe(self) -> dict[str, Any]:
        """Return the resolved settings, sources and objects by name."""
        config = self.config
        graph = self.graph
        return {
            "name": config.name,
            "root_dir": str(self.root_dir),
            "target": config.target,
            "target_type": config.target_type.value,
            "toolchain_prefix": config.toolchain_prefix,
            "sources": [f.path for f in self.source_set.files],
            "objects": [o.path for o in self.objects],
            "directories": graph.paths_of_kind(NodeKind.DIRECTORY),
            "records": graph.paths_of_kind(NodeKind.DEPENDENCY_RECORD),
            "artifacts": self.generator.dispatcher.artifacts(),
            "include_dirs": list(config.include_dirs),
            "defines": list(config.defines),
            "cppflags": list(config.cppflags),
            "cflags": list(config.cflags),
            "cxxflags": list(config.cxxflags),
            "asflags": list(config.asflags),
            "ldflags": list(config.ldflags),
            "libs": list(config.libs),
            "libdirs": list(config.libdirs),
            "compile_flags": self.generator.dispatcher.compile_flags(),
            "link_flags": self.generator.dispatcher.link_flags(),
            "file_flags": {path: list(flags) for path, flags in config.file_flags},
            "dependency_mode": config.dependency_mode.value,
            "strip_unused": config.strip_unused,
            "config_independent": config.config_independent,
        }

    def dump(self, names: Iterable[str] | None = None) -> str:
        """Format describe() as ``name = value`` lines.

        Args:
            names: Entries to show (default: all).

        Raises:
            ConfigureError: If a requested name is unknown.
        """
        info = self.describe()
        selected = list(names) if names else list(info)
        unknown = [n for n in selected if n not in info]
        if unknown:
            raise ConfigureError(f"unknown names: {', '.join(unknown)}")

        lines = []
        for name in selected:
            value = info[name]
            if isinstance(value, dict):
                value = " ".join(f"{k}:{' '.join(v)}" for k, v in value.items())
            elif isinstance(value, list):
                value = " ".join(value)
            elif isinstance(value, bool):
                value = "true" if value else "false"
            lines.append(f"{name} = {value}")
        return "\n".join(lines) + "\n"

    def __repr__(self) -> str:
        return f"Project({self.config.name!r}, target={self.config.target!r})"
