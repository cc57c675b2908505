# SPDX-License-Identifier: MIT
"""Rule generation: from a discovered source set to a RuleGraph.

For every (directory, suffix) source group one compile template is shared
by all of the group's files; every literal source gets its own template.
Each source still gets its own rule (one edge per object). Around the
compile rules the generator adds:

- one mkdir rule per output directory, an order-only prerequisite of
  everything written into that directory;
- in consolidated dependency mode, one scan rule writing the project
  record, an order-only prerequisite of every compile rule;
- the final link/archive/post-process rules from the dispatcher.

Compile rules depend on the configuration stamp unless the project is
configuration independent, so changing flags rebuilds every object.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence

from incbuild.core.config import BuildConfiguration, DependencyMode
from incbuild.core.depends import consolidated_record_path
from incbuild.core.discovery import SourceFile, SourceSet
from incbuild.core.dispatch import TargetTypeDispatcher
from incbuild.core.errors import ConfigureError
from incbuild.core.mapper import ObjectFile, ObjectPathMapper
from incbuild.core.node import NodeKind
from incbuild.core.paths import is_special_dir, join_path, parent_dir
from incbuild.core.rules import RuleGraph, RuleKind, RuleTemplate, make_template
from incbuild.core.subst import Command, escape, tokenize
from incbuild.toolchains import GccToolchain
from incbuild.toolchains.toolchain import BaseToolchain, SourceHandler

logger = logging.getLogger(__name__)

# Literal sources with these suffixes (besides the object suffix) go
# straight to the final link
PASSTHROUGH_SUFFIXES = (".a",)

# Language assigned to sources built by custom commands
CUSTOM_LANGUAGE = "custom"

_DESCRIPTIONS = {"c": "CC", "cxx": "CXX", "asm": "AS", "asm-cpp": "AS"}

# A custom command that mentions $depfile writes a dependency record
_DEPFILE_REF = re.compile(r"\$(depfile\b|\{depfile\})")


def _rule_name(*parts: str) -> str:
    """Make a ninja-compatible rule name from path-like parts."""
    cleaned = (
        re.sub(r"[^A-Za-z0-9_]+", "_", p).strip("_") for p in parts if p != "."
    )
    return "_".join(c for c in cleaned if c) or "rule"


class RuleGenerator:
    """Builds the RuleGraph for one configuration.

    Generation reads nothing from the filesystem; calling generate() twice
    with the same SourceSet returns equal graphs.

    Attributes:
        config: The build configuration.
        toolchain: Toolchain providing commands and flags.
        mapper: Source to object path mapper.
        dispatcher: Final-step dispatcher for the target type.
    """

    def __init__(
        self,
        config: BuildConfiguration,
        toolchain: BaseToolchain | None = None,
    ) -> None:
        self.config = config
        self.toolchain = toolchain or GccToolchain(config.toolchain_prefix)
        self.mapper = ObjectPathMapper(
            config.object_dir, config.object_suffix, config.dependency_suffix
        )
        self.dispatcher = TargetTypeDispatcher(config, self.toolchain)

    # =========================================================================
    # Public API
    # =========================================================================

    def is_passthrough(self, source: SourceFile) -> bool:
        """True if a source is already linkable (object or archive)."""
        return source.suffix == self.config.object_suffix or (
            source.suffix in PASSTHROUGH_SUFFIXES
        )

    def map_objects(self, source_set: SourceSet) -> list[ObjectFile]:
        """Map every compiled source of the set to its object."""
        return self.mapper.map_all(
            f for f in source_set.files if not self.is_passthrough(f)
        )

    def directories(self, objects: Sequence[ObjectFile]) -> list[str]:
        """Return the output directories that must exist, in first-use order.

        The union of every object's parent, the object root when it holds
        the configuration stamp or the consolidated record, and the parents
        of the final artifacts. ``.`` and ``/`` always exist and are omitted.
        """
        dirs: list[str] = []
        if not self.config.config_independent or (
            self.config.dependency_mode == DependencyMode.CONSOLIDATED
        ):
            dirs.append(self.mapper.object_dir)
        dirs.extend(parent_dir(obj.path) for obj in objects)
        dirs.extend(self.dispatcher.output_dirs())
        return [d for d in dict.fromkeys(dirs) if not is_special_dir(d)]

    def generate(self, source_set: SourceSet) -> RuleGraph:
        """Generate the complete rule graph for a source set.

        Raises:
            ObjectPathCollisionError: If two sources map to one object.
            ConfigureError: If a source has no compile command.
        """
        graph = RuleGraph()
        objects = self.map_objects(source_set)
        handlers = {obj.source.path: self._handler(obj.source) for obj in objects}

        if not self.config.config_independent:
            graph.node(self.config.config_stamp, NodeKind.STAMP)

        dirs = self.directories(objects)
        self._add_mkdir_rules(graph, dirs)
        dir_set = set(dirs)

        def order_only_for(path: str) -> tuple[str, ...]:
            parent = parent_dir(path)
            return (parent,) if parent in dir_set else ()

        scan_record = None
        if self.config.dependency_mode == DependencyMode.CONSOLIDATED:
            scan_record = self._add_scan_rule(graph, objects, handlers, order_only_for)

        self._add_compile_rules(
            graph, source_set, objects, handlers, order_only_for, scan_record
        )

        passthrough = [f.path for f in source_set.files if self.is_passthrough(f)]
        languages = sorted(
            {h.language if h else CUSTOM_LANGUAGE for h in handlers.values()}
        )
        link_inputs = [obj.path for obj in objects] + passthrough
        self.dispatcher.emit(graph, link_inputs, languages, order_only_for)
        graph.defaults = [self.dispatcher.target]

        logger.info(
            "Generated %d rules from %d templates for %s",
            len(graph.rules),
            len(graph.templates),
            self.config.target,
        )
        return graph

    # =========================================================================
    # Internals
    # =========================================================================

    def _handler(self, source: SourceFile) -> SourceHandler | None:
        """Return the toolchain handler, or None for custom-command suffixes."""
        if self.config.command_for_suffix(source.suffix) is not None:
            return None
        handler = self.toolchain.get_source_handler(source.suffix)
        if handler is None:
            raise ConfigureError(
                f"no compile command for suffix {source.suffix or '(none)'!r}",
                source.path,
            )
        return handler

    def _add_mkdir_rules(self, graph: RuleGraph, dirs: Sequence[str]) -> None:
        if not dirs:
            return
        template = graph.add_template(
            make_template(
                "mkdir",
                RuleKind.MKDIR,
                [Command(tuple(self.toolchain.command_template("mkdircmd")))],
                {},
                description="MKDIR $out",
            )
        )
        for d in dirs:
            graph.add_rule(template.instantiate([d], []), NodeKind.DIRECTORY)

    def _base_vars(self) -> dict[str, object]:
        """Per-template variables shared by every compile and scan."""
        config = self.config
        variables = self.toolchain.default_vars()
        variables.update(self.toolchain.tool_vars())
        variables.update(
            includes=[escape("-I" + d) for d in config.include_dirs],
            defines=[escape("-D" + d) for d in config.defines],
            cppflags=[escape(f) for f in config.cppflags],
            cflags=[escape(f) for f in config.cflags],
            cxxflags=[escape(f) for f in config.cxxflags],
            asflags=[escape(f) for f in config.asflags],
            target_flags=self.dispatcher.compile_flags(),
        )
        return variables

    def _lang_flags(self, handler: SourceHandler) -> list[str]:
        config = self.config
        if handler.language == "cxx":
            return [escape(f) for f in config.cxxflags]
        if handler.language in ("asm", "asm-cpp"):
            return [escape(f) for f in config.cflags + config.asflags]
        return [escape(f) for f in config.cflags]

    def _compile_template(
        self,
        graph: RuleGraph,
        name: str,
        directory: str,
        suffix: str,
        handler: SourceHandler | None,
        pattern: str | None,
    ) -> RuleTemplate:
        variables = self._base_vars()
        variables["srcdir"] = [escape("-I" + directory)]
        custom = self.config.command_for_suffix(suffix)
        if custom is not None:
            tokens = tokenize(custom)
            depfile = any(_DEPFILE_REF.search(t) for t in tokens)
            description = "COMPILE $out"
        else:
            assert handler is not None
            tokens = self.toolchain.command_template("objcmd")
            variables["compiler"] = self.toolchain.tool_command(handler.tool)
            variables["langflags"] = self._lang_flags(handler)
            depfile = (
                handler.deps_style is not None
                and self.config.dependency_mode == DependencyMode.PER_FILE
            )
            if not depfile:
                variables["depflags"] = []
            description = f"{_DESCRIPTIONS.get(handler.language, 'CC')} $out"
        return graph.add_template(
            make_template(
                name,
                RuleKind.COMPILE,
                [Command(tuple(tokens))],
                variables,
                description=description,
                pattern=pattern,
                depfile=depfile,
            )
        )

    def _add_compile_rules(
        self,
        graph: RuleGraph,
        source_set: SourceSet,
        objects: Sequence[ObjectFile],
        handlers: dict[str, SourceHandler | None],
        order_only_for: Callable[[str], tuple[str, ...]],
        scan_record: str | None,
    ) -> None:
        by_source = {obj.source.path: obj for obj in objects}
        implicit = () if self.config.config_independent else (self.config.config_stamp,)
        extra_order = (scan_record,) if scan_record else ()

        def add(template: RuleTemplate, obj: ObjectFile) -> None:
            rule = template.instantiate(
                [obj.path],
                [obj.source.path],
                implicit=implicit,
                order_only=order_only_for(obj.path) + extra_order,
                depfile=obj.depfile if template.depfile else None,
                extra_flags=self.config.flags_for_file(obj.source.path),
            )
            graph.add_rule(rule, NodeKind.OBJECT)

        for group in source_set.groups:
            members = [by_source[f.path] for f in group.files if f.path in by_source]
            if not members:
                continue
            handler = handlers[members[0].source.path]
            object_dir = parent_dir(members[0].path)
            pattern = (
                f"{object_dir}/%{self.config.object_suffix}: "
                f"{group.directory}/%{group.suffix}"
            )
            language = handler.language if handler else CUSTOM_LANGUAGE
            template = self._unique_template(
                graph,
                _rule_name(language, group.directory, group.suffix),
                group.directory,
                group.suffix,
                handler,
                pattern,
            )
            for obj in members:
                add(template, obj)

        for source in source_set.singletons:
            obj = by_source.get(source.path)
            if obj is None:
                continue
            handler = handlers[source.path]
            language = handler.language if handler else CUSTOM_LANGUAGE
            template = self._unique_template(
                graph,
                _rule_name(language, source.path),
                source.directory,
                source.suffix,
                handler,
                None,
            )
            add(template, obj)

    def _unique_template(
        self,
        graph: RuleGraph,
        name: str,
        directory: str,
        suffix: str,
        handler: SourceHandler | None,
        pattern: str | None,
    ) -> RuleTemplate:
        candidate = name
        counter = 2
        while candidate in graph.templates:
            candidate = f"{name}_{counter}"
            counter += 1
        return self._compile_template(
            graph, candidate, directory, suffix, handler, pattern
        )

    def _add_scan_rule(
        self,
        graph: RuleGraph,
        objects: Sequence[ObjectFile],
        handlers: dict[str, SourceHandler | None],
        order_only_for: Callable[[str], tuple[str, ...]],
    ) -> str | None:
        """Add the consolidated dependency scan; returns the record path."""
        sources = []
        for obj in objects:
            handler = handlers[obj.source.path]
            if handler is not None and handler.deps_style is not None:
                sources.append(obj.source)
        if not sources:
            logger.debug("No sources with header dependencies; skipping scan")
            return None

        record = consolidated_record_path(self.config)
        raw = record + ".raw"
        variables = self._base_vars()
        variables.update(
            srcdirs=[
                escape("-I" + d) for d in dict.fromkeys(s.directory for s in sources)
            ],
            raw=escape(raw),
            record=escape(record),
            object_dir=escape(self.mapper.object_dir),
            object_suffix=escape(self.config.object_suffix),
        )
        template = graph.add_template(
            make_template(
                "depscan",
                RuleKind.DEPSCAN,
                [
                    Command(tuple(self.toolchain.command_template("scancmd")), "$raw"),
                    Command(tuple(self.toolchain.command_template("rewritecmd"))),
                ],
                variables,
                description="DEPS $out",
                depfile=True,
            )
        )
        implicit = () if self.config.config_independent else (self.config.config_stamp,)
        rule = template.instantiate(
            [record, raw],
            [s.path for s in sources],
            implicit=implicit,
            order_only=order_only_for(record),
            depfile=record,
        )
        graph.add_rule(rule, NodeKind.DEPENDENCY_RECORD)
        return record
