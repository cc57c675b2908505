# SPDX-License-Identifier: MIT
"""Target-type specific shape of the final build steps.

Each target type ends in its own rule:

- Executable: link the objects with the selected driver.
- SharedObject: same, with position-independent compiles and ``-shared``.
- StaticArchive: remove the old archive, then archive every object, so a
  stale archive never keeps members from a previous build.
- RawBinary: link ``<base>.elf`` without startup files, then one rule
  extracts ``<base>.bin`` and writes the ``<base>.lst`` disassembly and the
  address-sorted ``<base>.map`` symbol table.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence

from incbuild.core.config import BuildConfiguration, TargetType
from incbuild.core.errors import ConfigureError
from incbuild.core.node import NodeKind
from incbuild.core.paths import parent_dir, replace_suffix, split_suffix
from incbuild.core.rules import Rule, RuleGraph, RuleKind, make_template
from incbuild.core.subst import Command, escape
from incbuild.toolchains.toolchain import BaseToolchain

logger = logging.getLogger(__name__)

# Suffixes of the RawBinary side artifacts
ELF_SUFFIX = ".elf"
LISTING_SUFFIX = ".lst"
MAP_SUFFIX = ".map"


def _escaped(values: Iterable[str]) -> list[str]:
    return [escape(v) for v in values]


class TargetTypeDispatcher:
    """Emits the link/archive/post-process rules for the configured target.

    Attributes:
        config: The build configuration.
        toolchain: Toolchain providing commands and flags.
        target_type: The configured target type.
    """

    def __init__(self, config: BuildConfiguration, toolchain: BaseToolchain) -> None:
        self.config = config
        self.toolchain = toolchain
        self.target_type = TargetType.parse(config.target_type)
        if self.target_type == TargetType.RAW_BINARY:
            if split_suffix(config.target)[1] == ELF_SUFFIX:
                raise ConfigureError(
                    f"raw binary target cannot use the {ELF_SUFFIX} suffix of its "
                    "intermediate image",
                    config.target,
                )

    @property
    def target(self) -> str:
        """The final product path."""
        return self.config.target

    @property
    def intermediate(self) -> str | None:
        """The linked image a RawBinary is extracted from, if any."""
        if self.target_type != TargetType.RAW_BINARY:
            return None
        return replace_suffix(self.target, ELF_SUFFIX)

    @property
    def link_output(self) -> str:
        """Output of the rule that consumes the objects."""
        return self.intermediate or self.target

    def artifacts(self) -> list[str]:
        """Every path written by the final steps, final product first."""
        if self.target_type != TargetType.RAW_BINARY:
            return [self.target]
        return [
            self.target,
            replace_suffix(self.target, ELF_SUFFIX),
            replace_suffix(self.target, LISTING_SUFFIX),
            replace_suffix(self.target, MAP_SUFFIX),
        ]

    def output_dirs(self) -> list[str]:
        """Parent directories of the final artifacts."""
        return list(dict.fromkeys(parent_dir(p) for p in self.artifacts()))

    def compile_flags(self) -> list[str]:
        """Flags every compile gets for this target type."""
        flags = self.toolchain.get_compile_flags_for_target_type(self.target_type)
        if self.config.strip_unused:
            flags = flags + self.toolchain.get_strip_compile_flags()
        return flags

    def link_flags(self) -> list[str]:
        """Flags the link step gets for this target type."""
        flags = self.toolchain.get_link_flags_for_target_type(self.target_type)
        if self.config.strip_unused:
            flags = flags + self.toolchain.get_strip_link_flags()
        return flags

    def _command(self, name: str, stdout: str | None = None) -> Command:
        return Command(tuple(self.toolchain.command_template(name)), stdout)

    def emit(
        self,
        graph: RuleGraph,
        inputs: Sequence[str],
        languages: Iterable[str],
        order_only_for: Callable[[str], tuple[str, ...]],
    ) -> list[Rule]:
        """Add the final rules to the graph.

        Args:
            graph: Graph to add templates and rules to.
            inputs: Objects (and passed-through archives/objects) to link.
                The final rule also depends on the inputs stamp listing them.
            languages: Languages of the compiled sources (selects the driver).
            order_only_for: Returns the mkdir prerequisites for an output path.

        Returns:
            The rules added, in order.
        """
        stamp = graph.node(self.config.inputs_stamp, NodeKind.STAMP).path
        implicit = (*self.config.target_depends, stamp)
        if self.target_type == TargetType.STATIC_ARCHIVE:
            return [self._archive(graph, inputs, implicit, order_only_for)]

        linker = self.toolchain.get_linker_for_languages(languages)
        logger.debug("Linking %s with %s", self.target, linker)
        if self.target_type == TargetType.RAW_BINARY:
            elf = self.intermediate
            assert elf is not None
            link = self._link(
                graph, elf, inputs, linker, implicit, order_only_for, NodeKind.ARTIFACT
            )
            return [link, self._extract(graph, elf, order_only_for)]
        return [
            self._link(
                graph,
                self.target,
                inputs,
                linker,
                implicit,
                order_only_for,
                NodeKind.TARGET,
            )
        ]

    def _link(
        self,
        graph: RuleGraph,
        output: str,
        inputs: Sequence[str],
        linker: str,
        implicit: tuple[str, ...],
        order_only_for: Callable[[str], tuple[str, ...]],
        kind: NodeKind,
    ) -> Rule:
        config = self.config
        variables = self.toolchain.default_vars()
        variables.update(
            linker=self.toolchain.tool_command(linker),
            ldflags=_escaped(config.ldflags),
            target_ldflags=self.link_flags(),
            libdirs=_escaped("-L" + d for d in config.libdirs),
            libs=_escaped("-l" + lib for lib in config.libs),
        )
        template = graph.add_template(
            make_template(
                "link",
                RuleKind.LINK,
                [self._command("progcmd")],
                variables,
                description="LINK $out",
            )
        )
        rule = template.instantiate(
            [output], inputs, implicit=implicit, order_only=order_only_for(output)
        )
        return graph.add_rule(rule, kind)

    def _archive(
        self,
        graph: RuleGraph,
        inputs: Sequence[str],
        implicit: tuple[str, ...],
        order_only_for: Callable[[str], tuple[str, ...]],
    ) -> Rule:
        variables = self.toolchain.default_vars()
        variables.update(
            ar=self.toolchain.tool_command("ar"),
            arflags=_escaped(self.config.arflags),
        )
        template = graph.add_template(
            make_template(
                "archive",
                RuleKind.ARCHIVE,
                [
                    self._command("cleancmd"),
                    self._command("libcmd"),
                ],
                variables,
                description="AR $out",
            )
        )
        rule = template.instantiate(
            [self.target],
            inputs,
            implicit=implicit,
            order_only=order_only_for(self.target),
        )
        return graph.add_rule(rule, NodeKind.TARGET)

    def _extract(
        self,
        graph: RuleGraph,
        elf: str,
        order_only_for: Callable[[str], tuple[str, ...]],
    ) -> Rule:
        listing = replace_suffix(self.target, LISTING_SUFFIX)
        symbol_map = replace_suffix(self.target, MAP_SUFFIX)
        variables = self.toolchain.default_vars()
        variables.update(self.toolchain.tool_vars())
        variables.update(
            bin=escape(self.target), lst=escape(listing), map=escape(symbol_map)
        )
        template = graph.add_template(
            make_template(
                "extract",
                RuleKind.POSTPROCESS,
                [
                    self._command("bincmd"),
                    self._command("lstcmd", "$lst"),
                    self._command("mapcmd", "$map"),
                ],
                variables,
                description="OBJCOPY $out",
            )
        )
        outputs = [self.target, listing, symbol_map]
        order_only = tuple(dict.fromkeys(d for p in outputs for d in order_only_for(p)))
        rule = template.instantiate([*outputs], [elf], order_only=order_only)
        return graph.add_rule(
            rule,
            NodeKind.ARTIFACT,
            kinds={self.target: NodeKind.TARGET},
        )
