# SPDX-License-Identifier: MIT
"""Rule templates, rules and the rule graph.

A RuleTemplate is a command shape shared by a set of edges: one per
(directory, suffix) source group, one per literal source file, and one per
link/archive/post-process step. Template commands still contain the
per-edge variables ``$in``, ``$out``, ``$depfile`` and ``$extra_flags``.

A Rule is one edge of the graph: its outputs, inputs and fully expanded
commands. The RuleGraph owns templates, rules and the node index.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from incbuild.core.errors import GenerateError
from incbuild.core.node import DirNode, FileNode, Node, NodeKind
from incbuild.core.subst import Command, subst

# Variables expanded per edge rather than per template
EDGE_VARIABLES = ("in", "out", "depfile", "extra_flags")


class RuleKind(Enum):
    MKDIR = "mkdir"
    DEPSCAN = "depscan"
    COMPILE = "compile"
    LINK = "link"
    ARCHIVE = "archive"
    POSTPROCESS = "postprocess"


@dataclass(frozen=True)
class RuleTemplate:
    """A command template shared by one or more rules.

    Attributes:
        name: Unique template name (also the ninja rule name).
        kind: Kind of step.
        commands: Commands with per-edge variables left unexpanded.
        description: Progress text template, e.g. "CC $out".
        pattern: Static pattern for group templates ("obj/src/%.o: src/%.c").
        depfile: True if rules of this template write a make-format depfile.
    """

    name: str
    kind: RuleKind
    commands: tuple[Command, ...]
    description: str = ""
    pattern: str | None = None
    depfile: bool = False

    def instantiate(
        self,
        outputs: Sequence[str],
        inputs: Sequence[str],
        *,
        implicit: Sequence[str] = (),
        order_only: Sequence[str] = (),
        depfile: str | None = None,
        extra_flags: Sequence[str] = (),
    ) -> Rule:
        """Create a Rule from this template, expanding the edge variables."""
        if self.depfile and depfile is None:
            raise GenerateError("template writes a depfile but none given", self.name)
        variables = {
            "in": list(inputs),
            "out": list(outputs),
            "depfile": depfile or "",
            "extra_flags": list(extra_flags),
        }
        context = f"rule {self.name}"
        commands = tuple(
            Command(
                tuple(subst(list(cmd.argv), variables, context=context)),
                subst([cmd.stdout], variables, context=context)[0]
                if cmd.stdout
                else None,
            )
            for cmd in self.commands
        )
        description = " ".join(
            subst(self.description, {**variables, "out": outputs[0]}, context=context)
        )
        return Rule(
            template=self.name,
            kind=self.kind,
            outputs=tuple(outputs),
            inputs=tuple(inputs),
            implicit=tuple(implicit),
            order_only=tuple(order_only),
            commands=commands,
            depfile=depfile,
            extra_flags=tuple(extra_flags),
            description=description,
        )


@dataclass(frozen=True)
class Rule:
    """One edge of the build graph.

    Attributes:
        template: Name of the RuleTemplate it was created from.
        kind: Kind of step.
        outputs: Files written by the commands (first is the primary output).
        inputs: Explicit inputs (``$in``).
        implicit: Inputs that make the rule stale but are not on the command line.
        order_only: Inputs that must exist first but never make the rule stale.
        commands: Fully expanded commands, run in order.
        depfile: Make-format dependency record written by the commands.
        extra_flags: Per-edge flags (per-file overrides).
        description: Progress text.
    """

    template: str
    kind: RuleKind
    outputs: tuple[str, ...]
    inputs: tuple[str, ...]
    implicit: tuple[str, ...] = ()
    order_only: tuple[str, ...] = ()
    commands: tuple[Command, ...] = ()
    depfile: str | None = None
    extra_flags: tuple[str, ...] = ()
    description: str = ""

    @property
    def output(self) -> str:
        """The primary output."""
        return self.outputs[0]

    @property
    def prerequisites(self) -> tuple[str, ...]:
        return self.inputs + self.implicit + self.order_only

    def __str__(self) -> str:
        return f"{' '.join(self.outputs)}: {' '.join(self.inputs)}"


@dataclass
class RuleGraph:
    """Templates, rules and nodes of one build.

    Two graphs generated from the same configuration and filesystem state
    compare equal.

    Attributes:
        templates: Templates by name, in creation order.
        rules: Rules in creation order.
        defaults: Outputs built by the default goal.
        nodes: Node index by path.
    """

    templates: dict[str, RuleTemplate] = field(default_factory=dict)
    rules: list[Rule] = field(default_factory=list)
    defaults: list[str] = field(default_factory=list)
    nodes: dict[str, Node] = field(default_factory=dict, compare=False, repr=False)

    def add_template(self, template: RuleTemplate) -> RuleTemplate:
        existing = self.templates.get(template.name)
        if existing is not None and existing != template:
            raise GenerateError("conflicting rule templates", template.name)
        self.templates[template.name] = template
        return template

    def node(self, path: str, kind: NodeKind = NodeKind.SOURCE) -> Node:
        """Get or create the node for a path."""
        node = self.nodes.get(path)
        if node is None:
            node = DirNode(path) if kind == NodeKind.DIRECTORY else FileNode(path, kind)
            self.nodes[path] = node
        return node

    def add_rule(
        self,
        rule: Rule,
        kind: NodeKind,
        *,
        kinds: Mapping[str, NodeKind] | None = None,
    ) -> Rule:
        """Add a rule and wire its output nodes.

        Args:
            rule: The rule to add.
            kind: Node kind of the outputs.
            kinds: Per-output overrides of ``kind``.

        Raises:
            GenerateError: If the template is unknown or an output is already
                produced by another rule.
        """
        if rule.template not in self.templates:
            raise GenerateError(f"unknown rule template {rule.template!r}", rule.output)

        kinds = kinds or {}
        for path in rule.prerequisites:
            self.node(path)

        written = merge_unique(rule.outputs, [rule.depfile] if rule.depfile else [])
        for path in written:
            node_kind = kinds.get(path, kind)
            if path == rule.depfile:
                node_kind = NodeKind.DEPENDENCY_RECORD
            node = self.node(path, node_kind)
            if node.builder is not None:
                raise GenerateError(
                    f"produced by both {node.builder.template} and {rule.template}",
                    path,
                )
            node.kind = node_kind
            node.builder = rule

        self.rules.append(rule)
        return rule

    def producer(self, path: str) -> Rule | None:
        """Return the rule producing a path, or None for leaf inputs."""
        node = self.nodes.get(path)
        return node.builder if node is not None else None

    def rules_of_kind(self, *kinds: RuleKind) -> list[Rule]:
        return [r for r in self.rules if r.kind in kinds]

    def outputs(self) -> list[str]:
        """All outputs of all rules, in rule order."""
        return [p for r in self.rules for p in r.outputs]

    def paths_of_kind(self, *kinds: NodeKind) -> list[str]:
        return [p for p, n in self.nodes.items() if n.kind in kinds]

    def sources(self) -> list[str]:
        """Leaf inputs (paths no rule produces)."""
        return [p for p, n in self.nodes.items() if n.is_leaf]

    def __iter__(self) -> Iterator[Rule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)


def merge_unique(*groups: Iterable[str]) -> tuple[str, ...]:
    """Concatenate path groups, dropping repeats and keeping first order."""
    return tuple(dict.fromkeys(p for g in groups for p in g))


def make_template(
    name: str,
    kind: RuleKind,
    commands: Sequence[Command],
    variables: Mapping[str, object],
    *,
    description: str = "",
    pattern: str | None = None,
    depfile: bool = False,
) -> RuleTemplate:
    """Create a RuleTemplate, expanding everything but the edge variables.

    Args:
        name: Template name.
        kind: Kind of step.
        commands: Command templates; argv and stdout may reference
            ``variables`` and the edge variables.
        variables: Per-template variable values.
        description: Progress text template.
        pattern: Static pattern of a group template.
        depfile: True if rules write a make-format depfile.
    """
    context = f"rule {name}"
    expanded = tuple(
        Command(
            tuple(
                subst(list(cmd.argv), variables, keep=EDGE_VARIABLES, context=context)
            ),
            subst([cmd.stdout], variables, keep=EDGE_VARIABLES, context=context)[0]
            if cmd.stdout
            else None,
        )
        for cmd in commands
    )
    return RuleTemplate(name, kind, expanded, description, pattern, depfile)
