# SPDX-License-Identifier: MIT
"""Graph algorithms over a RuleGraph.

Ordering is deterministic: rules are visited in the order their outputs
were requested and their prerequisites were declared.
"""

from __future__ import annotations

from collections.abc import Iterable

from incbuild.core.errors import DependencyCycleError
from incbuild.core.rules import Rule, RuleGraph


def topological_sort(
    graph: RuleGraph, targets: Iterable[str] | None = None
) -> list[Rule]:
    """Return the rules needed for ``targets`` in dependency order.

    Every rule appears after all rules producing its prerequisites.

    Args:
        graph: The rule graph.
        targets: Paths to bring up to date (default: graph.defaults, or every
            output if the graph has no defaults).

    Raises:
        DependencyCycleError: If the rules form a cycle.
    """
    if targets is None:
        targets = graph.defaults or graph.outputs()

    order: list[Rule] = []
    done: set[int] = set()
    visiting: dict[int, str] = {}
    stack: list[str] = []

    def visit(path: str) -> None:
        rule = graph.producer(path)
        if rule is None:
            return
        key = id(rule)
        if key in done:
            return
        if key in visiting:
            start = stack.index(visiting[key])
            raise DependencyCycleError(stack[start:] + [path])
        visiting[key] = path
        stack.append(path)
        for prereq in rule.prerequisites:
            visit(prereq)
        stack.pop()
        del visiting[key]
        done.add(key)
        order.append(rule)

    for target in targets:
        visit(target)
    return order


def find_cycles(graph: RuleGraph) -> list[list[str]]:
    """Return every dependency cycle found (empty if the graph is acyclic)."""
    cycles: list[list[str]] = []
    seen: set[tuple[str, ...]] = set()
    for rule in graph.rules:
        try:
            topological_sort(graph, [rule.output])
        except DependencyCycleError as e:
            key = tuple(sorted(set(e.cycle)))
            if key not in seen:
                seen.add(key)
                cycles.append(e.cycle)
    return cycles


def dependents(
    graph: RuleGraph, rules: Iterable[Rule] | None = None
) -> dict[int, list[Rule]]:
    """Map each rule (by id) to the rules that directly consume its outputs."""
    selected = list(rules) if rules is not None else graph.rules
    result: dict[int, list[Rule]] = {id(r): [] for r in selected}
    for rule in selected:
        producers: dict[int, Rule] = {}
        for prereq in rule.prerequisites:
            producer = graph.producer(prereq)
            if producer is not None:
                producers.setdefault(id(producer), producer)
        for producer in producers.values():
            result.setdefault(id(producer), []).append(rule)
    return result
