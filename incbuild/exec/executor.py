# SPDX-License-Identifier: MIT
"""Incremental executor for a RuleGraph.

The executor walks the rules needed for the requested outputs in
dependency order and reruns the stale ones. A rule is stale when:

- any output is missing (directories: when the directory is missing);
- any explicit or implicit input is newer than its oldest output;
- a rule producing one of its inputs ran in this build;
- its recorded header dependencies are unknown (missing or corrupt
  record), missing, or newer than its oldest output.

Order-only prerequisites must be up to date first but never make a rule
stale. Independent stale rules run in parallel on a thread pool. Outputs
of a rule are deleted before it runs and again if it fails, so a failed
or interrupted step never leaves a newer-looking output behind.
"""

from __future__ import annotations

import contextlib
import logging
import os
import sys
from collections import deque
from collections.abc import Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO

from incbuild.core.depends import DependencyTracker
from incbuild.core.errors import MissingSourceError
from incbuild.core.graph import dependents, topological_sort
from incbuild.core.rules import Rule, RuleGraph, RuleKind
from incbuild.core.subst import to_shell_command
from incbuild.exec.runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


def get_timestamp_if_exists(path: Path) -> float:
    """Return the modification time of a path, or -1 if it does not exist."""
    try:
        return os.stat(path).st_mtime
    except FileNotFoundError:
        return -1.0


@dataclass
class BuildResult:
    """Outcome of one executor run.

    Attributes:
        built: Rules that ran successfully.
        up_to_date: Rules that were skipped as fresh.
        failed: Rules whose commands failed.
        skipped: Rules not run because a prerequisite failed.
    """

    built: list[Rule] = field(default_factory=list)
    up_to_date: list[Rule] = field(default_factory=list)
    failed: list[Rule] = field(default_factory=list)
    skipped: list[Rule] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def built_outputs(self) -> list[str]:
        return [r.output for r in self.built]


class Executor:
    """Brings outputs of a RuleGraph up to date.

    Attributes:
        graph: The rule graph.
        root_dir: Directory all graph paths are relative to.
        tracker: Supplies recorded header dependencies.
        runner: Runs commands.
        jobs: Maximum number of rules running at once.
        keep_going: Keep building rules unaffected by a failure.
        verbose: Print full commands instead of descriptions.
    """

    def __init__(
        self,
        graph: RuleGraph,
        *,
        root_dir: Path | str,
        tracker: DependencyTracker | None = None,
        runner: CommandRunner | None = None,
        jobs: int | None = None,
        keep_going: bool = False,
        verbose: bool = False,
        output: IO[str] | None = None,
    ) -> None:
        self.graph = graph
        self.root_dir = Path(root_dir)
        self.tracker = tracker
        self.runner = runner or CommandRunner(self.root_dir)
        self.jobs = max(1, jobs or os.cpu_count() or 1)
        self.keep_going = keep_going
        self.verbose = verbose
        self.output = output if output is not None else sys.stdout

    def _path(self, path: str) -> Path:
        return self.root_dir / path

    def _timestamp(self, path: str) -> float:
        return get_timestamp_if_exists(self._path(path))

    # =========================================================================
    # Staleness
    # =========================================================================

    def is_stale(self, rule: Rule, rebuilt: set[str] | None = None) -> bool:
        """Decide whether a rule must run.

        Args:
            rule: The rule to check.
            rebuilt: Outputs of rules that ran earlier in this build.
        """
        if rule.kind == RuleKind.MKDIR:
            return not all(self._path(p).is_dir() for p in rule.outputs)

        output_timestamp = min(self._timestamp(p) for p in rule.outputs)
        if output_timestamp < 0:
            logger.debug("%s: output missing", rule.output)
            return True

        rebuilt = rebuilt or set()
        for path in rule.inputs + rule.implicit:
            if path in rebuilt:
                logger.debug("%s: %s was rebuilt", rule.output, path)
                return True
            timestamp = self._timestamp(path)
            if timestamp < 0 or timestamp > output_timestamp:
                logger.debug("%s: %s is newer or missing", rule.output, path)
                return True

        if self.tracker is None:
            return False
        recorded = self.tracker.dependencies(rule)
        if recorded is None:
            logger.debug("%s: dependencies unknown", rule.output)
            return True
        for path in recorded:
            timestamp = self._timestamp(path)
            if not 0 <= timestamp <= output_timestamp:
                logger.debug("%s: recorded dependency %s changed", rule.output, path)
                return True
        return False

    def check_inputs(self, rules: Iterable[Rule]) -> None:
        """Fail if an input is missing and no rule produces it.

        Raises:
            MissingSourceError: For the first such input.
        """
        for rule in rules:
            for path in rule.prerequisites:
                if self.graph.producer(path) is None and self._timestamp(path) < 0:
                    raise MissingSourceError(path, rule.output)

    # =========================================================================
    # Running
    # =========================================================================

    def _remove_outputs(self, rule: Rule) -> None:
        if rule.kind == RuleKind.MKDIR:
            return
        for path in rule.outputs:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(self._path(path))

    def _execute(self, rule: Rule) -> CommandResult:
        """Run a rule's commands in order, stopping at the first failure."""
        outputs: list[str] = []
        for command in rule.commands:
            result = self.runner.run(command)
            if result.output:
                outputs.append(result.output)
            if not result.ok:
                return CommandResult(result.returncode, "\n".join(outputs))
        return CommandResult(0, "\n".join(outputs))

    def _print(self, text: str) -> None:
        self.output.write(text + "\n")
        self.output.flush()

    def _announce(self, rule: Rule, index: int, total: int) -> None:
        if self.verbose or not rule.description:
            text = to_shell_command(list(rule.commands), shell="bash")
        else:
            text = rule.description
        self._print(f"[{index}/{total}] {text}")

    def run(self, targets: Iterable[str] | None = None) -> BuildResult:
        """Bring the requested outputs up to date.

        Args:
            targets: Outputs to build (default: the graph's defaults).

        Returns:
            What ran, what was fresh, what failed and what was skipped.

        Raises:
            MissingSourceError: If an input is missing and no rule makes it.
            DependencyCycleError: If the needed rules form a cycle.
        """
        order = topological_sort(self.graph, targets)
        self.check_inputs(order)

        result = BuildResult()
        consumers = dependents(self.graph, order)
        waiting: dict[int, int] = {}
        for rule in order:
            producers = {
                id(p)
                for p in (self.graph.producer(x) for x in rule.prerequisites)
                if p is not None
            }
            waiting[id(rule)] = len(producers)

        ready = deque(r for r in order if waiting[id(r)] == 0)
        blocked: set[int] = set()
        rebuilt: set[str] = set()
        running: dict[Future[CommandResult], Rule] = {}
        stop = False
        total = len(order)
        started = 0

        def release(rule: Rule) -> None:
            for consumer in consumers.get(id(rule), []):
                waiting[id(consumer)] -= 1
                if waiting[id(consumer)] == 0 and id(consumer) not in blocked:
                    ready.append(consumer)

        def block(rule: Rule) -> None:
            pending = list(consumers.get(id(rule), []))
            while pending:
                consumer = pending.pop()
                if id(consumer) in blocked:
                    continue
                blocked.add(id(consumer))
                result.skipped.append(consumer)
                pending.extend(consumers.get(id(consumer), []))

        with ThreadPoolExecutor(max_workers=self.jobs) as pool:
            while ready or running:
                while ready and not stop and len(running) < self.jobs:
                    rule = ready.popleft()
                    if not self.is_stale(rule, rebuilt):
                        result.up_to_date.append(rule)
                        release(rule)
                        continue
                    started += 1
                    self._announce(rule, started, total)
                    self._remove_outputs(rule)
                    running[pool.submit(self._execute, rule)] = rule

                if not running:
                    break
                done, _ = wait(list(running), return_when=FIRST_COMPLETED)
                for future in done:
                    rule = running.pop(future)
                    outcome = future.result()
                    if outcome.ok:
                        if outcome.output:
                            self._print(outcome.output)
                        result.built.append(rule)
                        rebuilt.update(rule.outputs)
                        if self.tracker is not None:
                            self.tracker.invalidate(rule.output)
                        release(rule)
                        continue
                    self._print(f"FAILED: {' '.join(rule.outputs)}")
                    self._print(to_shell_command(list(rule.commands), shell="bash"))
                    if outcome.output:
                        self._print(outcome.output)
                    self._remove_outputs(rule)
                    result.failed.append(rule)
                    if self.keep_going:
                        block(rule)
                    else:
                        stop = True

        if stop:
            done_ids = {id(r) for r in result.built + result.up_to_date + result.failed}
            result.skipped.extend(r for r in order if id(r) not in done_ids)
        elif not result.built and not result.failed:
            logger.info("Nothing to do")
        return result

    def __repr__(self) -> str:
        return f"Executor({str(self.root_dir)!r}, jobs={self.jobs})"
