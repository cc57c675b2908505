# SPDX-License-Identifier: MIT
"""Header dependency records.

Records are make-format files (``target: prerequisite ...``) written by the
compiler. In per-file mode each object has its own record next to it
(``obj/src/main.d``). In consolidated mode one scan over all sources writes
``<object root>/project.d``; the raw scan output names objects as if they
sat next to their sources, so every record is rewritten to the mapped
object path before it is used.

A record that is missing, unreadable or malformed means the object's
dependencies are unknown, and the object is rebuilt.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from pathlib import Path

from incbuild.core.config import BuildConfiguration, DependencyMode, Goal
from incbuild.core.errors import DependencyRecordError
from incbuild.core.mapper import ObjectPathMapper
from incbuild.core.paths import join_path, normalize_path
from incbuild.core.rules import Rule, RuleGraph, RuleKind

logger = logging.getLogger(__name__)

# Name (without suffix) of the consolidated record under the object root
PROJECT_RECORD_NAME = "project"

# Separator between targets and prerequisites: a colon followed by
# whitespace or end of line (so "C:/x" style paths are not split)
_SEPARATOR = re.compile(r":(?=\s|$)")


def consolidated_record_path(config: BuildConfiguration) -> str:
    """Return the path of the consolidated dependency record."""
    return join_path(config.object_dir, PROJECT_RECORD_NAME + config.dependency_suffix)


def _split_words(text: str) -> list[str]:
    """Split make words, honoring backslash-escaped spaces and $$."""
    words: list[str] = []
    current: list[str] = []
    i = 0
    while i < len(text):
        c = text[i]
        if c == "\\" and i + 1 < len(text) and text[i + 1] in " #\\":
            current.append(text[i + 1])
            i += 2
            continue
        if c == "$" and text[i + 1 : i + 2] == "$":
            current.append("$")
            i += 2
            continue
        if c.isspace():
            if current:
                words.append("".join(current))
                current = []
        else:
            current.append(c)
        i += 1
    if current:
        words.append("".join(current))
    return words


def parse_records(text: str) -> list[tuple[tuple[str, ...], tuple[str, ...]]]:
    """Parse make-format dependency records without merging them.

    Handles line continuations, escaped spaces, the empty phony entries
    written by ``-MP`` and files holding several records.

    Returns:
        ``(targets, prerequisites)`` per record, in file order, with every
        path normalized. Records sharing a target stay separate.

    Raises:
        DependencyRecordError: If a line is not of the form
            ``targets: prerequisites``.
    """
    text = text.replace("\\\r\n", " ").replace("\\\n", " ")
    records: list[tuple[tuple[str, ...], tuple[str, ...]]] = []
    for lineno, line in enumerate(text.splitlines(), 1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        match = _SEPARATOR.search(line)
        if match is None:
            raise DependencyRecordError(f"line {lineno}: missing ':' separator")
        targets = _split_words(line[: match.start()])
        if not targets:
            raise DependencyRecordError(f"line {lineno}: record has no target")
        prereqs = [normalize_path(p) for p in _split_words(line[match.end() :])]
        records.append(
            (
                tuple(normalize_path(t) for t in targets),
                tuple(dict.fromkeys(prereqs)),
            )
        )
    return records


def parse_depfile(text: str) -> dict[str, tuple[str, ...]]:
    """Parse make-format dependency records into a lookup by target.

    Returns:
        Prerequisites by normalized target path, in file order. A target
        named by several records collects all of their prerequisites.

    Raises:
        DependencyRecordError: If the text is not in make format.
    """
    merged: dict[str, list[str]] = {}
    for targets, prereqs in parse_records(text):
        for target in targets:
            entry = merged.setdefault(target, [])
            entry.extend(p for p in prereqs if p not in entry)
    return {target: tuple(prereqs) for target, prereqs in merged.items()}


def _escape_word(path: str) -> str:
    return path.replace("\\", "\\\\").replace(" ", "\\ ").replace("#", "\\#").replace(
        "$", "$$"
    )


def format_depfile(records: dict[str, Iterable[str]]) -> str:
    """Format records in make syntax, one continued line per record."""
    lines = []
    for target, prereqs in records.items():
        parts = [_escape_word(target) + ":"] + [_escape_word(p) for p in prereqs]
        lines.append(" \\\n  ".join(parts))
    return "\n".join(lines) + ("\n" if lines else "")


def rewrite_consolidated(text: str, mapper: ObjectPathMapper) -> str:
    """Rewrite raw scan output so each record names its mapped object.

    The scanner names targets by the source's base name only, so sources
    with the same name in different directories produce records with the
    same target. Records are therefore taken one at a time, never merged:
    each record's first prerequisite is the source itself, and the record
    is keyed by that source's object path. Phony entries (records with no
    prerequisites) are dropped.

    Raises:
        DependencyRecordError: If the raw output cannot be parsed.
    """
    rewritten: dict[str, tuple[str, ...]] = {}
    for targets, prereqs in parse_records(text):
        if not prereqs:
            continue
        obj = mapper.object_path(prereqs[0])
        if obj in rewritten:
            logger.warning(
                "Duplicate scan record for %s (from %s)", obj, " ".join(targets)
            )
        rewritten[obj] = prereqs
    return format_depfile(rewritten)


class DependencyTracker:
    """Supplies header dependencies of rules to the executor.

    Records are only read for the BUILD goal; other goals neither read nor
    require them, and every rule reports no extra dependencies.

    Attributes:
        config: The build configuration.
        goal: The active goal.
        enabled: True if records are consulted.
    """

    def __init__(
        self,
        config: BuildConfiguration,
        graph: RuleGraph,
        goal: Goal = Goal.BUILD,
    ) -> None:
        self.config = config
        self.goal = goal
        self.enabled = goal == Goal.BUILD
        self._root = Path(config.root_dir)
        self._record_path = consolidated_record_path(config)
        self._consolidated: dict[str, tuple[str, ...]] | None = None
        self._consolidated_loaded = False

        # Objects whose sources the consolidated scan covers
        self._scanned: set[str] = set()
        if config.dependency_mode == DependencyMode.CONSOLIDATED:
            scanned_sources: set[str] = set()
            for scan in graph.rules_of_kind(RuleKind.DEPSCAN):
                scanned_sources.update(scan.inputs)
            self._scanned = {
                r.output
                for r in graph.rules_of_kind(RuleKind.COMPILE)
                if r.inputs[0] in scanned_sources
            }

    def _read(self, path: str) -> dict[str, tuple[str, ...]] | None:
        """Read and parse a record; None if it is missing or malformed."""
        try:
            text = (self._root / path).read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No dependency record %s", path)
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(
                "Cannot read dependency record %s (will rebuild): %s", path, e
            )
            return None
        try:
            return parse_depfile(text)
        except DependencyRecordError as e:
            logger.warning("Malformed dependency record %s (will rebuild): %s", path, e)
            return None

    def _load_consolidated(self) -> dict[str, tuple[str, ...]] | None:
        if not self._consolidated_loaded:
            self._consolidated = self._read(self._record_path)
            self._consolidated_loaded = True
        return self._consolidated

    def invalidate(self, path: str | None = None) -> None:
        """Forget cached record contents after a rule rewrote them."""
        if path is None or path == self._record_path:
            self._consolidated = None
            self._consolidated_loaded = False

    def dependencies(self, rule: Rule) -> tuple[str, ...] | None:
        """Return the recorded extra prerequisites of a rule.

        Returns:
            The recorded paths (possibly empty), or None if they are unknown
            and the rule must run.
        """
        if not self.enabled:
            return ()

        if rule.depfile is not None:
            records = self._read(rule.depfile)
            if records is None:
                return None
            return tuple(dict.fromkeys(p for ps in records.values() for p in ps))

        if rule.kind == RuleKind.COMPILE and rule.output in self._scanned:
            records = self._load_consolidated()
            if records is None:
                return None
            prereqs = records.get(rule.output)
            if prereqs is None:
                logger.debug("No entry for %s in %s", rule.output, self._record_path)
            return prereqs

        return ()

    def __repr__(self) -> str:
        return (
            f"DependencyTracker({self.config.dependency_mode.value}, "
            f"goal={self.goal.value}, enabled={self.enabled})"
        )
