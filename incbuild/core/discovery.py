# SPDX-License-Identifier: MIT
"""Source discovery and filtering.

Expands configured source entries (literal files and directories) into a
deduplicated, exclusion-filtered set of source files grouped by
(directory, suffix).

Directory entries are expanded non-recursively: only files directly inside
the directory whose suffix is recognized are picked up. Literal files are
taken as-is and are never suffix-filtered. When a literal file is also
produced by a directory expansion, the expansion wins and the literal is
dropped as redundant.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from incbuild.core.errors import EmptySourceSetError
from incbuild.core.paths import normalize_path, parent_dir, split_suffix

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceEntry:
    """A configured source input.

    Attributes:
        path: Normalized path (without the directory marker).
        is_directory: True if the entry was written with a trailing "/".
    """

    path: str
    is_directory: bool = False

    @classmethod
    def parse(cls, text: str) -> SourceEntry:
        """Parse a configured entry; a trailing separator marks a directory."""
        is_directory = text.endswith("/") or text.endswith("\\")
        return cls(normalize_path(text), is_directory)

    def __str__(self) -> str:
        if self.is_directory:
            return self.path.rstrip("/") + "/"
        return self.path


@dataclass(frozen=True)
class SourceFile:
    """A discovered source file.

    Attributes:
        path: Normalized path relative to the project root (or absolute).
        suffix: File suffix including the dot (may be empty).
        directory: Normalized directory containing the file.
        from_directory: True if found by directory expansion.
    """

    path: str
    suffix: str
    directory: str
    from_directory: bool = False

    @classmethod
    def from_path(cls, path: str, *, from_directory: bool = False) -> SourceFile:
        norm = normalize_path(path)
        return cls(norm, split_suffix(norm)[1], parent_dir(norm), from_directory)

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class SourceGroup:
    """Source files sharing a directory and suffix.

    One compile rule template is generated per group.
    """

    directory: str
    suffix: str
    files: tuple[SourceFile, ...]


@dataclass(frozen=True)
class SourceSet:
    """Result of discovery.

    Attributes:
        groups: Directory-expanded files grouped by (directory, suffix).
        singletons: Literal file entries that survived filtering.
    """

    groups: tuple[SourceGroup, ...]
    singletons: tuple[SourceFile, ...]

    @property
    def files(self) -> list[SourceFile]:
        """All source files: grouped files first, then singletons."""
        result: list[SourceFile] = []
        for group in self.groups:
            result.extend(group.files)
        result.extend(self.singletons)
        return result

    def __len__(self) -> int:
        return sum(len(g.files) for g in self.groups) + len(self.singletons)


def list_directory(root_dir: Path, directory: str, suffix: str) -> list[str]:
    """List files directly inside a directory with the given suffix.

    Args:
        root_dir: Project root used to resolve relative directories.
        directory: Normalized directory path.
        suffix: Suffix to match (case-sensitive, ".S" is not ".s").

    Returns:
        Sorted normalized paths, expressed like the directory was.
    """
    dir_path = Path(directory)
    if not dir_path.is_absolute():
        dir_path = root_dir / dir_path
    if not dir_path.is_dir():
        return []

    names = sorted(
        child.name
        for child in dir_path.iterdir()
        if child.is_file() and split_suffix(child.name)[1] == suffix
    )
    return [normalize_path(f"{directory}/{name}") for name in names]


def discover_sources(
    entries: Iterable[SourceEntry | str],
    suffixes: Iterable[str],
    exclude: Iterable[str] = (),
    root_dir: Path | str | None = None,
) -> SourceSet:
    """Expand source entries into a filtered, grouped source set.

    Args:
        entries: Configured entries (SourceEntry or "dir/" / "file" strings).
        suffixes: Recognized suffixes for directory expansion.
        exclude: Paths removed from the result (exact normalized match).
        root_dir: Project root (default: current directory).

    Returns:
        The discovered SourceSet.

    Raises:
        EmptySourceSetError: If no source survives filtering.
    """
    root = Path(root_dir) if root_dir is not None else Path.cwd()
    parsed = [
        e if isinstance(e, SourceEntry) else SourceEntry.parse(e) for e in entries
    ]
    suffix_list = list(dict.fromkeys(suffixes))
    excluded = {normalize_path(p) for p in exclude}

    directories = [e for e in parsed if e.is_directory]
    literals = [e for e in parsed if not e.is_directory]

    # Directory expansion, first occurrence of each path wins
    expanded: dict[str, tuple[str, str]] = {}
    seen_dirs: set[str] = set()
    for entry in directories:
        if entry.path in seen_dirs:
            continue
        seen_dirs.add(entry.path)
        found_any = False
        for suffix in suffix_list:
            for path in list_directory(root, entry.path, suffix):
                found_any = True
                expanded.setdefault(path, (entry.path, suffix))
        if not found_any:
            logger.warning("Source directory %s has no matching files", entry)

    grouped: dict[tuple[str, str], list[SourceFile]] = {}
    for path, key in expanded.items():
        if path in excluded:
            logger.debug("Excluding %s", path)
            continue
        grouped.setdefault(key, []).append(
            SourceFile.from_path(path, from_directory=True)
        )

    singletons: list[SourceFile] = []
    seen_literals: set[str] = set()
    for entry in literals:
        if entry.path in expanded:
            logger.debug(
                "Dropping %s: already found by directory expansion", entry.path
            )
            continue
        if entry.path in seen_literals or entry.path in excluded:
            continue
        seen_literals.add(entry.path)
        singletons.append(SourceFile.from_path(entry.path))

    groups = tuple(
        SourceGroup(directory, suffix, tuple(files))
        for (directory, suffix), files in grouped.items()
    )
    result = SourceSet(groups, tuple(singletons))
    if len(result) == 0:
        raise EmptySourceSetError()

    logger.info(
        "Discovered %d source files (%d groups, %d singletons)",
        len(result),
        len(groups),
        len(singletons),
    )
    return result
