# SPDX-License-Identifier: MIT
"""Mapping from source files to object files.

Objects live under the object root and mirror the source tree:

    src/main.c        -> obj/src/main.o
    ../lib/util.c     -> obj/__/lib/util.o
    /opt/sdk/start.S  -> obj/opt/sdk/start.o

Parent-directory segments are remapped to a marker so no object can land
outside the object root.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from incbuild.core.discovery import SourceFile
from incbuild.core.errors import ObjectPathCollisionError
from incbuild.core.paths import (
    join_path,
    normalize_path,
    remap_parent_segments,
    replace_suffix,
)


@dataclass(frozen=True)
class ObjectFile:
    """The compiled artifact for one source file.

    Attributes:
        path: Normalized object path under the object root.
        source: The source file it is compiled from.
        depfile: Per-file dependency record path next to the object.
    """

    path: str
    source: SourceFile
    depfile: str

    def __str__(self) -> str:
        return self.path


class ObjectPathMapper:
    """Maps source files to object and dependency record paths.

    Attributes:
        object_dir: Normalized object root.
        object_suffix: Suffix replacing the source suffix.
        dependency_suffix: Suffix of per-file dependency records.
    """

    def __init__(
        self,
        object_dir: str,
        object_suffix: str = ".o",
        dependency_suffix: str = ".d",
    ) -> None:
        self.object_dir = normalize_path(object_dir)
        self.object_suffix = object_suffix
        self.dependency_suffix = dependency_suffix

    def object_path(self, source_path: str) -> str:
        """Return the object path for a source path."""
        rel = normalize_path(source_path).lstrip("/") or "."
        rel = remap_parent_segments(rel)
        return join_path(self.object_dir, replace_suffix(rel, self.object_suffix))

    def depfile_path(self, object_path: str) -> str:
        """Return the per-file dependency record path for an object path."""
        return replace_suffix(object_path, self.dependency_suffix)

    def map(self, source: SourceFile) -> ObjectFile:
        """Map one source file to its ObjectFile."""
        obj = self.object_path(source.path)
        return ObjectFile(obj, source, self.depfile_path(obj))

    def map_all(self, sources: Iterable[SourceFile]) -> list[ObjectFile]:
        """Map every source, preserving order.

        Raises:
            ObjectPathCollisionError: If two distinct sources map to the same
                object path (e.g. ``a.c`` and ``a.cpp`` in one directory).
        """
        result: list[ObjectFile] = []
        owners: dict[str, SourceFile] = {}
        for source in sources:
            obj = self.map(source)
            owner = owners.get(obj.path)
            if owner is not None and owner.path != source.path:
                raise ObjectPathCollisionError(obj.path, [owner.path, source.path])
            if owner is None:
                owners[obj.path] = source
                result.append(obj)
        return result

    def __repr__(self) -> str:
        return (
            f"ObjectPathMapper({self.object_dir!r}, "
            f"{self.object_suffix!r}, {self.dependency_suffix!r})"
        )
