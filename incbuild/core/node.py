# SPDX-License-Identifier: MIT
"""Nodes of the build graph.

A node is a path in the build graph: a source, an object, a dependency
record, a directory, the final target or one of its side artifacts.
Nodes produced by a rule know their builder; the prerequisite edges are
the builder's inputs.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from incbuild.core.rules import Rule


class NodeKind(Enum):
    SOURCE = "source"
    OBJECT = "object"
    DEPENDENCY_RECORD = "dependency_record"
    DIRECTORY = "directory"
    TARGET = "target"
    STAMP = "stamp"
    ARTIFACT = "artifact"


class Node:
    """An entry in the project dependency graph.

    Attributes:
        path: Normalized path (graph key).
        kind: What the node represents.
        builder: Rule producing this node, or None for leaf inputs.
    """

    __slots__ = ("path", "kind", "builder")

    def __init__(self, path: str, kind: NodeKind = NodeKind.SOURCE) -> None:
        self.path = path
        self.kind = kind
        self.builder: Rule | None = None

    @property
    def is_leaf(self) -> bool:
        """True if no rule produces this node."""
        return self.builder is None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.path!r}, {self.kind.value})"


class FileNode(Node):
    """A file in the file system, existing or to be built."""


class DirNode(Node):
    """A directory that must exist before files are written into it."""

    def __init__(self, path: str) -> None:
        super().__init__(path, NodeKind.DIRECTORY)
