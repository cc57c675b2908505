# SPDX-License-Identifier: MIT
"""Lexical path normalization.

Paths are graph keys, so every path that enters the build graph is
normalized here first. Normalization never touches the filesystem and is
not symlink-aware: ``a/link/../b`` becomes ``a/b`` even if ``link`` is a
symlink.
"""

from __future__ import annotations

# Marker that replaces ".." segments below the object root
PARENT_MARKER = "__"


def normalize_path(path: str) -> str:
    """Return the canonical form of a path.

    - Backslashes are treated as separators and repeated separators collapse.
    - ``.`` segments are removed.
    - ``..`` cancels a preceding real segment; leading ``..`` segments of a
      relative path are kept, and ``..`` directly under ``/`` is dropped.
    - An empty result is ``.``.

    The function is idempotent: ``normalize_path(normalize_path(p)) ==
    normalize_path(p)`` for every string ``p``.

    Args:
        path: Path string (or anything with a string form, e.g. Path).

    Returns:
        The normalized path using ``/`` separators.
    """
    text = str(path).replace("\\", "/")
    absolute = text.startswith("/")

    parts: list[str] = []
    for segment in text.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts and parts[-1] != "..":
                parts.pop()
            elif not absolute:
                parts.append(segment)
            continue
        parts.append(segment)

    joined = "/".join(parts)
    if absolute:
        return "/" + joined
    return joined or "."


def join_path(*parts: str) -> str:
    """Join path parts and normalize the result.

    Unlike os.path.join, an absolute later part does not discard the
    earlier parts.
    """
    return normalize_path("/".join(str(p) for p in parts if str(p)))


def parent_dir(path: str) -> str:
    """Return the normalized parent directory of a path (``.`` for bare names)."""
    norm = normalize_path(path)
    head, sep, _ = norm.rpartition("/")
    if not sep:
        return "."
    return head or "/"


def split_suffix(path: str) -> tuple[str, str]:
    """Split a path into (stem path, suffix).

    Only the final segment is inspected; leading dots (hidden files) are not
    suffixes.
    """
    head, sep, name = path.rpartition("/")
    dot = name.rfind(".")
    if dot <= 0:
        return path, ""
    return head + sep + name[:dot], name[dot:]


def replace_suffix(path: str, suffix: str) -> str:
    """Replace (or add) the suffix of the final path segment."""
    stem, _ = split_suffix(path)
    return stem + suffix


def remap_parent_segments(path: str) -> str:
    """Rewrite every ``..`` segment to the reserved marker.

    Used to keep outputs under an output root when sources live above the
    project root (``../lib/x.c`` -> ``__/lib/x.c``).
    """
    segments = path.split("/")
    return "/".join(PARENT_MARKER if s == ".." else s for s in segments)


def is_special_dir(path: str) -> bool:
    """Return True for directories that always exist (``.`` and ``/``)."""
    return path in (".", "/", "")
