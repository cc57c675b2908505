# SPDX-License-Identifier: MIT
"""Command helpers for incbuild build rules.

These helpers are invoked from generated rules using Python, so they work
the same under the built-in executor and under Ninja.

Usage in build rules:
    python -m incbuild.util.commands rewrite-deps \
        --object-dir <dir> --object-suffix <suffix> <raw> <record>
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from incbuild.core.depends import rewrite_consolidated
from incbuild.core.errors import DependencyRecordError
from incbuild.core.mapper import ObjectPathMapper


def rewrite_deps(raw: str, record: str, object_dir: str, object_suffix: str) -> None:
    """Rewrite raw dependency scan output into the consolidated record.

    The record is replaced atomically so a reader never sees a partial file.
    """
    text = Path(raw).read_text(encoding="utf-8")
    mapper = ObjectPathMapper(object_dir, object_suffix)
    rewritten = rewrite_consolidated(text, mapper)

    dest = Path(record)
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp = dest.with_name(dest.name + ".tmp")
    tmp.write_text(rewritten, encoding="utf-8")
    os.replace(tmp, dest)


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(
        prog="python -m incbuild.util.commands",
        description="Helpers invoked from incbuild rules",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    rewrite = subparsers.add_parser(
        "rewrite-deps", help="Map scanned dependency records to object paths"
    )
    rewrite.add_argument("--object-dir", required=True, help="Object root")
    rewrite.add_argument("--object-suffix", default=".o", help="Object file suffix")
    rewrite.add_argument("raw", help="Raw scan output")
    rewrite.add_argument("record", help="Consolidated record to write")

    args = parser.parse_args(argv)

    if args.command == "rewrite-deps":
        try:
            rewrite_deps(args.raw, args.record, args.object_dir, args.object_suffix)
        except (OSError, DependencyRecordError) as e:
            print(f"rewrite-deps: {e}", file=sys.stderr)
            return 1
        return 0

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
