# SPDX-License-Identifier: MIT
"""Command-line interface for incbuild."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from incbuild.core.config import DEFAULT_CONFIG_FILE
from incbuild.core.errors import BuildError, IncbuildError
from incbuild.core.project import Project
from incbuild.generators import CompileCommandsGenerator, NinjaGenerator

# Set up logging
logger = logging.getLogger("incbuild")

GENERATORS = {
    "ninja": NinjaGenerator,
    "compile_commands": CompileCommandsGenerator,
}

COMMANDS = ("build", "clean", "rebuild", "print", "generate")


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if debug:
        level = logging.DEBUG
        fmt = "%(levelname)s: %(name)s: %(message)s"
    elif verbose:
        level = logging.INFO
        fmt = "%(levelname)s: %(message)s"
    else:
        level = logging.WARNING
        fmt = "%(levelname)s: %(message)s"

    logging.basicConfig(level=level, format=fmt)


def parse_variables(args: list[str]) -> tuple[dict[str, str], list[str]]:
    """Parse KEY=value arguments from a list.

    Args:
        args: List of arguments.

    Returns:
        Tuple of (variables dict, remaining args).
    """
    variables: dict[str, str] = {}
    remaining: list[str] = []

    for arg in args:
        if "=" in arg and not arg.startswith("-"):
            key, _, value = arg.partition("=")
            if key:  # Valid KEY=value
                variables[key] = value
            else:
                remaining.append(arg)
        else:
            remaining.append(arg)

    return variables, remaining


def load_project(args: argparse.Namespace) -> tuple[Project, list[str]]:
    """Load the project named by -f, applying KEY=value overrides.

    Returns:
        The project and the non-variable extra arguments.
    """
    variables, remaining = parse_variables(getattr(args, "extra", []))
    if args.verbose:
        variables.setdefault("verbose", "true")
    project = Project.from_file(Path(args.file), variables)
    return project, remaining


def cmd_build(args: argparse.Namespace) -> int:
    """Bring the target (or the named outputs) up to date."""
    project, targets = load_project(args)
    try:
        result = project.build(
            targets or None,
            jobs=getattr(args, "jobs", None),
            keep_going=getattr(args, "keep_going", False),
        )
    except BuildError as e:
        logger.error("%s", e)
        return 1
    if not result.built:
        logger.info("%s is up to date", project.config.target)
    return 0


def cmd_clean(args: argparse.Namespace) -> int:
    """Remove objects, dependency records and the target."""
    project, _ = load_project(args)
    removed = project.clean(remove_all=getattr(args, "all", False))
    logger.info("Removed %d files", len(removed))
    return 0


def cmd_rebuild(args: argparse.Namespace) -> int:
    """Clean, then build."""
    result = cmd_clean(args)
    if result != 0:
        return result
    return cmd_build(args)


def cmd_print(args: argparse.Namespace) -> int:
    """Print the resolved sources, objects and flags."""
    project, names = load_project(args)
    sys.stdout.write(project.dump(names))
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Write build.ninja and/or compile_commands.json."""
    project, _ = load_project(args)
    formats = args.format or list(GENERATORS)
    for name in formats:
        path = GENERATORS[name]().generate(project)
        logger.info("Generated %s", path)
    return 0


def add_common_args(parser: argparse.ArgumentParser) -> None:
    """Add common arguments to a parser."""
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug output")
    parser.add_argument(
        "-f",
        "--file",
        default=DEFAULT_CONFIG_FILE,
        help=f"Project configuration file (default: {DEFAULT_CONFIG_FILE})",
    )


def add_build_args(parser: argparse.ArgumentParser) -> None:
    """Add arguments for commands that run the build."""
    parser.add_argument("-j", "--jobs", type=int, help="Number of parallel jobs")
    parser.add_argument(
        "-k",
        "--keep-going",
        action="store_true",
        help="Keep building rules unaffected by a failure",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the incbuild CLI."""
    parser = argparse.ArgumentParser(
        prog="incbuild",
        description="A configuration-driven incremental build engine.",
        epilog="Run 'incbuild <command> --help' for command-specific help.",
    )
    from incbuild import __version__

    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # incbuild build
    build_parser = subparsers.add_parser("build", help="Build the target (default)")
    add_common_args(build_parser)
    add_build_args(build_parser)
    build_parser.add_argument(
        "extra", nargs="*", help="Build variables (KEY=value) or outputs to build"
    )
    build_parser.set_defaults(func=cmd_build)

    # incbuild clean
    clean_parser = subparsers.add_parser("clean", help="Remove build outputs")
    add_common_args(clean_parser)
    clean_parser.add_argument(
        "-a", "--all", action="store_true", help="Also remove the whole object root"
    )
    clean_parser.add_argument("extra", nargs="*", help="Build variables (KEY=value)")
    clean_parser.set_defaults(func=cmd_clean)

    # incbuild rebuild
    rebuild_parser = subparsers.add_parser("rebuild", help="Clean, then build")
    add_common_args(rebuild_parser)
    add_build_args(rebuild_parser)
    rebuild_parser.add_argument(
        "extra", nargs="*", help="Build variables (KEY=value) or outputs to build"
    )
    rebuild_parser.set_defaults(func=cmd_rebuild)

    # incbuild print
    print_parser = subparsers.add_parser(
        "print", help="Show resolved sources, objects and flags"
    )
    add_common_args(print_parser)
    print_parser.add_argument(
        "extra", nargs="*", help="Build variables (KEY=value) or names to show"
    )
    print_parser.set_defaults(func=cmd_print)

    # incbuild generate
    gen_parser = subparsers.add_parser(
        "generate", help="Write build.ninja and compile_commands.json"
    )
    add_common_args(gen_parser)
    gen_parser.add_argument(
        "--format",
        action="append",
        choices=sorted(GENERATORS),
        help="Output format (repeatable; default: all)",
    )
    gen_parser.add_argument("extra", nargs="*", help="Build variables (KEY=value)")
    gen_parser.set_defaults(func=cmd_generate)

    argv = list(sys.argv[1:] if argv is None else argv)

    # Default command: build
    if not any(arg in COMMANDS or arg in ("-h", "--help", "--version") for arg in argv):
        argv.insert(0, "build")

    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.debug)

    try:
        result: int = args.func(args)
    except IncbuildError as e:
        logger.error("%s", e)
        return 1
    return result


if __name__ == "__main__":
    sys.exit(main())
