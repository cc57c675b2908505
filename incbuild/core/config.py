# SPDX-License-Identifier: MIT
"""Build configuration for incbuild.

A BuildConfiguration is read once per invocation (from ``incbuild.toml``
or a JSON file, plus command-line overrides) and is immutable afterwards.
Every component receives it explicitly.

Example incbuild.toml:

    name = "app"
    sources = ["src/", "third_party/miniz.c"]
    suffixes = [".c", ".S"]
    exclude = ["src/experimental.c"]
    include_dirs = ["include"]
    target_type = "executable"
    target = "build/app"

    [file_flags]
    "src/fast_math.c" = ["-O3"]

    [commands]
    ".asm" = "nasm -f elf64 $in -o $out"
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
import tomllib
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from incbuild.core.errors import ConfigureError, UnknownTargetTypeError
from incbuild.core.paths import join_path, normalize_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "incbuild.toml"
CONFIG_STAMP_NAME = "config.stamp"
INPUTS_STAMP_NAME = "inputs.stamp"


class TargetType(Enum):
    """Kind of final build product."""

    EXECUTABLE = "executable"
    SHARED_OBJECT = "shared_object"
    STATIC_ARCHIVE = "static_archive"
    RAW_BINARY = "raw_binary"

    @classmethod
    def parse(cls, value: str | TargetType) -> TargetType:
        """Parse a target type name (or one of its aliases).

        Raises:
            UnknownTargetTypeError: If the name is not recognized.
        """
        if isinstance(value, TargetType):
            return value
        key = str(value).strip().lower().replace("-", "_")
        if key in _TARGET_TYPE_ALIASES:
            return _TARGET_TYPE_ALIASES[key]
        raise UnknownTargetTypeError(str(value))


_TARGET_TYPE_ALIASES: dict[str, TargetType] = {
    "executable": TargetType.EXECUTABLE,
    "program": TargetType.EXECUTABLE,
    "exe": TargetType.EXECUTABLE,
    "shared_object": TargetType.SHARED_OBJECT,
    "shared_library": TargetType.SHARED_OBJECT,
    "so": TargetType.SHARED_OBJECT,
    "static_archive": TargetType.STATIC_ARCHIVE,
    "static_library": TargetType.STATIC_ARCHIVE,
    "archive": TargetType.STATIC_ARCHIVE,
    "raw_binary": TargetType.RAW_BINARY,
    "binary": TargetType.RAW_BINARY,
    "bin": TargetType.RAW_BINARY,
}


class DependencyMode(Enum):
    """How header dependencies are recorded."""

    PER_FILE = "per_file"
    CONSOLIDATED = "consolidated"

    @classmethod
    def parse(cls, value: str | DependencyMode) -> DependencyMode:
        if isinstance(value, DependencyMode):
            return value
        key = str(value).strip().lower().replace("-", "_")
        for mode in cls:
            if mode.value == key:
                return mode
        raise ConfigureError(f"unknown dependency mode: {value!r}")


class Goal(Enum):
    """The operation requested for this invocation."""

    BUILD = "build"
    CLEAN = "clean"
    PRINT = "print"
    GENERATE = "generate"


# Fields that do not influence build outputs
_NON_FINGERPRINT_FIELDS = frozenset(
    ["name", "root_dir", "config_path", "verbose", "jobs"]
)


@dataclass(frozen=True)
class BuildConfiguration:
    """Immutable configuration for one invocation.

    Path-valued settings are stored normalized and relative to root_dir
    (commands run with root_dir as their working directory).

    Attributes:
        name: Project name (informational).
        root_dir: Project root; all relative paths are resolved against it.
        config_path: File the configuration was loaded from, if any.
        toolchain_prefix: Prefix for every tool (e.g. "arm-none-eabi-").
        sources: Source entries; a trailing "/" marks a directory.
        suffixes: Suffixes recognized when expanding directories.
        exclude: Exact paths removed after discovery.
        include_dirs: Include search directories.
        defines: Preprocessor definitions (without -D).
        cppflags: Preprocessor flags for every compile.
        cflags: Flags for C (and assembly) compiles.
        cxxflags: Flags for C++ compiles.
        asflags: Extra flags for assembly compiles.
        ldflags: Link flags.
        libs: Libraries to link (without -l).
        libdirs: Library directories (without -L).
        arflags: Archiver flags.
        file_flags: Per-file extra compile flags, keyed by normalized path.
        commands: Per-suffix custom compile command templates.
        object_dir: Object root directory.
        object_suffix: Suffix of object files.
        dependency_suffix: Suffix of dependency records.
        target_type: Kind of final product.
        target: Output path of the final product.
        target_depends: Paths that must be up to date before linking.
        strip_unused: Enable unused-section elimination.
        dependency_mode: Per-file or consolidated dependency records.
        config_independent: If True, objects do not depend on the config stamp.
        verbose: Print full commands while building.
        jobs: Worker count for the executor (None = one per CPU).
    """

    name: str = "project"
    root_dir: Path = field(default_factory=Path.cwd)
    config_path: Path | None = None
    toolchain_prefix: str = ""
    sources: tuple[str, ...] = ()
    suffixes: tuple[str, ...] = (".c", ".cpp", ".cc", ".cxx", ".S", ".s")
    exclude: tuple[str, ...] = ()
    include_dirs: tuple[str, ...] = ()
    defines: tuple[str, ...] = ()
    cppflags: tuple[str, ...] = ()
    cflags: tuple[str, ...] = ()
    cxxflags: tuple[str, ...] = ()
    asflags: tuple[str, ...] = ()
    ldflags: tuple[str, ...] = ()
    libs: tuple[str, ...] = ()
    libdirs: tuple[str, ...] = ()
    arflags: tuple[str, ...] = ("rcs",)
    file_flags: tuple[tuple[str, tuple[str, ...]], ...] = ()
    commands: tuple[tuple[str, str], ...] = ()
    object_dir: str = "obj"
    object_suffix: str = ".o"
    dependency_suffix: str = ".d"
    target_type: TargetType = TargetType.EXECUTABLE
    target: str = "a.out"
    target_depends: tuple[str, ...] = ()
    strip_unused: bool = False
    dependency_mode: DependencyMode = DependencyMode.PER_FILE
    config_independent: bool = False
    verbose: bool = False
    jobs: int | None = None

    def flags_for_file(self, path: str) -> tuple[str, ...]:
        """Return the per-file flag override for a normalized source path."""
        for key, flags in self.file_flags:
            if key == path:
                return flags
        return ()

    def command_for_suffix(self, suffix: str) -> str | None:
        """Return the custom compile command template for a suffix, if any."""
        for key, command in self.commands:
            if key == suffix:
                return command
        return None

    @property
    def config_stamp(self) -> str:
        """Path of the file recording this configuration's fingerprint."""
        return join_path(self.object_dir, CONFIG_STAMP_NAME)

    @property
    def inputs_stamp(self) -> str:
        """Path of the file listing the inputs of the final link or archive."""
        return join_path(self.object_dir, INPUTS_STAMP_NAME)

    def fingerprint_data(self) -> dict[str, Any]:
        """Return the output-relevant settings as JSON-compatible data."""
        data: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            if f.name in _NON_FINGERPRINT_FIELDS:
                continue
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            data[f.name] = value
        return data

    def fingerprint(self) -> str:
        """Return a stable hash of the output-relevant settings."""
        text = json.dumps(self.fingerprint_data(), sort_keys=True)
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def __repr__(self) -> str:
        return (
            f"BuildConfiguration({self.name!r}, "
            f"target_type={self.target_type.value}, target={self.target!r})"
        )


# Keys whose values are sequences of strings
_LIST_FIELDS = frozenset(
    [
        "sources",
        "suffixes",
        "exclude",
        "include_dirs",
        "defines",
        "cppflags",
        "cflags",
        "cxxflags",
        "asflags",
        "ldflags",
        "libs",
        "libdirs",
        "arflags",
        "target_depends",
    ]
)
_BOOL_FIELDS = frozenset(["strip_unused", "config_independent", "verbose"])
_KNOWN_FIELDS = frozenset(
    f.name for f in dataclasses.fields(BuildConfiguration)
) - {"root_dir", "config_path"}


def _normalize_suffix(suffix: str) -> str:
    suffix = suffix.strip()
    if suffix and not suffix.startswith("."):
        suffix = "." + suffix
    return suffix


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ConfigureError(f"{key}: expected a boolean, got {value!r}")


def _as_list(key: str, value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(value.split())
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value)
    raise ConfigureError(f"{key}: expected a list of strings, got {value!r}")


def _normalize_entry(entry: str) -> str:
    """Normalize a source entry, keeping the trailing directory marker."""
    is_dir = entry.endswith("/") or entry.endswith("\\")
    norm = normalize_path(entry)
    if is_dir and not norm.endswith("/"):
        norm += "/"
    return norm


def make_config(
    data: dict[str, Any],
    *,
    root_dir: Path | str | None = None,
    config_path: Path | None = None,
) -> BuildConfiguration:
    """Create a BuildConfiguration from a plain dictionary.

    Args:
        data: Settings keyed by BuildConfiguration field name.
        root_dir: Project root (default: current directory).
        config_path: File the settings came from (for error messages).

    Returns:
        The validated configuration.

    Raises:
        ConfigureError: On unknown keys or badly typed values.
        UnknownTargetTypeError: If target_type is not recognized.
    """
    context = str(config_path) if config_path else None
    unknown = sorted(set(data) - _KNOWN_FIELDS)
    if unknown:
        raise ConfigureError(
            f"unknown configuration keys: {', '.join(unknown)}", context
        )

    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key in _LIST_FIELDS:
            kwargs[key] = _as_list(key, value)
        elif key in _BOOL_FIELDS:
            kwargs[key] = _as_bool(key, value)
        elif key == "jobs":
            try:
                kwargs[key] = int(value) if value not in (None, "") else None
            except ValueError as e:
                raise ConfigureError(f"jobs: {e}", context) from e
        elif key == "target_type":
            kwargs[key] = TargetType.parse(value)
        elif key == "dependency_mode":
            kwargs[key] = DependencyMode.parse(value)
        elif key == "file_flags":
            if not isinstance(value, dict):
                raise ConfigureError("file_flags: expected a table", context)
            kwargs[key] = tuple(
                sorted(
                    (normalize_path(k), _as_list(f"file_flags.{k}", v))
                    for k, v in value.items()
                )
            )
        elif key == "commands":
            if not isinstance(value, dict):
                raise ConfigureError("commands: expected a table", context)
            kwargs[key] = tuple(
                sorted((_normalize_suffix(k), str(v)) for k, v in value.items())
            )
        else:
            kwargs[key] = str(value)

    if "sources" in kwargs:
        kwargs["sources"] = tuple(_normalize_entry(s) for s in kwargs["sources"])
    if "suffixes" in kwargs:
        kwargs["suffixes"] = tuple(_normalize_suffix(s) for s in kwargs["suffixes"])
    for key in ("exclude", "include_dirs", "libdirs", "target_depends"):
        if key in kwargs:
            kwargs[key] = tuple(normalize_path(p) for p in kwargs[key])
    for key in ("object_dir", "target"):
        if key in kwargs:
            kwargs[key] = normalize_path(kwargs[key])
    for key in ("object_suffix", "dependency_suffix"):
        if key in kwargs:
            kwargs[key] = _normalize_suffix(kwargs[key])

    root = Path(root_dir) if root_dir is not None else Path.cwd()
    if "name" not in kwargs:
        kwargs["name"] = root.resolve().name or "project"
    return BuildConfiguration(root_dir=root, config_path=config_path, **kwargs)


def _coerce_override(key: str, value: str) -> Any:
    """Convert a KEY=value command-line string for a config field."""
    if key in _LIST_FIELDS:
        return value.split()
    return value


def load_config(
    path: Path | str = DEFAULT_CONFIG_FILE,
    overrides: dict[str, str] | None = None,
) -> BuildConfiguration:
    """Load a build configuration file.

    TOML is used for ``.toml`` files, JSON for everything else. The project
    root is the directory containing the file.

    Args:
        path: Path to the config file.
        overrides: KEY=value settings from the command line; they replace
            the file's values for those keys.

    Returns:
        The loaded configuration.

    Raises:
        ConfigureError: If the file is missing, unparsable or invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigureError(f"config file not found: {path}")

    try:
        if path.suffix == ".toml":
            with open(path, "rb") as f:
                data: dict[str, Any] = tomllib.load(f)
        else:
            with open(path) as f:
                data = json.load(f)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
        raise ConfigureError(f"cannot parse configuration: {e}", str(path)) from e

    if not isinstance(data, dict):
        raise ConfigureError("configuration must be a table/object", str(path))

    for key, value in (overrides or {}).items():
        key = key.lower()
        data[key] = _coerce_override(key, value)

    logger.debug("Loaded configuration from %s", path)
    return make_config(data, root_dir=path.parent, config_path=path)


def _write_stamp(stamp: Path, content: str) -> bool:
    """Write a stamp file unless it already holds exactly ``content``."""
    try:
        if stamp.read_text() == content:
            return False
    except FileNotFoundError:
        logger.debug("No stamp %s yet", stamp)
    stamp.parent.mkdir(parents=True, exist_ok=True)
    stamp.write_text(content)
    return True


def write_config_stamp(config: BuildConfiguration) -> bool:
    """Write the configuration stamp if the fingerprint changed.

    The stamp's modification time only advances when the output-relevant
    configuration changes, so objects depending on it are rebuilt exactly
    then.

    Returns:
        True if the stamp was (re)written.
    """
    stamp = config.root_dir / config.config_stamp
    content = json.dumps(
        {"fingerprint": config.fingerprint(), "settings": config.fingerprint_data()},
        indent=2,
        sort_keys=True,
    )
    if not _write_stamp(stamp, content + "\n"):
        return False
    logger.info("Configuration changed; wrote %s", stamp)
    return True


def write_inputs_stamp(config: BuildConfiguration, inputs: Iterable[str]) -> bool:
    """Write the list of final-step inputs if it changed.

    The final link or archive depends on this stamp, so it is redone when
    an object leaves (or joins) the build even though no remaining input
    is newer than the target.

    Returns:
        True if the stamp was (re)written.
    """
    stamp = config.root_dir / config.inputs_stamp
    if not _write_stamp(stamp, "".join(f"{path}\n" for path in inputs)):
        return False
    logger.info("Link inputs changed; wrote %s", stamp)
    return True
