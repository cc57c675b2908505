# SPDX-License-Identifier: MIT
"""GCC toolchain implementation.

Provides the GCC-based C/C++/assembly toolchain:
- GCC C compiler (gcc), also used for assembly and for dependency scans
- GCC C++ compiler (g++)
- GNU archiver (ar)
- Linker (using gcc/g++)
- Binutils for raw images: objcopy, objdump, nm

All tool commands honor the configured toolchain prefix, so
``arm-none-eabi-`` selects ``arm-none-eabi-gcc`` and friends.
"""

from __future__ import annotations

import sys

from incbuild.core.config import TargetType
from incbuild.toolchains.toolchain import BaseToolchain, SourceHandler

# Unprefixed command for each tool name
TOOL_COMMANDS: dict[str, str] = {
    "cc": "gcc",
    "cxx": "g++",
    "ar": "ar",
    "objcopy": "objcopy",
    "objdump": "objdump",
    "nm": "nm",
}


class GccToolchain(BaseToolchain):
    """GCC toolchain for C, C++ and assembly.

    Command templates use two kinds of variables: per-template ones
    ($compiler, $includes, $cflags, ...) expanded by the rule generator, and
    per-edge ones ($in, $out, $depfile, $extra_flags) expanded per rule.
    """

    def __init__(self, prefix: str = "") -> None:
        super().__init__("gcc", prefix)

    def tool_command(self, tool: str) -> str:
        return self.prefix + TOOL_COMMANDS[tool]

    def tool_vars(self) -> dict[str, str]:
        """Return the prefixed command of every tool, keyed by tool name."""
        return {tool: self.tool_command(tool) for tool in TOOL_COMMANDS}

    # =========================================================================
    # Source Handler Methods
    # =========================================================================

    def get_source_handler(self, suffix: str) -> SourceHandler | None:
        """Return handler for source file suffix, or None if not handled."""
        suffix_lower = suffix.lower()
        if suffix == ".c":
            return SourceHandler("cc", "c")
        if suffix_lower in (".cpp", ".cxx", ".cc", ".c++") or suffix == ".C":
            return SourceHandler("cxx", "cxx")
        # Check .S (uppercase) first since .S.lower() == ".s"
        if suffix == ".S":
            # .S files need C preprocessing, so they can have dependencies
            return SourceHandler("cc", "asm-cpp")
        if suffix == ".s":
            # .s files are already preprocessed assembly, no dependency tracking
            return SourceHandler("cc", "asm", None)
        return None

    def default_vars(self) -> dict[str, object]:
        return {
            "depflags": ["-MMD", "-MP", "-MF", "$depfile"],
            "scanflags": ["-MM"],
            "objcmd": [
                "$compiler",
                "$srcdir",
                "$includes",
                "$defines",
                "$cppflags",
                "$langflags",
                "$target_flags",
                "$extra_flags",
                "$depflags",
                "-c",
                "-o",
                "$out",
                "$in",
            ],
            "scancmd": [
                "$cc",
                "$scanflags",
                "$srcdirs",
                "$includes",
                "$defines",
                "$cppflags",
                "$in",
            ],
            "rewritecmd": [
                sys.executable,
                "-m",
                "incbuild.util.commands",
                "rewrite-deps",
                "--object-dir",
                "$object_dir",
                "--object-suffix",
                "$object_suffix",
                "$raw",
                "$record",
            ],
            "progcmd": [
                "$linker",
                "$ldflags",
                "$target_ldflags",
                "-o",
                "$out",
                "$in",
                "$libdirs",
                "$libs",
            ],
            "cleancmd": ["rm", "-f", "$out"],
            "libcmd": ["$ar", "$arflags", "$out", "$in"],
            "mkdircmd": ["mkdir", "-p", "$out"],
            "bincmd": ["$objcopy", "-O", "binary", "$in", "$bin"],
            "lstcmd": ["$objdump", "-d", "$in"],
            "mapcmd": ["$nm", "-n", "$in"],
        }

    def get_compile_flags_for_target_type(self, target_type: TargetType) -> list[str]:
        """Return additional compile flags needed for the target type.

        Shared objects need position-independent code.
        """
        if target_type == TargetType.SHARED_OBJECT:
            return ["-fPIC"]
        return []

    def get_link_flags_for_target_type(self, target_type: TargetType) -> list[str]:
        """Return additional link flags needed for the target type.

        Raw binaries are linked without the default startup files; the
        image is expected to provide its own entry code.
        """
        if target_type == TargetType.SHARED_OBJECT:
            return ["-shared"]
        if target_type == TargetType.RAW_BINARY:
            return ["-nostartfiles"]
        return []

    def get_strip_compile_flags(self) -> list[str]:
        """Flags placing each function and datum in its own section."""
        return ["-ffunction-sections", "-fdata-sections"]

    def get_strip_link_flags(self) -> list[str]:
        """Flags removing unreferenced sections at link time."""
        return ["-Wl,--gc-sections"]
