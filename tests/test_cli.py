# SPDX-License-Identifier: MIT
"""Tests for incbuild CLI."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from incbuild.cli import main, parse_variables, setup_logging

CONFIG = """\
name = "hello"
sources = ["main.c", "util.c"]
target = "hello"
"""

MAIN_C = """\
#include <stdio.h>
#include "util.h"

int main(void) {
    printf("Hello, %d!\\n", answer());
    return 0;
}
"""

UTIL_C = """\
#include "util.h"

int answer(void) { return UTIL_ANSWER; }
"""

UTIL_H = """\
#define UTIL_ANSWER 42
int answer(void);
"""


def run_incbuild(*args: str, cwd: Path) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, "-m", "incbuild.cli", *args],
        capture_output=True,
        text=True,
        cwd=cwd,
    )


@pytest.fixture
def hello(tmp_path: Path) -> Path:
    """A small two-file C project."""
    (tmp_path / "incbuild.toml").write_text(CONFIG)
    (tmp_path / "main.c").write_text(MAIN_C)
    (tmp_path / "util.c").write_text(UTIL_C)
    (tmp_path / "util.h").write_text(UTIL_H)
    return tmp_path


class TestParseVariables:
    def test_split(self) -> None:
        variables, remaining = parse_variables(["CFLAGS=-O2 -g", "app", "-k", "=x"])
        assert variables == {"CFLAGS": "-O2 -g"}
        assert remaining == ["app", "-k", "=x"]

    def test_empty_value(self) -> None:
        variables, _ = parse_variables(["defines="])
        assert variables == {"defines": ""}


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_normal(self) -> None:
        setup_logging(verbose=False, debug=False)

    def test_setup_logging_verbose(self) -> None:
        setup_logging(verbose=True, debug=False)

    def test_setup_logging_debug(self) -> None:
        setup_logging(verbose=False, debug=True)


class TestMain:
    """In-process tests of commands that run no tools."""

    def test_print(self, hello: Path, capsys: pytest.CaptureFixture[str]) -> None:
        config = str(hello / "incbuild.toml")
        assert main(["print", "-f", config, "target", "objects"]) == 0
        assert capsys.readouterr().out == (
            "target = hello\nobjects = obj/main.o obj/util.o\n"
        )

    def test_print_with_override(
        self, hello: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = str(hello / "incbuild.toml")
        assert main(["print", "-f", config, "cflags=-O2 -g", "cflags"]) == 0
        assert capsys.readouterr().out == "cflags = -O2 -g\n"

    def test_print_unknown_name(self, hello: Path) -> None:
        assert main(["print", "-f", str(hello / "incbuild.toml"), "bogus"]) == 1

    def test_missing_config(self, tmp_path: Path) -> None:
        assert main(["print", "-f", str(tmp_path / "missing.toml")]) == 1

    def test_generate(self, hello: Path) -> None:
        assert main(["generate", "-f", str(hello / "incbuild.toml")]) == 0
        assert (hello / "build.ninja").is_file()
        assert (hello / "compile_commands.json").is_file()

    def test_generate_one_format(self, hello: Path) -> None:
        config = str(hello / "incbuild.toml")
        assert main(["generate", "-f", config, "--format", "compile_commands"]) == 0
        assert not (hello / "build.ninja").exists()
        assert (hello / "compile_commands.json").is_file()

    def test_clean(self, hello: Path) -> None:
        (hello / "obj").mkdir()
        (hello / "obj" / "main.o").write_text("")
        (hello / "hello").write_text("")
        assert main(["clean", "-f", str(hello / "incbuild.toml")]) == 0
        assert not (hello / "obj" / "main.o").exists()
        assert not (hello / "hello").exists()
        assert (hello / "obj").is_dir()

    def test_clean_all(self, hello: Path) -> None:
        (hello / "obj").mkdir()
        assert main(["clean", "--all", "-f", str(hello / "incbuild.toml")]) == 0
        assert not (hello / "obj").exists()


class TestCLICommands:
    """Tests for CLI commands."""

    def test_help(self, tmp_path: Path) -> None:
        result = run_incbuild("--help", cwd=tmp_path)
        assert result.returncode == 0
        for command in ["build", "clean", "rebuild", "print", "generate"]:
            assert command in result.stdout

    def test_version(self, tmp_path: Path) -> None:
        result = run_incbuild("--version", cwd=tmp_path)
        assert result.returncode == 0
        assert "0.1.0" in result.stdout

    def test_default_command_needs_config(self, tmp_path: Path) -> None:
        result = run_incbuild(cwd=tmp_path)
        assert result.returncode == 1
        assert "config file not found" in result.stderr

    def test_print_from_cwd(self, hello: Path) -> None:
        result = run_incbuild("print", "sources", cwd=hello)
        assert result.returncode == 0, result.stderr
        assert result.stdout == "sources = main.c util.c\n"


@pytest.mark.skipif(shutil.which("gcc") is None, reason="gcc not found")
class TestIntegration:
    """Integration tests for the full build cycle."""

    def test_full_build_cycle(self, hello: Path) -> None:
        result = run_incbuild(cwd=hello)
        assert result.returncode == 0, f"build failed: {result.stdout}{result.stderr}"
        assert "LINK hello" in result.stdout

        run = subprocess.run([str(hello / "hello")], capture_output=True, text=True)
        assert run.returncode == 0
        assert "Hello, 42!" in run.stdout

        # Nothing changed: nothing runs
        result = run_incbuild("build", cwd=hello)
        assert result.returncode == 0
        assert result.stdout == ""

        # A header change rebuilds both objects and relinks
        future = (hello / "hello").stat().st_mtime + 10
        os.utime(hello / "util.h", (future, future))
        result = run_incbuild("build", cwd=hello)
        assert result.returncode == 0, result.stderr
        assert "CC obj/main.o" in result.stdout
        assert "CC obj/util.o" in result.stdout
        assert "LINK hello" in result.stdout

        result = run_incbuild("clean", "--all", cwd=hello)
        assert result.returncode == 0
        assert not (hello / "obj").exists()
        assert not (hello / "hello").exists()

    def test_config_change_rebuilds(self, hello: Path) -> None:
        assert run_incbuild(cwd=hello).returncode == 0
        result = run_incbuild("build", "defines=UNUSED=1", cwd=hello)
        assert result.returncode == 0, result.stderr
        assert "CC obj/main.o" in result.stdout
        assert "CC obj/util.o" in result.stdout

    def test_consolidated_mode(self, hello: Path) -> None:
        result = run_incbuild("build", "dependency_mode=consolidated", cwd=hello)
        assert result.returncode == 0, f"build failed: {result.stdout}{result.stderr}"
        assert "DEPS obj/project.d" in result.stdout
        record = (hello / "obj" / "project.d").read_text()
        assert "obj/main.o:" in record

        result = run_incbuild("build", "dependency_mode=consolidated", cwd=hello)
        assert result.stdout == ""

        future = (hello / "hello").stat().st_mtime + 10
        os.utime(hello / "util.h", (future, future))
        result = run_incbuild("build", "dependency_mode=consolidated", cwd=hello)
        assert result.returncode == 0, result.stderr
        assert "CC obj/main.o" in result.stdout

    def test_consolidated_same_base_names(self, tmp_path: Path) -> None:
        (tmp_path / "incbuild.toml").write_text(
            'name = "twins"\n'
            'sources = ["main.c", "src/", "lib/"]\n'
            'target = "twins"\n'
            'dependency_mode = "consolidated"\n'
        )
        (tmp_path / "main.c").write_text(
            "int src_value(void);\nint lib_value(void);\n"
            "int main(void) { return src_value() + lib_value() - 3; }\n"
        )
        for name, header, value in [("src", "a.h", 1), ("lib", "b.h", 2)]:
            (tmp_path / name).mkdir()
            (tmp_path / name / header).write_text(f"#define VALUE {value}\n")
            (tmp_path / name / "util.c").write_text(
                f'#include "{header}"\nint {name}_value(void) {{ return VALUE; }}\n'
            )

        result = run_incbuild(cwd=tmp_path)
        assert result.returncode == 0, f"build failed: {result.stdout}{result.stderr}"
        record = (tmp_path / "obj" / "project.d").read_text()
        assert "obj/src/util.o:" in record
        assert "obj/lib/util.o:" in record

        # Nothing changed: nothing runs
        result = run_incbuild(cwd=tmp_path)
        assert result.stdout == ""

        # Only the object including the touched header is rebuilt
        future = (tmp_path / "twins").stat().st_mtime + 10
        os.utime(tmp_path / "lib" / "b.h", (future, future))
        result = run_incbuild(cwd=tmp_path)
        assert result.returncode == 0, result.stderr
        assert "CC obj/lib/util.o" in result.stdout
        assert "CC obj/src/util.o" not in result.stdout
        assert "CC obj/main.o" not in result.stdout
        assert "LINK twins" in result.stdout

    def test_compile_error(self, hello: Path) -> None:
        (hello / "util.c").write_text("this is not C\n")
        result = run_incbuild("-k", cwd=hello)
        assert result.returncode == 1
        assert "FAILED: obj/util.o" in result.stdout
        assert not (hello / "obj" / "util.o").exists()
        assert (hello / "obj" / "main.o").exists()
