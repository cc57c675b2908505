# SPDX-License-Identifier: MIT
"""Tests for incbuild.util.commands."""

import subprocess
import sys

from incbuild.core.depends import parse_depfile
from incbuild.util.commands import main, rewrite_deps

RAW = "main.o: src/main.c include/a.h\ninclude/a.h:\nutil.o: ../lib/util.c\n"


class TestRewriteDeps:
    def test_rewrite(self, tmp_path):
        raw = tmp_path / "project.d.raw"
        raw.write_text(RAW)
        record = tmp_path / "obj" / "project.d"
        rewrite_deps(str(raw), str(record), "obj", ".o")
        assert parse_depfile(record.read_text()) == {
            "obj/src/main.o": ("src/main.c", "include/a.h"),
            "obj/__/lib/util.o": ("../lib/util.c",),
        }
        assert not (tmp_path / "obj" / "project.d.tmp").exists()

    def test_main(self, tmp_path):
        raw = tmp_path / "raw"
        raw.write_text(RAW)
        record = tmp_path / "record"
        argv = ["rewrite-deps", "--object-dir", "build", str(raw), str(record)]
        assert main(argv) == 0
        assert "build/src/main.o" in parse_depfile(record.read_text())

    def test_main_missing_input(self, tmp_path, capsys):
        argv = [
            "rewrite-deps",
            "--object-dir",
            "obj",
            str(tmp_path / "missing"),
            str(tmp_path / "record"),
        ]
        assert main(argv) == 1
        assert "rewrite-deps" in capsys.readouterr().err
        assert not (tmp_path / "record").exists()

    def test_main_malformed_input(self, tmp_path):
        raw = tmp_path / "raw"
        raw.write_text("no separator here\n")
        argv = ["rewrite-deps", "--object-dir", "obj", str(raw), str(tmp_path / "rec")]
        assert main(argv) == 1

    def test_module_invocation(self, tmp_path):
        raw = tmp_path / "raw"
        raw.write_text(RAW)
        result = subprocess.run(
            [
                sys.executable,
                "-m",
                "incbuild.util.commands",
                "rewrite-deps",
                "--object-dir",
                "obj",
                "--object-suffix",
                ".obj",
                "raw",
                "out.d",
            ],
            cwd=tmp_path,
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0, result.stderr
        assert "obj/src/main.obj" in parse_depfile((tmp_path / "out.d").read_text())
