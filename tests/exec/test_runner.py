# SPDX-License-Identifier: MIT
"""Tests for incbuild.exec.runner."""

import sys

from incbuild.core.subst import Command
from incbuild.exec.runner import CommandRunner


class TestCommandRunner:
    def test_success_captures_output(self, tmp_path):
        runner = CommandRunner(tmp_path)
        result = runner.run(Command((sys.executable, "-c", "print('hello')")))
        assert result.ok
        assert result.output == "hello"

    def test_failure(self, tmp_path):
        runner = CommandRunner(tmp_path)
        script = "import sys; sys.stderr.write('boom'); sys.exit(3)"
        result = runner.run(Command((sys.executable, "-c", script)))
        assert not result.ok
        assert result.returncode == 3
        assert "boom" in result.output

    def test_runs_in_cwd(self, tmp_path):
        runner = CommandRunner(tmp_path)
        script = "open('made.txt', 'w').write('x')"
        assert runner.run(Command((sys.executable, "-c", script))).ok
        assert (tmp_path / "made.txt").read_text() == "x"

    def test_stdout_redirect(self, tmp_path):
        runner = CommandRunner(tmp_path)
        script = "import sys; print('listing'); sys.stderr.write('warn')"
        result = runner.run(Command((sys.executable, "-c", script), "out.lst"))
        assert result.ok
        assert (tmp_path / "out.lst").read_text().strip() == "listing"
        assert result.output == "warn"

    def test_missing_program(self, tmp_path):
        runner = CommandRunner(tmp_path)
        result = runner.run(Command(("incbuild-no-such-tool", "x")))
        assert result.returncode == 127
        assert "incbuild-no-such-tool" in result.output

    def test_environment(self, tmp_path):
        runner = CommandRunner(tmp_path, env={"INCBUILD_TEST": "42"})
        script = "import os; print(os.environ['INCBUILD_TEST'])"
        assert runner.run(Command((sys.executable, "-c", script))).output == "42"
