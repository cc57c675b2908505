# SPDX-License-Identifier: MIT
"""Tests for incbuild.core.subst."""

import pytest

from incbuild.core.errors import MissingVariableError, SubstitutionError
from incbuild.core.subst import Command, escape, subst, to_shell_command, tokenize


class TestSubstSimple:
    def test_no_variables(self):
        assert subst("gcc -c main.c", {}) == ["gcc", "-c", "main.c"]

    def test_simple_and_braced(self):
        variables = {"cc": "gcc", "out": "x.o"}
        assert subst("$cc -o ${out}", variables) == ["gcc", "-o", "x.o"]

    def test_embedded_string_variable(self):
        assert subst(["-I$dir"], {"dir": "include"}) == ["-Iinclude"]

    def test_escaped_dollar(self):
        assert subst(["echo", "$$HOME"], {}) == ["echo", "$HOME"]

    def test_missing_variable(self):
        with pytest.raises(MissingVariableError) as excinfo:
            subst("$cc -c", {}, context="rule c_main_c")
        assert excinfo.value.variable == "cc"
        assert "rule c_main_c" in str(excinfo.value)


class TestSubstLists:
    def test_whole_token_list_expands(self):
        result = subst(["gcc", "$flags", "-c"], {"flags": ["-O2", "-g"]})
        assert result == ["gcc", "-O2", "-g", "-c"]

    def test_empty_list_vanishes(self):
        assert subst(["gcc", "$flags", "-c"], {"flags": []}) == ["gcc", "-c"]

    def test_single_item_list_can_be_embedded(self):
        assert subst(["-o${out}"], {"out": ["a.o"]}) == ["-oa.o"]

    def test_multi_item_list_cannot_be_embedded(self):
        with pytest.raises(SubstitutionError):
            subst(["-o${out}"], {"out": ["a.o", "b.o"]})

    def test_list_values_are_not_rescanned(self):
        result = subst(["$depflags"], {"depflags": ["-MF", "$depfile"]})
        assert result == ["-MF", "$depfile"]


class TestSubstKeep:
    def test_kept_variables_left_verbatim(self):
        result = subst(
            ["$cc", "-o", "$out", "$in"], {"cc": "gcc"}, keep=("in", "out")
        )
        assert result == ["gcc", "-o", "$out", "$in"]

    def test_kept_embedded_variable_braced(self):
        assert subst(["-MF$depfile"], {}, keep=("depfile",)) == ["-MF${depfile}"]

    def test_dollar_stays_escaped_for_second_stage(self):
        first = subst(["$$x", "$in"], {}, keep=("in",))
        assert first == ["$$x", "$in"]
        assert subst(first, {"in": "a.c"}) == ["$x", "a.c"]

    def test_two_stage_expansion(self):
        template = subst(
            ["$cc", "$cflags", "-c", "-o", "$out", "$in"],
            {"cc": "gcc", "cflags": [escape("-DX=$1")]},
            keep=("in", "out"),
        )
        assert subst(template, {"in": ["a.c"], "out": ["a.o"]}) == [
            "gcc",
            "-DX=$1",
            "-c",
            "-o",
            "a.o",
            "a.c",
        ]


class TestTokenize:
    def test_string_split_shell_style(self):
        assert tokenize("nasm -f 'elf 64' $in") == ["nasm", "-f", "elf 64", "$in"]

    def test_list_copied(self):
        tokens = ["a", "b"]
        result = tokenize(tokens)
        assert result == tokens
        assert result is not tokens

    def test_unbalanced_quote(self):
        with pytest.raises(SubstitutionError):
            tokenize("gcc 'main.c")


class TestShellCommand:
    def test_plain(self):
        assert to_shell_command(Command(("gcc", "-c", "a.c")), shell="bash") == (
            "gcc -c a.c"
        )

    def test_bash_quoting(self):
        command = Command(("echo", "a b", "$HOME"))
        assert to_shell_command(command, shell="bash") == "echo 'a b' '$HOME'"

    def test_stdout_redirect(self):
        command = Command(("nm", "-n", "fw.elf"), "fw.map")
        assert to_shell_command(command, shell="bash") == "nm -n fw.elf > fw.map"

    def test_multiple_commands(self):
        commands = [Command(("rm", "-f", "x.a")), Command(("ar", "rcs", "x.a"))]
        assert to_shell_command(commands, shell="bash") == "rm -f x.a && ar rcs x.a"

    def test_ninja_keeps_variables(self):
        command = Command(("gcc", "-o", "$out", "$in", "-DX=$$1"))
        assert to_shell_command(command, shell="ninja") == "gcc -o $out $in -DX=$$1"

    def test_cmd_quoting(self):
        assert to_shell_command(Command(("echo", "a b")), shell="cmd") == 'echo "a b"'

    def test_empty_token(self):
        assert to_shell_command(Command(("echo", "")), shell="bash") == "echo ''"


def test_escape():
    assert escape("a$b$$c") == "a$$b$$$$c"
