# SPDX-License-Identifier: MIT
"""Tests for incbuild.generators.ninja."""

import logging

import pytest

from incbuild.core.errors import GenerateError
from incbuild.core.project import Project
from incbuild.generators import Generator
from incbuild.generators.ninja import NinjaGenerator, escape_path


def generate_ninja(project):
    NinjaGenerator().generate(project)
    return (project.root_dir / "build.ninja").read_text()


class TestNinjaGenerator:
    def test_is_generator(self):
        gen = NinjaGenerator()
        assert gen.name == "ninja"
        assert isinstance(gen, Generator)

    def test_header(self, make_project_config):
        project = Project(
            make_project_config(name="myproject", sources=["main.c"], target="app")
        )
        content = generate_ninja(project)
        assert content.startswith("# Generated by incbuild for project myproject\n")
        assert "ninja_required_version = 1.3\n" in content

    def test_rules_and_builds(self, make_project_config):
        config = make_project_config(sources=["main.c", "util.c"], target="app")
        project = Project(config)
        content = generate_ninja(project)

        mkdir = "rule mkdir\n  command = mkdir -p $out\n  description = MKDIR $out\n"
        assert mkdir in content
        assert (
            "rule c_main_c\n"
            "  command = gcc -I. $extra_flags -MMD -MP -MF $depfile -c -o $out $in\n"
            "  description = CC $out\n"
            "  depfile = $depfile\n"
        ) in content
        assert "build obj: mkdir\n" in content
        assert (
            "build obj/main.o: c_main_c main.c | obj/config.stamp || obj\n"
            "  depfile = obj/main.d\n"
        ) in content
        assert "build app: link obj/main.o obj/util.o | obj/inputs.stamp\n" in content
        assert content.endswith("\ndefault app\n")

    def test_writes_stamps(self, make_project_config, tmp_path):
        project = Project(make_project_config(sources=["main.c"]))
        generate_ninja(project)
        assert (tmp_path / "obj/config.stamp").is_file()
        assert (tmp_path / "obj/inputs.stamp").read_text() == "obj/main.o\n"

    def test_group_template_shared(self, make_project_config, tmp_path):
        for name in ["src/a.c", "src/b.c"]:
            (tmp_path / name).parent.mkdir(exist_ok=True)
            (tmp_path / name).write_text("")
        project = Project(make_project_config(sources=["src/"], target="app"))
        content = generate_ninja(project)
        assert content.count("rule c_src_c\n") == 1
        assert "  # obj/src/%.o: src/%.c\n" in content
        assert "build obj/src/a.o: c_src_c src/a.c" in content
        assert "build obj/src/b.o: c_src_c src/b.c" in content

    def test_per_file_flags(self, make_project_config):
        project = Project(
            make_project_config(sources=["main.c"], file_flags={"main.c": ["-DX=$1"]})
        )
        content = generate_ninja(project)
        assert "  extra_flags = -DX=$$1\n" in content

    def test_raw_binary_outputs(self, make_project_config):
        project = Project(
            make_project_config(
                sources=["main.c"], target="fw.bin", target_type="raw_binary"
            )
        )
        content = generate_ninja(project)
        assert "build fw.elf: link obj/main.o | obj/inputs.stamp\n" in content
        assert "build fw.bin fw.lst fw.map: extract fw.elf\n" in content
        assert (
            "  command = objcopy -O binary $in fw.bin && objdump -d $in > fw.lst"
            " && nm -n $in > fw.map\n"
        ) in content

    def test_consolidated_mode_warns(self, make_project_config, caplog):
        project = Project(
            make_project_config(sources=["main.c"], dependency_mode="consolidated")
        )
        with caplog.at_level(logging.WARNING):
            content = generate_ninja(project)
        assert "consolidated" in caplog.text
        assert "build obj/project.d obj/project.d.raw: depscan main.c" in content

    def test_output_dir_must_be_root(self, make_project_config, tmp_path):
        project = Project(make_project_config(sources=["main.c"]))
        with pytest.raises(GenerateError):
            NinjaGenerator().generate(project, tmp_path / "elsewhere")


def test_escape_path():
    assert escape_path("a b/c:d$e") == "a$ b/c$:d$$e"
