# SPDX-License-Identifier: MIT
"""Tests for incbuild.core.project."""

import io
import logging

import pytest
from conftest import FakeRunner, write_files

from incbuild.core.errors import BuildError, ConfigureError, DependencyCycleError
from incbuild.core.project import Project

CONFIG = """\
sources = ["main.c", "util.c"]
target = "app"
"""

DEPFILES = {
    "obj/main.d": "obj/main.o: main.c h.h\nh.h:\n",
    "obj/util.d": "obj/util.o: util.c\n",
}


@pytest.fixture
def project(make_project_config, tmp_path):
    write_files(tmp_path, {"main.c": "", "util.c": "", "h.h": ""})
    return Project(make_project_config(sources=["main.c", "util.c"], target="app"))


class TestProject:
    def test_from_file(self, tmp_path):
        (tmp_path / "incbuild.toml").write_text(CONFIG)
        project = Project.from_file(tmp_path / "incbuild.toml", {"target": "app2"})
        assert project.root_dir == tmp_path
        assert project.config.target == "app2"
        assert [o.path for o in project.objects] == ["obj/main.o", "obj/util.o"]

    def test_graph_is_cached(self, project):
        assert project.graph is project.graph

    def test_cycle_rejected(self, make_project_config):
        # The final target doubles as an input of its own link
        config = make_project_config(sources=["main.c", "app.o"], target="app.o")
        project = Project(config)
        with pytest.raises(DependencyCycleError):
            _ = project.graph

    def test_prepare_writes_stamps(self, project, tmp_path):
        project.prepare()
        assert (tmp_path / "obj/config.stamp").is_file()
        assert (tmp_path / "obj/inputs.stamp").read_text() == (
            "obj/main.o\nobj/util.o\n"
        )

    def test_raw_binary_inputs_stamp(self, make_project_config, tmp_path):
        write_files(tmp_path, {"main.c": "", "lib/libc.a": ""})
        project = Project(
            make_project_config(
                sources=["main.c", "lib/libc.a"],
                target="fw.bin",
                target_type="raw_binary",
            )
        )
        project.prepare()
        assert (tmp_path / "obj/inputs.stamp").read_text() == (
            "obj/main.o\nlib/libc.a\n"
        )

    def test_prepare_config_independent(self, make_project_config, tmp_path):
        project = Project(
            make_project_config(sources=["main.c"], config_independent=True)
        )
        project.prepare()
        assert not (tmp_path / "obj/config.stamp").exists()
        assert (tmp_path / "obj/inputs.stamp").is_file()


class TestBuild:
    def test_build_and_rebuild_nothing(self, project, tmp_path):
        out = io.StringIO()
        runner = FakeRunner(tmp_path, project.graph, depfiles=DEPFILES)
        result = project.build(runner=runner, output=out)
        assert result.built_outputs() == ["obj", "obj/main.o", "obj/util.o", "app"]
        assert "[4/4] LINK app" in out.getvalue()

        runner = FakeRunner(tmp_path, project.graph, depfiles=DEPFILES)
        result = project.build(runner=runner, output=io.StringIO())
        assert result.built == []
        assert runner.commands == []

    def test_failure_raises(self, project, tmp_path):
        runner = FakeRunner(tmp_path, project.graph, fail=["obj/util.o"])
        with pytest.raises(BuildError) as excinfo:
            project.build(runner=runner, output=io.StringIO(), jobs=1)
        assert excinfo.value.failed == ["obj/util.o"]
        assert not (tmp_path / "app").exists()

    def test_build_named_output(self, project, tmp_path):
        runner = FakeRunner(tmp_path, project.graph, depfiles=DEPFILES)
        result = project.build(["obj/main.o"], runner=runner, output=io.StringIO())
        assert result.built_outputs() == ["obj", "obj/main.o"]


class TestClean:
    def test_clean_paths(self, project):
        assert project.clean_paths() == [
            "obj/main.o",
            "obj/main.d",
            "obj/util.o",
            "obj/util.d",
            "obj/config.stamp",
            "obj/inputs.stamp",
            "app",
        ]

    def test_clean_paths_raw_binary(self, make_project_config):
        project = Project(
            make_project_config(
                sources=["main.c"], target="fw.bin", target_type="raw_binary"
            )
        )
        assert project.clean_paths()[-4:] == ["fw.bin", "fw.elf", "fw.lst", "fw.map"]

    def test_clean_paths_consolidated(self, make_project_config):
        project = Project(
            make_project_config(sources=["main.c"], dependency_mode="consolidated")
        )
        paths = project.clean_paths()
        assert "obj/project.d" in paths
        assert "obj/project.d.raw" in paths
        assert "obj/main.d" not in paths

    def test_clean_removes_outputs(self, project, tmp_path):
        write_files(
            tmp_path,
            {"obj/main.o": "", "obj/main.d": "garbage", "app": "", "obj/keep.txt": ""},
        )
        removed = project.clean()
        assert removed == ["obj/main.o", "obj/main.d", "app"]
        assert (tmp_path / "main.c").exists()
        assert (tmp_path / "obj/keep.txt").exists()

    def test_clean_without_sources_removes_object_root(
        self, make_project_config, tmp_path, caplog
    ):
        write_files(
            tmp_path,
            {"src/main.c": "", "obj/src/main.o": "", "obj/config.stamp": "", "app": ""},
        )
        (tmp_path / "src/main.c").unlink()
        project = Project(make_project_config(sources=["src/"], target="app"))
        with caplog.at_level(logging.WARNING):
            removed = project.clean()
        assert removed == ["obj/config.stamp", "app", "obj"]
        assert not (tmp_path / "obj").exists()
        assert "no source files found" in caplog.text

    def test_clean_all(self, project, tmp_path):
        write_files(tmp_path, {"obj/main.o": "", "obj/keep.txt": ""})
        removed = project.clean(remove_all=True)
        assert removed == ["obj/main.o", "obj"]
        assert not (tmp_path / "obj").exists()
        assert (tmp_path / "main.c").exists()


class TestDump:
    def test_selected_names(self, project):
        assert project.dump(["target", "sources", "objects"]) == (
            "target = app\n"
            "sources = main.c util.c\n"
            "objects = obj/main.o obj/util.o\n"
        )

    def test_all_names(self, project):
        text = project.dump()
        assert "target_type = executable\n" in text
        assert "strip_unused = false\n" in text
        assert "directories = obj\n" in text
        assert "records = obj/main.d obj/util.d\n" in text

    def test_file_flags(self, make_project_config):
        project = Project(
            make_project_config(sources=["a.c"], file_flags={"a.c": ["-O3", "-g"]})
        )
        assert project.dump(["file_flags"]) == "file_flags = a.c:-O3 -g\n"

    def test_unknown_name(self, project):
        with pytest.raises(ConfigureError, match="bogus"):
            project.dump(["bogus"])
