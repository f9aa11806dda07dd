"""Tests for prompttrail.config_file: TOML discovery and section access."""

from __future__ import annotations

import tomllib
from pathlib import Path

import pytest

from prompttrail import config_file
from prompttrail.config_file import (
    find_config,
    get_section,
    load_config,
)


@pytest.fixture()
def isolated_home(tmp_path: Path, monkeypatch) -> Path:
    """Point home, cwd and the project root at empty temp directories."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    project = tmp_path / "project"
    for d in (home, work, project):
        d.mkdir()
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: home))
    monkeypatch.setattr(config_file, "_PROJECT_ROOT", project)
    monkeypatch.chdir(work)
    return tmp_path


class TestFindConfig:
    def test_none_found(self, isolated_home):
        assert find_config() is None

    def test_cwd_wins(self, isolated_home: Path):
        cwd_file = isolated_home / "work" / "prompttrail.toml"
        cwd_file.write_text("", encoding="utf-8")
        xdg = isolated_home / "home" / ".config" / "prompttrail"
        xdg.mkdir(parents=True)
        (xdg / "prompttrail.toml").write_text("", encoding="utf-8")
        assert find_config() == Path.cwd() / "prompttrail.toml"

    def test_xdg_location(self, isolated_home: Path):
        xdg = isolated_home / "home" / ".config" / "prompttrail"
        xdg.mkdir(parents=True)
        (xdg / "prompttrail.toml").write_text("", encoding="utf-8")
        assert find_config() == xdg / "prompttrail.toml"

    def test_project_root_last(self, isolated_home: Path):
        project_file = isolated_home / "project" / "prompttrail.toml"
        project_file.write_text("", encoding="utf-8")
        assert find_config() == project_file


class TestLoadAndAccess:
    def test_load_config(self, tmp_path: Path):
        path = tmp_path / "prompttrail.toml"
        path.write_text("[session]\nmax_interactions = 12\n", encoding="utf-8")
        data = load_config(path)
        assert get_section(data, "session") == {"max_interactions": 12}

    def test_invalid_toml_raises(self, tmp_path: Path):
        path = tmp_path / "prompttrail.toml"
        path.write_text("[session\n", encoding="utf-8")
        with pytest.raises(tomllib.TOMLDecodeError):
            load_config(path)

    def test_get_section(self):
        data = {"session": {"max_interactions": 3}, "privacy": "oops"}
        assert get_section(data, "session") == {"max_interactions": 3}
        assert get_section(data, "privacy") == {}
        assert get_section(data, "store") == {}
