from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import write_project
from devserve.core.errors import FatalError
from devserve.core.project import ProjectLoader, ProjectType, detect_project_type


class TestDetectProjectType:
    def test_app_scripts_dependency(self, tmp_path: Path):
        pkg = {"devDependencies": {"@ionic/app-scripts": "3.2.0"}}
        (tmp_path / "package.json").write_text(json.dumps(pkg))
        assert detect_project_type(tmp_path) == "ionic-angular"

    def test_www_directory(self, tmp_path: Path):
        (tmp_path / "www").mkdir()
        assert detect_project_type(tmp_path) == "ionic1"

    def test_app_scripts_wins_over_www(self, tmp_path: Path):
        (tmp_path / "www").mkdir()
        pkg = {"dependencies": {"@ionic/app-scripts": "3.2.0"}}
        (tmp_path / "package.json").write_text(json.dumps(pkg))
        assert detect_project_type(tmp_path) == "ionic-angular"

    def test_nothing_is_custom(self, tmp_path: Path):
        assert detect_project_type(tmp_path) == "custom"

    def test_invalid_package_json_ignored(self, tmp_path: Path):
        (tmp_path / "package.json").write_text("{not json")
        (tmp_path / "www").mkdir()
        assert detect_project_type(tmp_path) == "ionic1"


class TestProjectLoader:
    @pytest.mark.asyncio
    async def test_load_explicit_type(self, tmp_path: Path):
        write_project(tmp_path, name="myApp", type="ionic1")
        project = await ProjectLoader(tmp_path).load()
        assert project.name == "myApp"
        assert project.type == ProjectType.IONIC1
        assert project.directory == tmp_path.resolve()
        assert project.proxies == []

    @pytest.mark.asyncio
    async def test_unknown_type_kept(self, tmp_path: Path):
        write_project(tmp_path, name="myApp", type="ionic-react")
        project = await ProjectLoader(tmp_path).load()
        assert project.type == "ionic-react"

    @pytest.mark.asyncio
    async def test_detects_missing_type(self, tmp_path: Path):
        write_project(tmp_path, name="myApp")
        (tmp_path / "www").mkdir()
        project = await ProjectLoader(tmp_path).load()
        assert project.type == "ionic1"

    @pytest.mark.asyncio
    async def test_name_defaults_to_directory(self, tmp_path: Path):
        write_project(tmp_path / "coolapp", type="ionic1")
        project = await ProjectLoader(tmp_path / "coolapp").load()
        assert project.name == "coolapp"

    @pytest.mark.asyncio
    async def test_proxies(self, tmp_path: Path):
        proxies = [{"path": "/api", "proxyUrl": "http://example.com/api"}]
        write_project(tmp_path, name="a", type="ionic1", proxies=proxies)
        project = await ProjectLoader(tmp_path).load()
        assert project.proxies == proxies

    @pytest.mark.asyncio
    async def test_missing_config_is_fatal(self, tmp_path: Path):
        with pytest.raises(FatalError, match="ionic.config.json not found"):
            await ProjectLoader(tmp_path).load()

    @pytest.mark.asyncio
    async def test_invalid_json_is_fatal(self, tmp_path: Path):
        (tmp_path / "ionic.config.json").write_text("{{")
        with pytest.raises(FatalError, match="not valid JSON"):
            await ProjectLoader(tmp_path).load()
