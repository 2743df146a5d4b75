from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from devserve.adapters.base import ServeDetails
from devserve.core.project import Project
from devserve.core.serve import ServeEnvironment


def write_project(directory: Path, **config) -> Path:
    """Write an ionic.config.json into *directory*."""
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "ionic.config.json").write_text(json.dumps(config))
    return directory


def make_backend(details: ServeDetails | None = None) -> MagicMock:
    backend = MagicMock()
    backend.serve = AsyncMock(
        return_value=details or ServeDetails(port=8100, external_addresses=("192.168.1.5",)),
    )
    backend.stop = AsyncMock()
    return backend


def make_env(project: Project, **kwargs) -> ServeEnvironment:
    """ServeEnvironment with mocked collaborators around *project*."""
    loader = MagicMock()
    loader.load = AsyncMock(return_value=project)
    publisher = MagicMock()
    publisher.start = AsyncMock()
    publisher.stop = AsyncMock()
    defaults = dict(
        loader=loader,
        ionic1=make_backend(),
        ionic_angular=make_backend(),
        publisher_factory=MagicMock(return_value=publisher),
        browser_opener=MagicMock(),
        echo=MagicMock(),
    )
    defaults.update(kwargs)
    return ServeEnvironment(**defaults)


@pytest.fixture
def ionic1_project(tmp_path: Path) -> Project:
    return Project(name="myApp", type="ionic1", directory=tmp_path)


@pytest.fixture
def angular_project(tmp_path: Path) -> Project:
    return Project(name="myApp", type="ionic-angular", directory=tmp_path)
