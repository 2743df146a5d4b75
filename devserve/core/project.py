"""Project metadata: reads ``ionic.config.json`` and detects the project type."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from devserve.core.errors import FatalError

logger = logging.getLogger(__name__)

PROJECT_FILE = "ionic.config.json"


class ProjectType(str, Enum):
    IONIC1 = "ionic1"
    IONIC_ANGULAR = "ionic-angular"
    CUSTOM = "custom"


@dataclass
class Project:
    """Loaded project metadata.

    ``type`` is kept as a plain string: a config file may name a type this
    tool does not know, which is reported at dispatch time.
    """

    name: str
    type: str
    directory: Path
    proxies: list[dict] = field(default_factory=list)


def _read_package_json(directory: Path) -> dict:
    pkg_path = directory / "package.json"
    if not pkg_path.exists():
        return {}
    try:
        return json.loads(pkg_path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Ignoring unreadable %s: %s", pkg_path, e)
        return {}


def detect_project_type(directory: Path) -> str:
    """Guess the project type from package.json dependencies and layout."""
    pkg = _read_package_json(directory)
    all_deps = {**pkg.get("dependencies", {}), **pkg.get("devDependencies", {})}

    if "@ionic/app-scripts" in all_deps:
        return ProjectType.IONIC_ANGULAR.value
    if (directory / "www").is_dir():
        return ProjectType.IONIC1.value
    return ProjectType.CUSTOM.value


class ProjectLoader:
    """Loads the project rooted at *directory*."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory).expanduser().resolve()

    @property
    def directory(self) -> Path:
        return self._dir

    async def load(self) -> Project:
        config_path = self._dir / PROJECT_FILE
        if not config_path.exists():
            raise FatalError(
                f"{self._dir} does not look like an Ionic project: "
                f"{PROJECT_FILE} not found.\n"
                "Run this command from the project root, or create a new "
                "project with 'devserve start'."
            )
        try:
            data = json.loads(config_path.read_text())
        except json.JSONDecodeError as e:
            raise FatalError(f"{config_path} is not valid JSON: {e}") from e

        project_type = data.get("type")
        if not project_type:
            project_type = detect_project_type(self._dir)
            logger.info("Detected project type: %s", project_type)

        return Project(
            name=data.get("name") or self._dir.name,
            type=str(project_type),
            directory=self._dir,
            proxies=list(data.get("proxies", [])),
        )
