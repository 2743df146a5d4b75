from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from devserve.adapters.ionic_angular import DEFAULT_APP_SCRIPTS


@dataclass
class Config:
    log_level: str = "INFO"
    log_file: Path | None = None
    starter_branch: str = "master"
    download_timeout: float = 120.0
    app_scripts: list[str] = field(default_factory=lambda: list(DEFAULT_APP_SCRIPTS))

    @classmethod
    def from_env(cls) -> Config:
        load_dotenv()
        log_level = os.environ.get("DEVSERVE_LOG_LEVEL", "INFO").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"DEVSERVE_LOG_LEVEL is not a logging level: {log_level}")
        log_file = os.environ.get("DEVSERVE_LOG_FILE", "")
        app_scripts = os.environ.get("DEVSERVE_APP_SCRIPTS", "")
        return cls(
            log_level=log_level,
            log_file=Path(log_file).expanduser() if log_file else None,
            starter_branch=os.environ.get("DEVSERVE_STARTER_BRANCH", "") or "master",
            download_timeout=float(os.environ.get("DEVSERVE_DOWNLOAD_TIMEOUT", "120")),
            app_scripts=shlex.split(app_scripts) if app_scripts else list(DEFAULT_APP_SCRIPTS),
        )
