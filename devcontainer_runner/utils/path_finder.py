"""Utilities for finding the project and user settings paths."""

import os
from pathlib import Path
from typing import Optional

from ..core.constants import (
    CONFIG_FILE_NAME,
    DEVCONTAINER_DIR_NAME,
    USER_SETTINGS_ENV,
    USER_SETTINGS_FILE_NAME,
)


class PathFinder:
    """Utility class for locating configuration documents."""

    @staticmethod
    def find_project_root(start: Optional[Path] = None) -> Path:
        """Nearest ancestor of ``start`` holding a ``.devcontainer`` directory.

        Falls back to ``start`` itself when no ancestor has one.
        """
        start = (start or Path.cwd()).resolve()
        for candidate in (start, *start.parents):
            if (candidate / DEVCONTAINER_DIR_NAME).is_dir():
                return candidate
        return start

    @staticmethod
    def project_config_path(project_root: Path, filename: str = CONFIG_FILE_NAME) -> Path:
        return project_root / DEVCONTAINER_DIR_NAME / filename

    @staticmethod
    def user_settings_path() -> Path:
        """User settings document, honouring the override variable and XDG."""
        override = os.environ.get(USER_SETTINGS_ENV)
        if override:
            return Path(override).expanduser()

        config_home = os.environ.get('XDG_CONFIG_HOME')
        base = Path(config_home) if config_home else Path.home() / '.config'
        return base / USER_SETTINGS_FILE_NAME
