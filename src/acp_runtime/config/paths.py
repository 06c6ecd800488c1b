"""Platform-aware configuration path resolution.

Config files are looked up at:
- Windows: %PROGRAMDATA% (system), %APPDATA% (user)
- Unix: /etc/ (system), ~/.config/acp-runtime/ or ~/.acp-runtime/ (user)
- Project: <project_root>/.acp-runtime/
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "acp-runtime"
DOT_DIR = ".acp-runtime"


def get_system_config_path() -> Path | None:
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
        return None
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    """Get the user-level config path.

    The file may not exist.
    """
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()
    if (home / ".config").exists():
        return home / ".config" / APP_NAME / CONFIG_FILENAME
    return home / DOT_DIR / CONFIG_FILENAME


def get_project_config_path(project_root: str) -> Path:
    return Path(project_root) / DOT_DIR / CONFIG_FILENAME


def get_config_paths(project_root: str | None = None) -> list[Path]:
    """Config paths in load order (lowest priority first)."""
    paths: list[Path] = []

    system = get_system_config_path()
    if system:
        paths.append(system)

    user = get_user_config_path()
    if user:
        paths.append(user)

    if project_root:
        paths.append(get_project_config_path(project_root))

    return paths
