"""Where config files live on each platform.

    system   /etc/agentlab/config.yaml          %PROGRAMDATA%\\agentlab\\config.yaml
    user     $XDG_CONFIG_HOME/agentlab/...      %APPDATA%\\agentlab\\config.yaml
             ~/.config/agentlab/... if ~/.config exists, else ~/.lab/...
    project  <project_root>/.lab/config.yaml
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "agentlab"
SHORT_NAME = ".lab"


def _windows() -> bool:
    return sys.platform == "win32"


def _under(directory: str | Path | None) -> Path | None:
    if not directory:
        return None
    return Path(directory) / APP_NAME / CONFIG_FILENAME


def get_system_config_path() -> Path | None:
    """System-wide config file (may not exist)."""
    if _windows():
        return _under(os.environ.get("PROGRAMDATA"))
    return _under("/etc")


def get_user_config_path() -> Path | None:
    """Per-user config file (may not exist)."""
    if _windows():
        return _under(os.environ.get("APPDATA"))

    path = _under(os.environ.get("XDG_CONFIG_HOME"))
    if path is not None:
        return path
    dot_config = Path.home() / ".config"
    if dot_config.exists():
        return _under(dot_config)
    return Path.home() / SHORT_NAME / CONFIG_FILENAME


def get_project_config_path(project_root: str) -> Path:
    return Path(project_root) / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(project_root: str | None = None) -> list[Path]:
    """Candidate config files, lowest priority first."""
    candidates = [get_system_config_path(), get_user_config_path()]
    if project_root:
        candidates.append(get_project_config_path(project_root))
    return [path for path in candidates if path is not None]
