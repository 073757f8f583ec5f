"""Configuration management for agentlab.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/agentlab/ or %PROGRAMDATA%)
- User-level config (~/.config/agentlab/ or %APPDATA%)
- Project-level config ($project_root/.lab/)
- Environment variable overrides (highest priority)

Example usage:
    from agentlab.config import load_config

    config = load_config(project_root="/path/to/project")
    print(config.lab.max_depth)
"""

from agentlab.config.loader import (
    get_config,
    load_config,
    reset_config,
)
from agentlab.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from agentlab.config.schema import (
    LabConfig,
    LabSettings,
    LoggingConfig,
)

__all__ = [
    "LabConfig",
    "LabSettings",
    "LoggingConfig",
    "load_config",
    "get_config",
    "reset_config",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
