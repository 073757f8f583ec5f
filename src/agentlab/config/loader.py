"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reset support
- Conversion from dict to typed LabConfig dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from agentlab.config.merge import merge_configs
from agentlab.config.paths import get_config_paths
from agentlab.config.schema import LabConfig, LabSettings, LoggingConfig

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("agentlab.config")

_cached_config: LabConfig | None = None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    LAB_LOG sets the log file, LAB_HOME the laboratories directory.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("LAB_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    home = os.environ.get("LAB_HOME")
    if home:
        overrides.setdefault("lab", {})["home"] = home

    return overrides


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def dict_to_config(data: dict[str, Any]) -> LabConfig:
    """Convert merged dict to typed LabConfig dataclass."""
    defaults = LabSettings()
    lab_data = data.get("lab", {})
    if not isinstance(lab_data, dict):
        lab_data = {}
    lab = LabSettings(
        home=str(lab_data.get("home", defaults.home)),
        max_depth=_as_int(lab_data.get("max_depth"), defaults.max_depth),
        flush_interval=_as_float(lab_data.get("flush_interval"), defaults.flush_interval),
        shell=lab_data.get("shell"),
    )

    log_data = data.get("logging", {})
    if not isinstance(log_data, dict):
        log_data = {}
    verbose = log_data.get("verbose")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        file=log_data.get("file"),
        verbose=_as_int(verbose, 2) if verbose is not None else None,
    )

    known_keys = {"lab", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return LabConfig(lab=lab, logging=logging_config, extra=extra)


def load_config(
    project_root: str | None = None,
    reload: bool = False,
    config_file: Path | None = None,
) -> LabConfig:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Explicit config file (--config)
    3. Project config ($project_root/.lab/config.yaml)
    4. User config (~/.config/agentlab/config.yaml or %APPDATA%)
    5. System config (/etc/agentlab/ or %PROGRAMDATA%)

    Args:
        project_root: Project directory for project-level config.
        reload: Force reload even if cached.
        config_file: Extra config file layered above the project config.

    Returns:
        Merged LabConfig object.
    """
    global _cached_config

    global_load = project_root is None and config_file is None
    if _cached_config is not None and not reload and global_load:
        return _cached_config

    configs: list[dict[str, Any]] = []

    paths = get_config_paths(project_root)
    if config_file is not None:
        paths.append(config_file)

    for path in paths:
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    if global_load:
        _cached_config = config

    return config


def get_config() -> LabConfig:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config.

    Useful for testing or forcing a reload.
    """
    global _cached_config
    _cached_config = None
