"""Configuration schema dataclasses for agentlab.

Defines the structure of configuration at all levels (system, user, project).
All fields have defaults to support partial configs that merge together.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    file: str | None = None  # Log file path
    verbose: int | None = None  # 0-4, takes precedence over level


@dataclass
class LabSettings:
    """Lab engine settings.

    Example config.yaml:
        lab:
          home: ~/.laboratories
          max_depth: 10
          flush_interval: 1.0
    """

    home: str = ".laboratories"  # Parent directory of laboratory workspaces
    max_depth: int = 10  # Re-entrant ^ / $ dispatch ceiling
    flush_interval: float = 1.0  # Seconds between process log flushes
    shell: str | None = None  # Shell used for ! commands (None = /bin/sh)


@dataclass
class LabConfig:
    """Root configuration object."""

    lab: LabSettings = field(default_factory=LabSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)  # Unknown top-level keys
