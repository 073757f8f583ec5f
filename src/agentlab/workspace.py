"""Persisted, dot-path-addressed variable store for a laboratory.

Layout of ``workspace.json``:
    {
      "variables": {...},   # user variables, nested by dot path
      "states": {...}       # reserved
    }
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from agentlab.context.dotpath import data_forget, data_get, data_set, deep_union, dots
from agentlab.logging import get_logger

log = get_logger("workspace")

WORKSPACE_FILENAME = "workspace.json"


class Workspace:
    """Dot-path variable store, saved synchronously on every change."""

    def __init__(self, path: Path | str, autoload: bool = True) -> None:
        """Create the workspace.

        Args:
            path: Path of the workspace JSON file.
            autoload: Load persisted values immediately.
        """
        self.path = Path(path)
        self.variables: dict[str, Any] = {}
        self.states: dict[str, Any] = {}
        if autoload:
            self.load()

    def get(self, name: str, default: Any = None) -> Any:
        return data_get(self.variables, name, default)

    def has(self, name: str) -> bool:
        sentinel = object()
        return data_get(self.variables, name, sentinel) is not sentinel

    def set(self, name: str, value: Any = None) -> None:
        data_set(self.variables, name, value)
        self.save()

    def forget(self, name: str) -> None:
        data_forget(self.variables, name)
        self.save()

    def dots(self) -> dict[str, Any]:
        """Variables flattened to ``{"a.b": value}`` pairs."""
        return dots(self.variables)

    def to_dict(self) -> dict[str, Any]:
        return {"variables": self.variables, "states": self.states}

    def save(self) -> bool:
        """Write the workspace file. Returns False (and logs) on failure."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps(self.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8"
            )
        except (OSError, TypeError, ValueError) as e:
            log.debug("Failed to save workspace %s: %s", self.path, e)
            return False
        return True

    def load(self) -> None:
        """Merge persisted values into the in-memory defaults.

        Keys whose persisted type differs from the default's type are
        skipped. Mappings are deep-unioned, anything else replaced.
        """
        if not self.path.is_file():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            log.warning("Ignoring unreadable workspace %s: %s", self.path, e)
            return
        if not isinstance(data, dict):
            return

        for key, value in data.items():
            if key not in ("variables", "states"):
                continue
            current = getattr(self, key)
            if type(value) is not type(current):
                log.debug("Skipping workspace key %s: expected %s", key, type(current).__name__)
                continue
            if isinstance(current, dict):
                setattr(self, key, deep_union(current, value))
            else:
                setattr(self, key, value)
