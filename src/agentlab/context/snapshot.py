"""Context snapshot persistence.

The Lab rewrites a single pretty-printed JSON file after every Context
mutation and reads it back at session start.
"""

from __future__ import annotations

import json
from pathlib import Path

from agentlab.context.carrier import Context
from agentlab.logging import get_logger

log = get_logger("snapshot")


class ContextSnapshot:
    """JSON file store for one Context."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, context: Context) -> None:
        """Rewrite the snapshot. Write errors are logged and ignored."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(context.to_json(), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            log.debug("Failed to write context snapshot %s: %s", self.path, e)

    def load(self) -> Context | None:
        """Read the snapshot, or None if it is missing or unreadable."""
        if not self.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            log.warning("Ignoring unreadable context snapshot %s: %s", self.path, e)
            return None
        if not isinstance(data, dict):
            return None
        try:
            return Context.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            log.warning("Ignoring malformed context snapshot %s: %s", self.path, e)
            return None
