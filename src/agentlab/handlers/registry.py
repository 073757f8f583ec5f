"""Handler registry: name lookup plus ordered detection patterns."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentlab.handlers.base import Handler


class HandlerRegistry:
    """Registry of command handlers.

    Handlers are found by exact name first, then by the first registered
    detection pattern that matches the command.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self._patterns: list[tuple[re.Pattern[str], Handler]] = []

    def register(self, handler: Handler) -> None:
        """Register a handler, replacing any handler with the same name.

        Args:
            handler: The handler instance to register
        """
        self.unregister(handler.name)
        self._handlers[handler.name] = handler
        if handler.detect_regexp:
            self._patterns.append((re.compile(handler.detect_regexp), handler))

    def unregister(self, name: str) -> bool:
        """Unregister a handler by name.

        Returns:
            True if removed, False if not found
        """
        handler = self._handlers.pop(name, None)
        if handler is None:
            return False
        self._patterns = [(p, h) for p, h in self._patterns if h is not handler]
        return True

    def get(self, name: str) -> Handler | None:
        return self._handlers.get(name)

    def is_registered(self, name: str) -> bool:
        return name in self._handlers

    def resolve(self, command: str) -> tuple[Handler | None, list[str]]:
        """Find the handler for a command.

        Args:
            command: Command name as typed after the direction

        Returns:
            (handler, captured) where captured holds the detection pattern's
            groups, or (None, []) if nothing matches
        """
        handler = self._handlers.get(command)
        if handler is not None:
            return handler, []
        for pattern, candidate in self._patterns:
            match = pattern.match(command)
            if match:
                return candidate, [g for g in match.groups() if g is not None]
        return None, []

    def handlers(self) -> list[Handler]:
        return list(self._handlers.values())

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
