"""Tab model for the Lab tab bar.

This module defines:
- TabType: What a tab shows (main result, process output, agent, placeholder)
- TabState: Display state with a glyph indicator per state
- Tab: A single tab with its content log and scroll position
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TabType(Enum):
    """Kind of content a tab displays."""

    MAIN = "Main"
    PROCESS = "Process"
    AGENT = "Agent"
    NEW = "New"

    def __str__(self) -> str:
        return self.value

    @property
    def icon(self) -> str:
        return _TYPE_ICONS[self]


class TabState(Enum):
    """Display state of a tab.

    Transitions:
    - INACTIVE <-> ACTIVE when the user switches tabs
    - ACTIVE/INACTIVE -> HAS_UPDATES when new output arrives
    - Any -> ERROR / COMPLETED when the backing process finishes
    """

    ACTIVE = "Active"
    INACTIVE = "Inactive"
    HAS_UPDATES = "HasUpdates"
    ERROR = "Error"
    COMPLETED = "Completed"

    def __str__(self) -> str:
        return self.value

    @property
    def indicator(self) -> str:
        return _STATE_INDICATORS[self]


_TYPE_ICONS = {
    TabType.MAIN: "[M]",
    TabType.PROCESS: "[P]",
    TabType.AGENT: "[@]",
    TabType.NEW: "[+]",
}

_STATE_INDICATORS = {
    TabState.ACTIVE: "●",
    TabState.INACTIVE: "○",
    TabState.COMPLETED: "✓",
    TabState.ERROR: "✗",
    TabState.HAS_UPDATES: "◉",
}


@dataclass
class Tab:
    """A single tab in the Lab tab bar.

    Attributes:
        id: Unique identifier ("main", "proc-001", ...)
        name: Display name
        type: TabType of the tab
        state: Current TabState
        content: Lines of output shown when the tab is active
        scroll_position: First visible line
        metadata: Optional extra data (process id, status, ...)
    """

    id: str
    name: str
    type: TabType
    state: TabState = TabState.INACTIVE
    content: list[str] = field(default_factory=list)
    scroll_position: int = 0
    metadata: dict[str, Any] | None = None

    @property
    def indicator(self) -> str:
        return self.state.indicator

    @property
    def icon(self) -> str:
        return self.type.icon

    def mark_active(self) -> Tab:
        self.state = TabState.ACTIVE
        return self

    def mark_inactive(self) -> Tab:
        self.state = TabState.INACTIVE
        return self

    def mark_has_updates(self) -> Tab:
        self.state = TabState.HAS_UPDATES
        return self

    def mark_error(self) -> Tab:
        self.state = TabState.ERROR
        return self

    def mark_completed(self) -> Tab:
        self.state = TabState.COMPLETED
        return self

    def is_active(self) -> bool:
        return self.state is TabState.ACTIVE

    def add_line(self, line: str) -> Tab:
        self.content.append(line)
        return self

    @property
    def line_count(self) -> int:
        return len(self.content)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "state": self.state.value,
            "content": list(self.content),
            "scroll_position": self.scroll_position,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tab:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            type=TabType(data.get("type", TabType.NEW.value)),
            state=TabState(data.get("state", TabState.INACTIVE.value)),
            content=list(data.get("content", [])),
            scroll_position=int(data.get("scroll_position", 0)),
            metadata=data.get("metadata"),
        )
