"""Context carrier, tabs and snapshot persistence."""

from agentlab.context.carrier import MAIN_TAB_ID, Context
from agentlab.context.snapshot import ContextSnapshot
from agentlab.context.tab import Tab, TabState, TabType

__all__ = [
    "Context",
    "ContextSnapshot",
    "MAIN_TAB_ID",
    "Tab",
    "TabState",
    "TabType",
]
