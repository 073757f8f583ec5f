"""Lab DSL: grammar and direction router.

The router lives in ``agentlab.dsl.router``; import it from there.
"""

from agentlab.dsl.grammar import (
    DIRECTIONS,
    MODIFIERS,
    TAB_NEXT,
    TAB_PREVIOUS,
    ArraySlice,
    Command,
    ParallelGroup,
    is_tab_sentinel,
    is_valid,
    parse,
    parse_command,
    parse_parallel,
    parse_slice,
)

__all__ = [
    "ArraySlice",
    "Command",
    "DIRECTIONS",
    "MODIFIERS",
    "ParallelGroup",
    "TAB_NEXT",
    "TAB_PREVIOUS",
    "is_tab_sentinel",
    "is_valid",
    "parse",
    "parse_command",
    "parse_parallel",
    "parse_slice",
]
