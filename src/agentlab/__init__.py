"""agentlab: an interactive DSL workbench.

A session threads one Context through a direction router (/handlers,
!shell, ^transforms, $variables, #annotations, ?help), keeps variables in a
persistent workspace and supervises background processes on asyncio.
"""

__version__ = "0.1.0"

from agentlab.context import Context, Tab, TabState, TabType
from agentlab.errors import HandlerConfigError, LabError, TransformError
from agentlab.lab import Lab

__all__ = [
    "Context",
    "HandlerConfigError",
    "Lab",
    "LabError",
    "Tab",
    "TabState",
    "TabType",
    "TransformError",
    "__version__",
]
