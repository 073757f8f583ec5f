"""Command handlers and their registry."""

from agentlab.handlers.base import Arguments, Handler, split_chain
from agentlab.handlers.evaluate import EvaluateHandler
from agentlab.handlers.help import HelpHandler
from agentlab.handlers.process import ProcessHandler
from agentlab.handlers.registry import HandlerRegistry
from agentlab.handlers.strings import StringHandler
from agentlab.handlers.transform import TransformHandler, apply_transform
from agentlab.handlers.variable import VariableHandler

BUILTIN_HANDLERS: tuple[type[Handler], ...] = (
    HelpHandler,
    VariableHandler,
    TransformHandler,
    EvaluateHandler,
    StringHandler,
    ProcessHandler,
)

__all__ = [
    "Arguments",
    "BUILTIN_HANDLERS",
    "EvaluateHandler",
    "Handler",
    "HandlerRegistry",
    "HelpHandler",
    "ProcessHandler",
    "StringHandler",
    "TransformHandler",
    "VariableHandler",
    "apply_transform",
    "split_chain",
]
