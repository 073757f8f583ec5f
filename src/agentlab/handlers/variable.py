"""Workspace variable handler, reached directly or through ``$``.

    $name            read a variable into the result
    $name value      store a variable (dot paths nest)
    $name --del      forget a variable
    $this.path       read from the current result instead of the workspace
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from agentlab.context.dotpath import data_forget, data_get
from agentlab.handlers.base import Handler

if TYPE_CHECKING:
    from agentlab.context.carrier import Context

_NONE = object()


def _this_path(name: str) -> str | None:
    """Path inside the result for ``this``-prefixed names, else None."""
    if name == "this" or name.startswith("this."):
        return name[4:].strip(".")
    return None


class VariableHandler(Handler):
    name = "var"
    title = "Variable Management"
    description = "Set or get variables within the lab workspace."
    argument_description = "<name> [value] [--del]"

    def main(
        self,
        context: Context,
        name: Any = None,
        value: Any = _NONE,
        *rest: Any,
        **flags: Any,
    ) -> Context:
        if name is None or name == "":
            return context.set_error(
                "Invalid usage. Please provide a variable name and optionally a value to set."
            )
        name = str(name)
        if rest:
            value = " ".join(str(part) for part in (value, *rest))

        this_path = _this_path(name)

        if flags.get("del") or flags.get("delete"):
            result = copy.deepcopy(context.result)
            if this_path is not None:
                data_forget(result, this_path)
            else:
                data_forget(result, name)
                self.workspace.forget(name)
            return context.set_result(result)

        if value is _NONE:
            if this_path is not None:
                if this_path:
                    return context.set_result([data_get(context.result, this_path)])
                return context.set_result(copy.deepcopy(context.result))
            if self.workspace.has(name):
                return context.set_result({name: self.workspace.get(name)}, append=True)
            return context.set_error(f"Variable '{name}' does not exist in the workspace.")

        if this_path is not None:
            return context.set_result({this_path: value}, append=True)

        self.workspace.set(name, value)
        return context.set_result({name: self.workspace.get(name)}, append=True)

    def options(self, prefix: str = "") -> dict[str, str]:
        options: dict[str, str] = {}
        for key, value in self.workspace.dots().items():
            if key.startswith(prefix):
                text = repr(value)
                options[key] = text if len(text) <= 40 else text[:37] + "..."
        return options
