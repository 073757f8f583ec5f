"""String function handler: ``/str-<fn> <value> [args...]``.

Any public ``str`` method works (``/str-upper hi``, ``/str-replace a-b - _``),
plus a few case helpers and ``explode`` (``/str-explode - a-b-c``).
The output is appended to the result.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from agentlab.handlers.base import Handler

if TYPE_CHECKING:
    from agentlab.context.carrier import Context

_WORDS = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])")


def _words(text: str) -> list[str]:
    return _WORDS.findall(text)


def _explode(separator: str, text: Any, *rest: Any) -> list[str]:
    limit = int(rest[0]) - 1 if rest else -1
    return str(text).split(separator, limit)


_HELPERS: dict[str, Callable[..., Any]] = {
    "explode": _explode,
    "length": lambda text: len(text),
    "snake": lambda text: "_".join(w.lower() for w in _words(text)),
    "kebab": lambda text: "-".join(w.lower() for w in _words(text)),
    "slug": lambda text, sep="-": sep.join(w.lower() for w in _words(text)),
    "studly": lambda text: "".join(w.capitalize() for w in _words(text)),
    "camel": lambda text: "".join(
        w.lower() if i == 0 else w.capitalize() for i, w in enumerate(_words(text))
    ),
}


class StringHandler(Handler):
    name = "str"
    title = "String functions"
    description = "Apply a string function to a value: /str-<fn> <value> [args]"
    argument_description = "<value> [args...]"
    detect_regexp = r"^str-([A-Za-z0-9_.\-]+)$"

    def main(self, context: Context, function: str, value: Any = "", *args: Any) -> Context:
        helper = _HELPERS.get(function)
        if helper is not None:
            result = helper(str(value), *args)
        elif not function.startswith("_") and callable(getattr(str, function, None)):
            result = getattr(str(value), function)(*args)
        else:
            return context.set_error(f"Method '{function}' does not exist in str functions.")

        return context.set_result(result, append=True)

    def options(self, prefix: str = "") -> dict[str, str]:
        names = sorted(
            {n for n in dir(str) if not n.startswith("_")} | set(_HELPERS),
        )
        return {f"str-{n}": f"str.{n}" for n in names if n.startswith(prefix)}
