"""Evaluate handler: run a DSL snippet, optionally isolated.

    /e ^sort            same as typing ^sort
    /e !make test --iso run against a copy; keep messages, drop the result
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from agentlab.handlers.base import Arguments, Handler

if TYPE_CHECKING:
    from agentlab.context.carrier import Context

_ISOLATION_FLAGS = ("--isolated", "--iso")


class EvaluateHandler(Handler):
    name = "e"
    title = "Evaluate command snippets"
    description = "Evaluate a DSL snippet, optionally isolated with --iso."
    argument_description = "<snippet> [--iso]"
    dispatch_keywords = True

    def validate_arguments(
        self, argument: str | None, context: Context, depth: int = 0
    ) -> bool | str | Arguments:
        if not argument or not argument.strip():
            return "Nothing to evaluate. Usage: /e <snippet> [--iso]"
        snippet = argument.strip()
        isolated = False
        for flag in _ISOLATION_FLAGS:
            if snippet == flag or snippet.endswith(" " + flag):
                snippet = snippet[: -len(flag)].strip()
                isolated = True
                break
        if not snippet:
            return "Nothing to evaluate. Usage: /e <snippet> [--iso]"
        return Arguments(args=[snippet], kwargs={"isolated": isolated})

    def main(
        self,
        context: Context,
        snippet: str,
        isolated: bool = False,
        *,
        modifier: str = "",
        depth: int = 0,
    ) -> Context:
        if not isolated:
            return self.router.submit(context, snippet, depth=depth + 1)

        scratch = context.copy().clear_meta()
        scratch.take_processes()
        outcome = self.router.submit(scratch, snippet, depth=depth + 1)
        return context.merge(outcome, result=False, tabs=False)

    def options(self, prefix: str = "") -> dict[str, str]:
        return {"--iso": "Run against a copy of the context"} if "--iso".startswith(prefix) else {}
