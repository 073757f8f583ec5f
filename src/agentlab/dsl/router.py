"""Direction router for the Lab DSL.

Parses raw input and dispatches it by direction character:

    /name args   handler            @name args   extension handler
    !cmd args    shell              ?name        help for a handler
    #kind text   annotation         ^fn[:param]  transform pipeline
    $name [val]  workspace variable

Modifiers: ``+`` appends instead of replacing, ``&`` runs a handler against
a copy of the context and only reports what would have happened.

Dispatch is synchronous. ``^`` and argument chains re-enter the router with
an explicit depth argument; past max_depth the chain is aborted with an
error.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from agentlab.dsl.grammar import (
    TAB_NEXT,
    TAB_PREVIOUS,
    ArraySlice,
    Command,
    ParallelGroup,
    parse,
    parse_command,
)
from agentlab.handlers.base import Arguments
from agentlab.logging import get_logger
from agentlab.process.shell import ShellResult, run_shell

if TYPE_CHECKING:
    from agentlab.context.carrier import Context
    from agentlab.handlers.registry import HandlerRegistry

log = get_logger("router")

ShellRunner = Callable[[str, "str | None"], ShellResult]
Acknowledge = Callable[[str], None]

DEFAULT_MAX_DEPTH = 10
DEFAULT_PAUSE_MESSAGE = "Press ENTER to continue."
ISOLATED = "[ISOLATED]"

_ANNOTATIONS = {
    "warn": "warning",
    "warning": "warning",
    "error": "error",
    "err": "error",
    "success": "success",
    "ok": "success",
    "info": "info",
    "note": "info",
}

_DIRECTION_HELP = {
    "/": "Run a handler: /name [arguments]",
    "@": "Run an extension handler: @name [arguments]",
    "!": "Run a shell command: !cmd [arguments] (-dbg keeps raw output)",
    "?": "Show help for a handler: ?name",
    "#": "Annotate: #note|#warn|#error|#ok text",
    "^": "Transform the result: ^name[:param]",
    "$": "Workspace variable: $name [value]",
}


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and not value)


def _added(incoming: Any, result: Any) -> Any:
    """The part of an appended-to result that a segment contributed."""
    if isinstance(incoming, list) and isinstance(result, list):
        if result[: len(incoming)] == incoming:
            return result[len(incoming) :]
    elif isinstance(incoming, dict) and isinstance(result, dict):
        return {
            key: value
            for key, value in result.items()
            if key not in incoming or incoming[key] != value
        }
    return result


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


class Router:
    """Parses DSL input and routes it to handlers, the shell or the pipeline."""

    def __init__(
        self,
        registry: HandlerRegistry,
        shell: ShellRunner = run_shell,
        acknowledge: Acknowledge | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        """Create a router.

        Args:
            registry: Handlers resolved by ``/`` and ``@``.
            shell: Synchronous shell primitive used by ``!``.
            acknowledge: Blocks until the user acknowledges a pause message.
            max_depth: Re-entrant dispatch ceiling.
        """
        self.registry = registry
        self.shell = shell
        self.acknowledge = acknowledge
        self.max_depth = max_depth

    @staticmethod
    def directions() -> dict[str, str]:
        return dict(_DIRECTION_HELP)

    # -- Entry point -----------------------------------------------------

    def submit(self, context: Context, raw: str, depth: int = 0) -> Context:
        """Parse raw input and run it against context.

        Returns the resulting context (the same object unless a handler
        returned a different one).
        """
        text = raw.strip()
        if text == TAB_NEXT:
            return self.switch_tab(context, 1)
        if text == TAB_PREVIOUS:
            return self.switch_tab(context, -1)

        parsed = parse(text)
        if isinstance(parsed, Command):
            return self._submit_command(context, parsed, depth)
        if isinstance(parsed, ParallelGroup):
            return self._submit_parallel(context, parsed, depth)
        if isinstance(parsed, ArraySlice):
            return self._slice(context, parsed)

        log.debug("Rejected input: %r", raw)
        return context.set_error("Invalid command format.")

    def _submit_command(self, context: Context, command: Command, depth: int) -> Context:
        context = self.dispatch(
            context,
            command.modifier,
            command.direction,
            command.command,
            command.argument,
            depth,
        )
        pause = context.pause
        # Nested submits (chains, /e) leave the pause to the outermost call.
        if pause and depth == 0:
            message = pause if isinstance(pause, str) else DEFAULT_PAUSE_MESSAGE
            if self.acknowledge is not None:
                self.acknowledge(message)
        return context

    def _submit_parallel(self, context: Context, group: ParallelGroup, depth: int) -> Context:
        incoming = context.result
        outcomes: list[Context] = []
        for segment in group.segments:
            scratch = context.copy().clear_meta()
            scratch.take_processes()
            outcomes.append(self._submit_command(scratch, segment, depth))

        # Only results a segment actually produced are merged back; under +
        # a segment's result already carries the incoming data.
        for outcome in outcomes:
            if outcome.result == incoming:
                context.merge(outcome, result=False)
                continue
            if group.modifier == "+":
                outcome.set_result(_added(incoming, outcome.result))
            context.merge(outcome)
        return context

    def _slice(self, context: Context, spec: ArraySlice) -> Context:
        if spec.count == 0:
            return context.set_result(None)
        result = context.result
        if isinstance(result, list) and result:
            sliced = result[spec.count :] if spec.from_start else result[: -spec.count]
            context.set_result(sliced)
        return context

    # -- Direction dispatch ---------------------------------------------

    def dispatch(
        self,
        context: Context,
        modifier: str,
        direction: str,
        command: str,
        argument: str | None,
        depth: int = 0,
    ) -> Context:
        """Route one parsed command by its direction character."""
        if depth > self.max_depth:
            return context.set_error(
                f"Maximum recursion depth exceeded ({self.max_depth} levels). "
                "Aborting transform chain."
            )

        if direction in ("/", "@"):
            return self._run_handler(context, modifier, direction, command, argument, depth)
        if direction == "!":
            return self._run_shell(context, modifier, command, argument)
        if direction == "#":
            return self._annotate(context, command, argument)
        if direction == "^":
            name, sep, param = command.partition(":")
            if not sep:
                param = argument or ""
            elif argument:
                param = f"{param} {argument}"
            return self.dispatch(
                context, modifier, "/", "transform", f"{name} {param}".strip(), depth + 1
            )
        if direction == "$":
            return self.dispatch(
                context, modifier, "/", "var", f"{command} {argument or ''}".strip(), depth
            )
        if direction == "?":
            return self.dispatch(context, modifier, "/", "help", command, depth)

        return context.set_error(f"Unknown direction: {direction}")

    def _run_handler(
        self,
        context: Context,
        modifier: str,
        direction: str,
        command: str,
        argument: str | None,
        depth: int,
    ) -> Context:
        prefix = f"{modifier}{direction}{command}"
        handler, captured = self.registry.resolve(command)
        if handler is None:
            return context.set_error(f"Unknown command: {command}").set_next_command(
                prefix, argument
            )

        main = getattr(handler, "main", None)
        if not callable(main):
            return context.set_error(f"Command not implemented: {command}").set_next_command(
                prefix, argument
            )

        validated = handler.validate_arguments(argument, context, depth)
        if validated is False:
            return context.set_error(f"Invalid argument for command: {command}").set_next_command(
                prefix, argument
            )
        if isinstance(validated, str):
            return context.set_error(validated.splitlines() or [validated]).set_next_command(
                prefix, argument
            )

        args: list[Any] = list(captured)
        kwargs: dict[str, Any] = {}
        if isinstance(validated, Arguments):
            args.extend(validated.args)
            kwargs.update(validated.kwargs)
        elif isinstance(validated, (list, tuple)):
            args.extend(validated)
        elif isinstance(validated, Mapping):
            kwargs.update(validated)
        if handler.dispatch_keywords:
            kwargs.setdefault("modifier", modifier)
            kwargs.setdefault("depth", depth)

        isolated = modifier == "&"
        working = context.copy() if isolated else context

        try:
            outcome = main(working, *args, **kwargs)
        except Exception as e:
            log.debug("Handler %s raised", command, exc_info=True)
            context.set_error(f"Error executing command '{command}': {e}").set_next_command(
                prefix, argument
            )
            if isolated:
                context.set_info(
                    f"{ISOLATED} Exception occurred in isolated mode - main context not affected",
                    append=True,
                )
            return context

        if outcome is None:
            outcome = working
        if isolated:
            return self._report_isolated(context, outcome)
        return outcome

    def _report_isolated(self, context: Context, outcome: Context) -> Context:
        context.set_info(f"{ISOLATED} Executed in isolated mode - results not persisted", append=True)
        if not _is_empty(outcome.result):
            context.set_info(f"{ISOLATED} Result would be: {_dump(outcome.result)}", append=True)
        for label, messages in (
            ("Errors", outcome.error),
            ("Warnings", outcome.warning),
            ("Info", outcome.info),
            ("Success", outcome.success),
        ):
            if messages:
                context.set_info(f"{ISOLATED} {label}: {_dump(messages)}", append=True)
        return context

    def _run_shell(
        self, context: Context, modifier: str, command: str, argument: str | None
    ) -> Context:
        debug = False
        if argument:
            for suffix in ("-dbg", "--debug"):
                if argument.endswith(suffix):
                    argument = argument[: -len(suffix)].strip() or None
                    debug = True
                    break

        output = self.shell(command, argument)
        current = context.result
        count = len(current) if isinstance(current, (list, dict)) else 0

        if debug:
            context.set_result({f"{command}{count}": output.to_dict()}, append=True)
        else:
            context.set_result(list(output.body), append=modifier == "+")

        if output.status != 0:
            context.set_error("Command execution failed.")
        return context

    def _annotate(self, context: Context, command: str, argument: str | None) -> Context:
        text = f"{command} {argument or ''}".strip()
        kind = _ANNOTATIONS.get(command.lower(), "info")
        if kind == "warning":
            return context.set_warning(text)
        if kind == "error":
            return context.set_error(text)
        if kind == "success":
            return context.set_success(text)
        return context.set_info(text)

    # -- Tabs ------------------------------------------------------------

    def switch_tab(self, context: Context, step: int) -> Context:
        """Activate the next (step=1) or previous (step=-1) tab, wrapping around."""
        tabs = context.tabs
        if not tabs:
            return context

        ids = list(tabs)
        current = context.active_tab
        if current in tabs:
            target = ids[(ids.index(current) + step) % len(ids)]
            tabs[current].mark_inactive()
        else:
            target = ids[0] if step > 0 else ids[-1]
        tabs[target].mark_active()
        return context.set_tabs(tabs).set_active_tab(target)

    # -- Suggestions -----------------------------------------------------

    def suggestions(self, text: str) -> dict[str, str]:
        """Completion candidates (value -> label) for partially typed input."""
        candidates: dict[str, str] = {}
        parsed = parse_command(text)
        modifier = parsed.modifier if parsed else ""
        for handler in self.registry.handlers():
            if parsed is not None and parsed.direction == "/" and handler.name == parsed.command:
                for key, label in handler.options(parsed.argument or "").items():
                    candidates[f"{modifier}/{handler.name} {key}"] = label
            candidates[f"{modifier}/{handler.name}"] = handler.label()

        needle = text.strip().lower()
        if not needle:
            return candidates
        return {
            value: label
            for value, label in candidates.items()
            if needle in value.lower() or needle in label.lower()
        }
