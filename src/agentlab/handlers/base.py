"""Base class for DSL command handlers.

A handler is a named unit implementing one command. The router resolves it
by name (or detection pattern), turns the raw argument text into positional
and keyword arguments with validate_arguments(), then calls:

    handler.main(context, *captured, *arguments.args, **arguments.kwargs)

main() must return a Context. A handler without main() is reported as not
implemented.
"""

from __future__ import annotations

import json
import re
import shlex
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from agentlab.context.dotpath import data_get
from agentlab.dsl.grammar import parse_command
from agentlab.errors import LabError

if TYPE_CHECKING:
    from rich.console import Console

    from agentlab.context.carrier import Context
    from agentlab.dsl.router import Router
    from agentlab.lab import Lab
    from agentlab.process.supervisor import ProcessSupervisor
    from agentlab.workspace import Workspace

_KEY_VALUE = re.compile(r"^(?P<key>-{0,2}[A-Za-z0-9_\-]+)=(?P<value>.*)$", re.DOTALL)
_FLAG = re.compile(r"^--(?P<name>[A-Za-z0-9_\-]+)$")
_VARIABLE = re.compile(r"^\$(?P<name>[A-Za-z0-9_\-.]+)$")
_INT = re.compile(r"^-?\d+$")
_FLOAT = re.compile(r"^-?(?:\d+\.\d*|\.\d+)$")
_JSON = json.JSONDecoder()
_JSON_MARKER = "\x00json{}\x00"

CHAIN_SEPARATOR = "<<"


@dataclass
class Arguments:
    """Positional and keyword arguments produced by validate_arguments()."""

    args: list[Any] = field(default_factory=list)
    kwargs: dict[str, Any] = field(default_factory=dict)


def split_chain(argument: str) -> list[str]:
    """Split argument text on ``<<``, treating backtick spans as literal."""
    parts: list[str] = []
    current: list[str] = []
    quoted = False
    i = 0
    while i < len(argument):
        char = argument[i]
        if char == "`":
            quoted = not quoted
            i += 1
            continue
        if not quoted and argument.startswith(CHAIN_SEPARATOR, i):
            parts.append("".join(current))
            current = []
            i += len(CHAIN_SEPARATOR)
            continue
        current.append(char)
        i += 1
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]



def _protect_json(text: str) -> tuple[str, dict[str, tuple[Any, str]]]:
    """Swap JSON objects and arrays for markers so shlex keeps them whole.

    A span qualifies when it starts a word (or follows ``=``) and decodes
    as JSON. Returns the rewritten text and marker -> (value, raw text).
    """
    literals: dict[str, tuple[Any, str]] = {}
    out: list[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char in "{[" and (i == 0 or text[i - 1].isspace() or text[i - 1] == "="):
            try:
                value, end = _JSON.raw_decode(text, i)
            except ValueError:
                pass
            else:
                marker = _JSON_MARKER.format(len(literals))
                literals[marker] = (value, text[i:end])
                out.append(marker)
                i = end
                continue
        out.append(char)
        i += 1
    return "".join(out), literals


def _restore_json(token: str, literals: dict[str, tuple[Any, str]]) -> str:
    for marker, (_, raw) in literals.items():
        token = token.replace(marker, raw)
    return token

def _keyword(name: str) -> str:
    return name.lstrip("-").replace("-", "_")


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and not value)


class Handler:
    """Base class for command handlers.

    Subclasses set the class attributes and implement main().

    Attributes:
        name: Command name matched after the direction character
        title: Short display title
        description: One-line description shown by /help
        argument_description: Usage hint, e.g. "<name> [value]"
        detect_regexp: Optional pattern; its groups become leading positional args
        dispatch_keywords: Pass ``modifier=`` and ``depth=`` keywords to main()
    """

    name: ClassVar[str] = ""
    title: ClassVar[str] = ""
    description: ClassVar[str] = ""
    argument_description: ClassVar[str | None] = None
    detect_regexp: ClassVar[str | None] = None
    dispatch_keywords: ClassVar[bool] = False

    def __init__(self) -> None:
        self._lab: Lab | None = None

    def attach(self, lab: Lab) -> Handler:
        self._lab = lab
        return self

    @property
    def lab(self) -> Lab:
        if self._lab is None:
            raise LabError(f"Handler '{self.name}' is not attached to a lab")
        return self._lab

    @property
    def workspace(self) -> Workspace:
        return self.lab.workspace

    @property
    def router(self) -> Router:
        return self.lab.router

    @property
    def supervisor(self) -> ProcessSupervisor:
        return self.lab.supervisor

    @property
    def console(self) -> Console:
        return self.lab.console

    def command_name(self) -> str:
        suffix = f" {self.argument_description}" if self.argument_description else ""
        return f"/{self.name}{suffix}"

    def label(self) -> str:
        return f"{self.command_name()} - {self.description}"

    def options(self, prefix: str = "") -> dict[str, str]:
        """Suggestions for this command's argument (value -> label)."""
        return {}

    # -- Argument parsing ------------------------------------------------

    def validate_arguments(
        self, argument: str | None, context: Context, depth: int = 0
    ) -> bool | str | Arguments:
        """Turn raw argument text into call arguments.

        ``<<`` separates a head from chained sub-commands. The head is either
        a DSL command, whose result becomes a positional argument, or
        shell-like tokens supporting ``key=value``, ``--flag``, numbers,
        ``true``/``false``/``null``, JSON literals, ``$var`` and ``$this.path``.
        Each chained sub-command runs against a scratch copy of the context;
        the last entry of its result becomes a keyword argument (mapping key)
        or a positional argument.

        Returns:
            True when there is no argument, an Arguments on success, or an
            error message string.
        """
        if not argument:
            return True
        try:
            return self._parse_arguments(argument, context, depth)
        except (LabError, ValueError) as e:
            return str(e) or "An error occurred while parsing the arguments."

    def _parse_arguments(self, argument: str, context: Context, depth: int) -> Arguments:
        arguments = Arguments()
        parts = split_chain(argument)
        if not parts:
            return arguments

        head, chained = parts[0], parts[1:]
        if parse_command(head) is not None:
            self._collect_chained(head, context, depth, arguments, positional=True)
        else:
            protected, literals = _protect_json(head)
            try:
                tokens = shlex.split(protected)
            except ValueError as e:
                raise LabError(f"Invalid argument format for input: {head} ({e})") from e
            for token in tokens:
                key, value = self._coerce_token(token, context, literals)
                if key is None:
                    arguments.args.append(value)
                else:
                    arguments.kwargs[key] = value

        for command in chained:
            self._collect_chained(command, context, depth, arguments)
        return arguments

    def _coerce_token(
        self,
        token: str,
        context: Context,
        literals: dict[str, tuple[Any, str]] | None = None,
    ) -> tuple[str | None, Any]:
        literals = literals or {}
        token = token.strip().strip(",;").strip()
        key = None

        match = _KEY_VALUE.match(token)
        if match:
            key = _keyword(match.group("key"))
            token = match.group("value").strip('"')

        if token in literals:
            return key, literals[token][0]
        token = _restore_json(token, literals)

        if _INT.match(token):
            return key, int(token)
        if _FLOAT.match(token):
            return key, float(token)
        if token.lower() in ("true", "false"):
            return key, token.lower() == "true"
        if token == "null":
            return key, None
        if token and token[0] in "{[":
            try:
                return key, json.loads(token)
            except ValueError:
                pass

        if key is None:
            match = _FLAG.match(token)
            if match:
                return _keyword(match.group("name")), True

        match = _VARIABLE.match(token)
        if match:
            return key, self._resolve_variable(match.group("name"), context)

        return key, token

    def _resolve_variable(self, name: str, context: Context) -> Any:
        if name == "this" or name.startswith("this."):
            path = name[4:].strip(".")
            return data_get(context.result, path) if path else context.result
        return self.workspace.get(name)

    def _collect_chained(
        self,
        command: str,
        context: Context,
        depth: int,
        arguments: Arguments,
        positional: bool = False,
    ) -> None:
        scratch = context.copy().clear_meta()
        scratch.take_processes()
        outcome = self.router.submit(scratch, command, depth=depth + 1)
        context.merge_general(outcome, result=False)

        if not outcome.is_ok():
            raise LabError(outcome.get_error() or f"Command failed: {command}")

        value = outcome.result
        if _is_empty(value):
            return
        if isinstance(value, dict):
            last_key = list(value)[-1]
            item = value[last_key] if len(value) == 1 else value
            if positional:
                arguments.args.append(item)
            else:
                arguments.kwargs[_keyword(str(last_key))] = item
        elif isinstance(value, list):
            arguments.args.append(value[-1] if len(value) == 1 else value)
        else:
            arguments.args.append(value)
