"""DSL grammar: single commands, parallel groups and array slices.

Forms, tried in this order:
- Single command:  ``[+|&]<direction><command>[ <argument>]``
- Parallel group:  ``[+|&]*(<direction><command>[ <argument>])...``
- Array slice:     ``-N`` (drop last N) or ``--N`` (drop first N)

Directions: ``/`` handler, ``@`` extension handler, ``!`` shell, ``?`` help,
``#`` annotation, ``^`` transform, ``$`` variable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

MODIFIERS = "+&"
DIRECTIONS = "/!?@#^$"

# Raw sentinels emitted by the prompt's Tab / Shift-Tab bindings.
TAB_NEXT = "tab-next"
TAB_PREVIOUS = "tab-previous"

_COMMAND = r"[A-Za-z0-9_.\-]+(?::[^\s)]*)?"
_DIRECTION = r"[/!?@#^$]"

SINGLE_PATTERN = re.compile(
    rf"(?P<modifier>[+&])?\s*(?P<direction>{_DIRECTION})(?P<command>{_COMMAND})"
    r"(?:\s+(?P<argument>.*))?",
    re.DOTALL,
)

_SEGMENT = (
    rf"(?P<modifier>[+&])?\s*\*\(\s*(?P<direction>{_DIRECTION})(?P<command>{_COMMAND})"
    r"(?:\s+(?P<argument>[^)]*?))?\s*\)"
)
_SEGMENT_UNNAMED = (
    rf"[+&]?\s*\*\(\s*{_DIRECTION}(?:{_COMMAND})(?:\s+[^)]*?)?\s*\)"
)
PARALLEL_SEGMENT_PATTERN = re.compile(_SEGMENT)
PARALLEL_PATTERN = re.compile(rf"(?:\s*{_SEGMENT_UNNAMED})+\s*")

SLICE_PATTERN = re.compile(r"(?P<modifier>-{1,2})\s*(?P<num>\d+)")


@dataclass(frozen=True)
class Command:
    """One ``[modifier]<direction><command>[ argument]`` unit."""

    modifier: str
    direction: str
    command: str
    argument: str | None = None

    @property
    def prefix(self) -> str:
        """Modifier, direction and command, as re-offered on errors."""
        return f"{self.modifier}{self.direction}{self.command}"

    def __str__(self) -> str:
        return f"{self.prefix} {self.argument}" if self.argument else self.prefix


@dataclass(frozen=True)
class ParallelGroup:
    """Sequentially executed segments, each against its own context copy."""

    segments: tuple[Command, ...]

    @property
    def modifier(self) -> str:
        return self.segments[0].modifier if self.segments else ""


@dataclass(frozen=True)
class ArraySlice:
    """``-N`` drops the last N result elements, ``--N`` the first N."""

    from_start: bool
    count: int


Parsed = Command | ParallelGroup | ArraySlice


def _argument(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def parse_command(text: str) -> Command | None:
    """Parse a single command, or None if text is not one."""
    match = SINGLE_PATTERN.fullmatch(text.strip())
    if match is None:
        return None
    return Command(
        modifier=match.group("modifier") or "",
        direction=match.group("direction"),
        command=match.group("command"),
        argument=_argument(match.group("argument")),
    )


def parse_parallel(text: str) -> ParallelGroup | None:
    """Parse a parallel group. The first segment's modifier applies to all."""
    if PARALLEL_PATTERN.fullmatch(text) is None:
        return None
    matches = list(PARALLEL_SEGMENT_PATTERN.finditer(text))
    if not matches:
        return None
    modifier = matches[0].group("modifier") or ""
    return ParallelGroup(
        segments=tuple(
            Command(
                modifier=modifier,
                direction=m.group("direction"),
                command=m.group("command"),
                argument=_argument(m.group("argument")),
            )
            for m in matches
        )
    )


def parse_slice(text: str) -> ArraySlice | None:
    match = SLICE_PATTERN.fullmatch(text.strip())
    if match is None:
        return None
    return ArraySlice(from_start=match.group("modifier") == "--", count=int(match.group("num")))


def parse(text: str) -> Parsed | None:
    """Parse raw input into exactly one grammar form, or None if invalid."""
    return parse_command(text) or parse_parallel(text) or parse_slice(text)


def is_valid(text: str) -> bool:
    return text.strip() == "" or parse(text) is not None


def is_tab_sentinel(text: str) -> bool:
    return text.strip() in (TAB_NEXT, TAB_PREVIOUS)
