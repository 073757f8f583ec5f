"""Root pytest configuration for all tests."""

from __future__ import annotations

import io
from pathlib import Path

import pytest
from rich.console import Console

from agentlab.config.schema import LabSettings
from agentlab.context.carrier import Context
from agentlab.lab import Lab
from agentlab.process.shell import ShellResult

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


class FakeShell:
    """Records shell calls and answers from a preset table."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []
        self.responses: dict[str, ShellResult] = {}

    def __call__(self, command: str, argument: str | None = None) -> ShellResult:
        self.calls.append((command, argument))
        line = f"{command} {argument}" if argument else command
        if line in self.responses:
            return self.responses[line]
        return ShellResult(status=0, body=[line])


@pytest.fixture
def console() -> Console:
    """Console writing into a buffer, wide enough for tables."""
    return Console(file=io.StringIO(), width=120, force_terminal=False)


@pytest.fixture
def fake_shell() -> FakeShell:
    return FakeShell()


@pytest.fixture
def acknowledged() -> list[str]:
    """Pause messages acknowledged by the router."""
    return []


@pytest.fixture
def lab(
    tmp_path: Path, console: Console, fake_shell: FakeShell, acknowledged: list[str]
) -> Lab:
    return Lab(
        tmp_path / "lab",
        settings=LabSettings(flush_interval=0.05),
        console=console,
        acknowledge=acknowledged.append,
        shell=fake_shell,
    )


@pytest.fixture
def ctx(lab: Lab) -> Context:
    """Fresh context bound to the lab's registry and snapshot."""
    return lab.new_context(restore=False)
