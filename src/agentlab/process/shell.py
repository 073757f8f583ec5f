"""Synchronous shell primitive used by the ``!`` direction."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field

from agentlab.logging import get_logger

log = get_logger("shell")


@dataclass
class ShellResult:
    """Result of a synchronous shell run.

    Attributes:
        status: Exit status (0 = success).
        body: Combined stdout/stderr, trimmed, as a single-entry list
              (empty when the command printed nothing).
    """

    status: int
    body: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == 0

    def to_dict(self) -> dict[str, object]:
        return {"status": self.status, "body": list(self.body)}

    def __repr__(self) -> str:
        return f"<ShellResult status={self.status}, {len(self.body)} chunk(s)>"


def run_shell(
    command: str,
    argument: str | None = None,
    cwd: str | None = None,
    executable: str | None = None,
) -> ShellResult:
    """Run ``command[ argument]`` through the shell and wait for it.

    Args:
        command: Command to run.
        argument: Optional argument text appended after a space.
        cwd: Working directory.
        executable: Shell binary (None = /bin/sh).

    Returns:
        ShellResult with the exit status and trimmed output.
    """
    line = f"{command} {argument}" if argument else command
    log.debug("Running shell command: %s", line)

    try:
        completed = subprocess.run(
            line,
            shell=True,
            cwd=cwd,
            executable=executable,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
        )
    except OSError as e:
        log.warning("Shell command failed to start: %s: %s", line, e)
        return ShellResult(status=1, body=[f"OS error: {e}"])

    output = completed.stdout.decode("utf-8", errors="replace").strip()
    return ShellResult(status=completed.returncode, body=[output] if output else [])
