"""Process spawn intent and lifecycle records.

This module defines:
- ProcessStatus: Lifecycle states of a supervised child process
- ProcessConfig: Immutable spawn intent
- ProcessState: Persisted lifecycle record, one JSON file per process id
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class ProcessStatus(Enum):
    """Lifecycle state of a supervised process.

    PENDING -> READY -> RUNNING -> {PAUSED <-> RUNNING} -> terminal.
    READY is reserved for pre-staged work.
    """

    PENDING = "PENDING"
    READY = "READY"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {ProcessStatus.COMPLETED, ProcessStatus.FAILED, ProcessStatus.STOPPED}
)


@dataclass(frozen=True)
class ProcessConfig:
    """Spawn intent for a child process.

    Attributes:
        command: Shell command to run (required)
        args: Extra arguments, shell-quoted onto the command
        cwd: Working directory (None = supervisor's cwd)
        env: Variables layered over the inherited environment (None = inherit)
        timeout: Seconds before the process is killed (None = no limit)
        tty: Whether the process wants a terminal (stored only)
        type: Logical tag: "shell", "handler" or "agent"
        handler: Optional handler binding name
        handler_method: Method on the bound handler
        handler_args: Arguments for the bound handler method
    """

    command: str
    args: tuple[str, ...] = ()
    cwd: str | None = None
    env: dict[str, str] | None = None
    timeout: float | None = None
    tty: bool = False
    type: str = "shell"
    handler: str | None = None
    handler_method: str | None = None
    handler_args: tuple[Any, ...] = ()

    def command_line(self) -> str:
        return " ".join([self.command, *self.args]) if self.args else self.command

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "args": list(self.args),
            "cwd": self.cwd,
            "env": dict(self.env) if self.env is not None else None,
            "timeout": self.timeout,
            "tty": self.tty,
            "type": self.type,
            "handler": self.handler,
            "handler_method": self.handler_method,
            "handler_args": list(self.handler_args),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessConfig:
        return cls(
            command=data["command"],
            args=tuple(data.get("args") or ()),
            cwd=data.get("cwd"),
            env=data.get("env"),
            timeout=data.get("timeout"),
            tty=bool(data.get("tty", False)),
            type=data.get("type", "shell"),
            handler=data.get("handler"),
            handler_method=data.get("handler_method"),
            handler_args=tuple(data.get("handler_args") or ()),
        )


@dataclass
class ProcessState:
    """Lifecycle record for one supervised process.

    Output content lives in the companion ``<id>.log``; only the line count
    is kept here.
    """

    id: str
    name: str
    config: ProcessConfig
    type: str = "shell"
    status: ProcessStatus = ProcessStatus.PENDING
    created_at: str = field(default_factory=_now)
    started_at: str | None = None
    completed_at: str | None = None
    exit_code: int | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    output_lines: int = 0
    pid: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def mark_running(self, pid: int | None = None) -> ProcessState:
        """Mark RUNNING. started_at is set on the first start only."""
        self.status = ProcessStatus.RUNNING
        if self.started_at is None:
            self.started_at = _now()
        if pid is not None:
            self.pid = pid
        return self

    def mark_paused(self) -> ProcessState:
        self.status = ProcessStatus.PAUSED
        return self

    def mark_completed(self, exit_code: int) -> ProcessState:
        self.status = ProcessStatus.COMPLETED
        self.exit_code = exit_code
        self.completed_at = _now()
        return self

    def mark_failed(self, error: str, exit_code: int | None = None) -> ProcessState:
        self.status = ProcessStatus.FAILED
        self.error = error
        if exit_code is not None:
            self.exit_code = exit_code
        self.completed_at = _now()
        return self

    def mark_stopped(self) -> ProcessState:
        self.status = ProcessStatus.STOPPED
        self.completed_at = _now()
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "status": self.status.value,
            "config": self.config.to_dict(),
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "exit_code": self.exit_code,
            "error": self.error,
            "metadata": dict(self.metadata),
            "output_lines": self.output_lines,
            "pid": self.pid,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessState:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            config=ProcessConfig.from_dict(data["config"]),
            type=data.get("type", "shell"),
            status=ProcessStatus(data.get("status", ProcessStatus.PENDING.value)),
            created_at=data.get("created_at") or _now(),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            exit_code=data.get("exit_code"),
            error=data.get("error"),
            metadata=dict(data.get("metadata") or {}),
            output_lines=int(data.get("output_lines", 0)),
            pid=int(data.get("pid", 0)),
        )
