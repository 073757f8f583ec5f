"""Lab: composition root for one laboratory directory.

A laboratory directory holds everything a session persists:

    <home>/<workspace>/
        runtime.json        Context snapshot, rewritten on every change
        workspace.json      workspace variables
        .lab_history        prompt history
        processes/          supervisor state and log files
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable
from functools import partial
from pathlib import Path
from typing import Any

from rich.console import Console

from agentlab.config.schema import LabSettings
from agentlab.context.carrier import Context
from agentlab.context.snapshot import ContextSnapshot
from agentlab.dsl.router import Router, ShellRunner
from agentlab.handlers import BUILTIN_HANDLERS, Handler, HandlerRegistry
from agentlab.logging import get_logger
from agentlab.process.shell import run_shell
from agentlab.process.supervisor import ProcessSupervisor
from agentlab.workspace import WORKSPACE_FILENAME, Workspace

log = get_logger("lab")

SNAPSHOT_FILENAME = "runtime.json"
HISTORY_FILENAME = ".lab_history"
PROCESSES_DIRNAME = "processes"
DEFAULT_WORKSPACE = "default"


class Lab:
    """Owns the workspace, supervisor, handler registry, router and snapshot."""

    def __init__(
        self,
        path: Path | str,
        settings: LabSettings | None = None,
        console: Console | None = None,
        acknowledge: Callable[[str], None] | None = None,
        shell: ShellRunner | None = None,
        handlers: Iterable[type[Handler]] = BUILTIN_HANDLERS,
    ) -> None:
        """Open (or create) a laboratory directory.

        Args:
            path: Laboratory directory.
            settings: Engine settings (defaults if None).
            console: Rich console used by handlers for output.
            acknowledge: Pause acknowledgement callback for the router.
            shell: Shell primitive for ``!`` (defaults to run_shell).
            handlers: Handler classes to register.
        """
        self.path = Path(path).expanduser()
        self.path.mkdir(parents=True, exist_ok=True)
        self.settings = settings or LabSettings()
        self.console = console or Console()

        self.workspace = Workspace(self.path / WORKSPACE_FILENAME)
        self.supervisor = ProcessSupervisor(
            self.path / PROCESSES_DIRNAME,
            flush_interval=self.settings.flush_interval,
        )
        self.snapshot = ContextSnapshot(self.path / SNAPSHOT_FILENAME)

        self.registry = HandlerRegistry()
        self.router = Router(
            self.registry,
            shell=shell or partial(run_shell, executable=self.settings.shell),
            acknowledge=acknowledge,
            max_depth=self.settings.max_depth,
        )
        for handler_class in handlers:
            self.register(handler_class())

        log.debug("Opened laboratory %s", self.path)

    @classmethod
    def open(cls, home: Path | str, workspace: str = DEFAULT_WORKSPACE, **kwargs: Any) -> Lab:
        """Open the laboratory named workspace under home."""
        return cls(Path(home).expanduser() / workspace, **kwargs)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def history_path(self) -> Path:
        return self.path / HISTORY_FILENAME

    def register(self, handler: Handler) -> None:
        if self.registry.is_registered(handler.name):
            log.debug("Replacing handler %s", handler.name)
        handler.attach(self)
        self.registry.register(handler)

    def new_context(self, restore: bool = True) -> Context:
        """Return the session context, restored from the snapshot if present.

        The context is bound to the handler registry and rewrites the
        snapshot after every mutation.
        """
        context = self.snapshot.load() if restore else None
        if context is None:
            context = Context()
        return context.attach(on_change=self.snapshot.save, registry=self.registry)

    def submit(self, context: Context, raw: str) -> Context:
        return self.router.submit(context, raw)

    async def run_deferred(self, context: Context) -> list[Any]:
        """Drain the context's deferred work, awaiting coroutine results.

        Failures are reported as errors on the context; remaining work
        still runs.
        """
        results: list[Any] = []
        for descriptor in context.take_processes():
            name = descriptor.get("name", "?")
            handler = self.registry.get(descriptor.get("handler_class", ""))
            method = getattr(handler, descriptor.get("handler_method", ""), None)
            if handler is None or not callable(method):
                context.set_error(f"Deferred work '{name}' has no handler.", append=True)
                continue
            try:
                outcome = method(*descriptor.get("args", []))
                if inspect.isawaitable(outcome):
                    outcome = await outcome
            except Exception as e:
                log.warning("Deferred work %s failed: %s", name, e, exc_info=True)
                context.set_error(f"Deferred work '{name}' failed: {e}", append=True)
                continue
            results.append(outcome)
        return results

    def start(self) -> None:
        self.supervisor.start()

    async def shutdown(self) -> None:
        await self.supervisor.shutdown()
