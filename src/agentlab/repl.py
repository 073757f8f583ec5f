"""Interactive REPL for a laboratory.

One turn:
1. Apply queued supervisor notifications to the process tabs
2. Render tab bar, messages, variables and the result (or active tab output)
3. Capture the next-command prefill and suggestions, then clear_meta()
4. Read a line with prompt_toolkit on the shared event loop
5. Submit it through the router and drain deferred work

Supervisor callbacks only enqueue notifications; tabs change during the turn.
"""

from __future__ import annotations

import asyncio
import signal
import time
from collections import deque
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings
from rich.json import JSON
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from agentlab.context.tab import Tab, TabState, TabType
from agentlab.dsl.grammar import TAB_NEXT, TAB_PREVIOUS
from agentlab.logging import get_logger
from agentlab.process.schema import ProcessStatus

if TYPE_CHECKING:
    from prompt_toolkit.completion import CompleteEvent

    from agentlab.context.carrier import Context
    from agentlab.dsl.router import Router
    from agentlab.lab import Lab

log = get_logger("repl")

QUIT_COMMANDS = ("/quit", "/exit")
VALUE_MAX_LENGTH = 80
TAB_NAME_LENGTH = 15
TAB_VISIBLE_LINES = 40
SHUTDOWN_SIGNALS = ("SIGINT", "SIGTERM", "SIGHUP")

_MESSAGE_STYLES = (
    ("error", "red", "✗"),
    ("warning", "yellow", "!"),
    ("success", "green", "✓"),
    ("info", "cyan", "i"),
)


def _shorten(value: Any, limit: int = VALUE_MAX_LENGTH) -> str:
    text = value if isinstance(value, str) else repr(value)
    return text if len(text) <= limit else text[: limit - 3] + "..."


class LabCompleter(Completer):
    """Completes handler commands, their options and the turn's suggestions."""

    def __init__(self, router: Router, variants: dict[str, str] | None = None) -> None:
        self.router = router
        self.variants: dict[str, str] = variants or {}

    def get_completions(
        self, document: Document, complete_event: CompleteEvent
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        needle = text.strip().lower()
        candidates = {**self.router.suggestions(text), **self.variants}
        for value, label in candidates.items():
            if needle and needle not in value.lower() and needle not in label.lower():
                continue
            yield Completion(value, start_position=-len(text), display_meta=label)


class LabRepl:
    """prompt_toolkit + rich front-end for a Lab."""

    def __init__(self, lab: Lab, session: PromptSession[str] | None = None) -> None:
        self.lab = lab
        self.console = lab.console
        self._running = False
        self._started = time.monotonic()
        self._task: asyncio.Task[Any] | None = None
        self._signalled: signal.Signals | None = None

        self._notifications: deque[tuple[str, str, Any]] = deque()
        self._tabs: dict[str, Tab] = {}
        self._active_tab: str | None = None
        self._next_command = ""
        self.completer = LabCompleter(lab.router)

        lab.supervisor.on_output = self._queue_output
        lab.supervisor.on_state_change = self._queue_state
        lab.supervisor.on_error = self._queue_error
        if lab.router.acknowledge is None:
            lab.router.acknowledge = self.acknowledge

        self.session = session or self._create_session()

    def _create_session(self) -> PromptSession[str]:
        bindings = KeyBindings()

        @bindings.add("tab")
        def _next_tab(event: Any) -> None:
            event.app.exit(result=TAB_NEXT)

        @bindings.add("s-tab")
        def _previous_tab(event: Any) -> None:
            event.app.exit(result=TAB_PREVIOUS)

        return PromptSession(
            history=FileHistory(str(self.lab.history_path)),
            auto_suggest=AutoSuggestFromHistory(),
            completer=self.completer,
            complete_while_typing=True,
            key_bindings=bindings,
        )

    # -- Supervisor notifications ---------------------------------------

    def _queue_output(self, process_id: str, chunk: str, stream: str) -> None:
        self._notifications.append(("output", process_id, chunk))

    def _queue_state(self, process_id: str, status: ProcessStatus) -> None:
        self._notifications.append(("state", process_id, status))

    def _queue_error(self, process_id: str, message: str) -> None:
        self._notifications.append(("error", process_id, message))

    def _process_tab(self, process_id: str) -> Tab:
        tab = self._tabs.get(process_id)
        if tab is None:
            state = self.lab.supervisor.get_state(process_id)
            name = state.name if state else process_id
            tab = Tab(
                id=process_id,
                name=name[:TAB_NAME_LENGTH],
                type=TabType.PROCESS,
                metadata={"process_id": process_id},
            )
            self._tabs[process_id] = tab
        return tab

    def apply_notifications(self) -> None:
        """Fold queued supervisor events into the process tabs."""
        while self._notifications:
            kind, process_id, payload = self._notifications.popleft()
            tab = self._process_tab(process_id)
            if kind == "output":
                tab.content.extend(payload.splitlines())
                if tab.id != self._active_tab and tab.state is TabState.INACTIVE:
                    tab.mark_has_updates()
            elif kind == "error":
                tab.add_line(payload)
                tab.mark_error()
            elif kind == "state":
                tab.metadata = {**(tab.metadata or {}), "status": payload.value}
                if payload is ProcessStatus.FAILED:
                    tab.mark_error()
                elif payload in (ProcessStatus.COMPLETED, ProcessStatus.STOPPED):
                    tab.mark_completed()

    def sync_tabs(self, context: Context) -> None:
        """Push the REPL-owned tab set into the context."""
        self.apply_notifications()
        context.set_tabs(self._tabs)
        if self._active_tab in self._tabs:
            context.set_active_tab(self._active_tab)
        context.ensure_main_tab()
        self._tabs = context.tabs
        self._active_tab = context.active_tab

    def _remember_tabs(self, context: Context) -> None:
        if context.tabs:
            self._tabs = context.tabs
        if context.active_tab:
            self._active_tab = context.active_tab

    # -- Rendering -------------------------------------------------------

    def render(self, context: Context) -> None:
        self.render_tab_bar(context)
        self.render_messages(context)
        self.render_variables()
        self.render_result(context)

    def render_tab_bar(self, context: Context) -> None:
        bar = Text()
        for tab in context.tabs.values():
            style = "bold reverse" if tab.id == context.active_tab else "dim"
            bar.append(f" {tab.icon} {tab.indicator} {tab.name} ", style=style)
            bar.append(" ")
        self.console.print(bar)

    def render_messages(self, context: Context) -> None:
        for field, color, mark in _MESSAGE_STYLES:
            for message in getattr(context, field):
                self.console.print(f"[{color}]{mark} {escape(message)}[/{color}]")

    def render_variables(self) -> None:
        variables = self.lab.workspace.dots()
        if not variables:
            return
        table = Table(title="Variables", show_header=True)
        table.add_column("Name", style="bold")
        table.add_column("Value")
        for name, value in variables.items():
            table.add_row(escape(name), escape(_shorten(value)))
        self.console.print(table)

    def render_result(self, context: Context) -> None:
        tab = context.tabs.get(context.active_tab or "")
        if tab is not None and tab.type is TabType.PROCESS:
            if not tab.content:
                tab.content = self.lab.supervisor.get_output(tab.id).splitlines()
            lines = tab.content[-TAB_VISIBLE_LINES:]
            status = (tab.metadata or {}).get("status", "")
            self.console.print(
                Panel(escape("\n".join(lines)) or "[dim]No output yet[/dim]", title=f"{tab.id} {status}")
            )
            return

        result = context.result
        if result is None:
            self.console.print("[dim]No result[/dim]")
        elif isinstance(result, str):
            self.console.print(Panel(escape(result), title="Result"))
        else:
            self.console.print(Panel(JSON.from_data(result, default=str), title="Result"))

    def uptime(self) -> str:
        """Session runtime as H:MM:SS."""
        minutes, seconds = divmod(int(time.monotonic() - self._started), 60)
        hours, minutes = divmod(minutes, 60)
        return f"{hours}:{minutes:02d}:{seconds:02d}"

    def status_line(self) -> str:
        now = datetime.now().strftime("%H:%M:%S")
        variables = len(self.lab.workspace.dots())
        return (
            f" {self.lab.name} | {self.lab.supervisor.live_count} live | "
            f"{variables} vars | tab {self._active_tab or '-'} | "
            f"up {self.uptime()} | {now} "
        )

    def acknowledge(self, message: str) -> None:
        self.console.input(f"[dim]{escape(message)}[/dim]")

    # -- Loop ------------------------------------------------------------

    def end_turn(self, context: Context) -> None:
        """Render the context, capture the prompt prefill and clear meta."""
        self.sync_tabs(context)
        self.render(context)
        self._next_command = context.next_command or ""
        self.completer.variants = context.next_variants
        context.clear_meta()

    async def handle_line(self, context: Context, line: str) -> Context:
        """Submit one input line and drain the deferred work it registered."""
        log.debug("Submit: %s", line)
        self.sync_tabs(context)
        context = self.lab.submit(context, line)
        self._remember_tabs(context)
        await self.lab.run_deferred(context)
        return context

    def _install_signal_handlers(self) -> list[signal.Signals]:
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for name in SHUTDOWN_SIGNALS:
            sig = getattr(signal, name, None)
            if sig is None:
                continue
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                log.debug("Cannot handle %s: %s", name, e)
                continue
            installed.append(sig)
        return installed

    def _on_signal(self, sig: signal.Signals) -> None:
        log.info("Received %s, shutting down", sig.name)
        self._signalled = sig
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def run(self, context: Context | None = None) -> Context:
        """Run the REPL until /quit, EOF or a shutdown signal.

        SIGINT, SIGTERM and SIGHUP interrupt the current turn. Live children
        are killed and the supervisor is shut down however the loop ends.
        """
        context = context or self.lab.new_context()
        self.lab.start()
        self._running = True
        self._started = time.monotonic()
        self._signalled = None
        self._task = asyncio.current_task()
        installed = self._install_signal_handlers()

        self.console.print(f"[bold]Agent Lab[/bold] \\[{escape(self.lab.name)}]")
        self.console.print("Type [bold]/help[/bold] for commands, [bold]/quit[/bold] to exit.\n")

        try:
            while self._running:
                self.end_turn(context)
                try:
                    line = await self.session.prompt_async(
                        "lab> ",
                        default=self._next_command,
                        bottom_toolbar=self.status_line,
                    )
                except KeyboardInterrupt:
                    continue
                except EOFError:
                    break

                line = line.strip()
                if not line:
                    continue
                if line in QUIT_COMMANDS:
                    break
                context = await self.handle_line(context, line)
        except asyncio.CancelledError:
            if self._signalled is None:
                raise
            name = self._signalled.name
            self.console.print(f"\n[yellow]{name} received, shutting down[/yellow]")
        finally:
            loop = asyncio.get_running_loop()
            for sig in installed:
                loop.remove_signal_handler(sig)
            self._running = False
            self._task = None
            await self.lab.shutdown()

        return context

    def stop(self) -> None:
        """Stop the REPL after the current turn."""
        self._running = False
