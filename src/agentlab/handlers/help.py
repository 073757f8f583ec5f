"""Help handler: lists handlers and directions, or one handler's options."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.markup import escape
from rich.table import Table

from agentlab.handlers.base import Handler

if TYPE_CHECKING:
    from agentlab.context.carrier import Context


class HelpHandler(Handler):
    name = "help"
    title = "Help"
    description = "List available commands, or show help for one command."
    argument_description = "[command]"

    def main(self, context: Context, command: Any = None, *_: Any) -> Context:
        if command is None:
            self._show_overview()
        else:
            handler, _captured = self.lab.registry.resolve(str(command))
            if handler is None:
                return context.set_error(f"Unknown command: {command}")
            self._show_handler(handler)

        return context.set_pause().set_success("Help information displayed successfully.")

    def _show_overview(self) -> None:
        table = Table(title="Available Commands")
        table.add_column("Command", style="bold")
        table.add_column("Description")
        for handler in sorted(self.lab.registry.handlers(), key=lambda h: h.name):
            table.add_row(escape(handler.command_name()), escape(handler.description))
        self.console.print(table)

        directions = Table(title="Directions")
        directions.add_column("Prefix", style="bold")
        directions.add_column("Meaning")
        for prefix, meaning in self.router.directions().items():
            directions.add_row(escape(prefix), escape(meaning))
        directions.add_row("+", "Modifier: append to the result instead of replacing it")
        directions.add_row("&", "Modifier: run isolated, only report what would change")
        directions.add_row("*(...)", "Run several commands against copies and merge them")
        directions.add_row("-N / --N", "Drop the last / first N result elements")
        self.console.print(directions)
        self.console.print('Type [bold]/help <command>[/bold] for details on one command.')

    def _show_handler(self, handler: Handler) -> None:
        self.console.print(f"[bold]{handler.title or handler.name}[/bold]")
        self.console.print(f"  Usage: {escape(handler.command_name())}")
        if handler.description:
            self.console.print(f"  {escape(handler.description)}")
        if handler.detect_regexp:
            self.console.print(f"  Also matches: {escape(handler.detect_regexp)}")

        options = handler.options()
        if options:
            table = Table(title="Options")
            table.add_column("Option", style="bold")
            table.add_column("Description")
            for key, label in options.items():
                table.add_row(escape(key), escape(label))
            self.console.print(table)

    def options(self, prefix: str = "") -> dict[str, str]:
        return {
            handler.name: handler.description
            for handler in self.lab.registry.handlers()
            if handler.name.startswith(prefix)
        }
