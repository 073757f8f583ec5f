"""Process handler: front-end for the supervisor.

    /proc [list]              list process records
    /proc spawn <command>     start a child (deferred until the turn ends)
    /proc kill <id>           SIGTERM and mark STOPPED
    /proc pause <id>          SIGSTOP
    /proc resume <id>         SIGCONT
    /proc send <id> <text>    write a line to stdin
    /proc log <id>            captured output as result lines
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from agentlab.handlers.base import Arguments, Handler
from agentlab.process.schema import ProcessConfig, ProcessState

if TYPE_CHECKING:
    from agentlab.context.carrier import Context

ACTIONS = {
    "list": "List process records",
    "spawn": "Start a command in the background",
    "kill": "Stop a process",
    "pause": "Suspend a process",
    "resume": "Continue a suspended process",
    "send": "Write a line to a process's stdin",
    "log": "Show captured output",
}


def _summary(state: ProcessState) -> dict[str, Any]:
    return {
        "id": state.id,
        "name": state.name,
        "status": state.status.value,
        "pid": state.pid,
        "exit_code": state.exit_code,
        "output_lines": state.output_lines,
    }


class ProcessHandler(Handler):
    name = "proc"
    title = "Processes"
    description = "Spawn and control background processes."
    argument_description = "<list|spawn|kill|pause|resume|send|log> [args]"

    def validate_arguments(
        self, argument: str | None, context: Context, depth: int = 0
    ) -> bool | str | Arguments:
        # Command text after "spawn" is passed through untouched.
        if not argument or not argument.strip():
            return True
        action, _, rest = argument.strip().partition(" ")
        if action not in ACTIONS:
            return f"Unknown process action: {action}"
        rest = rest.strip()
        return Arguments(args=[action, rest] if rest else [action])

    def main(self, context: Context, action: str = "list", rest: str = "") -> Context:
        if action == "list":
            return context.set_result([_summary(s) for s in self.supervisor.states()])

        if action == "spawn":
            if not rest:
                return context.set_error("Nothing to spawn. Usage: /proc spawn <command>")
            context.process(f"spawn {rest}", self.name, "spawn_deferred", rest)
            return context.set_info(f"Spawning: {rest}", append=True)

        process_id, _, text = rest.partition(" ")
        if not process_id:
            return context.set_error(f"Usage: /proc {action} <id>")
        state = self.supervisor.get_state(process_id)
        if state is None:
            return context.set_error(f"Unknown process: {process_id}")

        if action == "log":
            output = self.supervisor.get_output(process_id)
            return context.set_result(output.splitlines())

        if action == "send":
            if not self.supervisor.send(process_id, text + "\n"):
                return context.set_error(f"Process {process_id} is not running.")
            return context.set_success(f"Sent input to {process_id}.")

        operations = {
            "kill": (self.supervisor.kill, "stopped"),
            "pause": (self.supervisor.pause, "paused"),
            "resume": (self.supervisor.resume, "resumed"),
        }
        operation, verb = operations[action]
        if not operation(process_id):
            return context.set_error(
                f"Process {process_id} cannot be {verb} (status {state.status})."
            )
        return context.set_result(_summary(state)).set_success(f"Process {process_id} {verb}.")

    async def spawn_deferred(self, command: str) -> ProcessState:
        """Deferred work registered by ``/proc spawn``; awaited by the REPL."""
        return await self.supervisor.spawn(ProcessConfig(command=command))

    def options(self, prefix: str = "") -> dict[str, str]:
        return {key: label for key, label in ACTIONS.items() if key.startswith(prefix)}
