"""Asynchronous supervisor for external child processes.

The supervisor owns every process record of a laboratory:
- spawn/kill/pause/resume/send for live children
- stdout/stderr capture into per-process buffers, flushed to ``<id>.log``
- one ``<id>.json`` state file per process, rewritten on every transition
- recovery of records left RUNNING/PAUSED by a previous session

All work runs on the single asyncio event loop shared with the REPL.
Callbacks fire from that loop; they must not block.

Storage layout:
    <directory>/proc-001.json
    <directory>/proc-001.log
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import shlex
import signal
from collections.abc import Callable
from pathlib import Path

from agentlab.logging import TRACE, get_logger
from agentlab.process.schema import ProcessConfig, ProcessState, ProcessStatus

log = get_logger("supervisor")

OutputCallback = Callable[[str, str, str], None]
CompleteCallback = Callable[[str, int], None]
StateChangeCallback = Callable[[str, ProcessStatus], None]
ErrorCallback = Callable[[str, str], None]

_ID_PATTERN = re.compile(r"proc-(\d+)")
_READ_CHUNK = 4096
_PUMP_DRAIN_TIMEOUT = 1.0


def _signal_name(returncode: int) -> str | None:
    if returncode >= 0:
        return None
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return None


class ProcessSupervisor:
    """Owns live and historical child-process records for one laboratory."""

    def __init__(
        self,
        directory: Path | str,
        flush_interval: float = 1.0,
        on_output: OutputCallback | None = None,
        on_complete: CompleteCallback | None = None,
        on_state_change: StateChangeCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        """Create the supervisor and recover persisted records.

        Args:
            directory: Directory holding state and log files.
            flush_interval: Seconds between periodic buffer flushes.
            on_output: Called with (id, chunk, stream) for every output chunk.
            on_complete: Called with (id, exit_code) when a child exits.
            on_state_change: Called with (id, status) after each transition.
            on_error: Called with (id, message) when spawning fails.
        """
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.flush_interval = flush_interval

        self.on_output = on_output
        self.on_complete = on_complete
        self.on_state_change = on_state_change
        self.on_error = on_error

        self._states: dict[str, ProcessState] = {}
        self._live: dict[str, asyncio.subprocess.Process] = {}
        self._watchers: dict[str, asyncio.Task[None]] = {}
        self._buffers: dict[str, list[str]] = {}
        self._next_id = 1
        self._flush_task: asyncio.Task[None] | None = None

        self.recover_processes()

    # -- Paths -----------------------------------------------------------

    def state_path(self, process_id: str) -> Path:
        return self.directory / f"{process_id}.json"

    def log_path(self, process_id: str) -> Path:
        return self.directory / f"{process_id}.log"

    def _allocate_id(self) -> str:
        process_id = f"proc-{self._next_id:03d}"
        self._next_id += 1
        return process_id

    # -- Lifecycle -------------------------------------------------------

    async def spawn(self, config: ProcessConfig, name: str | None = None) -> ProcessState:
        """Start a child process for config.

        The child runs through the shell in its own process group. A failure
        to start leaves a FAILED record instead of raising.

        Args:
            config: Spawn intent.
            name: Display name (defaults to the command).

        Returns:
            The process record, RUNNING on success, FAILED otherwise.
        """
        process_id = self._allocate_id()
        state = ProcessState(
            id=process_id,
            name=name or config.command,
            config=config,
            type=config.type,
        )
        self._states[process_id] = state
        self._buffers[process_id] = []
        self.save_state(state)

        command = config.command
        if config.args:
            command += " " + " ".join(shlex.quote(str(arg)) for arg in config.args)

        env = None
        if config.env is not None:
            env = os.environ.copy()
            env.update({k: str(v) for k, v in config.env.items()})

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=config.cwd,
                env=env,
                start_new_session=True,
            )
        except OSError as e:
            message = f"Spawn failed: {e}"
            log.warning("%s: %s", process_id, message)
            state.mark_failed(message)
            self._transition(state)
            if self.on_error is not None:
                self.on_error(process_id, message)
            return state

        self._live[process_id] = process
        state.mark_running(pid=process.pid or 0)
        self._transition(state)
        log.info("Spawned %s (pid %s): %s", process_id, state.pid, command)

        self._watchers[process_id] = asyncio.create_task(
            self._watch(process_id, process), name=f"watch-{process_id}"
        )
        return state

    async def _watch(self, process_id: str, process: asyncio.subprocess.Process) -> None:
        pumps = [
            asyncio.create_task(self._pump(process_id, process.stdout, "stdout")),
            asyncio.create_task(self._pump(process_id, process.stderr, "stderr")),
        ]
        timeout = self._states[process_id].config.timeout

        if timeout is None:
            await process.wait()
        else:
            try:
                await asyncio.wait_for(process.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                log.info("%s exceeded timeout of %ss, killing", process_id, timeout)
                self._states[process_id].metadata["timed_out"] = True
                self.kill(process_id)
                await process.wait()

        # A grandchild may still hold the pipes open; don't wait on it forever.
        _, pending = await asyncio.wait(pumps, timeout=_PUMP_DRAIN_TIMEOUT)
        for task in pending:
            task.cancel()

        self._on_exit(process_id, process.returncode if process.returncode is not None else -1)

    async def _pump(
        self, process_id: str, stream: asyncio.StreamReader | None, stream_name: str
    ) -> None:
        if stream is None:
            return
        while True:
            try:
                chunk = await stream.read(_READ_CHUNK)
            except (ConnectionError, OSError) as e:
                log.debug("%s %s closed: %s", process_id, stream_name, e)
                return
            if not chunk:
                return
            text = chunk.decode("utf-8", errors="replace")
            log.log(TRACE, "%s %s: %d bytes", process_id, stream_name, len(chunk))
            self._buffers.setdefault(process_id, []).append(text)
            if self.on_output is not None:
                self.on_output(process_id, text, stream_name)

    def _on_exit(self, process_id: str, returncode: int) -> None:
        state = self._states[process_id]
        self._live.pop(process_id, None)
        self._watchers.pop(process_id, None)

        # Explicit kill already recorded STOPPED; an exit is not a failure then.
        if not state.is_terminal:
            if returncode == 0:
                state.mark_completed(0)
            else:
                error = f"Exit code: {returncode}"
                signal_name = _signal_name(returncode)
                if signal_name:
                    error += f", Signal: {signal_name}"
                state.mark_failed(error, exit_code=returncode)
            self._transition(state)

        self.flush_output_buffers(process_id)
        log.info("%s exited with %s (%s)", process_id, returncode, state.status)

        if self.on_complete is not None:
            self.on_complete(process_id, returncode)

    def kill(self, process_id: str) -> bool:
        """Close stdin, SIGTERM the process group and mark STOPPED.

        No grace period. Returns False for unknown or terminal records.
        """
        state = self._states.get(process_id)
        if state is None or state.is_terminal:
            return False

        process = self._live.pop(process_id, None)
        if process is not None:
            if process.stdin is not None:
                try:
                    process.stdin.close()
                except (OSError, RuntimeError) as e:
                    log.debug("Closing stdin of %s failed: %s", process_id, e)
            self._signal(process, signal.SIGTERM)
            if state.status is ProcessStatus.PAUSED and hasattr(signal, "SIGCONT"):
                # A stopped group only acts on SIGTERM once continued.
                self._signal(process, signal.SIGCONT)

        state.mark_stopped()
        self._transition(state)
        log.info("Killed %s", process_id)
        return True

    def pause(self, process_id: str) -> bool:
        """SIGSTOP a RUNNING process. No-op otherwise."""
        state = self._states.get(process_id)
        process = self._live.get(process_id)
        if state is None or process is None or state.status is not ProcessStatus.RUNNING:
            return False
        if not hasattr(signal, "SIGSTOP"):
            return False
        self._signal(process, signal.SIGSTOP)
        state.mark_paused()
        self._transition(state)
        return True

    def resume(self, process_id: str) -> bool:
        """SIGCONT a PAUSED process. No-op otherwise."""
        state = self._states.get(process_id)
        process = self._live.get(process_id)
        if state is None or process is None or state.status is not ProcessStatus.PAUSED:
            return False
        self._signal(process, signal.SIGCONT)
        state.mark_running()
        self._transition(state)
        return True

    def send(self, process_id: str, data: str) -> bool:
        """Write data to a live process's stdin. No-op if untracked."""
        process = self._live.get(process_id)
        if process is None or process.stdin is None:
            return False
        try:
            process.stdin.write(data.encode("utf-8"))
        except (OSError, RuntimeError) as e:
            log.debug("Writing to %s failed: %s", process_id, e)
            return False
        return True

    def _signal(self, process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
        try:
            os.killpg(process.pid, sig)
            return
        except AttributeError:
            pass  # No process groups on this platform
        except ProcessLookupError:
            return
        except PermissionError as e:
            log.debug("killpg(%s, %s) denied: %s", process.pid, sig, e)
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            pass

    # -- Output ----------------------------------------------------------

    def flush_output_buffers(self, process_id: str | None = None) -> None:
        """Append buffered output to log files and count the new lines.

        Args:
            process_id: Flush only this process (None = all).
        """
        ids = [process_id] if process_id is not None else list(self._buffers)
        for pid in ids:
            chunks = self._buffers.get(pid)
            if not chunks:
                continue
            text = "".join(chunks)
            self._buffers[pid] = []
            try:
                with open(self.log_path(pid), "a", encoding="utf-8") as f:
                    f.write(text)
            except OSError as e:
                log.debug("Failed to append output for %s: %s", pid, e)
                continue
            state = self._states.get(pid)
            if state is not None:
                state.output_lines += text.count("\n")
                self.save_state(state)

    def get_output(self, process_id: str) -> str:
        """Return flushed log content plus anything still buffered."""
        content = ""
        path = self.log_path(process_id)
        if path.is_file():
            try:
                content = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                log.debug("Failed to read %s: %s", path, e)
        return content + "".join(self._buffers.get(process_id, []))

    # -- State persistence ----------------------------------------------

    def _transition(self, state: ProcessState) -> None:
        self.save_state(state)
        if self.on_state_change is not None:
            self.on_state_change(state.id, state.status)

    def save_state(self, state: ProcessState) -> None:
        """Rewrite the state file. Write errors are logged and ignored."""
        try:
            self.state_path(state.id).write_text(
                json.dumps(state.to_dict(), indent=2), encoding="utf-8"
            )
        except OSError as e:
            log.debug("Failed to save state for %s: %s", state.id, e)

    def recover_processes(self) -> None:
        """Load persisted records, stopping any left RUNNING or PAUSED.

        A child of a previous session cannot be re-attached, so such records
        become STOPPED with ``metadata["interrupted"] = True``. Corrupt files
        are skipped. The next id continues after the highest recovered one.
        """
        for path in sorted(self.directory.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                state = ProcessState.from_dict(data)
            except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                log.warning("Skipping unreadable process state %s: %s", path, e)
                continue

            if state.status in (ProcessStatus.RUNNING, ProcessStatus.PAUSED):
                state.mark_stopped()
                state.metadata["interrupted"] = True
                self.save_state(state)
                log.info("Recovered %s as interrupted", state.id)

            self._states[state.id] = state

            match = _ID_PATTERN.fullmatch(state.id)
            if match:
                self._next_id = max(self._next_id, int(match.group(1)) + 1)

    # -- Queries ---------------------------------------------------------

    def get_state(self, process_id: str) -> ProcessState | None:
        return self._states.get(process_id)

    def states(self) -> list[ProcessState]:
        return [self._states[k] for k in sorted(self._states)]

    def is_live(self, process_id: str) -> bool:
        return process_id in self._live

    @property
    def live_count(self) -> int:
        return len(self._live)

    # -- Timer -----------------------------------------------------------

    def start(self) -> None:
        """Start the periodic flush timer. Requires a running event loop."""
        if self._flush_task is None or self._flush_task.done():
            self._flush_task = asyncio.create_task(self._flush_loop(), name="supervisor-flush")

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self.flush_interval)
            self.flush_output_buffers()

    async def shutdown(self) -> None:
        """Kill live children, stop the timer and flush what is left.

        Errors during teardown are logged and never raised.
        """
        for process_id in list(self._live):
            try:
                self.kill(process_id)
            except Exception as e:
                log.debug("Error killing %s during shutdown: %s", process_id, e)

        watchers = list(self._watchers.values())
        if watchers:
            _, pending = await asyncio.wait(watchers, timeout=_PUMP_DRAIN_TIMEOUT)
            for task in pending:
                task.cancel()

        if self._flush_task is not None:
            self._flush_task.cancel()
            try:
                await self._flush_task
            except asyncio.CancelledError:
                pass
            self._flush_task = None

        self.flush_output_buffers()
