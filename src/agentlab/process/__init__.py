"""Process supervision and the synchronous shell primitive."""

from agentlab.process.schema import ProcessConfig, ProcessState, ProcessStatus
from agentlab.process.shell import ShellResult, run_shell
from agentlab.process.supervisor import ProcessSupervisor

__all__ = [
    "ProcessConfig",
    "ProcessState",
    "ProcessStatus",
    "ProcessSupervisor",
    "ShellResult",
    "run_shell",
]
