"""
executor — process execution and the sandbox boundary.

Public API
──────────
ProcessOutput, ExecutionResult, ExecutionContextRecord  — data model
ProcessRunner, SubprocessRunner                         — process port
ExecutionContextStore                                   — last-run document
SandboxExecutor                                         — system / sandboxed runs
"""

from abiogenesis.executor.context import ExecutionContextStore
from abiogenesis.executor.models import ExecutionContextRecord, ExecutionResult, ProcessOutput
from abiogenesis.executor.runner import ProcessRunner, SubprocessRunner
from abiogenesis.executor.sandbox import SandboxExecutor

__all__ = [
    "ExecutionContextRecord",
    "ExecutionResult",
    "ProcessOutput",
    "ProcessRunner",
    "SubprocessRunner",
    "ExecutionContextStore",
    "SandboxExecutor",
]
