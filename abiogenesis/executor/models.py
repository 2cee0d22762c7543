"""Data models for the executor module."""

from dataclasses import dataclass
from typing import Any, Optional

__all__ = ["ProcessOutput", "ExecutionResult", "ExecutionContextRecord"]


@dataclass
class ProcessOutput:
    """
    Captured result of one child process.

    returncode — exit status (0 = success)
    stdout     — decoded standard output
    stderr     — decoded standard error
    """
    returncode: int
    stdout:     str = ""
    stderr:     str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


@dataclass
class ExecutionResult:
    """
    Outcome of running a command.

    success     — True iff the process exited with status 0
    stderr      — captured standard error, None when empty
    returncode  — exit status, None when the process never ran
    """
    success:    bool
    stderr:     Optional[str] = None
    returncode: Optional[int] = None

    def __str__(self) -> str:
        if self.success:
            return "ExecutionResult(OK)"
        return f"ExecutionResult(FAIL, returncode={self.returncode})"


@dataclass
class ExecutionContextRecord:
    """
    The last generated-command run, kept for the corrective-feedback loop.

    command_name    — store key of the command that ran
    script_content  — exact script text handed to the sandbox
    stderr          — captured standard error, if any
    success         — whether the run exited with status 0
    """
    command_name:   str
    script_content: str
    stderr:         Optional[str] = None
    success:        bool          = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "command_name":   self.command_name,
            "script_content": self.script_content,
            "stderr":         self.stderr,
            "success":        self.success,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExecutionContextRecord":
        return cls(
            command_name=data["command_name"],
            script_content=data["script_content"],
            stderr=data.get("stderr"),
            success=bool(data.get("success", False)),
        )
