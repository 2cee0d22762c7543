"""
SandboxExecutor — runs system commands directly and generated scripts inside
the Deno sandbox.

Generated scripts run as::

    deno run <permission flags...> <tmp script> <user args...>

The permission flags are the command's declared permissions, passed through
verbatim, one process argument each. Nothing else is granted.

Public surface
──────────────
ScriptProvider                         — anything with get_script(record)
SandboxExecutor.execute_system()       — OS command, output forwarded
SandboxExecutor.execute_generated()    — sandboxed run, failure raises
SandboxExecutor.execute_generated_with_context()
                                       — sandboxed run, failure captured and
                                         recorded for the feedback loop
"""

import logging
import os
import sys
import tempfile
from pathlib import Path
from typing import Optional, Protocol, TextIO

from abiogenesis.cache.models import CommandRecord
from abiogenesis.exceptions import (
    CacheError,
    CommandExecutionError,
    ExecutionError,
    SandboxNotFoundError,
)

from .context import ExecutionContextStore
from .models import ExecutionContextRecord, ExecutionResult, ProcessOutput
from .runner import ProcessRunner, SubprocessRunner

__all__ = ["ScriptProvider", "SandboxExecutor", "DEFAULT_SANDBOX"]

logger = logging.getLogger(__name__)

DEFAULT_SANDBOX = "deno"


class ScriptProvider(Protocol):
    def get_script(self, record: CommandRecord) -> str:
        ...


class SandboxExecutor:
    """
    Parameters
    ----------
    scripts        : ScriptProvider (normally the CommandStore)
    context_store  : where execute_generated_with_context() records the run
    runner         : ProcessRunner (default: SubprocessRunner)
    sandbox        : sandbox runtime binary name
    verbose        : announce generated runs and their permissions
    stdout/stderr  : streams captured output is forwarded to
    """

    def __init__(
        self,
        scripts: ScriptProvider,
        context_store: ExecutionContextStore,
        runner: Optional[ProcessRunner] = None,
        sandbox: str = DEFAULT_SANDBOX,
        verbose: bool = False,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        self._scripts = scripts
        self._context_store = context_store
        self._runner = runner or SubprocessRunner()
        self._sandbox = sandbox
        self._verbose = verbose
        self._stdout = stdout
        self._stderr = stderr

    # ── Internal helpers ──────────────────────────────────────────────────

    @property
    def out(self) -> TextIO:
        return self._stdout or sys.stdout

    @property
    def err(self) -> TextIO:
        return self._stderr or sys.stderr

    def _forward(self, output: ProcessOutput) -> None:
        if output.stdout:
            self.out.write(output.stdout)
            self.out.flush()
        if output.stderr:
            self.err.write(output.stderr)
            self.err.flush()

    def _temp_script_path(self) -> Path:
        return Path(tempfile.gettempdir()) / f"ergo_script_{os.getpid()}.ts"

    def _remove_temp_script(self, script_path: Path) -> None:
        try:
            script_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Cannot remove temporary script %s: %s", script_path, exc)

    def _run_sandboxed(self, script: str, permissions: list[str], args: list[str]) -> ProcessOutput:
        """Write *script* to a temp file, run it, and always remove the file."""
        if not self._runner.program_exists(self._sandbox):
            raise SandboxNotFoundError(
                f"{self._sandbox} is not installed. "
                f"Please install {self._sandbox} to execute generated commands."
            )

        script_path = self._temp_script_path()
        try:
            script_path.write_text(script, encoding="utf-8")
        except OSError as exc:
            self._remove_temp_script(script_path)
            raise ExecutionError(f"Cannot write temporary script {script_path}: {exc}") from exc

        try:
            sandbox_args = ["run", *permissions, str(script_path), *args]
            logger.info("Running sandbox: %s %s", self._sandbox, sandbox_args)
            return self._runner.run(self._sandbox, sandbox_args)
        except FileNotFoundError as exc:
            raise SandboxNotFoundError(f"{self._sandbox} could not be started: {exc}") from exc
        except OSError as exc:
            raise ExecutionError(f"Cannot run {self._sandbox}: {exc}") from exc
        finally:
            self._remove_temp_script(script_path)

    def _announce(self, record: CommandRecord) -> None:
        if not self._verbose:
            return
        self.out.write(f"Executing generated command: {record.description}\n")
        if record.permissions:
            self.out.write(f"Deno permissions required: {' '.join(record.permission_flags())}\n")

    # ── Public API ────────────────────────────────────────────────────────

    def is_system_command(self, name: str) -> bool:
        return self._runner.program_exists(name)

    def execute_system(self, args: list[str]) -> ExecutionResult:
        """
        Run ``args[0]`` with ``args[1:]`` outside the sandbox.

        Raises:
            CommandExecutionError: the command exited non-zero.
            ExecutionError:        empty *args* or the process could not start.
        """
        if not args:
            raise ExecutionError("No command provided")
        program, *program_args = args
        logger.info("Executing system command: %s %s", program, program_args)
        try:
            output = self._runner.run(program, program_args)
        except OSError as exc:
            raise ExecutionError(f"Cannot run {program}: {exc}") from exc

        self._forward(output)
        if not output.success:
            logger.error("Command %r failed with status %d", program, output.returncode)
            raise CommandExecutionError(
                f"Command '{program}' exited with status {output.returncode}",
                returncode=output.returncode,
            )
        return ExecutionResult(success=True, stderr=output.stderr or None, returncode=0)

    def execute_generated(self, record: CommandRecord, args: list[str]) -> ExecutionResult:
        """
        Run a cached command in the sandbox.

        Raises:
            ScriptNotFoundError:    no tier holds the script.
            SandboxNotFoundError:   the sandbox runtime is not installed.
            CommandExecutionError:  the script exited non-zero.
        """
        logger.info("Executing generated command: %s - %s", record.name, record.description)
        self._announce(record)
        script = self._scripts.get_script(record)
        output = self._run_sandboxed(script, record.permission_flags(), args)
        self._forward(output)
        if not output.success:
            raise CommandExecutionError(
                f"Generated command '{record.name}' exited with status {output.returncode}",
                returncode=output.returncode,
            )
        return ExecutionResult(success=True, stderr=output.stderr or None, returncode=0)

    def execute_generated_with_context(
        self,
        record: CommandRecord,
        args: list[str],
        name: Optional[str] = None,
    ) -> ExecutionResult:
        """
        Run a cached command in the sandbox and record the run.

        A non-zero exit of the script is returned as ``success=False``, not
        raised. The ExecutionContextRecord is overwritten with the command
        name, the script text that ran, the captured stderr and the outcome.

        Args:
            record: command to run.
            args:   user arguments for the script.
            name:   store key to record (default: ``record.name``).

        Raises:
            ScriptNotFoundError:  no tier holds the script.
            SandboxNotFoundError: the sandbox runtime is not installed.
        """
        command_name = name or record.name
        logger.info("Executing generated command: %s - %s", command_name, record.description)
        self._announce(record)
        script = self._scripts.get_script(record)
        output = self._run_sandboxed(script, record.permission_flags(), args)
        self._forward(output)

        if not output.success:
            logger.warning("Generated command %r exited with status %d", command_name, output.returncode)
        stderr = output.stderr or None
        context = ExecutionContextRecord(
            command_name=command_name,
            script_content=script,
            stderr=stderr,
            success=output.success,
        )
        try:
            self._context_store.save(context)
        except CacheError as exc:
            logger.error("Failed to save execution context: %s", exc)

        return ExecutionResult(success=output.success, stderr=stderr, returncode=output.returncode)
