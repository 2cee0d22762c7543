"""
IntentRouter — top-level coordinator.

Flow
────
  intent ─┬─ on PATH?        → SandboxExecutor.execute_system()          (done)
          ├─ in cache?       ─┐
          └─ generate+store  ─┴→ PermissionGate → execute with context → usage

  conversational sentence → generate from description → store under the
                            suggested name → gate → execute

  corrective feedback     → last ExecutionContextRecord → regenerate →
                            store under the ORIGINAL name (fresh entry, old
                            consent dropped) → gate → execute

Generation, sandbox-missing and store errors propagate to the caller. A
generated script that exits non-zero is returned as ``success=False``.
"""

import dataclasses
import logging
import sys
from typing import Optional, TextIO

from abiogenesis.cache.models import CommandRecord
from abiogenesis.cache.store import CommandStore
from abiogenesis.executor.context import ExecutionContextStore
from abiogenesis.executor.models import ExecutionResult
from abiogenesis.executor.sandbox import SandboxExecutor
from abiogenesis.generator.llm_generator import CommandGenerator
from abiogenesis.permissions.gate import PermissionGate

from .models import IntentKind, classify_intent

__all__ = ["IntentRouter", "NO_CONTEXT_MESSAGE"]

logger = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = (
    "No previous command execution found. Run a command first, then use --nope."
)


class IntentRouter:
    """
    Parameters
    ----------
    store          : CommandStore
    generator      : CommandGenerator
    executor       : SandboxExecutor
    gate           : PermissionGate
    context_store  : ExecutionContextStore read by the feedback path
    verbose        : progress messages on *out*
    out / err      : user-facing streams (default: stdout / stderr)
    """

    def __init__(
        self,
        store: CommandStore,
        generator: CommandGenerator,
        executor: SandboxExecutor,
        gate: PermissionGate,
        context_store: ExecutionContextStore,
        verbose: bool = False,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
    ) -> None:
        self._store = store
        self._generator = generator
        self._executor = executor
        self._gate = gate
        self._context_store = context_store
        self._verbose = verbose
        self._out = out
        self._err = err

    def _say(self, message: str) -> None:
        if self._verbose:
            (self._out or sys.stdout).write(message + "\n")

    # ── Entry points ──────────────────────────────────────────────────────

    def process_intent(self, intent_args: list[str]) -> Optional[ExecutionResult]:
        """
        Route *intent_args* and run whatever it resolves to.

        Returns:
            The ExecutionResult of the run, or None when the user denied it.
        """
        intent = classify_intent(intent_args)
        if intent.kind is IntentKind.CONVERSATIONAL:
            logger.info("Detected conversational mode: %s", intent.description)
            return self.process_conversational_intent(intent.description)

        name, args = intent.command_name, intent.args
        logger.info("Processing intent: %s with args: %s", name, args)

        if self._executor.is_system_command(name):
            logger.info("Command %r found in system PATH, executing directly", name)
            return self._executor.execute_system([name, *args])

        cached = self._store.get(name)
        if cached is not None:
            logger.info("Command %r found in cache, checking permissions", name)
            return self._execute_with_permissions(name, cached, args)

        self._say(f"Command '{name}' not found, generating with AI...")
        logger.warning("Command %r not found, generating with AI", name)
        result = self._generator.generate_command(name, args)
        stored = self._store.store(name, result.command, result.script_content)
        return self._execute_with_permissions(name, stored, args)

    def process_conversational_intent(self, description: str) -> Optional[ExecutionResult]:
        """Generate a command from *description*, store it under the suggested name, run it."""
        logger.info("Processing conversational intent: %s", description)
        self._say(f"Understanding your request: {description}")

        result = self._generator.generate_command_from_description(description)
        name = result.command.name
        self._say(f"Generated command: {name}")
        self._say(f"Description: {result.command.description}")

        stored = self._store.store(name, result.command, result.script_content)
        return self._execute_with_permissions(name, stored, [])

    def process_corrective_feedback(self, feedback: str) -> Optional[ExecutionResult]:
        """
        Regenerate the last generated command using *feedback* (may be empty:
        the previous stderr is then the only guidance) and run it again.

        Returns None, after telling the user, when nothing has run yet.
        """
        context = self._context_store.load()
        if context is None:
            (self._err or sys.stderr).write(NO_CONTEXT_MESSAGE + "\n")
            return None

        name = context.command_name
        self._say(f"Regenerating command '{name}'...")
        if feedback:
            self._say(f"Feedback: {feedback}")
        elif context.stderr:
            self._say("Using stderr from last execution as context")
        logger.info("Regenerating command %r with feedback: %r", name, feedback)

        result = self._generator.regenerate_command_with_feedback(
            name, context.script_content, context.stderr, feedback
        )
        if result.command.name != name:
            logger.info("Ignoring suggested name %r; keeping %r", result.command.name, name)
        record = dataclasses.replace(result.command, name=name)
        self._say(f"Command regenerated. New description: {record.description}")

        # a fresh entry: the previous consent no longer applies
        stored = self._store.store(name, record, result.script_content)
        return self._execute_with_permissions(name, stored, [])

    # ── Shared tail ───────────────────────────────────────────────────────

    def _execute_with_permissions(
        self, name: str, record: CommandRecord, args: list[str]
    ) -> Optional[ExecutionResult]:
        decision = self._gate.check_and_request(name, record.permissions, record.description)
        if not decision.consent.granted:
            self._gate.show_permission_denied(name)
            return None

        self._gate.show_running_with_permissions(name, record.permissions)
        result = self._executor.execute_generated_with_context(record, args, name=name)
        self._store.update_usage(name)
        return result
