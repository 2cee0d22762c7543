"""
PermissionGate — consent state machine for generated commands.

Per command name the gate is in one of four states::

    NoDecision ──► AcceptOnce | AcceptForever | Denied

check_and_request():
  1. no permissions        → AcceptForever, never prompts
  2. stored AcceptForever  → stored decision, no prompt
  3. otherwise             → prompt until the answer is 1, 2 or 3
  4. persist the decision (last decision wins) and return it

An invalid answer re-prompts; only a closed or failing input stream aborts.
"""

import logging
from typing import Optional

from abiogenesis.cache.models import PermissionConsent, PermissionDecision, PermissionRequest
from abiogenesis.cache.store import CommandStore
from abiogenesis.exceptions import ConsentError
from abiogenesis.providers import SystemTimeProvider, TimeProvider

from .console import Console, StreamConsole

__all__ = ["PermissionGate"]

logger = logging.getLogger(__name__)

_CHOICES = {
    "1": PermissionConsent.ACCEPT_ONCE,
    "2": PermissionConsent.ACCEPT_FOREVER,
    "3": PermissionConsent.DENIED,
}

_RULE = "=" * 60


class PermissionGate:
    """
    Ask for, record and enforce consent decisions.

    Parameters
    ----------
    store    : CommandStore holding the decisions
    console  : Console port (default: stdin/stdout)
    clock    : TimeProvider for ``decided_at``
    verbose  : also announce runs that need no permissions
    """

    def __init__(
        self,
        store: CommandStore,
        console: Optional[Console] = None,
        clock: Optional[TimeProvider] = None,
        verbose: bool = False,
    ) -> None:
        self._store = store
        self._console = console or StreamConsole()
        self._clock = clock or SystemTimeProvider()
        self._verbose = verbose

    # ── Decision flow ─────────────────────────────────────────────────────

    def check_and_request(
        self,
        name: str,
        permissions: list[PermissionRequest],
        description: str = "",
    ) -> PermissionDecision:
        """
        Return the decision governing this run of *name*, prompting if needed.

        Raises:
            ConsentError: input stream closed or unreadable while prompting.
            CacheError:   the decision could not be persisted.
        """
        if not permissions:
            consent = PermissionConsent.ACCEPT_FOREVER
        else:
            existing = self._store.get_permission_decision(name)
            if not self._store.needs_consent(name) and existing is not None:
                logger.debug("Using stored decision for %r: %s", name, existing.consent.value)
                return existing
            consent = self.prompt_for_consent(name, description, permissions)

        decision = self.create_decision(permissions, consent)
        self._store.set_permission_decision(name, decision)
        return decision

    def create_decision(
        self, permissions: list[PermissionRequest], consent: PermissionConsent
    ) -> PermissionDecision:
        return PermissionDecision(
            permissions=list(permissions),
            consent=consent,
            decided_at=self._clock.now(),
        )

    def prompt_for_consent(
        self,
        name: str,
        description: str,
        permissions: list[PermissionRequest],
    ) -> PermissionConsent:
        """Show the request and loop until a valid choice is read."""
        if not permissions:
            return PermissionConsent.ACCEPT_FOREVER

        self._display_request(name, description, permissions)
        while True:
            self._console.write("\nChoose an option (1/2/3): ")
            try:
                line = self._console.readline()
            except UnicodeDecodeError:
                self._console.write("Invalid choice. Please enter 1, 2, or 3.\n")
                continue
            except OSError as exc:
                raise ConsentError(f"Cannot read consent answer: {exc}") from exc
            if line == "":
                raise ConsentError("Input closed before a consent choice was made")

            consent = _CHOICES.get(line.strip())
            if consent is not None:
                logger.info("User chose %r for command %r", consent.label, name)
                return consent
            self._console.write("Invalid choice. Please enter 1, 2, or 3.\n")

    # ── Output ────────────────────────────────────────────────────────────

    def _display_request(
        self, name: str, description: str, permissions: list[PermissionRequest]
    ) -> None:
        lines = [
            "",
            _RULE,
            "PERMISSION REQUEST",
            _RULE,
            "",
            f"Command: {name}",
            f"Description: {description}",
            "",
            "This command requires the following permissions:",
            "",
        ]
        for i, perm in enumerate(permissions, start=1):
            lines.append(f"   {i}. {perm.permission}")
            lines.append(f"      Why: {perm.reason}")
            lines.append("")
        lines += [
            "-" * 60,
            "What would you like to do?",
            "",
            "  1  Accept Once    - Run this time only, ask again next time",
            "  2  Accept Forever - Always run with these permissions",
            "  3  Deny           - Don't run this command",
            "",
            _RULE,
        ]
        self._console.write("\n".join(lines) + "\n")

    def show_running_with_permissions(self, name: str, permissions: list[PermissionRequest]) -> None:
        if permissions:
            self._console.write(f"Running '{name}' with permissions:\n")
            for perm in permissions:
                self._console.write(f"   {perm.permission}\n")
        elif self._verbose:
            self._console.write(f"Running '{name}' (no special permissions needed)\n")

    def show_permission_denied(self, name: str) -> None:
        self._console.write(f"\nPermission denied for command '{name}'\n")
        self._console.write("   The command will not be executed.\n")
