"""
CommandStore — JSON-backed persistence layer for generated commands.

Usage::

    store = CommandStore()          # nearest tier of cwd, or ~/.abiogenesis/biomas

    # Look up a cached command (any tier, nearest first)
    record = store.get("weather")
    if record:
        script = store.get_script(record)
        store.update_usage("weather")
    else:
        result = generator.generate_command("weather", [])
        store.store("weather", result.command, result.script_content)

    # Forget it again
    store.remove("weather")

Every mutation rewrites the write tier's ``commands.json`` in full. There is
no locking: two concurrent invocations on the same tier race and the last
writer wins.
"""

import dataclasses
import json
import logging
from pathlib import Path
from typing import Optional

from abiogenesis.exceptions import CacheError, ScriptNotFoundError
from abiogenesis.providers import SystemTimeProvider, TimeProvider

from .models import (
    CacheEntry,
    CacheStats,
    CommandRecord,
    PermissionConsent,
    PermissionDecision,
)
from .resolver import (
    STORE_FILENAME,
    HierarchyResolver,
    TierResolver,
    read_script,
    read_store_document,
)

__all__ = ["CommandStore", "SCRIPT_SUFFIX"]

logger = logging.getLogger(__name__)

# Generated scripts are TypeScript run by the sandbox runtime
SCRIPT_SUFFIX = ".ts"


class CommandStore:
    """
    CRUD interface over the tiered command cache.

    Reads consult the in-memory write tier first, then every tier's persisted
    document through the resolver. Writes only ever touch the write tier.
    """

    def __init__(
        self,
        resolver: Optional[TierResolver] = None,
        clock: Optional[TimeProvider] = None,
    ) -> None:
        self._resolver = resolver or HierarchyResolver()
        self._clock = clock or SystemTimeProvider()
        try:
            self._write_dir = self._resolver.get_write_dir()
        except OSError as exc:
            raise CacheError(f"Cannot create cache directory: {exc}") from exc
        self._entries: dict[str, CacheEntry] = {}
        self.load()

    # ── Internal helpers ──────────────────────────────────────────────────

    @property
    def write_dir(self) -> Path:
        return self._write_dir

    @property
    def document_path(self) -> Path:
        return self._write_dir / STORE_FILENAME

    def _persist(self) -> None:
        content = json.dumps(
            {name: entry.to_dict() for name, entry in self._entries.items()},
            indent=2,
        )
        try:
            self.document_path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise CacheError(f"Cannot write {self.document_path}: {exc}") from exc

    def _delete_script(self, entry: CacheEntry) -> None:
        script_path = self._write_dir / entry.command.script_file
        try:
            script_path.unlink(missing_ok=True)
        except OSError as exc:
            raise CacheError(f"Cannot delete {script_path}: {exc}") from exc

    # ── Public API ────────────────────────────────────────────────────────

    def load(self) -> None:
        """
        (Re)read the write tier's document into memory.

        A missing document gives an empty store. So does a document that
        cannot be parsed; its content is lost on the next write.
        """
        document = read_store_document(self._write_dir)
        self._entries = document or {}
        logger.info(
            "Write cache initialized at %s with %d entries",
            self._write_dir, len(self._entries),
        )

    def get(self, name: str) -> Optional[CommandRecord]:
        """
        Retrieve a command by name.

        Returns:
            The CommandRecord from the nearest tier defining *name*, or None.
        """
        entry = self._entries.get(name)
        if entry is not None:
            logger.info("Found cached command %r in write cache", name)
            return entry.command

        found = self._resolver.find_command(name)
        if found is not None:
            tier, entry = found
            logger.info("Found cached command %r in tier %s", name, tier)
            return entry.command
        return None

    def get_script(self, record: CommandRecord) -> str:
        """
        Return the script content for *record*.

        Raises:
            ScriptNotFoundError: the nearest tier referencing the script has
                                 no such file, or no tier references it.
            CacheError:          the script file cannot be read.
        """
        if any(e.command.script_file == record.script_file for e in self._entries.values()):
            script_path = self._write_dir / record.script_file
            if script_path.is_file():
                return read_script(script_path)
            raise ScriptNotFoundError(f"Script file '{record.script_file}' not found in {self._write_dir}")

        content = self._resolver.find_script(record.script_file)
        if content is not None:
            return content
        raise ScriptNotFoundError(f"Script file '{record.script_file}' not found")

    def store(self, name: str, record: CommandRecord, script_content: str) -> CommandRecord:
        """
        Write *script_content* next to the store document and (re)place the
        entry for *name* with a fresh one.

        Any previous entry for *name*, including its permission decision, is
        replaced. A command with no permissions is recorded as accepted
        forever straight away, since there is nothing to consent to.

        Returns:
            The stored record, with ``script_file`` set.
        """
        now = self._clock.now()
        script_file = f"{name}{SCRIPT_SUFFIX}"
        script_path = self._write_dir / script_file
        if script_path.resolve().parent != self._write_dir.resolve():
            raise CacheError(f"Command name {name!r} would place its script outside {self._write_dir}")
        try:
            script_path.write_text(script_content, encoding="utf-8")
        except OSError as exc:
            raise CacheError(f"Cannot write {script_path}: {exc}") from exc

        stored = dataclasses.replace(record, script_file=script_file)
        decision = None
        if not stored.permissions:
            decision = PermissionDecision(
                permissions=[], consent=PermissionConsent.ACCEPT_FOREVER, decided_at=now
            )
        self._entries[name] = CacheEntry(
            command=stored,
            created_at=now,
            usage_count=0,
            last_used=now,
            permission_decision=decision,
        )
        self._persist()
        logger.info("Stored command %r with script file %r at %s", name, script_file, self._write_dir)
        return stored

    def update_usage(self, name: str) -> None:
        """
        Increment usage_count and refresh last_used for *name*.

        Only write-tier entries are counted; a command served from a further
        tier is neither copied nor counted.
        """
        entry = self._entries.get(name)
        if entry is None:
            return
        entry.usage_count += 1
        entry.last_used = self._clock.now()
        self._persist()
        logger.debug("Updated usage for command %r (%d)", name, entry.usage_count)

    def set_permission_decision(self, name: str, decision: PermissionDecision) -> None:
        """Record *decision* for a write-tier command, replacing any earlier one."""
        entry = self._entries.get(name)
        if entry is None:
            logger.debug("Not recording decision for %r: not in write tier", name)
            return
        entry.permission_decision = decision
        self._persist()
        logger.info("Updated permission decision for command %r: %s", name, decision.consent.value)

    def get_permission_decision(self, name: str) -> Optional[PermissionDecision]:
        entry = self._entries.get(name)
        return entry.permission_decision if entry else None

    def needs_consent(self, name: str) -> bool:
        """
        Return True unless the user accepted *name* forever.

        No decision, AcceptOnce and Denied all mean the user is asked again.
        """
        decision = self.get_permission_decision(name)
        if decision is None:
            return True
        return decision.consent is not PermissionConsent.ACCEPT_FOREVER

    def remove(self, name: str) -> bool:
        """
        Delete the entry for *name* and its script file.

        Returns:
            True if an entry was removed, False if *name* was not in the write tier.
        """
        entry = self._entries.pop(name, None)
        if entry is None:
            return False
        self._delete_script(entry)
        self._persist()
        logger.info("Removed command %r and its script file", name)
        return True

    def clear(self) -> None:
        """Delete every write-tier entry and script file."""
        for entry in self._entries.values():
            self._delete_script(entry)
        self._entries.clear()
        self._persist()
        logger.info("Cache cleared")

    def list(self) -> list[tuple[str, CommandRecord, Optional[PermissionDecision]]]:
        """Return ``(name, record, decision)`` for every write-tier entry, sorted by name."""
        return [
            (name, entry.command, entry.permission_decision)
            for name, entry in sorted(self._entries.items())
        ]

    def entry(self, name: str) -> Optional[CacheEntry]:
        """Return the raw write-tier entry for *name* (usage figures included)."""
        return self._entries.get(name)

    def stats(self) -> CacheStats:
        return CacheStats(
            total_commands=len(self._entries),
            total_usage=sum(e.usage_count for e in self._entries.values()),
            accepted_forever=sum(
                1 for e in self._entries.values()
                if e.permission_decision is not None
                and e.permission_decision.consent is PermissionConsent.ACCEPT_FOREVER
            ),
            cache_dir=str(self._write_dir),
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries
