"""
ExecutionContextStore — the singleton "last generated run" document.

Lives at ``<write tier>/last_execution.json`` and is overwritten in full after
every generated-command run. System commands never touch it.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from abiogenesis.exceptions import CacheError

from .models import ExecutionContextRecord

__all__ = ["ExecutionContextStore", "CONTEXT_FILENAME"]

logger = logging.getLogger(__name__)

CONTEXT_FILENAME = "last_execution.json"


class ExecutionContextStore:

    def __init__(self, directory: Path) -> None:
        self._path = Path(directory) / CONTEXT_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def save(self, record: ExecutionContextRecord) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(record.to_dict(), indent=2), encoding="utf-8")
        except OSError as exc:
            raise CacheError(f"Cannot write {self._path}: {exc}") from exc
        logger.debug("Saved execution context for %r", record.command_name)

    def load(self) -> Optional[ExecutionContextRecord]:
        """
        Return the last record, or None if no generated command has run yet.

        Raises:
            CacheError: the document exists but cannot be read or parsed.
        """
        if not self._path.is_file():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return ExecutionContextRecord.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise CacheError(f"Cannot read {self._path}: {exc}") from exc

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as exc:
            raise CacheError(f"Cannot delete {self._path}: {exc}") from exc
