"""
Cache tier discovery.

A tier is a ``.abiogenesis/biomas`` directory. Tiers are collected by walking
from the working directory up to the filesystem root, keeping every ancestor
that has a ``.abiogenesis`` folder, then appending the home directory's tier
if it is not already in the list.

Reads search the tiers nearest-first and stop at the first hit (search-path
shadowing). Only the first tier is ever written to.

Public surface
──────────────
TierResolver            — abstract port (resolve_tiers, write dir, lookups)
HierarchyResolver       — production adapter (real cwd / home lookup)
StaticTierResolver      — fixed tier list, for tests and embedding
read_store_document()   — tolerant reader for one tier's store document
read_script()           — script reader, I/O errors raised as CacheError
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from abiogenesis.exceptions import CacheError, NoHomeDirectoryError

from .models import CacheEntry

__all__ = [
    "MARKER_DIR",
    "CACHE_SUBDIR",
    "STORE_FILENAME",
    "TierResolver",
    "HierarchyResolver",
    "StaticTierResolver",
    "read_store_document",
    "read_script",
]

logger = logging.getLogger(__name__)

MARKER_DIR     = ".abiogenesis"
CACHE_SUBDIR   = "biomas"
STORE_FILENAME = "commands.json"


def read_store_document(tier_dir: Path) -> Optional[dict[str, CacheEntry]]:
    """
    Read ``commands.json`` from *tier_dir*.

    Returns None when the document is missing and an empty mapping when it
    cannot be read or parsed; a corrupt document is never an error.
    """
    path = tier_dir / STORE_FILENAME
    if not path.is_file():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return {name: CacheEntry.from_dict(value) for name, value in raw.items()}
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
        logger.warning("Ignoring unreadable store document %s: %s", path, exc)
        return {}


def read_script(script_path: Path) -> str:
    try:
        return script_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CacheError(f"Cannot read {script_path}: {exc}") from exc


class TierResolver(ABC):
    """Port that hides the environment (cwd, home) from the store."""

    @abstractmethod
    def resolve_tiers(self) -> list[Path]:
        """Return candidate cache directories, nearest first."""
        ...

    def get_write_dir(self) -> Path:
        """
        Return the first tier, creating it if necessary.

        Raises:
            NoHomeDirectoryError: no tier was found, not even the home one.
        """
        tiers = self.resolve_tiers()
        if not tiers:
            raise NoHomeDirectoryError(
                "Could not determine cache directory: no home directory found"
            )
        write_dir = tiers[0]
        write_dir.mkdir(parents=True, exist_ok=True)
        return write_dir

    def find_command(self, name: str) -> Optional[tuple[Path, CacheEntry]]:
        """Return ``(tier_dir, entry)`` for the nearest tier defining *name*."""
        for tier in self.resolve_tiers():
            document = read_store_document(tier)
            if document and name in document:
                logger.debug("Found command %r in tier %s", name, tier)
                return tier, document[name]
        return None

    def find_script(self, script_file: str) -> Optional[str]:
        """
        Return the content of *script_file* from the nearest tier whose store
        document references it.

        A stray script file in a tier that has no metadata for it is skipped.
        The search stops at the first tier that references the file, so a
        missing script there is never replaced by one from a further tier.

        Raises:
            CacheError: the script file exists but cannot be read.
        """
        for tier in self.resolve_tiers():
            document = read_store_document(tier)
            if not document:
                continue
            if not any(e.command.script_file == script_file for e in document.values()):
                continue
            script_path = tier / script_file
            if not script_path.is_file():
                logger.warning("Tier %s references missing script %r", tier, script_file)
                return None
            logger.debug("Found script %r in tier %s", script_file, tier)
            return read_script(script_path)
        return None


class HierarchyResolver(TierResolver):
    """
    Walks the real filesystem.

    Args:
        start: directory to start the walk from (default: ``Path.cwd()``
               at call time).
        home:  home directory (default: ``Path.home()`` at call time).
    """

    def __init__(self, start: Optional[Path] = None, home: Optional[Path] = None) -> None:
        self._start = start
        self._home = home

    def _home_dir(self) -> Optional[Path]:
        if self._home is not None:
            return self._home
        try:
            return Path.home()
        except RuntimeError:
            return None

    def resolve_tiers(self) -> list[Path]:
        tiers: list[Path] = []
        current = (self._start or Path.cwd()).resolve()
        while True:
            marker = current / MARKER_DIR
            if marker.is_dir():
                tiers.append(marker / CACHE_SUBDIR)
            if current.parent == current:
                break
            current = current.parent

        home = self._home_dir()
        if home is not None:
            home_tier = home.resolve() / MARKER_DIR / CACHE_SUBDIR
            if home_tier not in tiers:
                tiers.append(home_tier)

        logger.debug("Resolved cache tiers: %s", [str(t) for t in tiers])
        return tiers


class StaticTierResolver(TierResolver):
    """Returns a fixed, caller-supplied tier list."""

    def __init__(self, tiers: list[Path]) -> None:
        self._tiers = [Path(t) for t in tiers]

    def resolve_tiers(self) -> list[Path]:
        return list(self._tiers)
