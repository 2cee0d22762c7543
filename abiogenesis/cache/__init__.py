"""
cache — tiered, JSON-backed persistence for generated commands.

Public API
──────────
CommandRecord, PermissionRequest, PermissionDecision, PermissionConsent,
CacheEntry, CacheStats  — data model
TierResolver, HierarchyResolver, StaticTierResolver     — tier discovery
CommandStore                                            — CRUD + consent ledger
"""

from abiogenesis.cache.models import (
    CacheEntry,
    CacheStats,
    CommandRecord,
    PermissionConsent,
    PermissionDecision,
    PermissionRequest,
)
from abiogenesis.cache.resolver import HierarchyResolver, StaticTierResolver, TierResolver
from abiogenesis.cache.store import CommandStore

__all__ = [
    "CacheEntry",
    "CacheStats",
    "CommandRecord",
    "PermissionConsent",
    "PermissionDecision",
    "PermissionRequest",
    "TierResolver",
    "HierarchyResolver",
    "StaticTierResolver",
    "CommandStore",
]
