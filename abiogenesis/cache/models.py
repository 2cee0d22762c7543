"""Data models for the cache module."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

__all__ = [
    "PermissionConsent",
    "PermissionRequest",
    "CommandRecord",
    "PermissionDecision",
    "CacheEntry",
    "CacheStats",
]


# ── Consent ───────────────────────────────────────────────────────────────────

class PermissionConsent(str, Enum):
    """User's answer to a permission request."""
    ACCEPT_ONCE    = "AcceptOnce"       # run now, ask again next time
    ACCEPT_FOREVER = "AcceptForever"    # never ask again for this command
    DENIED         = "Denied"           # do not run; ask again next time

    @property
    def label(self) -> str:
        return {
            PermissionConsent.ACCEPT_ONCE:    "Accept Once",
            PermissionConsent.ACCEPT_FOREVER: "Accept Forever",
            PermissionConsent.DENIED:         "Denied",
        }[self]

    @property
    def granted(self) -> bool:
        return self is not PermissionConsent.DENIED


# ── Command metadata ──────────────────────────────────────────────────────────

@dataclass
class PermissionRequest:
    """
    A single sandbox capability requested by a generated command.

    permission — sandbox flag passed verbatim, e.g. "--allow-net=wttr.in"
    reason     — justification shown to the user
    """
    permission: str
    reason:     str = ""

    def to_dict(self) -> dict[str, str]:
        return {"permission": self.permission, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PermissionRequest":
        return cls(permission=data["permission"], reason=data.get("reason", ""))

    def __str__(self) -> str:
        return f"{self.permission} ({self.reason})" if self.reason else self.permission


@dataclass
class CommandRecord:
    """
    Metadata of a synthesized command.

    name         — command name as suggested by (or forced onto) the generator
    description  — one-line summary shown in prompts and listings
    script_file  — file name of the sibling script in the same tier directory
    permissions  — ordered capability requests
    """
    name:        str
    description: str                     = ""
    script_file: str                     = ""
    permissions: list[PermissionRequest] = field(default_factory=list)

    def permission_flags(self) -> list[str]:
        """Return the sandbox flags in declaration order."""
        return [p.permission for p in self.permissions]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name":        self.name,
            "description": self.description,
            "script_file": self.script_file,
            "permissions": [p.to_dict() for p in self.permissions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommandRecord":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            script_file=data.get("script_file", ""),
            permissions=[PermissionRequest.from_dict(p) for p in data.get("permissions", [])],
        )

    def __str__(self) -> str:
        return f"CommandRecord({self.name!r}, {len(self.permissions)} permission(s))"


@dataclass
class PermissionDecision:
    """
    The consent a user gave for a command.

    permissions — the exact list that was shown when deciding
    consent     — PermissionConsent
    decided_at  — Unix seconds
    """
    permissions: list[PermissionRequest]
    consent:     PermissionConsent
    decided_at:  int

    def to_dict(self) -> dict[str, Any]:
        return {
            "permissions": [p.to_dict() for p in self.permissions],
            "consent":     self.consent.value,
            "decided_at":  self.decided_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PermissionDecision":
        return cls(
            permissions=[PermissionRequest.from_dict(p) for p in data.get("permissions", [])],
            consent=PermissionConsent(data["consent"]),
            decided_at=int(data.get("decided_at", 0)),
        )


# ── Store entry ───────────────────────────────────────────────────────────────

@dataclass
class CacheEntry:
    """One value of the per-tier store document."""
    command:             CommandRecord
    created_at:          int
    usage_count:         int                          = 0
    last_used:           int                          = 0
    permission_decision: Optional[PermissionDecision] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "command":             self.command.to_dict(),
            "created_at":          self.created_at,
            "usage_count":         self.usage_count,
            "last_used":           self.last_used,
            "permission_decision": (
                self.permission_decision.to_dict() if self.permission_decision else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheEntry":
        decision = data.get("permission_decision")
        return cls(
            command=CommandRecord.from_dict(data["command"]),
            created_at=int(data.get("created_at", 0)),
            usage_count=int(data.get("usage_count", 0)),
            last_used=int(data.get("last_used", 0)),
            permission_decision=PermissionDecision.from_dict(decision) if decision else None,
        )


@dataclass
class CacheStats:
    """Aggregate figures over the write-tier store."""
    total_commands:   int
    total_usage:      int
    accepted_forever: int
    cache_dir:        str

    @property
    def average_usage(self) -> float:
        if self.total_commands == 0:
            return 0.0
        return self.total_usage / self.total_commands

    def __str__(self) -> str:
        return (
            "Cache Stats:\n"
            f"- Total commands: {self.total_commands}\n"
            f"- Total usage: {self.total_usage}\n"
            f"- Average usage: {self.average_usage:.2f}\n"
            f"- Accepted forever: {self.accepted_forever}\n"
            f"- Cache directory: {self.cache_dir}"
        )
