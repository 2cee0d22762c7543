"""
permissions — interactive consent for sandbox capabilities.

Public API
──────────
Console, StreamConsole  — input/output port for the prompt
PermissionGate          — decides whether to prompt and records decisions
"""

from abiogenesis.permissions.console import Console, StreamConsole
from abiogenesis.permissions.gate import PermissionGate

__all__ = ["Console", "StreamConsole", "PermissionGate"]
