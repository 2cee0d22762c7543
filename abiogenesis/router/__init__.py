"""
router — intent classification and orchestration.

Public API
──────────
Intent, IntentKind, classify_intent  — how an intent is read
IntentRouter                         — system path / cache / generation / feedback
"""

from abiogenesis.router.intent_router import IntentRouter
from abiogenesis.router.models import Intent, IntentKind, classify_intent

__all__ = ["Intent", "IntentKind", "classify_intent", "IntentRouter"]
