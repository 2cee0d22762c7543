"""Intent classification."""

from dataclasses import dataclass, field
from enum import Enum

__all__ = ["IntentKind", "Intent", "classify_intent"]


class IntentKind(str, Enum):
    COMMAND        = "command"          # first token is a command name
    CONVERSATIONAL = "conversational"   # one token holding a sentence


@dataclass
class Intent:
    """
    kind         — IntentKind
    command_name — first token (COMMAND only)
    args         — remaining tokens (COMMAND only)
    description  — the sentence (CONVERSATIONAL only)
    """
    kind:         IntentKind
    command_name: str       = ""
    args:         list[str] = field(default_factory=list)
    description:  str       = ""


def classify_intent(intent_args: list[str]) -> Intent:
    """
    A single token containing whitespace is a natural-language request;
    anything else is ``<command> [args...]``.

    Raises:
        ValueError: *intent_args* is empty.
    """
    if not intent_args:
        raise ValueError("No intent provided")
    if len(intent_args) == 1 and any(c.isspace() for c in intent_args[0]):
        return Intent(kind=IntentKind.CONVERSATIONAL, description=intent_args[0])
    return Intent(
        kind=IntentKind.COMMAND,
        command_name=intent_args[0],
        args=list(intent_args[1:]),
    )
