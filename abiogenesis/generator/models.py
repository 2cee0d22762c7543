"""Data models for the generator module."""

from dataclasses import dataclass
from enum import Enum

from abiogenesis.cache.models import CommandRecord

__all__ = ["GenerationMode", "GenerationResult"]


class GenerationMode(str, Enum):
    """Which kind of request the prompt carries."""
    GENERATE    = "generate"       # named command, fresh implementation
    DESCRIBE    = "describe"       # natural-language request, name suggested
    FEEDBACK    = "feedback"       # rewrite of the last run's script


@dataclass
class GenerationResult:
    """
    Parsed service response.

    command         — metadata (``script_file`` still empty until stored)
    script_content  — TypeScript source of the command
    raw_response    — provider envelope text, kept for diagnostics
    """
    command:        CommandRecord
    script_content: str
    raw_response:   str = ""

    def __str__(self) -> str:
        lines = self.script_content.count("\n") + 1
        return f"GenerationResult<{self.command.name}> ({lines} lines)"
