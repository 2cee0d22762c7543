"""Command synthesis through the text-generation service."""

from .llm_generator import CommandGenerator, GeneratorConfig, parse_envelope
from .models import GenerationMode, GenerationResult
from .prompts.builder import PromptBuilder

__all__ = [
    "CommandGenerator",
    "GeneratorConfig",
    "parse_envelope",
    "GenerationMode",
    "GenerationResult",
    "PromptBuilder",
]
