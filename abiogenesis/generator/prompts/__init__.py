"""Prompt assembly for the generation service."""

from .builder import PromptBuilder

__all__ = ["PromptBuilder"]
