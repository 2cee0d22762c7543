"""
Project-wide custom exception hierarchy.
All modules raise subclasses of AbiogenesisError — never bare Exception.
"""

from typing import Optional

__all__ = [
    "AbiogenesisError",
    "ConfigError",
    "MissingAPIKeyError",
    "CacheError",
    "NoHomeDirectoryError",
    "ScriptNotFoundError",
    "GeneratorError",
    "LLMAPIError",
    "ScriptGenerationError",
    "ExecutionError",
    "SandboxNotFoundError",
    "CommandExecutionError",
    "ConsentError",
]


class AbiogenesisError(Exception):
    """Root exception for all abiogenesis errors."""


# ── Configuration ─────────────────────────────────────────────────────────────

class ConfigError(AbiogenesisError):
    """Raised when the configuration file cannot be read or written."""


class MissingAPIKeyError(ConfigError):
    """Raised when generation is requested but no API key is configured."""


# ── Command cache ─────────────────────────────────────────────────────────────

class CacheError(AbiogenesisError):
    """Raised on store document / script file I/O errors."""


class NoHomeDirectoryError(CacheError):
    """Raised when no cache tier exists, not even the home directory."""


class ScriptNotFoundError(CacheError):
    """Raised when no tier holds the script file referenced by a command."""


# ── Generator ─────────────────────────────────────────────────────────────────

class GeneratorError(AbiogenesisError):
    """Base class for text-generation service errors."""


class LLMAPIError(GeneratorError):
    """Raised when the generation service is unreachable or answers non-success."""


class ScriptGenerationError(GeneratorError):
    """Raised when the service response does not match the command schema."""


# ── Execution ─────────────────────────────────────────────────────────────────

class ExecutionError(AbiogenesisError):
    """Base class for command execution errors."""


class SandboxNotFoundError(ExecutionError):
    """Raised when the sandbox runtime binary is not installed."""


class CommandExecutionError(ExecutionError):
    """Raised when an executed process exits with a non-zero status."""

    def __init__(self, message: str, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode


# ── Permission consent ────────────────────────────────────────────────────────

class ConsentError(AbiogenesisError):
    """Raised when the consent prompt cannot read from its input stream."""
