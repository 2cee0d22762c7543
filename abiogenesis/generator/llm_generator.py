"""
CommandGenerator — synthesizes commands through the text-generation service.

Supported backends (selected via GeneratorConfig.backend):
  • "anthropic"  — Claude Messages API via the anthropic SDK
  • "stub"       — deterministic no-network backend (ABIOGENESIS_USE_MOCK=1,
                   unit tests)

Each backend returns the provider envelope (the Messages API response as a
mapping). The generator extracts the first text block, parses it as JSON and
validates it against the command schema. Any mismatch raises
ScriptGenerationError carrying the raw envelope; there is no placeholder
fallback and no automatic retry.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Optional

from abiogenesis.cache.models import CommandRecord, PermissionRequest
from abiogenesis.exceptions import LLMAPIError, MissingAPIKeyError, ScriptGenerationError

from .models import GenerationMode, GenerationResult
from .prompts.builder import PromptBuilder

__all__ = ["GeneratorConfig", "CommandGenerator", "parse_envelope"]

logger = logging.getLogger(__name__)


# ── Configuration ─────────────────────────────────────────────────────────────

@dataclass
class GeneratorConfig:
    """Runtime configuration for CommandGenerator."""
    backend:     str   = "anthropic"      # "anthropic" | "stub"
    model:       str   = ""               # empty = use backend default
    api_key:     str   = ""               # empty = read ANTHROPIC_API_KEY
    max_tokens:  int   = 1500
    temperature: float = 0.2
    timeout:     float = 60.0           # seconds per request


_DEFAULT_MODELS = {
    "anthropic": "claude-3-5-haiku-20241022",
    "stub":      "stub-v1",
}

_MISSING_KEY_HELP = """\
No Anthropic API key found. Please set it using one of these methods:

1. Set API key in config:
   ergo --set-api-key sk-ant-your-key-here

2. Set environment variable:
   export ANTHROPIC_API_KEY=sk-ant-your-key-here

3. Check current config:
   ergo --config

Get your API key from: https://console.anthropic.com"""


# ── Response parser ───────────────────────────────────────────────────────────

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```$", re.DOTALL)
_PERMISSION_RE = re.compile(r"^--allow-[a-z-]+(=\S+)?$")
# one file-name component: no separators, no leading dot
_NAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._-]*$")


def _schema_error(problem: str, raw: str) -> ScriptGenerationError:
    return ScriptGenerationError(
        "Failed to parse the generation service response: "
        f"{problem}.\nRaw response: {raw}"
    )


def _extract_text(envelope: Any, raw: str) -> str:
    """Return the first text block of a Messages API envelope."""
    if not isinstance(envelope, dict):
        raise _schema_error("response is not a JSON object", raw)
    content = envelope.get("content")
    if not isinstance(content, list):
        raise _schema_error("response has no content list", raw)
    for block in content:
        if isinstance(block, dict) and block.get("type", "text") == "text" and isinstance(block.get("text"), str):
            return block["text"]
    raise _schema_error("response has no text block", raw)


def _parse_permissions(value: Any, raw: str) -> list[PermissionRequest]:
    if not isinstance(value, list):
        raise _schema_error("'permissions' is not a list", raw)
    permissions: list[PermissionRequest] = []
    for item in value:
        if not isinstance(item, dict):
            raise _schema_error(f"permission entry {item!r} is not an object", raw)
        flag = item.get("permission")
        reason = item.get("reason", "")
        if not isinstance(flag, str) or not _PERMISSION_RE.match(flag):
            raise _schema_error(f"invalid permission flag {flag!r}", raw)
        if not isinstance(reason, str):
            raise _schema_error(f"reason for {flag} is not a string", raw)
        permissions.append(PermissionRequest(permission=flag, reason=reason))
    return permissions


def parse_envelope(envelope: Any, raw: Optional[str] = None) -> GenerationResult:
    """
    Extract and validate the generated command from a provider envelope.

    Raises ScriptGenerationError on any extraction or schema mismatch.
    """
    if raw is None:
        raw = json.dumps(envelope, default=str)
    text = _extract_text(envelope, raw).strip()
    fence = _FENCE_RE.match(text)
    if fence:
        text = fence.group(1).strip()

    try:
        payload = json.loads(text)
    except ValueError:
        raise _schema_error("generated text is not valid JSON", raw) from None
    if not isinstance(payload, dict):
        raise _schema_error("generated JSON is not an object", raw)

    name = payload.get("name")
    description = payload.get("description", "")
    script = payload.get("script")
    if not isinstance(name, str) or not name.strip():
        raise _schema_error("missing 'name'", raw)
    if not _NAME_RE.match(name.strip()):
        raise _schema_error(f"unusable command name {name!r}", raw)
    if not isinstance(description, str):
        raise _schema_error("'description' is not a string", raw)
    if not isinstance(script, str) or not script.strip():
        raise _schema_error("missing 'script'", raw)
    permissions = _parse_permissions(payload.get("permissions", []), raw)

    return GenerationResult(
        command=CommandRecord(
            name=name.strip(),
            description=description,
            permissions=permissions,
        ),
        script_content=script,
        raw_response=raw,
    )


# ── Backend adapters ──────────────────────────────────────────────────────────

class _AnthropicBackend:
    def __init__(self, config: GeneratorConfig) -> None:
        try:
            import anthropic  # type: ignore
        except ImportError as exc:
            raise ImportError(
                "anthropic package not installed. Run: pip install anthropic"
            ) from exc
        api_key = config.api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        if not api_key:
            raise MissingAPIKeyError(_MISSING_KEY_HELP)
        self._anthropic = anthropic
        # no automatic retry: a failed call is reported and the user re-invokes
        self._client = anthropic.Anthropic(
            api_key=api_key, max_retries=0, timeout=config.timeout
        )
        self._config = config

    def call(self, prompt: str, model: str) -> dict[str, Any]:
        """Returns the Messages API response as a plain mapping."""
        try:
            resp = self._client.messages.create(
                model=model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except self._anthropic.APIError as exc:
            raise LLMAPIError(f"Generation service request failed: {exc}") from exc
        return resp.model_dump(mode="json")


class _StubBackend:
    """Deterministic stub — no network, for mock mode and unit tests."""

    def __init__(self, config: GeneratorConfig) -> None:
        pass  # config not used

    _CANNED: dict[str, tuple[str, str, list[dict[str, str]]]] = {
        "hello": (
            "Greet the user",
            "console.log(`Hello from ergo! Arguments: ${Deno.args.join(' ')}`);",
            [],
        ),
        "timestamp": (
            "Show current timestamp",
            "const now = new Date(); "
            "console.log(now.toISOString().replace('T', '_').replace(/:/g, '-').split('.')[0]);",
            [],
        ),
        "uuid": (
            "Generate a UUID",
            "console.log(crypto.randomUUID());",
            [],
        ),
        "project-info": (
            "Show project information",
            "const cwd = Deno.cwd();\n"
            "console.log(`Project: ${cwd.split('/').pop() || 'unknown'}`);\n"
            "let files = 0;\n"
            "for await (const entry of Deno.readDir('.')) { if (entry.isFile) files++; }\n"
            "console.log(`Files: ${files}`);\n",
            [
                {"permission": "--allow-read", "reason": "List files in the current directory"},
                {"permission": "--allow-run=git", "reason": "Read the current git branch"},
            ],
        ),
        "weather": (
            "Get current weather",
            "const response = await fetch('https://wttr.in/?format=%l:+%c+%t');\n"
            "console.log(`Weather: ${(await response.text()).trim()}`);\n",
            [{"permission": "--allow-net=wttr.in", "reason": "Fetch the forecast from wttr.in"}],
        ),
    }

    @staticmethod
    def _header(prompt: str) -> dict[str, str]:
        fields: dict[str, str] = {}
        for line in prompt.splitlines():
            if not line.strip():
                break
            key, sep, value = line.partition(":")
            if sep:
                fields[key.strip().lower()] = value.strip()
        return fields

    @classmethod
    def _payload_for(cls, name: str) -> dict[str, Any]:
        if name in cls._CANNED:
            description, script, permissions = cls._CANNED[name]
        elif name.startswith("git-"):
            action = name[4:]
            description = f"Custom git command for {action}"
            script = (
                f"const proc = new Deno.Command('git', {{ args: ['{action}', ...Deno.args] }}); "
                "await proc.output();"
            )
            permissions = [{"permission": "--allow-run=git", "reason": f"Run git {action}"}]
        else:
            description = f"Generated command for {name}"
            script = f"console.log('This is a generated command: {name}');"
            permissions = []
        return {
            "name": name,
            "description": description,
            "script": script,
            "permissions": permissions,
        }

    @staticmethod
    def _slug(description: str) -> str:
        words = re.findall(r"[a-z0-9]+", description.lower())
        return "-".join(words[:3]) or "command"

    def call(self, prompt: str, model: str) -> dict[str, Any]:
        header = self._header(prompt)
        mode = header.get("mode", GenerationMode.GENERATE.value)

        if mode == GenerationMode.DESCRIBE.value:
            request = header.get("request", "")
            payload = {
                "name": self._slug(request),
                "description": request,
                "script": f"console.log({json.dumps('You asked: ' + request)});",
                "permissions": [],
            }
        else:
            payload = self._payload_for(header.get("command", "command"))
            if mode == GenerationMode.FEEDBACK.value:
                payload["description"] += " (revised)"

        text = json.dumps(payload)
        return {
            "id": "msg_stub",
            "type": "message",
            "role": "assistant",
            "model": model,
            "content": [{"type": "text", "text": text}],
            "stop_reason": "end_turn",
            "usage": {"input_tokens": len(prompt) // 4, "output_tokens": len(text) // 4},
        }


_BACKEND_MAP = {
    "anthropic": _AnthropicBackend,
    "stub":      _StubBackend,
}


# ── CommandGenerator ──────────────────────────────────────────────────────────

class CommandGenerator:
    """
    Build generation requests and parse the service's answers.

    Parameters
    ----------
    config  : GeneratorConfig (or None → defaults)
    backend : object with ``call(prompt, model) -> envelope``; overrides
              ``config.backend`` (used by tests)

    The backend is created on first use, so a missing API key only matters
    when something actually has to be generated.

    Usage::
        generator = CommandGenerator(GeneratorConfig(backend="anthropic"))
        result = generator.generate_command("weather", ["Madrid"])
    """

    def __init__(self, config: Optional[GeneratorConfig] = None, backend: Any = None) -> None:
        self._config = config or GeneratorConfig()
        if backend is None and self._config.backend not in _BACKEND_MAP:
            raise ValueError(
                f"Unknown generator backend: {self._config.backend!r}. "
                f"Choose from: {list(_BACKEND_MAP)}"
            )
        self._backend = backend
        self._builder = PromptBuilder()
        self._model = self._config.model or _DEFAULT_MODELS.get(self._config.backend, "")

    @property
    def model(self) -> str:
        return self._model

    def _get_backend(self) -> Any:
        if self._backend is None:
            self._backend = _BACKEND_MAP[self._config.backend](self._config)
        return self._backend

    def _request(self, prompt: str, what: str) -> GenerationResult:
        logger.info("Generation request (%s) model=%s", what, self._model)
        envelope = self._get_backend().call(prompt, self._model)
        raw = json.dumps(envelope, default=str)
        logger.debug("Generation service response: %s", raw)
        result = parse_envelope(envelope, raw)
        logger.info(
            "Generated command %r: %d script lines, %d permission(s)",
            result.command.name,
            result.script_content.count("\n") + 1,
            len(result.command.permissions),
        )
        return result

    def generate_command(self, command_name: str, args: list[str]) -> GenerationResult:
        """
        Generate an implementation for *command_name*.

        Raises
        ------
        MissingAPIKeyError    — no API key configured
        LLMAPIError           — network / service failure
        ScriptGenerationError — response does not match the command schema
        """
        prompt = self._builder.build_generate(command_name, args)
        return self._request(prompt, f"generate {command_name}")

    def generate_command_from_description(self, description: str) -> GenerationResult:
        """Generate a command from a natural-language request; the service names it."""
        prompt = self._builder.build_from_description(description)
        return self._request(prompt, "describe")

    def regenerate_command_with_feedback(
        self,
        command_name: str,
        previous_script: str,
        previous_stderr: Optional[str],
        feedback: str,
    ) -> GenerationResult:
        """
        Rewrite *command_name* given its last script, that run's stderr and
        the user's feedback (empty feedback: fix what stderr shows).
        """
        prompt = self._builder.build_feedback(
            command_name, previous_script, previous_stderr, feedback
        )
        return self._request(prompt, f"feedback {command_name}")
