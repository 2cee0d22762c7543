"""
Unit tests for abiogenesis/generator/

Coverage plan
─────────────
parse_envelope   → 11 tests (happy path, fences, reasons optional, bad JSON,
                            missing fields, bad permission flags, raw text
                            in errors, non-text envelopes, command names
                            that are not a single file name)
PromptBuilder    → 4 tests (generate, describe, feedback with and without
                            user feedback)
backends         → 5 tests (missing key, max_retries=0, API error mapping,
                            unknown backend, lazy construction)
CommandGenerator → 4 tests (stub end to end for all three modes)
─────────────────────────────────────────────────────────────────
Total            = 24 tests
"""

import json
from unittest.mock import patch

import pytest

from abiogenesis.exceptions import LLMAPIError, MissingAPIKeyError, ScriptGenerationError
from abiogenesis.generator import (
    CommandGenerator,
    GeneratorConfig,
    PromptBuilder,
    parse_envelope,
)


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _envelope(text: str) -> dict:
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text}],
    }


def _payload(**overrides) -> dict:
    payload = {
        "name": "weather",
        "description": "Get weather",
        "script": "console.log('sunny');",
        "permissions": [{"permission": "--allow-net=wttr.in", "reason": "Fetch the forecast"}],
    }
    payload.update(overrides)
    return payload


class RecordingBackend:
    """Returns one canned payload and remembers every prompt."""

    def __init__(self, payload: dict):
        self.payload = payload
        self.prompts = []

    def call(self, prompt, model):
        self.prompts.append(prompt)
        return _envelope(json.dumps(self.payload))


# ─────────────────────────────────────────────────────────────────────────────
# 1. Envelope parsing
# ─────────────────────────────────────────────────────────────────────────────

class TestParseEnvelope:

    def test_happy_path(self):
        result = parse_envelope(_envelope(json.dumps(_payload())))
        assert result.command.name == "weather"
        assert result.command.description == "Get weather"
        assert result.command.permission_flags() == ["--allow-net=wttr.in"]
        assert result.command.permissions[0].reason == "Fetch the forecast"
        assert result.command.script_file == ""
        assert result.script_content == "console.log('sunny');"

    def test_code_fence_is_stripped(self):
        text = "```json\n" + json.dumps(_payload()) + "\n```"
        assert parse_envelope(_envelope(text)).command.name == "weather"

    def test_reason_is_optional(self):
        payload = _payload(permissions=[{"permission": "--allow-read"}])
        result = parse_envelope(_envelope(json.dumps(payload)))
        assert result.command.permissions[0].reason == ""

    def test_missing_permissions_means_none(self):
        payload = _payload()
        del payload["permissions"]
        assert parse_envelope(_envelope(json.dumps(payload))).command.permissions == []

    def test_prose_is_rejected_with_raw_text(self):
        envelope = _envelope("Sure! Here is your command: console.log(1)")
        with pytest.raises(ScriptGenerationError) as exc_info:
            parse_envelope(envelope)
        assert "Raw response:" in str(exc_info.value)
        assert "Here is your command" in str(exc_info.value)

    @pytest.mark.parametrize("field", ["name", "script"])
    def test_missing_required_field(self, field):
        payload = _payload()
        del payload[field]
        with pytest.raises(ScriptGenerationError):
            parse_envelope(_envelope(json.dumps(payload)))

    @pytest.mark.parametrize("flag", ["-A", "rm -rf /", "--allow-net= x", 42])
    def test_invalid_permission_flags(self, flag):
        payload = _payload(permissions=[{"permission": flag, "reason": "r"}])
        with pytest.raises(ScriptGenerationError):
            parse_envelope(_envelope(json.dumps(payload)))

    @pytest.mark.parametrize("name", ["../escaped", "a/b", "a\\b", ".hidden", "..", "two words"])
    def test_unusable_command_name(self, name):
        with pytest.raises(ScriptGenerationError, match="unusable command name"):
            parse_envelope(_envelope(json.dumps(_payload(name=name))))

    def test_plain_file_name_accepted(self):
        result = parse_envelope(_envelope(json.dumps(_payload(name="git-status_2.v1"))))
        assert result.command.name == "git-status_2.v1"

    def test_envelope_without_text_block(self):
        with pytest.raises(ScriptGenerationError):
            parse_envelope({"content": [{"type": "tool_use", "id": "t1"}]})

    def test_non_object_envelope(self):
        with pytest.raises(ScriptGenerationError):
            parse_envelope(["not", "an", "envelope"])


# ─────────────────────────────────────────────────────────────────────────────
# 2. Prompts
# ─────────────────────────────────────────────────────────────────────────────

class TestPromptBuilder:

    def test_generate_prompt(self):
        prompt = PromptBuilder().build_generate("weather", ["Madrid"])
        assert prompt.startswith("Mode: generate\nCommand: weather\n")
        assert '["Madrid"]' in prompt
        assert "EXACTLY a JSON object" in prompt
        assert "--allow-net" in prompt

    def test_describe_prompt(self):
        prompt = PromptBuilder().build_from_description("show me the date")
        assert prompt.startswith("Mode: describe\nRequest: show me the date\n")
        assert "kebab-case" in prompt

    def test_feedback_prompt_with_feedback(self):
        prompt = PromptBuilder().build_feedback(
            "weather", "console.log(1);", "TypeError: boom", "use celsius"
        )
        assert "PREVIOUS SCRIPT:\nconsole.log(1);" in prompt
        assert "ERROR OUTPUT OF THE LAST RUN:\nTypeError: boom" in prompt
        assert "USER FEEDBACK:\nuse celsius" in prompt

    def test_feedback_prompt_without_feedback_uses_stderr(self):
        prompt = PromptBuilder().build_feedback("weather", "console.log(1);", None, "")
        assert "USER FEEDBACK" not in prompt
        assert "ERROR OUTPUT" not in prompt
        assert "No feedback was given" in prompt


# ─────────────────────────────────────────────────────────────────────────────
# 3. Backends
# ─────────────────────────────────────────────────────────────────────────────

class TestAnthropicBackend:

    def test_missing_key_raises_on_first_use(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        generator = CommandGenerator(GeneratorConfig(backend="anthropic"))
        with pytest.raises(MissingAPIKeyError) as exc_info:
            generator.generate_command("weather", [])
        assert "--set-api-key" in str(exc_info.value)

    def test_client_built_without_retries(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with patch("anthropic.Anthropic") as client_cls:
            client_cls.return_value.messages.create.return_value.model_dump.return_value = (
                _envelope(json.dumps(_payload()))
            )
            generator = CommandGenerator(GeneratorConfig(backend="anthropic", api_key="sk-ant-test"))
            result = generator.generate_command("weather", ["Madrid"])

        client_cls.assert_called_once_with(api_key="sk-ant-test", max_retries=0, timeout=60.0)
        kwargs = client_cls.return_value.messages.create.call_args.kwargs
        assert kwargs["model"] == generator.model
        assert kwargs["messages"][0]["role"] == "user"
        assert result.command.name == "weather"

    def test_api_error_is_mapped(self):
        import anthropic
        import httpx

        with patch("anthropic.Anthropic") as client_cls:
            client_cls.return_value.messages.create.side_effect = anthropic.APIConnectionError(
                request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
            )
            generator = CommandGenerator(GeneratorConfig(backend="anthropic", api_key="k"))
            with pytest.raises(LLMAPIError):
                generator.generate_command("weather", [])

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError, match="Unknown generator backend"):
            CommandGenerator(GeneratorConfig(backend="openai"))

    def test_backend_not_built_until_needed(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        # no key: construction alone must succeed
        generator = CommandGenerator(GeneratorConfig(backend="anthropic"))
        assert generator.model == "claude-3-5-haiku-20241022"


# ─────────────────────────────────────────────────────────────────────────────
# 4. CommandGenerator
# ─────────────────────────────────────────────────────────────────────────────

class TestCommandGenerator:

    def test_stub_generate_known_command(self):
        result = CommandGenerator(GeneratorConfig(backend="stub")).generate_command("weather", [])
        assert result.command.name == "weather"
        assert result.command.permission_flags() == ["--allow-net=wttr.in"]

    def test_stub_generate_unknown_command(self):
        result = CommandGenerator(GeneratorConfig(backend="stub")).generate_command("frobnicate", [])
        assert result.command.permissions == []
        assert "frobnicate" in result.script_content

    def test_stub_describe_suggests_name(self):
        result = CommandGenerator(GeneratorConfig(backend="stub")).generate_command_from_description(
            "show me the current date"
        )
        assert result.command.name == "show-me-the"

    def test_feedback_sends_previous_run(self):
        backend = RecordingBackend(_payload(name="weather-v2"))
        generator = CommandGenerator(backend=backend)
        result = generator.regenerate_command_with_feedback(
            "weather", "console.log(1);", "boom", "in celsius"
        )
        assert result.command.name == "weather-v2"
        assert "console.log(1);" in backend.prompts[0]
        assert "in celsius" in backend.prompts[0]
