"""
Unit tests for abiogenesis/router/

Coverage plan
─────────────
classify_intent      → 5 tests (command, args, sentence, multi-token, empty)
process_intent       → 7 tests (system path, generate+store, cache hit,
                                usage counting, stored name wins, denial,
                                generation failure leaves cache untouched)
conversational       → 2 tests (stored under the suggested name, path-like
                                names rejected)
corrective feedback  → 4 tests (no context, original name kept, stderr sent,
                                previous consent dropped)
─────────────────────────────────────────────────────────────────
Total                = 18 tests
"""

import json
from io import StringIO
from pathlib import Path

import pytest

from abiogenesis.cache.resolver import StaticTierResolver
from abiogenesis.cache.store import CommandStore
from abiogenesis.exceptions import ScriptGenerationError
from abiogenesis.executor.context import ExecutionContextStore
from abiogenesis.executor.models import ProcessOutput
from abiogenesis.executor.runner import ProcessRunner
from abiogenesis.executor.sandbox import SandboxExecutor
from abiogenesis.generator.llm_generator import CommandGenerator
from abiogenesis.permissions.console import StreamConsole
from abiogenesis.permissions.gate import PermissionGate
from abiogenesis.router.intent_router import NO_CONTEXT_MESSAGE, IntentRouter
from abiogenesis.router.models import IntentKind, classify_intent


# ─────────────────────────────────────────────────────────────────────────────
# Fakes
# ─────────────────────────────────────────────────────────────────────────────

class FakeRunner(ProcessRunner):
    def __init__(self, installed=("deno",)):
        self.installed = set(installed)
        self.output = ProcessOutput(returncode=0, stdout="ok\n")
        self.calls = []

    def run(self, program, args):
        self.calls.append((program, list(args)))
        return self.output

    def program_exists(self, program):
        return program in self.installed


class FakeBackend:
    """Answers every request with ``self.payload`` (or raw ``self.text``)."""

    def __init__(self, payload=None):
        self.payload = payload or _payload("hello")
        self.text = None
        self.prompts = []

    def call(self, prompt, model):
        self.prompts.append(prompt)
        text = self.text if self.text is not None else json.dumps(self.payload)
        return {"content": [{"type": "text", "text": text}]}


def _payload(name, permissions=None, script="console.log('hi');"):
    return {
        "name": name,
        "description": f"{name} command",
        "script": script,
        "permissions": permissions or [],
    }


NET = [{"permission": "--allow-net=wttr.in", "reason": "Fetch the forecast"}]


class Harness:
    """Router wired to fakes, with every stream captured."""

    def __init__(self, tmp_path: Path, answers: str = "", installed=("deno",), payload=None):
        self.store = CommandStore(resolver=StaticTierResolver([tmp_path / "tier"]))
        self.context_store = ExecutionContextStore(self.store.write_dir)
        self.runner = FakeRunner(installed)
        self.backend = FakeBackend(payload)
        self.console_out = StringIO()
        self.out, self.err = StringIO(), StringIO()
        gate = PermissionGate(
            self.store, console=StreamConsole(StringIO(answers), self.console_out)
        )
        executor = SandboxExecutor(
            scripts=self.store,
            context_store=self.context_store,
            runner=self.runner,
            stdout=self.out,
            stderr=self.err,
        )
        self.router = IntentRouter(
            store=self.store,
            generator=CommandGenerator(backend=self.backend),
            executor=executor,
            gate=gate,
            context_store=self.context_store,
            out=self.out,
            err=self.err,
        )

    def document(self) -> dict:
        return json.loads(self.store.document_path.read_text(encoding="utf-8"))

    def sandbox_calls(self) -> list:
        return [c for c in self.runner.calls if c[0] == "deno"]


# ─────────────────────────────────────────────────────────────────────────────
# 1. Classification
# ─────────────────────────────────────────────────────────────────────────────

class TestClassifyIntent:

    def test_single_word_is_command(self):
        intent = classify_intent(["weather"])
        assert intent.kind is IntentKind.COMMAND
        assert intent.command_name == "weather"
        assert intent.args == []

    def test_command_with_args(self):
        intent = classify_intent(["weather", "Madrid", "--metric"])
        assert intent.command_name == "weather"
        assert intent.args == ["Madrid", "--metric"]

    def test_quoted_sentence_is_conversational(self):
        intent = classify_intent(["show me the current date"])
        assert intent.kind is IntentKind.CONVERSATIONAL
        assert intent.description == "show me the current date"

    def test_spaces_in_first_of_many_tokens_is_command(self):
        assert classify_intent(["my tool", "x"]).kind is IntentKind.COMMAND

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            classify_intent([])


# ─────────────────────────────────────────────────────────────────────────────
# 2. process_intent
# ─────────────────────────────────────────────────────────────────────────────

class TestProcessIntent:

    def test_system_command_runs_directly(self, tmp_path):
        h = Harness(tmp_path, installed=("deno", "ls"))
        h.router.process_intent(["ls", "-la"])
        assert h.runner.calls == [("ls", ["-la"])]
        assert h.backend.prompts == []
        assert len(h.store) == 0

    def test_unknown_command_is_generated_stored_and_run(self, tmp_path):
        h = Harness(tmp_path)
        result = h.router.process_intent(["hello", "world"])
        assert result.success is True
        assert len(h.backend.prompts) == 1
        assert "hello" in h.store
        program, args = h.sandbox_calls()[0]
        assert args[-1] == "world"

    def test_cache_hit_skips_generation(self, tmp_path):
        h = Harness(tmp_path)
        h.router.process_intent(["hello"])
        h.router.process_intent(["hello"])
        assert len(h.backend.prompts) == 1
        assert len(h.sandbox_calls()) == 2

    def test_usage_counted_per_run(self, tmp_path):
        h = Harness(tmp_path)
        h.router.process_intent(["hello"])
        assert h.document()["hello"]["usage_count"] == 1
        h.router.process_intent(["hello"])
        assert h.document()["hello"]["usage_count"] == 2

    def test_stored_under_invoked_name(self, tmp_path):
        h = Harness(tmp_path, payload=_payload("greet"))
        h.router.process_intent(["hello"])
        assert "hello" in h.store
        assert "greet" not in h.store
        assert (h.store.write_dir / "hello.ts").is_file()

    def test_denied_does_not_run(self, tmp_path):
        h = Harness(tmp_path, answers="3\n", payload=_payload("weather", NET))
        assert h.router.process_intent(["weather"]) is None
        assert h.sandbox_calls() == []
        assert "Permission denied for command 'weather'" in h.console_out.getvalue()
        assert h.document()["weather"]["usage_count"] == 0
        assert h.document()["weather"]["permission_decision"]["consent"] == "Denied"

    def test_accept_once_runs_with_flags(self, tmp_path):
        h = Harness(tmp_path, answers="1\n", payload=_payload("weather", NET))
        h.router.process_intent(["weather"])
        _, args = h.sandbox_calls()[0]
        assert args[1] == "--allow-net=wttr.in"
        assert h.store.needs_consent("weather") is True

    def test_generation_failure_leaves_cache_untouched(self, tmp_path):
        h = Harness(tmp_path)
        h.backend.text = "I cannot help with that."
        with pytest.raises(ScriptGenerationError):
            h.router.process_intent(["hello"])
        assert len(h.store) == 0
        assert h.sandbox_calls() == []


# ─────────────────────────────────────────────────────────────────────────────
# 3. Conversational mode
# ─────────────────────────────────────────────────────────────────────────────

class TestConversational:

    def test_stored_under_suggested_name(self, tmp_path):
        h = Harness(tmp_path, payload=_payload("show-date"))
        h.router.process_intent(["show me the current date"])
        assert "show-date" in h.store
        assert "Mode: describe" in h.backend.prompts[0]
        _, args = h.sandbox_calls()[0]
        assert args[-1].endswith(".ts")

    def test_suggested_path_name_rejected(self, tmp_path):
        h = Harness(tmp_path, payload=_payload("../escaped"))
        with pytest.raises(ScriptGenerationError):
            h.router.process_intent(["show me the current date"])
        assert len(h.store) == 0
        assert not (tmp_path / "escaped.ts").exists()
        assert h.sandbox_calls() == []


# ─────────────────────────────────────────────────────────────────────────────
# 4. Corrective feedback
# ─────────────────────────────────────────────────────────────────────────────

class TestCorrectiveFeedback:

    def test_without_context_prints_notice(self, tmp_path):
        h = Harness(tmp_path)
        assert h.router.process_corrective_feedback("") is None
        assert NO_CONTEXT_MESSAGE in h.err.getvalue()
        assert h.backend.prompts == []

    def test_regenerated_command_keeps_original_name(self, tmp_path):
        h = Harness(tmp_path, payload=_payload("weather", script="console.log('v1');"))
        h.runner.output = ProcessOutput(returncode=1, stderr="TypeError: boom\n")
        result = h.router.process_intent(["weather"])
        assert result.success is False

        h.backend.payload = _payload("weather-fixed", script="console.log('v2');")
        h.runner.output = ProcessOutput(returncode=0, stdout="sunny\n")
        h.router.process_corrective_feedback("")

        assert "weather-fixed" not in h.store
        record = h.store.get("weather")
        assert h.store.get_script(record) == "console.log('v2');"
        assert h.context_store.load().script_content == "console.log('v2');"

    def test_previous_script_and_stderr_are_sent(self, tmp_path):
        h = Harness(tmp_path, payload=_payload("weather", script="console.log('v1');"))
        h.runner.output = ProcessOutput(returncode=1, stderr="TypeError: boom\n")
        h.router.process_intent(["weather"])

        h.router.process_corrective_feedback("use celsius")
        prompt = h.backend.prompts[-1]
        assert "console.log('v1');" in prompt
        assert "TypeError: boom" in prompt
        assert "use celsius" in prompt

    def test_previous_consent_is_dropped(self, tmp_path):
        h = Harness(tmp_path, answers="2\n2\n", payload=_payload("weather", NET))
        h.router.process_intent(["weather"])
        assert h.store.needs_consent("weather") is False

        h.router.process_corrective_feedback("faster")
        assert h.console_out.getvalue().count("PERMISSION REQUEST") == 2
