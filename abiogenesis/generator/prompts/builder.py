"""
PromptBuilder — single-message prompts for command synthesis.

Every prompt is one strict instruction demanding a bare JSON object::

    {"name": ..., "description": ..., "script": ..., "permissions": [
        {"permission": "--allow-...", "reason": ...}]}

Each prompt opens with a short header (Mode / Command / Arguments / Request)
so that the request kind stays visible in logs and to the stub backend.
"""

from __future__ import annotations

import json
from typing import Optional

from ..models import GenerationMode

__all__ = ["PromptBuilder"]


# ── Shared output-format contract ─────────────────────────────────────────────

_OUTPUT_CONTRACT = """\
CRITICAL: Your response must be EXACTLY a JSON object. No explanations, no code blocks, no other text.

RESPOND WITH EXACTLY THIS FORMAT (with your values):
{
  "name": "command-name",
  "description": "Brief description",
  "script": "console.log('working code here');",
  "permissions": [
    {"permission": "--allow-read", "reason": "Why this access is needed"}
  ]
}
"""

# ── Shared coding rules ───────────────────────────────────────────────────────

_SHARED_RULES = """\
RULES:
- Create real, working functionality - no placeholder code
- Write a Deno/TypeScript script; use Deno APIs when needed
- Arguments are available as Deno.args
- Use MINIMAL permissions (an empty list is preferred)
- Valid permissions: --allow-read, --allow-write, --allow-net, --allow-env, --allow-run,
  optionally scoped, e.g. --allow-net=example.com or --allow-run=git
- Give a one-sentence reason for every permission
- Include try/catch for error handling and print errors to stderr
- CRITICAL: RESPOND ONLY WITH THE JSON OBJECT - NO OTHER TEXT
"""


class PromptBuilder:
    """
    Build prompt text for the three generation modes.

    Usage::
        prompt = PromptBuilder().build_generate("weather", ["Madrid"])
    """

    @staticmethod
    def _header(mode: GenerationMode, **fields: str) -> str:
        lines = [f"Mode: {mode.value}"]
        for key, value in fields.items():
            lines.append(f"{key.capitalize()}: {value}")
        return "\n".join(lines) + "\n"

    def build_generate(self, command_name: str, args: list[str]) -> str:
        header = self._header(
            GenerationMode.GENERATE,
            command=command_name,
            arguments=json.dumps(args),
        )
        task = (
            f"Generate a Deno/TypeScript command named '{command_name}' "
            f"that will be invoked with the arguments {json.dumps(args)}.\n"
            f"The \"name\" field MUST be \"{command_name}\".\n"
        )
        return "\n".join([header, task, _OUTPUT_CONTRACT, _SHARED_RULES])

    def build_from_description(self, description: str) -> str:
        header = self._header(GenerationMode.DESCRIBE, request=description)
        task = (
            "The user described what they want in natural language:\n"
            f"  \"{description}\"\n"
            "Suggest a short kebab-case command name for it and implement it "
            "as a Deno/TypeScript command that needs no arguments.\n"
        )
        return "\n".join([header, task, _OUTPUT_CONTRACT, _SHARED_RULES])

    def build_feedback(
        self,
        command_name: str,
        previous_script: str,
        previous_stderr: Optional[str],
        feedback: str,
    ) -> str:
        header = self._header(GenerationMode.FEEDBACK, command=command_name)
        parts = [
            header,
            f"The command '{command_name}' did not do what the user wanted. "
            "Rewrite it.\n",
            "PREVIOUS SCRIPT:\n" + previous_script.rstrip() + "\n",
        ]
        if previous_stderr:
            parts.append("ERROR OUTPUT OF THE LAST RUN:\n" + previous_stderr.rstrip() + "\n")
        if feedback:
            parts.append("USER FEEDBACK:\n" + feedback.strip() + "\n")
        else:
            parts.append(
                "No feedback was given: fix the problem shown in the error output "
                "of the last run.\n"
            )
        parts += [
            f"Keep the \"name\" field as \"{command_name}\".\n",
            _OUTPUT_CONTRACT,
            _SHARED_RULES,
        ]
        return "\n".join(parts)
