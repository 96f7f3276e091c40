"""
Local-model summaries of verification output and diffs.

Used only when the deterministic parser has nothing actionable. Output is
filtered and truncated before it reaches the model, and every failure
degrades to a labelled Safe Mode summary instead of raising.
"""

from __future__ import annotations

import re

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from ares.models import DiagnosticSummary
from ares.ollama_client import OllamaClient, build_client, with_resilience
from ares.prompt_builder import PromptBuilder

MAX_SUMMARY_INPUT = 5_000
DEFAULT_TIMEOUT = 30
HARD_TIMEOUT = 35

SUMMARY_SCHEMA = {
    "type": "object",
    "required": ["failed_items", "error_summary", "files"],
    "properties": {
        "failed_items": {"type": "array", "items": {"type": "string"}},
        "error_summary": {"type": "string"},
        "files": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["path", "line"],
                "properties": {"path": {"type": "string"}, "line": {"type": "integer"}},
            },
        },
    },
}

DIFF_SCHEMA = {
    "type": "object",
    "required": ["modified_files", "change_summary", "risk_level"],
    "properties": {
        "modified_files": {"type": "array", "items": {"type": "string"}},
        "change_summary": {"type": "string"},
        "risk_level": {"type": "string", "enum": ["low", "medium", "high"]},
    },
}

_INSTRUCTIONS = {
    "lint": "Summarize linter offenses. Extract file paths and line numbers:",
    "syntax": "Summarize syntax errors. Extract file paths and line numbers:",
    "test": "Summarize test failures. Extract file paths and line numbers:",
}

_LINT_LINE = re.compile(r":\d+:\d+: [CW]")
_TEST_LINE = re.compile(r"\d+\)\s|Failure/Error:|^\s+expected|^\s+got:|^E\s|FAILED |Error|\.\w+:\d+")


class DiffSummary(BaseModel):
    modified_files: list[str] = Field(default_factory=list)
    change_summary: str = ""
    risk_level: str = "medium"


def safe_summary(reason: str) -> DiagnosticSummary:
    return DiagnosticSummary(failed_items=[], error_summary=f"Safe Mode: {reason}", files=[])


def filter_output(output: str, diagnostic_type: str) -> str:
    lines = output.split("\n")
    if diagnostic_type == "lint":
        return "\n".join([l for l in lines if _LINT_LINE.search(l)][:20])
    if diagnostic_type == "test":
        return "\n".join([l for l in lines if _TEST_LINE.search(l)][:50])
    return "\n".join(lines[:100])


def filter_and_truncate(output: str, diagnostic_type: str) -> str:
    filtered = filter_output(output, diagnostic_type)
    if len(filtered) <= MAX_SUMMARY_INPUT:
        return filtered
    return f"{filtered[:MAX_SUMMARY_INPUT]}\n\n[... output truncated ...]"


class Summarizer:
    def __init__(self, healthy: bool = True, client: OllamaClient | None = None):
        self.healthy = healthy
        self.client = client or (build_client(timeout_seconds=DEFAULT_TIMEOUT) if healthy else None)

    def summarize(self, output: str, diagnostic_type: str = "test") -> DiagnosticSummary:
        if not self.healthy or self.client is None:
            return safe_summary("Ollama skipped")

        prompt = (
            PromptBuilder()
            .add_instruction(_INSTRUCTIONS.get(diagnostic_type, _INSTRUCTIONS["test"]))
            .add_instruction(filter_and_truncate(output, diagnostic_type))
            .build()
        )
        raw = with_resilience(
            lambda: self.client.generate(prompt, schema=SUMMARY_SCHEMA),
            hard_timeout=HARD_TIMEOUT,
            fallback=None,
        )
        if not isinstance(raw, dict):
            return safe_summary("Summary failed")

        try:
            return DiagnosticSummary(**raw)
        except ValidationError:
            logger.warning("[SUMMARY] Local model summary did not match schema")
            return safe_summary("Summary failed")

    def summarize_diff(self, diff: str) -> DiffSummary:
        if not self.healthy or self.client is None:
            return DiffSummary(change_summary="Safe Mode: Ollama skipped")

        prompt = (
            PromptBuilder()
            .add_instruction(
                "Summarize the following git diff. Identify modified files, "
                "describe the core changes, and assess the risk level."
            )
            .add_instruction(diff)
            .build()
        )
        raw = with_resilience(
            lambda: self.client.generate(prompt, schema=DIFF_SCHEMA),
            hard_timeout=HARD_TIMEOUT,
            fallback=None,
        )
        try:
            return DiffSummary(**raw) if isinstance(raw, dict) else DiffSummary(change_summary="Safe Mode: Diff summary failed")
        except ValidationError:
            return DiffSummary(change_summary="Safe Mode: Diff summary failed")
