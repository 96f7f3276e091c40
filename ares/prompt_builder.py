"""Fluent builder for engine prompts. Sections are joined by a blank line."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from ares.models import DiagnosticFile


class PromptBuilder:
    def __init__(self) -> None:
        self._sections: list[str] = []

    def add_context(self, context: str | None) -> PromptBuilder:
        return self.add_instruction(context)

    def add_task(self, description: str) -> PromptBuilder:
        self._sections.append(f"TASK:\n{description}")
        return self

    def add_diagnostic(self, diagnostic_type: str, failed_items: Iterable[str], error_summary: str) -> PromptBuilder:
        self._sections.append(
            f"DIAGNOSTIC SUMMARY ({diagnostic_type.upper()}):\n"
            f"Failed Items: {', '.join(failed_items)}\n"
            f"Error: {error_summary}"
        )
        return self

    def add_files(self, files: Iterable[DiagnosticFile], root: Path | None = None) -> PromptBuilder:
        """Inline each failing file once. Paths that do not exist are skipped."""
        root = root or Path.cwd()
        seen: set[str] = set()
        blocks = []
        for f in files:
            if f.path in seen:
                continue
            seen.add(f.path)
            path = (root / f.path).resolve()
            if not path.is_file():
                continue
            blocks.append(f"--- FILE: {f.path} ---\n{path.read_text(errors='replace')}")

        if blocks:
            self._sections.append("FAILING FILE CONTENTS:\n" + "\n\n".join(blocks))
        return self

    def add_instruction(self, instruction: str | None) -> PromptBuilder:
        if instruction and instruction.strip():
            self._sections.append(instruction)
        return self

    def build(self) -> str:
        return "\n\n".join(self._sections)
