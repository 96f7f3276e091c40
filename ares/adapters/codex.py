"""Codex CLI adapter: headless `codex exec --full-auto`, prompt over stdin."""

from __future__ import annotations

from typing import Any

from ares.adapters import BaseAdapter, register_adapter
from ares.terminal_runner import CommandResult, run_command


@register_adapter
class CodexAdapter(BaseAdapter):
    name = "codex"
    display_name = "Codex"
    option_defaults = {"resume": True}
    retry_signatures = ("No session found", "error: unexpected argument")

    def build_command(self, prompt: str, model: str | None, **options: Any) -> list[str]:
        # Codex picks its own model
        command = ["codex", "exec", "--full-auto", "-"]
        if options.get("resume", True):
            command.append("--resume")
        return command

    def build_retry_command(self, command: list[str]) -> list[str]:
        return [part for part in command if part != "--resume"]

    def apply_cloud_task(self, task_id: str) -> CommandResult:
        """Pull a finished Codex cloud task's diff into the working tree."""
        return run_command(["codex", "apply", task_id])
