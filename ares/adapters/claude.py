"""Claude CLI adapter. The prompt travels over stdin to stay clear of ARG_MAX."""

from __future__ import annotations

import subprocess
from typing import Any

from ares.adapters import AdapterError, BaseAdapter, register_adapter

AUTH_MESSAGE = "Claude CLI not logged in. Please run `claude login` in your terminal."
CONTINUE_FLAGS = ("--continue", "--fork-session")


@register_adapter
class ClaudeAdapter(BaseAdapter):
    name = "claude"
    display_name = "Claude"
    option_defaults = {"fork_session": False}
    retry_signatures = ("No conversation found",)

    def preflight(self) -> None:
        try:
            status = self._runner(
                ["claude", "auth", "status"],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired):
            raise AdapterError(AUTH_MESSAGE, engine=self.name) from None
        if status.returncode != 0:
            raise AdapterError(AUTH_MESSAGE, engine=self.name)

    def build_command(self, prompt: str, model: str | None, **options: Any) -> list[str]:
        # -p - reads the prompt from stdin
        command = ["claude", "--model", model or "sonnet", "-p", "-", "--allow-dangerously-skip-permissions"]
        if options.get("fork_session"):
            command += list(CONTINUE_FLAGS)
        return command

    def build_retry_command(self, command: list[str]) -> list[str]:
        # Nothing to fork from: start a fresh conversation
        return [part for part in command if part not in CONTINUE_FLAGS]
