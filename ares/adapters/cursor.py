"""
Cursor agent adapter.

The agent CLI takes the prompt as an argument rather than on stdin, so the
task is framed inline to keep the agent from replying conversationally.
Agent runs are multi-step, hence the longer configured timeout.
"""

from __future__ import annotations

from typing import Any

from ares.adapters import BaseAdapter, register_adapter

FRAMING = (
    "You are an autonomous executor agent. Carry out the task below directly "
    "by editing files and running commands. Do not ask questions, do not "
    "converse, and do not wait for confirmation.\n\nTASK:\n"
)


@register_adapter
class CursorAdapter(BaseAdapter):
    name = "cursor"
    display_name = "Cursor"
    option_defaults = {"resume": True, "cloud": False}
    retry_signatures = ("No previous chats found",)
    pipes_prompt_to_stdin = False

    def build_command(self, prompt: str, model: str | None, **options: Any) -> list[str]:
        command = ["agent", "-p", FRAMING + prompt, "--trust", "--yolo"]
        cloud = options.get("cloud", False)
        if cloud:
            command.append("-c")
        elif options.get("resume", True):
            command.append("--continue")
        return command

    def build_retry_command(self, command: list[str]) -> list[str]:
        return [part for part in command if part != "--continue"]
