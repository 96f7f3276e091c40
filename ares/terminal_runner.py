"""
Verification command runner.

Runs a shell command (or argv list) to completion and reports combined
output plus exit status. Never raises for a non-zero exit: callers branch
on `exit_status`.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from loguru import logger
from pydantic import BaseModel


class CommandResult(BaseModel):
    command: str | list[str]
    output: str = ""
    exit_status: int = 0

    @property
    def success(self) -> bool:
        return self.exit_status == 0


def run_command(
    command: str | list[str],
    cwd: Path | None = None,
    timeout: int | None = None,
) -> CommandResult:
    """Run a verification command and capture stdout+stderr together."""
    logger.debug(f"[RUN] {command}")
    try:
        result = subprocess.run(
            command,
            shell=isinstance(command, str),
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        return CommandResult(command=command, output=f"Command not found: {e}", exit_status=127)
    except subprocess.TimeoutExpired as e:
        output = e.output if isinstance(e.output, str) else ""
        return CommandResult(
            command=command,
            output=f"{output}\nCommand timed out after {timeout}s",
            exit_status=124,
        )
    except OSError as e:
        return CommandResult(command=command, output=str(e), exit_status=1)

    return CommandResult(command=command, output=result.stdout or "", exit_status=result.returncode)
