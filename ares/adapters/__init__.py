"""
ARES Engine Adapters

Each adapter is:
  - A command builder for one external engine
  - A retry signature (output that means "drop the offending flag, try once more")
  - The subset of generic options that engine understands

Adapters are stateless between calls. The registry maps an engine name to
its adapter class, so adding an engine means registering one more class.
"""

from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from typing import Any, Callable

from loguru import logger

from ares.config_loader import load_config
from ares.models import EngineOptions
from ares.terminal_runner import CommandResult


class AdapterError(RuntimeError):
    """
    One engine failed to produce output.

    `retryable` marks transient failures (timeouts) as opposed to hard ones
    (auth, non-zero exit). The engine chain advances on either.
    """

    def __init__(self, message: str, engine: str, retryable: bool = False):
        super().__init__(message)
        self.message = message
        self.engine = engine
        self.retryable = retryable


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_REGISTRY: dict[str, type[BaseAdapter]] = {}


def register_adapter(cls: type[BaseAdapter]) -> type[BaseAdapter]:
    _REGISTRY[cls.name] = cls
    return cls


def get_adapter(name: str, **kwargs: Any) -> BaseAdapter:
    try:
        adapter_cls = _REGISTRY[name]
    except KeyError:
        raise ValueError(f"Unknown engine: {name}") from None
    return adapter_cls(**kwargs)


def registered_engines() -> list[str]:
    return list(_REGISTRY)


# ---------------------------------------------------------------------------
# Base adapter
# ---------------------------------------------------------------------------

class BaseAdapter(ABC):
    """
    Template for CLI-driven engines.

    invoke() runs: preflight → build_command → execute (hard timeout)
    → on a retry signature, build_retry_command and execute once more
    → raise AdapterError on any remaining failure.

    Subclasses define:
      - name / display_name
      - option_defaults: the generic options this engine accepts
      - build_command() and, optionally, build_retry_command()
    """

    name: str = "unknown"
    display_name: str = "Engine"
    option_defaults: dict[str, Any] = {}
    retry_signatures: tuple[str, ...] = ()
    pipes_prompt_to_stdin: bool = True

    def __init__(self, timeout: int | None = None, runner: Callable[..., Any] | None = None):
        self.timeout = timeout if timeout is not None else load_config().engines.timeout_for(self.name)
        self._runner = runner or subprocess.run

    def shape_options(self, options: EngineOptions | None) -> dict[str, Any]:
        """Keep only the options this engine understands."""
        if options is None:
            return dict(self.option_defaults)
        return {
            key: getattr(options, key, default)
            for key, default in self.option_defaults.items()
        }

    def invoke(self, prompt: str, model: str | None = None, **options: Any) -> str:
        self.preflight()

        command = self.build_command(prompt, model, **options)
        result = self._execute(command, prompt)

        if not result.success and self.should_retry(result.output):
            logger.debug(f"[{self.name.upper()}] Retry signature matched, retrying once")
            command = self.build_retry_command(command)
            result = self._execute(command, prompt)

        if not result.success:
            raise AdapterError(
                f"{self.display_name} command failed: {result.output.strip()}",
                engine=self.name,
            )
        return result.output

    # --- Hooks ---

    def preflight(self) -> None:
        """Checks that must pass before the engine is invoked."""

    @abstractmethod
    def build_command(self, prompt: str, model: str | None, **options: Any) -> list[str]:
        ...

    def should_retry(self, output: str) -> bool:
        return any(signature in output for signature in self.retry_signatures)

    def build_retry_command(self, command: list[str]) -> list[str]:
        return command

    # --- Execution ---

    def _execute(self, command: list[str], prompt: str) -> CommandResult:
        logger.debug(f"[{self.name.upper()}] {' '.join(command[:4])} (timeout {self.timeout}s)")
        try:
            completed = self._runner(
                command,
                input=prompt if self.pipes_prompt_to_stdin else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise AdapterError(
                f"{self.display_name} timed out after {self.timeout}s",
                engine=self.name,
                retryable=True,
            ) from None
        except FileNotFoundError:
            raise AdapterError(
                f"{self.display_name} command failed: `{command[0]}` not found on PATH",
                engine=self.name,
            ) from None
        except OSError as e:
            raise AdapterError(f"{self.display_name} command failed: {e}", engine=self.name) from e

        return CommandResult(
            command=command,
            output=completed.stdout or "",
            exit_status=completed.returncode,
        )


def _load_builtin_adapters() -> None:
    from ares.adapters import claude, codex, cursor, ollama  # noqa: F401


_load_builtin_adapters()
