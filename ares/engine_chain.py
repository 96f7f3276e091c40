"""
ARES Engine Chain — ordered fallback across execution engines.

The chain is a deduplicated list of engine names walked with an index
cursor. Each attempt charges usage before dispatch, prints which engine is
being tried, and moves on to the next engine when the adapter fails. Only
the last failure is fatal.
"""

from __future__ import annotations

from typing import Any, Callable, Literal

from loguru import logger
from rich.console import Console
from rich.markup import escape

from ares.adapters import AdapterError, BaseAdapter, get_adapter
from ares.models import EngineOptions
from ares.quota import QuotaManager

console = Console()

ChainMode = Literal["task", "fix"]

# Engines that can edit a working tree on their own.
TASK_ENGINES = ("claude", "codex", "cursor")
# Fix escalation can also use a local model, since patches are applied here.
CAPABLE_ENGINES = ("claude", "codex", "cursor", "ollama")

_EXHAUSTED_MESSAGES = {
    "task": "All available AI engines failed to execute the task.",
    "fix": "All available AI engines failed to apply the fix.",
}


class EnginesExhaustedError(RuntimeError):
    def __init__(self, mode: ChainMode, attempts: int, last_message: str):
        super().__init__(_EXHAUSTED_MESSAGES[mode])
        self.mode = mode
        self.attempts = attempts
        self.last_message = last_message


def fallback_order(initial: str, engines: tuple[str, ...] = CAPABLE_ENGINES) -> list[str]:
    """`initial` first, then the rest of `engines` in canonical order."""
    return dedupe([initial, *engines])


def dedupe(names: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        ordered.append(name)
    return ordered


class EngineChain:
    """
    Sequential engine fallback.

    The order is fixed at construction; nothing reorders it mid-flight.
    """

    def __init__(
        self,
        engine_names: list[str],
        quota: QuotaManager | None = None,
        adapter_factory: Callable[[str], BaseAdapter] = get_adapter,
    ):
        self.engine_names = dedupe(list(engine_names))
        if not self.engine_names:
            raise ValueError("An engine chain needs at least one engine")
        self.adapters = [adapter_factory(name) for name in self.engine_names]
        self.quota = quota or QuotaManager()

    @classmethod
    def build_fallback(
        cls,
        initial_engine: str,
        engines: tuple[str, ...] = CAPABLE_ENGINES,
        **kwargs: Any,
    ) -> EngineChain:
        return cls(fallback_order(initial_engine, engines), **kwargs)

    def __len__(self) -> int:
        return len(self.engine_names)

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    def execute(self, prompt: str, options: EngineOptions | None = None) -> Any:
        """Run a task, falling back through the chain. Returns the first success."""
        return self._run(prompt, options or EngineOptions(), mode="task")

    def execute_fix(
        self,
        prompt: str,
        options: EngineOptions | None = None,
        on_attempt: Callable[[str], None] | None = None,
    ) -> Any:
        """Like execute(), but calls `on_attempt(engine)` before each dispatch."""
        return self._run(prompt, options or EngineOptions(), mode="fix", on_attempt=on_attempt)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _run(
        self,
        prompt: str,
        options: EngineOptions,
        mode: ChainMode,
        on_attempt: Callable[[str], None] | None = None,
    ) -> Any:
        total = len(self.adapters)
        last_message = ""

        for index, adapter in enumerate(self.adapters):
            attempt = index + 1
            engine = self.engine_names[index]

            console.print(f"[cyan]{self._status_message(engine, attempt, total, mode)}[/]")
            if on_attempt is not None:
                on_attempt(engine)

            self.quota.increment(engine, kind=mode)
            shaped = adapter.shape_options(options)
            # The selected model belongs to the head engine; fallbacks use their own default
            model = options.model if index == 0 else None
            logger.debug(f"[CHAIN] {mode} attempt {attempt}/{total} → {engine} model={model} {shaped}")

            try:
                return adapter.invoke(prompt, model, **shaped)
            except AdapterError as e:
                last_message = e.message
                label = f"{engine} failed during fix:" if mode == "fix" else f"{engine} failed:"
                console.print(f"\n[red]❌ {label} {escape(_first_line(e.message))}[/]")
                logger.warning(f"[CHAIN] {engine} failed ({'transient' if e.retryable else 'hard'})")

        raise EnginesExhaustedError(mode, total, last_message)

    @staticmethod
    def _status_message(engine: str, attempt: int, total: int, mode: ChainMode) -> str:
        if attempt > 1:
            action = "Falling back to"
        elif mode == "fix":
            action = "Applying fix via"
        else:
            action = "Executing task via"
        return f"{action} {engine} (attempt {attempt}/{total})..."


def _first_line(message: str) -> str:
    return message.split("\n")[0] if message else ""
