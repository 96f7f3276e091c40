"""Bundles the collaborators the router needs, probing Ollama exactly once."""

from __future__ import annotations

from rich.console import Console

from ares.model_selector import ModelSelector
from ares.ollama_client import OllamaClient
from ares.planner import OllamaPlanner
from ares.quota import QuotaManager
from ares.summarizer import Summarizer
from ares.task_logger import TaskLogger

console = Console()


class CoreSubsystem:
    def __init__(
        self,
        task_logger: TaskLogger | None = None,
        ollama_healthy: bool | None = None,
        quota: QuotaManager | None = None,
    ):
        self.task_logger = task_logger or TaskLogger()
        self.ollama_healthy = self._probe_ollama() if ollama_healthy is None else ollama_healthy

        self.planner = OllamaPlanner(healthy=self.ollama_healthy)
        self.selector = ModelSelector()
        self.summarizer = Summarizer(healthy=self.ollama_healthy)
        self.quota = quota or QuotaManager()

    @staticmethod
    def _probe_ollama() -> bool:
        healthy = OllamaClient().health_check()
        if healthy:
            console.print("[green]✅ Local AI Engine (Ollama) is available.[/]")
        else:
            console.print("[yellow]⚠ Local AI (Ollama) unavailable. Running in Safe Mode for planning/diagnostics.[/]")
        return healthy
