"""Local Ollama adapter. An HTTP call, not a subprocess."""

from __future__ import annotations

from typing import Any

from ares.adapters import AdapterError, BaseAdapter, register_adapter
from ares.ollama_client import OllamaClient, best_available_model


@register_adapter
class OllamaAdapter(BaseAdapter):
    name = "ollama"
    display_name = "Ollama"
    option_defaults = {"json_schema": None}

    def __init__(self, timeout: int | None = None, client: OllamaClient | None = None, **kwargs: Any):
        super().__init__(timeout=timeout, **kwargs)
        self._client = client

    @property
    def client(self) -> OllamaClient:
        if self._client is None:
            self._client = OllamaClient()
        return self._client

    def build_command(self, prompt: str, model: str | None, **options: Any) -> list[str]:
        return []

    def resolve_model(self, requested: str | None, available: list[str]) -> str:
        if requested and requested in available:
            return requested
        return best_available_model(available)

    def invoke(self, prompt: str, model: str | None = None, **options: Any) -> Any:
        try:
            resolved = self.resolve_model(model, self.client.list_model_names())
            return self.client.generate(prompt, model=resolved, schema=options.get("json_schema"))
        except Exception as e:  # httpx, litellm and JSON failures alike
            raise AdapterError(f"Ollama command failed: {e}", engine=self.name) from e
