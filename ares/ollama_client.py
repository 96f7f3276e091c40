"""
ARES Local Model Client

Talks to a local Ollama server. Generation goes through LiteLLM so the
call shape matches every other model call; model discovery and health
checks hit the Ollama REST API directly with httpx.
"""

from __future__ import annotations

import concurrent.futures
import json
import time
from typing import Any, Callable, TypeVar

import httpx
import litellm
from loguru import logger
from rich.console import Console
from tenacity import Retrying, stop_after_attempt, wait_exponential

from ares.config_loader import OllamaConfig, load_config

console = Console()

T = TypeVar("T")

PREFERRED_MODELS = ("qwen3:latest", "qwen3:8b")
FALLBACK_MODEL = "qwen3:8b"
HEALTH_TIMEOUT = 5


class OllamaError(RuntimeError):
    pass


def best_available_model(available: list[str]) -> str:
    """Pick a known-good local model, else the first installed one."""
    for preferred in PREFERRED_MODELS:
        if preferred in available:
            return preferred
    return available[0] if available else FALLBACK_MODEL


def _strip_fence(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        lines = [l for l in content.split("\n") if not l.strip().startswith("```")]
        content = "\n".join(lines)
    return content.strip()


class OllamaClient:
    """
    Thin client over a local Ollama server.

    `generate()` returns plain text, or a parsed dict when a JSON schema is
    supplied. Failures raise; callers that must not fail wrap calls in
    `with_resilience()`.
    """

    def __init__(
        self,
        config: OllamaConfig | None = None,
        timeout: int | None = None,
        retries: int | None = None,
    ):
        self.config = config or load_config().ollama
        self.base_url = self.config.base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else self.config.timeout
        self.retries = retries if retries is not None else self.config.retries

        litellm.suppress_debug_info = True

    # ------------------------------------------------------------------ #
    # Discovery
    # ------------------------------------------------------------------ #

    def list_model_names(self) -> list[str]:
        response = httpx.get(f"{self.base_url}/api/tags", timeout=self.timeout)
        response.raise_for_status()
        models = response.json().get("models", [])
        return [m.get("name") or m.get("model") for m in models if isinstance(m, dict)]

    def health_check(self) -> bool:
        """Lightweight reachability probe against /api/tags."""
        try:
            response = httpx.get(f"{self.base_url}/api/tags", timeout=HEALTH_TIMEOUT)
            response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            logger.debug(f"[OLLAMA] Health check failed: {e}")
            return False

    # ------------------------------------------------------------------ #
    # Generation
    # ------------------------------------------------------------------ #

    def generate(
        self,
        prompt: str,
        model: str | None = None,
        schema: dict | None = None,
    ) -> Any:
        """Send a single prompt to the local model.

        Args:
            prompt (str): Full prompt text.
            model (str | None): Installed model name; resolved from the
                server's model list when omitted.
            schema (dict | None): JSON schema for structured output.

        Returns:
            str | dict: Raw text, or the parsed JSON object when `schema` is set.

        Raises:
            OllamaError: If the response is empty or not valid JSON under a schema.
        """
        model = model or best_available_model(self.list_model_names())

        kwargs: dict[str, Any] = {
            "model": f"ollama/{model}",
            "messages": [{"role": "user", "content": prompt}],
            "api_base": self.base_url,
            "timeout": self.timeout,
            "num_ctx": self.config.num_ctx,
        }
        if schema:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": schema},
            }

        start = time.monotonic()
        logger.debug(f"[OLLAMA] generate → {model} ({len(prompt)} chars)")

        retrying = Retrying(
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(min=1, max=10),
            reraise=True,
        )
        response = retrying(litellm.completion, **kwargs)
        content = response.choices[0].message.content or ""

        logger.debug(f"[OLLAMA] {model} complete in {int((time.monotonic() - start) * 1000)}ms")

        if not schema:
            return content

        try:
            return json.loads(_strip_fence(content))
        except json.JSONDecodeError as e:
            raise OllamaError(f"Local model returned invalid JSON: {e}") from e


def build_client(timeout_seconds: int = 10) -> OllamaClient:
    """Client for planning/summarization: strict timeout, no retries."""
    return OllamaClient(timeout=timeout_seconds, retries=0)


def with_resilience(
    fn: Callable[[], T],
    hard_timeout: float = 15,
    fallback: T | None = None,
) -> T | None:
    """Run `fn` under a wall-clock limit; any failure yields `fallback`."""
    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    future = executor.submit(fn)
    try:
        return future.result(timeout=hard_timeout)
    except concurrent.futures.TimeoutError:
        console.print(f"\n[yellow]⚠ Local AI (Ollama) timed out after {hard_timeout}s. Using Safe Mode fallback.[/]")
        return fallback
    except Exception as e:
        first_line = str(e).split("\n")[0]
        console.print(f"\n[yellow]⚠ Local AI (Ollama) failure: {first_line}. Using Safe Mode fallback.[/]")
        return fallback
    finally:
        executor.shutdown(wait=False)
