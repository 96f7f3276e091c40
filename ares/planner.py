"""
ARES Planner — local-model task decomposition.

Asks Ollama for a TaskPlan under a JSON schema. Never raises: an unhealthy
server, a timeout, or an invalid plan all yield the safe default plan.
"""

from __future__ import annotations

from loguru import logger
from pydantic import ValidationError

from ares.models import TaskPlan
from ares.ollama_client import OllamaClient, build_client, with_resilience
from ares.prompt_builder import PromptBuilder

PLANNER_TIMEOUT = 30
HARD_TIMEOUT = 35

PLANNER_SCHEMA = {
    "type": "object",
    "required": ["task_type", "risk_level", "confidence", "slices"],
    "additionalProperties": False,
    "properties": {
        "task_type": {
            "type": "string",
            "enum": [
                "architecture",
                "refactor",
                "bulk_patch",
                "test_generation",
                "summarization",
                "interactive_edit",
            ],
        },
        "risk_level": {"type": "string", "enum": ["low", "medium", "high"]},
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
        "slices": {"type": "array", "items": {"type": "string"}},
    },
}


def safe_default_plan(task: str) -> TaskPlan:
    return TaskPlan(task_type="refactor", risk_level="medium", confidence=1.0, slices=[task])


class OllamaPlanner:
    def __init__(self, healthy: bool = True, client: OllamaClient | None = None):
        self.healthy = healthy
        self.client = client or (build_client(timeout_seconds=PLANNER_TIMEOUT) if healthy else None)

    def plan(self, task: str) -> TaskPlan:
        fallback = safe_default_plan(task)
        if not self.healthy or self.client is None:
            logger.debug("[PLANNER] Ollama unavailable, using safe default plan")
            return fallback

        raw = with_resilience(
            lambda: self.client.generate(self._build_prompt(task), schema=PLANNER_SCHEMA),
            hard_timeout=HARD_TIMEOUT,
            fallback=None,
        )
        if not isinstance(raw, dict):
            return fallback

        try:
            plan = TaskPlan(**raw)
        except ValidationError as e:
            logger.warning(f"[PLANNER] Discarding invalid plan: {e.error_count()} error(s)")
            return fallback

        logger.debug(f"[PLANNER] {plan.task_type} / {plan.risk_level} / {plan.confidence:.2f}")
        return plan

    @staticmethod
    def _build_prompt(task: str) -> str:
        return (
            PromptBuilder()
            .add_instruction(
                "Analyze the following engineering task.\n"
                "Decompose it into discrete, executable work units (slices).\n"
                "Assign a task type, risk level, and confidence score."
            )
            .add_task(task)
            .add_instruction("Respond strictly as JSON. Slices should be a clean array of strings.")
            .build()
        )
