"""
Plan → (engine, model) selection.

Policy, first match wins:
  1. Low confidence or high risk escalates to Claude Opus.
  2. Otherwise the configured rule for the task type (else the refactor rule).
  3. A local model is never allowed to modify code directly.
"""

from __future__ import annotations

from typing import Callable

from loguru import logger

from ares.config_loader import AresConfig, EngineRule, load_config
from ares.models import CODE_MODIFYING_TASKS, Selection, TaskPlan

CONFIDENCE_THRESHOLD = 0.7

ESCALATION = Selection(engine="claude", model="opus")
SAFE_CODE_ENGINE = Selection(engine="claude", model="sonnet")
FALLBACK_RULE = EngineRule(engine="claude", model="sonnet")

# Synthetic plan behind every diagnostic fix
FIX_PLAN = TaskPlan(task_type="refactor", risk_level="medium")


class ModelSelector:
    def __init__(self, config_loader: Callable[[], AresConfig] = load_config):
        self._load_config = config_loader

    def select(self, plan: TaskPlan) -> Selection:
        if plan.confidence < CONFIDENCE_THRESHOLD or plan.risk_level == "high":
            logger.debug(f"[SELECT] Escalating (confidence={plan.confidence}, risk={plan.risk_level})")
            return ESCALATION.model_copy()

        # Reloaded on every call so `ares set-model` takes effect mid-session
        rules = self._load_config().models
        rule = rules.get(plan.task_type) or rules.get("refactor") or FALLBACK_RULE

        if rule.engine == "ollama" and plan.task_type in CODE_MODIFYING_TASKS:
            logger.debug(f"[SELECT] Ollama not trusted for {plan.task_type}; using Claude Sonnet")
            return SAFE_CODE_ENGINE.model_copy()

        return Selection(engine=rule.engine, model=rule.model)

    def select_for_fix(self) -> Selection:
        return self.select(FIX_PLAN)
