"""
ARES Router — the entry point for `ares run`.

Routing for one task:
  1. Veto on quota before any engine work.
  2. Diagnostic shortcuts ("run tests", "lint", "syntax check") go straight
     to the DiagnosticRunner; no planning, no selection.
  3. Otherwise plan → select → low-confidence gate → engine chain.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Callable

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from ares.context_loader import load_context
from ares.core import CoreSubsystem
from ares.diagnostic_runner import DiagnosticRunner
from ares.engine_chain import TASK_ENGINES, EngineChain
from ares.git_manager import GitManager
from ares.model_selector import CONFIDENCE_THRESHOLD, ESCALATION
from ares.models import DiagnosticType, EngineOptions, RunResult, Selection, TaskPlan
from ares.prompt_builder import PromptBuilder

console = Console()

SHORTCUTS: list[tuple[re.Pattern[str], DiagnosticType]] = [
    (re.compile(r"^(run\s+|check\s+)?(test|pytest|rspec|fix|diagnostic)(s|ing)?\s*$", re.IGNORECASE), "test"),
    (re.compile(r"^(run\s+|check\s+)?(syntax|compile)(\s+check)?\s*$", re.IGNORECASE), "syntax"),
    (re.compile(r"^(run\s+|check\s+)?(lint|format|style)(ting|ing|s)?\s*$", re.IGNORECASE), "lint"),
]


def match_shortcut(task: str) -> DiagnosticType | None:
    for pattern, diagnostic_type in SHORTCUTS:
        if pattern.match(task.strip()):
            return diagnostic_type
    return None


class Router:
    def __init__(
        self,
        core: CoreSubsystem | None = None,
        root: Path | None = None,
        chain_factory: Callable[..., Any] | None = None,
        diagnostic_runner: DiagnosticRunner | None = None,
        ask: Callable[..., str] = Prompt.ask,
    ):
        self.core = core or CoreSubsystem()
        self.root = (root or Path.cwd()).resolve()
        self.chain_factory = chain_factory or EngineChain.build_fallback
        self.diagnostic_runner = diagnostic_runner or DiagnosticRunner(
            self.core, root=self.root, chain_factory=chain_factory
        )
        self.ask = ask

    @property
    def task_id(self) -> str:
        return self.core.task_logger.task_id

    def run(
        self,
        task: str,
        dry_run: bool = False,
        git: bool = False,
        cloud: bool = False,
        auto_approve: bool = False,
    ) -> RunResult:
        console.print(f"[dim]Task ID: {self.task_id}[/]")
        self.core.quota.check()

        diagnostic_type = match_shortcut(task)
        if diagnostic_type is not None:
            logger.debug(f"[ROUTER] Shortcut → {diagnostic_type} diagnostic")
            outcome = self.diagnostic_runner.run_type(diagnostic_type, dry_run=dry_run)
            return RunResult(task_id=self.task_id, status="diagnostic", diagnostic=outcome)

        with console.status("Planning task..."):
            plan = self.core.planner.plan(task)
        with console.status("Selecting optimal model..."):
            selection = self.core.selector.select(plan)

        selection = self.confirm_low_confidence(selection, plan, auto_approve)
        if selection is None:
            return RunResult(task_id=self.task_id, status="aborted")

        return self.execute(task, plan, selection, dry_run=dry_run, git=git, cloud=cloud)

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    def confirm_low_confidence(self, selection: Selection, plan: TaskPlan, auto_approve: bool = False) -> Selection | None:
        """Ask before acting on a shaky plan. None means the operator aborted."""
        if plan.confidence >= CONFIDENCE_THRESHOLD or auto_approve:
            return selection

        console.print(f"[yellow]Low confidence detected ({plan.confidence:.2f}). How should we proceed?[/]")
        console.print(f"  execute   Execute with suggested {selection.describe()}")
        console.print("  override  Override and use Claude Opus")
        console.print("  abort     Abort task")
        choice = self.ask("Choice", choices=["execute", "override", "abort"], default="execute")

        if choice == "override":
            console.print("Overridden: Using Claude Opus.")
            return ESCALATION.model_copy()
        if choice == "abort":
            console.print("Task aborted by user.")
            return None
        return selection

    def execute(
        self,
        task: str,
        plan: TaskPlan,
        selection: Selection,
        dry_run: bool = False,
        git: bool = False,
        cloud: bool = False,
    ) -> RunResult:
        console.print(f"Engine Selected: [bold]{selection.describe()}[/]")
        if dry_run:
            console.print("[yellow]--- DRY RUN MODE ---[/]")
            return RunResult(task_id=self.task_id, status="dry_run", selection=selection)

        self.core.task_logger.log_task(task, plan, selection)
        git_manager = GitManager(self.root) if git else None
        if git_manager is not None:
            git_manager.create_branch(self.task_id, task)

        prompt = PromptBuilder().add_context(load_context(self.root)).add_task(task).build()
        chain = self.chain_factory(selection.engine, TASK_ENGINES, quota=self.core.quota)
        options = EngineOptions(model=selection.model, fork_session=True, resume=True, cloud=cloud)

        output = chain.execute(prompt, options)
        output = output if isinstance(output, str) else str(output)
        self.core.task_logger.log_result(output)

        if git_manager is not None:
            git_manager.commit_changes(self.task_id, task)

        console.print(escape(output))
        return RunResult(task_id=self.task_id, status="completed", selection=selection, output=output)
