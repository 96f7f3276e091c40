"""
ARES Fix Applicator — diagnose → fix → verify.

Given a failing DiagnosticSummary it asks the engine chain for JSON patches,
writes them, and re-runs verification.

  test / syntax  one fix pass; a failing re-verify is terminal
  lint           one offense per pass, re-verified each time, for at most
                 MAX_LINT_ITERATIONS passes; running out is reported as
                 "exhausted" (partial success), not an error
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from ares.context_loader import load_context
from ares.engine_chain import CAPABLE_ENGINES, EngineChain
from ares.models import DiagnosticOutcome, DiagnosticSummary, EngineOptions, FilePatch, FixResult
from ares.prompt_builder import PromptBuilder
from ares.terminal_runner import CommandResult

if TYPE_CHECKING:
    from ares.diagnostic_runner import DiagnosticRunner

console = Console()

MAX_LINT_ITERATIONS = 20

FENCE_PATTERN = re.compile(r"^```(?:json)?[ \t]*\n(.*)\n[ \t]*```$", re.DOTALL)
RESPONSE_CONTRACT = "You MUST provide JSON with 'explanation' and 'patches' (with 'file' and 'content' fields)."


class FixResponseError(ValueError):
    """The engine answered, but not with a usable fix JSON."""

    def __init__(self, message: str, raw_output: str):
        super().__init__(message)
        self.raw_output = raw_output


def checkpoint_message(engine: str) -> str:
    if engine == "claude":
        return "Leveraging Claude auto-checkpoint..."
    if engine == "codex":
        return "Leveraging Codex session persistence..."
    return f"Ensuring state persistence for {engine}..."


def parse_fix_response(raw: Any) -> FixResult:
    """Parse an engine's reply into a FixResult. A ```json fence around the whole reply is optional."""
    if isinstance(raw, dict):
        data = raw
    else:
        text = str(raw or "")
        data = _decode_json(text)

    try:
        return FixResult.model_validate(data)
    except ValidationError as e:
        raise FixResponseError(f"Engine response does not match the fix schema: {e.error_count()} error(s)", str(raw)) from e


def _decode_json(text: str) -> Any:
    stripped = text.strip()
    try:
        return json.loads(stripped)
    except json.JSONDecodeError as e:
        error = e

    # Patch contents may carry their own fences; only a fence wrapping the whole reply is stripped
    fenced = FENCE_PATTERN.match(stripped)
    if fenced:
        try:
            return json.loads(fenced.group(1))
        except json.JSONDecodeError:
            pass

    # Agent CLIs sometimes wrap the object in prose
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            pass
    raise FixResponseError(f"Engine response is not valid JSON: {error}", text) from error


def write_patch(patch: FilePatch, root: Path) -> Path:
    """Replace one file atomically. Parent directories are created as needed."""
    target = (root / patch.file).resolve()
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(patch.content)
        if target.exists():
            os.chmod(temp_path, target.stat().st_mode)
        os.replace(temp_path, target)
    except BaseException:
        Path(temp_path).unlink(missing_ok=True)
        raise
    return target


class FixApplicator:
    def __init__(
        self,
        runner: DiagnosticRunner,
        chain_factory: Callable[..., Any] | None = None,
        context_loader: Callable[[], str] | None = None,
    ):
        self.runner = runner
        self.core = runner.core
        self.root = runner.root
        self.chain_factory = chain_factory or EngineChain.build_fallback
        self.context_loader = context_loader or (lambda: load_context(self.root))

    # ------------------------------------------------------------------ #
    # Entry point
    # ------------------------------------------------------------------ #

    def escalate(
        self,
        diagnostic_type: str,
        summary: DiagnosticSummary,
        verify_command: str | list[str],
    ) -> DiagnosticOutcome:
        if diagnostic_type == "lint":
            return self._escalate_lint(summary, verify_command)

        verify = self.escalate_once(summary, diagnostic_type, verify_command)
        status = "fixed" if verify.success else "failed"
        return DiagnosticOutcome(diagnostic_type=diagnostic_type, status=status, iterations=1, summary=summary)

    # ------------------------------------------------------------------ #
    # Loop
    # ------------------------------------------------------------------ #

    def _escalate_lint(self, summary: DiagnosticSummary, verify_command: str | list[str]) -> DiagnosticOutcome:
        current = summary

        for iteration in range(1, MAX_LINT_ITERATIONS + 1):
            if iteration > 1:
                console.print(f"\n[bold]--- Fix iteration {iteration}/{MAX_LINT_ITERATIONS} ---[/]")

            verify = self.escalate_once(current, "lint", verify_command, fix_first_only=True)
            if verify.success:
                return DiagnosticOutcome(diagnostic_type="lint", status="fixed", iterations=iteration, summary=current)

            # The re-verify output is the fresh offense list for the next pass
            current = self.runner.parse_summary(verify.output, "lint", title="Re-running linter")
            self.runner.print_summary(current, "lint", title="Remaining offenses")

        console.print(f"\n[yellow]Reached max iterations ({MAX_LINT_ITERATIONS}). Some offenses may remain.[/]")
        return DiagnosticOutcome(
            diagnostic_type="lint",
            status="exhausted",
            iterations=MAX_LINT_ITERATIONS,
            summary=current,
        )

    def escalate_once(
        self,
        summary: DiagnosticSummary,
        diagnostic_type: str,
        verify_command: str | list[str],
        fix_first_only: bool = False,
    ) -> CommandResult:
        """One fix pass: prompt → engine chain → patches → verify."""
        selection = self.core.selector.select_for_fix()
        console.print(f"Selected Engine for fix: [bold]{selection.describe()}[/]")

        prompt = self.build_fix_prompt(summary, diagnostic_type, fix_first_only)
        chain = self.chain_factory(selection.engine, CAPABLE_ENGINES, quota=self.core.quota)
        options = EngineOptions(model=selection.model, fork_session=True, resume=True)

        raw = chain.execute_fix(prompt, options, on_attempt=self._checkpoint)
        try:
            result = parse_fix_response(raw)
        except FixResponseError as e:
            console.print("\n[yellow]⚠ Failed to parse valid JSON from the AI engine's response.[/]")
            console.print("--- Raw Output ---", markup=False)
            console.print(e.raw_output, markup=False)
            console.print("----------------", markup=False)
            raise

        if result.explanation:
            logger.info(f"[FIX] {result.explanation}")
        self.apply_patches(result.patches)

        verify = self.runner.run_verification(verify_command, "Verifying fix")
        label = diagnostic_type.capitalize()
        if verify.success:
            console.print(f"[green]Fix successful! {label} issues resolved. ✅[/]")
        else:
            console.print(f"[red]Fix failed. {label} issues still persist. ❌[/]")
        return verify

    # ------------------------------------------------------------------ #
    # Pieces
    # ------------------------------------------------------------------ #

    def build_fix_prompt(self, summary: DiagnosticSummary, diagnostic_type: str, fix_first_only: bool = False) -> str:
        builder = (
            PromptBuilder()
            .add_context(self.context_loader())
            .add_diagnostic(diagnostic_type, summary.failed_items, summary.error_summary)
            .add_instruction(f"TASK: Fix the {diagnostic_type} failures identified above.")
        )
        if fix_first_only:
            builder.add_instruction("Fix ONLY the first offense listed.")
        return builder.add_instruction(RESPONSE_CONTRACT).add_files(summary.files, root=self.root).build()

    def apply_patches(self, patches: list[FilePatch]) -> list[Path]:
        written = []
        for patch in patches:
            written.append(write_patch(patch, self.root))
            console.print(f"Applied fix to {escape(patch.file)} ✅")
        return written

    @staticmethod
    def _checkpoint(engine: str) -> None:
        console.print(f"[dim]{checkpoint_message(engine)}[/]")
