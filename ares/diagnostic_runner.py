"""
ARES Diagnostic Runner

Runs a verification command (tests, lint, syntax). On failure it builds a
DiagnosticSummary, deterministic parser first and the local summarizer only
when the parser has nothing actionable, then hands off to the FixApplicator.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

from loguru import logger
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ares import diagnostic_parser
from ares.config_loader import load_config
from ares.fix_applicator import FixApplicator
from ares.models import DiagnosticOutcome, DiagnosticSummary, DiagnosticType
from ares.terminal_runner import CommandResult, run_command

console = Console()

TITLES: dict[str, str] = {
    "test": "Running tests",
    "lint": "Running linter",
    "syntax": "Checking syntax",
}


class DiagnosticRunner:
    """
    `core` supplies `selector`, `summarizer` and `quota`; see CoreSubsystem.
    """

    def __init__(
        self,
        core: Any,
        command_runner: Callable[..., CommandResult] = run_command,
        root: Path | None = None,
        chain_factory: Callable[..., Any] | None = None,
    ):
        self.core = core
        self.command_runner = command_runner
        self.root = (root or Path.cwd()).resolve()
        self.chain_factory = chain_factory

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    def run_tests(self, dry_run: bool = False) -> DiagnosticOutcome:
        return self.run_type("test", dry_run=dry_run)

    def run_lint(self, dry_run: bool = False) -> DiagnosticOutcome:
        return self.run_type("lint", dry_run=dry_run)

    def run_syntax_check(self, dry_run: bool = False) -> DiagnosticOutcome:
        return self.run_type("syntax", dry_run=dry_run)

    def run_type(self, diagnostic_type: DiagnosticType, dry_run: bool = False) -> DiagnosticOutcome:
        command = load_config(self.root).diagnostics.command_for(diagnostic_type)
        return self.run_loop(command, diagnostic_type, dry_run=dry_run)

    def run_loop(
        self,
        command: str | list[str],
        diagnostic_type: DiagnosticType,
        dry_run: bool = False,
    ) -> DiagnosticOutcome:
        title = TITLES.get(diagnostic_type, "Running verification")
        result = self.run_verification(command, title)

        if result.success:
            console.print(f"[green]{title} passed! ✅[/]")
            return DiagnosticOutcome(diagnostic_type=diagnostic_type, status="passed")

        summary = self.parse_summary(result.output, diagnostic_type, title)
        self.print_summary(summary, diagnostic_type, title=title)

        if dry_run:
            console.print("[yellow]Dry run: skipping escalation.[/]")
            return DiagnosticOutcome(diagnostic_type=diagnostic_type, status="skipped", summary=summary)

        applicator = FixApplicator(self, chain_factory=self.chain_factory)
        return applicator.escalate(diagnostic_type, summary, command)

    # ------------------------------------------------------------------ #
    # Steps shared with the fix loop
    # ------------------------------------------------------------------ #

    def run_verification(self, command: str | list[str], title: str) -> CommandResult:
        with console.status(f"{title}..."):
            return self.command_runner(command, cwd=self.root)

    def parse_summary(self, output: str, diagnostic_type: str, title: str = "Verification") -> DiagnosticSummary:
        """Parser first; the summarizer only when the parser is not actionable or breaks."""
        try:
            parsed = diagnostic_parser.parse(output, diagnostic_type)
        except Exception as e:
            logger.warning(f"[DIAG] Parser error ({e}); falling back to summarizer")
            parsed = None

        if parsed is not None and parsed.actionable:
            return parsed

        with console.status(f"{title} failed. LLM fallback (slow)..."):
            summary = self.core.summarizer.summarize(output, diagnostic_type)

        # Keep the raw lines rather than an empty Safe Mode summary
        if parsed is not None and not summary.failed_items and not summary.files:
            return parsed.model_copy(update={"error_summary": f"{parsed.error_summary} ({summary.error_summary})"})
        return summary

    @staticmethod
    def print_summary(summary: DiagnosticSummary, diagnostic_type: str, title: str | None = None) -> None:
        header = title or f"Diagnostic Summary ({diagnostic_type.upper()})"
        table = Table(title=f"--- {header} ---", show_lines=True)
        table.add_column("Attribute", style="cyan")
        table.add_column("Value")
        table.add_row("Failed Items", Text("\n".join(summary.failed_items) or "-"))
        table.add_row("Error Summary", Text(summary.error_summary or "-"))
        console.print()
        console.print(table)
