"""
ARES CLI — The Interface

  ares run "<task>"          (route a task: plan → select → engine chain)
  ares run "run tests"       (diagnostic shortcut: verify → fix → verify)

Plus utilities:
  - ares init [path]          (bootstrap .ares in a project)
  - ares config               (show routing rules and commands)
  - ares set-model            (persist a routing rule)
  - ares doctor               (engine CLIs + Ollama reachability)
  - ares logs                 (recent task logs)
  - ares quota                (today's engine usage)
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import List, Optional, get_args

import typer
from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ares.adapters import registered_engines
from ares.config_loader import ConfigError, global_dir, load_config, project_root, update_task_model
from ares.engine_chain import EnginesExhaustedError
from ares.fix_applicator import FixResponseError
from ares.git_manager import GitError
from ares.identity import BANNER, __codename__, __tagline__, __version__
from ares.models import TaskType
from ares.ollama_client import OllamaClient
from ares.quota import QuotaExceededError, QuotaManager
from ares.router import Router
from ares.task_logger import recent_logs

# Load .env from current directory or ARES_HOME
load_dotenv()
load_dotenv(global_dir() / ".env")

app = typer.Typer(
    name="ares",
    help=f"{__codename__} — {__tagline__}\nTask orchestration across AI coding engines.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

ENGINE_BINARIES = {"claude": "claude", "codex": "codex", "cursor": "agent"}


def version_callback(value: bool):
    if value:
        console.print(f"{__codename__} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    pass


def _print_banner():
    console.print(f"[bright_red]{BANNER}[/]")
    console.print(f"  [dim]v{__version__} — {__tagline__}[/]\n")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def run(
    task: List[str] = typer.Argument(..., help="Task description, e.g. 'run tests' or 'add a --json flag'"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Plan and select only; skip engines and fixes"),
    git: bool = typer.Option(False, "--git", help="Work on a task branch and commit the result"),
    cloud: bool = typer.Option(False, "--cloud", help="Run Cursor in cloud mode"),
    auto_approve: bool = typer.Option(False, "--yes", "-y", help="Skip the low-confidence prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Route a task to the best engine, with fallback."""
    _print_banner()
    _configure_logging(verbose)

    description = " ".join(task).strip()
    if not description:
        console.print("[red]Task description is empty.[/]")
        raise typer.Exit(1)

    try:
        result = Router().run(description, dry_run=dry_run, git=git, cloud=cloud, auto_approve=auto_approve)
    except QuotaExceededError as e:
        console.print(f"[red]❌ {escape(str(e))}[/]")
        raise typer.Exit(1)
    except EnginesExhaustedError as e:
        console.print(f"[red]❌ {escape(str(e))}[/]")
        console.print(f"[dim]Last error ({e.attempts} attempts): {escape(e.last_message)}[/]")
        raise typer.Exit(1)
    except (ConfigError, FixResponseError, GitError) as e:
        console.print(f"[red]❌ {escape(str(e))}[/]")
        raise typer.Exit(1)

    if result.diagnostic is not None and result.diagnostic.status == "failed":
        raise typer.Exit(1)


@app.command()
def init(
    path: Optional[Path] = typer.Argument(None, help="Project directory"),
):
    """Initialize .ares in a project."""
    _print_banner()

    root = (path or Path.cwd()).resolve()
    ares_dir = root / ".ares"
    config_path = ares_dir / "config.yaml"

    if config_path.exists():
        console.print(f"[dim]ARES config already exists at {config_path}[/]")
        return

    ares_dir.mkdir(parents=True, exist_ok=True)
    (ares_dir / "logs").mkdir(exist_ok=True)
    config_path.write_text("""# ARES project-level overrides
# These merge over the built-in defaults and ~/.ares/config.yaml.

# Route a task type to an engine:
# models:
#   refactor:
#     engine: codex
#   architecture:
#     engine: claude
#     model: opus

# Verification commands used by `ares run "run tests"` and friends:
# diagnostics:
#   test: "python -m pytest -q"
#   lint: "ruff check ."
#   syntax: "python -m compileall -q ."
""")

    gitignore = root / ".gitignore"
    ignore_entries = [".ares/logs/"]
    if gitignore.exists():
        content = gitignore.read_text()
        additions = [e for e in ignore_entries if e not in content]
        if additions:
            with open(gitignore, "a") as f:
                f.write("\n# ARES\n")
                for e in additions:
                    f.write(f"{e}\n")
    else:
        gitignore.write_text("# ARES\n" + "\n".join(ignore_entries) + "\n")

    console.print(f"[green]✅ Initialized ARES in {ares_dir}[/]")
    console.print(f"  Config: {config_path}")
    console.print(f"  Logs:   {ares_dir / 'logs'}")


@app.command("config")
def show_config():
    """Show routing rules, Ollama settings and diagnostic commands."""
    try:
        config = load_config()
    except ConfigError as e:
        console.print(f"[red]❌ {escape(str(e))}[/]")
        raise typer.Exit(1)

    rules = Table(title="Routing Rules", border_style="cyan")
    rules.add_column("Task type")
    rules.add_column("Engine")
    rules.add_column("Model")
    for task_type, rule in config.models.items():
        rules.add_row(task_type, rule.engine, rule.model or "[dim]default[/]")
    console.print(rules)

    console.print("\n[bold]Ollama:[/]")
    console.print(f"  URL:     {config.ollama.base_url}")
    console.print(f"  Timeout: {config.ollama.timeout}s")
    console.print(f"  Context: {config.ollama.num_ctx}")

    console.print("\n[bold]Diagnostics:[/]")
    console.print(f"  test:   {escape(config.diagnostics.test)}")
    console.print(f"  lint:   {escape(config.diagnostics.lint)}")
    console.print(f"  syntax: {escape(config.diagnostics.syntax)}")

    console.print(f"\n[dim]Project root: {project_root()}[/]")


@app.command("set-model")
def set_model(
    task_type: str = typer.Argument(..., help="Task type, e.g. refactor"),
    engine: str = typer.Argument(..., help="Engine: claude, codex, cursor or ollama"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model name for the engine"),
):
    """Persist a routing rule for a task type."""
    if task_type not in get_args(TaskType):
        console.print(f"[red]Unknown task type: {task_type}[/] (expected one of {', '.join(get_args(TaskType))})")
        raise typer.Exit(1)
    if engine not in registered_engines():
        console.print(f"[red]Unknown engine: {engine}[/] (expected one of {', '.join(registered_engines())})")
        raise typer.Exit(1)

    target = update_task_model(task_type, engine, model)
    console.print(f"[green]✅ {task_type} → {engine} ({model or 'default'})[/]")
    console.print(f"[dim]Saved to {target}[/]")


@app.command()
def doctor():
    """Check which engines are installed and whether Ollama is reachable."""
    _print_banner()

    tools_table = Table(title="Engines", border_style="cyan")
    tools_table.add_column("Engine")
    tools_table.add_column("Binary")
    tools_table.add_column("Status")

    for engine, binary in ENGINE_BINARIES.items():
        found = shutil.which(binary)
        s = f"[green]✓ {found}[/]" if found else "[dim]✗ Not found[/]"
        tools_table.add_row(engine, binary, s)

    client = OllamaClient()
    if client.health_check():
        models = client.list_model_names()
        tools_table.add_row("ollama", client.base_url, f"[green]✓ {len(models)} model(s)[/]")
    else:
        tools_table.add_row("ollama", client.base_url, "[yellow]✗ Unreachable (Safe Mode)[/]")

    git = shutil.which("git")
    tools_table.add_row("git", "git", f"[green]✓ {git}[/]" if git else "[dim]✗ Not found[/]")

    console.print(tools_table)


@app.command()
def logs(
    count: int = typer.Option(10, "--count", "-n", help="Number of entries to show"),
):
    """Show recent task logs."""
    root = project_root()
    entries = recent_logs(root / load_config(root).workspace.log_dir, count)
    if not entries:
        console.print("[dim]No task logs yet. Run some tasks first.[/]")
        return

    table = Table(title=f"Recent Tasks (last {count})", border_style="cyan")
    table.add_column("Time", style="dim")
    table.add_column("Task ID")
    table.add_column("Task")
    table.add_column("Engine")
    table.add_column("Done")

    for entry in entries:
        selection = entry.get("selection") or {}
        engine = selection.get("engine", "?")
        if selection.get("model"):
            engine += f" ({selection['model']})"
        table.add_row(
            str(entry.get("timestamp", "?"))[:19],
            str(entry.get("task_id", "?"))[:8],
            escape(str(entry.get("task", ""))[:60]),
            engine,
            "[green]✓[/]" if "completed_at" in entry else "[dim]…[/]",
        )

    console.print(table)


@app.command()
def quota():
    """Show today's engine usage against configured limits."""
    manager = QuotaManager()
    table = Table(title="Engine Usage (today)", border_style="cyan")
    table.add_column("Engine")
    table.add_column("Used")
    table.add_column("Limit")

    for engine, row in manager.snapshot().items():
        limit = row["limit"]
        used = row["used"] or 0
        color = "red" if limit is not None and used >= limit else "green"
        table.add_row(engine, f"[{color}]{used}[/]", str(limit) if limit is not None else "[dim]none[/]")

    console.print(table)
    if manager.exceeded():
        console.print(Panel(f"Quota exhausted for {manager.config.rate_limited_engine}.", border_style="red"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool) -> None:
    logger.remove()
    if verbose:
        logger.add(
            lambda msg: console.print(f"[dim]{escape(str(msg).rstrip())}[/]", highlight=False),
            level="DEBUG",
            format="{time:HH:mm:ss} | {level:<7} | {message}",
        )
    else:
        logger.add(
            lambda msg: console.print(f"[dim]{escape(str(msg).rstrip())}[/]", highlight=False),
            level="WARNING",
            format="{message}",
        )


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
