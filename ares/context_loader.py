"""
Workspace context for engine prompts.

The workspace root is the first registered workspace containing the working
directory, else the nearest ancestor with an AGENTS.md, else the working
directory itself. Context is the root line, AGENTS.md and every
.skills/**/SKILL.md under the root.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from ares.config_loader import load_config


def find_workspace_root(start: Path | None = None, registered: list[str] | None = None) -> Path:
    start = (start or Path.cwd()).resolve()
    if registered is None:
        registered = load_config(start).workspace.workspaces

    for workspace in registered:
        candidate = Path(workspace).expanduser().resolve()
        if start == candidate or candidate in start.parents:
            return candidate

    for candidate in (start, *start.parents):
        if (candidate / "AGENTS.md").is_file():
            return candidate

    return start


def load_context(start: Path | None = None, registered: list[str] | None = None) -> str:
    root = find_workspace_root(start, registered)
    logger.debug(f"[CONTEXT] Workspace root: {root}")

    agents_file = root / "AGENTS.md"
    agents = agents_file.read_text(errors="replace") if agents_file.is_file() else ""

    skills_dir = root / ".skills"
    skills = ""
    if skills_dir.is_dir():
        for skill in sorted(skills_dir.rglob("SKILL.md")):
            skills += skill.read_text(errors="replace") + "\n"

    return f"Workspace Root: {root}\n{agents}\n{skills}"
