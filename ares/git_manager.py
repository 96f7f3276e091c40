"""
Git helpers for `ares run --git`.

Each task gets its own branch, `ares/task-<id>[-<slug>]`, and a single
commit of everything the engine changed.
"""

from __future__ import annotations

import re
import subprocess
from pathlib import Path

from loguru import logger


class GitError(Exception):
    pass


def branch_name(task_id: str, description: str | None = None) -> str:
    name = f"ares/task-{task_id[:8]}"
    if description:
        slug = re.sub(r"[^a-z0-9]+", "-", description.lower()).strip("-")[:40].rstrip("-")
        if slug:
            name = f"{name}-{slug}"
    return name


class GitManager:
    def __init__(self, repo_path: Path | None = None):
        self.repo_path = (repo_path or Path.cwd()).resolve()

    def create_branch(self, task_id: str, description: str | None = None) -> str:
        name = branch_name(task_id, description)
        self._git("checkout", "-b", name)
        logger.info(f"[GIT] Created branch {name}")
        return name

    def commit_changes(self, task_id: str, description: str) -> str | None:
        """Stage everything and commit. Returns the new sha, or None when clean."""
        self._git("add", "-A")
        if not self._git("status", "--porcelain", capture=True).strip():
            logger.info("[GIT] Nothing to commit.")
            return None

        self._git("commit", "-m", f"ares: task-{task_id[:8]} {description}")
        return self._git("rev-parse", "HEAD", capture=True).strip()

    def _git(self, *args: str, capture: bool = False) -> str:
        cmd = ["git", *args]
        result = subprocess.run(cmd, cwd=self.repo_path, capture_output=True, text=True, timeout=60)
        if result.returncode != 0:
            raise GitError(f"Git failed: {' '.join(cmd)}\n{result.stderr}")
        return result.stdout if capture else ""
