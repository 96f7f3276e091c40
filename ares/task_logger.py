"""
Per-task JSON audit log.

One file per task under the project's log directory:
    .ares/logs/<task_id>.json
Written when the task is routed, updated with the result when it finishes.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel

from ares.config_loader import load_config, project_root


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value


class TaskLogger:
    def __init__(self, log_dir: Path | None = None, task_id: str | None = None):
        if log_dir is None:
            root = project_root()
            log_dir = root / load_config(root).workspace.log_dir
        self.log_dir = Path(log_dir)
        self.task_id = task_id or str(uuid.uuid4())

    @property
    def log_file(self) -> Path:
        return self.log_dir / f"{self.task_id}.json"

    def log_task(self, task: str, plan: Any, selection: Any) -> Path:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        data = {
            "task_id": self.task_id,
            "timestamp": _now(),
            "task": task,
            "plan": _dump(plan),
            "selection": _dump(selection),
        }
        self.log_file.write_text(json.dumps(data, indent=2))
        logger.debug(f"[LOG] Task {self.task_id} → {self.log_file}")
        return self.log_file

    def log_result(self, result: Any) -> None:
        if not self.log_file.exists():
            return
        data = json.loads(self.log_file.read_text())
        data["result"] = _dump(result)
        data["completed_at"] = _now()
        self.log_file.write_text(json.dumps(data, indent=2))


def recent_logs(log_dir: Path, limit: int = 10) -> list[dict]:
    """Newest task logs first. Unreadable entries are skipped."""
    if not log_dir.is_dir():
        return []
    paths = sorted(log_dir.glob("*.json"), key=lambda p: p.stat().st_mtime, reverse=True)

    entries = []
    for path in paths[:limit]:
        try:
            entries.append(json.loads(path.read_text()))
        except (OSError, json.JSONDecodeError):
            logger.warning(f"[LOG] Skipping unreadable log {path.name}")
    return entries
