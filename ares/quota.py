"""
Daily engine usage accounting.

Best-effort, file-backed counters keyed by calendar day:

    {"2026-10-19": {"claude": {"task": 3, "fix": 1}, "codex": {"task": 1}}}

Read-increment-write runs under an advisory lock on a sidecar file and the
data file is swapped in with os.replace. The limit is a soft guardrail, so
platforms without fcntl fall back to unlocked updates.
"""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Iterator, Literal

from loguru import logger

from ares.config_loader import QuotaConfig, global_dir, load_config

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None

UsageKind = Literal["task", "fix"]


class QuotaExceededError(RuntimeError):
    def __init__(self, engine: str, used: int, limit: int):
        super().__init__(
            f"Quota exceeded for {engine.capitalize()} ({used}/{limit} today). "
            "Please try again later or use a different engine."
        )
        self.engine = engine
        self.used = used
        self.limit = limit


class QuotaManager:
    def __init__(self, config: QuotaConfig | None = None, path: Path | None = None):
        self.config = config or load_config().quota
        default = Path(self.config.file) if self.config.file else global_dir() / "quota.json"
        self.path = (path or default).expanduser()

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def usage(self, engine: str, day: date | None = None) -> int:
        entry = self._load().get(self._key(day), {}).get(engine, {})
        if isinstance(entry, int):
            return entry
        return sum(v for v in entry.values() if isinstance(v, int))

    def usage_by_kind(self, engine: str, kind: UsageKind) -> int:
        entry = self._load().get(self._key(), {}).get(engine, {})
        return entry.get(kind, 0) if isinstance(entry, dict) else 0

    def limit(self, engine: str) -> int | None:
        return self.config.limits.get(engine)

    def remaining(self, engine: str) -> int | None:
        limit = self.limit(engine)
        if limit is None:
            return None
        return limit - self.usage(engine)

    def exceeded(self, engine: str | None = None) -> bool:
        remaining = self.remaining(engine or self.config.rate_limited_engine)
        return remaining is not None and remaining <= 0

    def check(self, engine: str | None = None) -> None:
        """Raise QuotaExceededError when the engine has no calls left today."""
        engine = engine or self.config.rate_limited_engine
        if self.exceeded(engine):
            raise QuotaExceededError(engine, self.usage(engine), self.limit(engine) or 0)

    def snapshot(self) -> dict[str, dict[str, int | None]]:
        today = self._load().get(self._key(), {})
        engines = sorted(set(today) | set(self.config.limits))
        return {
            engine: {"used": self.usage(engine), "limit": self.limit(engine)}
            for engine in engines
        }

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #

    def increment(self, engine: str, kind: UsageKind = "task") -> int:
        """Charge one attempted call to `engine`. Returns today's total."""
        with self._locked():
            data = self._load()
            day = data.setdefault(self._key(), {})
            entry = day.get(engine)
            if not isinstance(entry, dict):
                entry = {"task": entry} if isinstance(entry, int) else {}
            entry[kind] = entry.get(kind, 0) + 1
            day[engine] = entry
            self._write(data)

        total = sum(entry.values())
        logger.debug(f"[QUOTA] {engine} {kind} → {total} today")
        return total

    # ------------------------------------------------------------------ #
    # Storage
    # ------------------------------------------------------------------ #

    @staticmethod
    def _key(day: date | None = None) -> str:
        return (day or date.today()).isoformat()

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError):
            logger.warning(f"[QUOTA] Unreadable quota file {self.path}; starting fresh")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".quota-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(temp_path, self.path)
        except BaseException:
            Path(temp_path).unlink(missing_ok=True)
            raise

    @contextlib.contextmanager
    def _locked(self) -> Iterator[None]:
        if fcntl is None:
            yield
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = self.path.with_name(self.path.name + ".lock")
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
