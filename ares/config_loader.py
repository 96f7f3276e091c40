"""
Configuration loader for ARES.
Merges built-in defaults with global (~/.ares) and per-project
.ares/config.yaml overrides. Read on every call; nothing is cached.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from ares.models import EngineName


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class ConfigError(ValueError):
    pass


class EngineRule(BaseModel):
    engine: EngineName = "claude"
    model: str | None = None


def _default_rules() -> dict[str, EngineRule]:
    return {"refactor": EngineRule(engine="claude", model="sonnet")}


class OllamaConfig(BaseModel):
    base_url: str = "http://localhost:11434"
    timeout: int = 30
    num_ctx: int = 8192
    retries: int = 0


class EnginesConfig(BaseModel):
    default_timeout: int = 30
    timeouts: dict[str, int] = Field(default_factory=lambda: {"cursor": 300})

    def timeout_for(self, engine: str) -> int:
        return self.timeouts.get(engine, self.default_timeout)


class QuotaConfig(BaseModel):
    limits: dict[str, int] = Field(default_factory=lambda: {"claude": 50, "codex": 100})
    rate_limited_engine: str = "claude"
    file: str | None = None


class DiagnosticsConfig(BaseModel):
    test: str = "python -m pytest -q"
    lint: str = "python -m pylint --recursive=y ."
    syntax: str = "python -m compileall -q ."

    def command_for(self, diagnostic_type: str) -> str:
        return getattr(self, diagnostic_type)


class WorkspaceConfig(BaseModel):
    log_dir: str = ".ares/logs"
    workspaces: list[str] = Field(default_factory=list)


class AresConfig(BaseModel):
    models: dict[str, EngineRule] = Field(default_factory=_default_rules)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)
    engines: EnginesConfig = Field(default_factory=EnginesConfig)
    quota: QuotaConfig = Field(default_factory=QuotaConfig)
    diagnostics: DiagnosticsConfig = Field(default_factory=DiagnosticsConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"
PROJECT_CONFIG = Path(".ares") / "config.yaml"


def global_dir() -> Path:
    """Directory for user-wide state (config, quota, .env)."""
    return Path(os.environ.get("ARES_HOME", Path.home() / ".ares")).expanduser()


def project_root(start: Path | None = None) -> Path:
    """Nearest ancestor holding .ares/config.yaml, else the start directory."""
    start = (start or Path.cwd()).resolve()
    for candidate in (start, *start.parents):
        if (candidate / PROJECT_CONFIG).exists():
            return candidate
    return start


def global_config_path() -> Path:
    return global_dir() / "config.yaml"


def local_config_path(repo_path: Path | None = None) -> Path:
    return project_root(repo_path) / PROJECT_CONFIG


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"[CONFIG] Ignoring unreadable config {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def load_config(repo_path: Path | None = None) -> AresConfig:
    """
    Load config by merging:
      1. Built-in defaults (ares/config.yaml)
      2. Global overrides ($ARES_HOME/config.yaml)
      3. Project overrides (<project_root>/.ares/config.yaml)
    """
    base = _read_yaml(_DEFAULT_CONFIG_PATH)
    base = _deep_merge(base, _read_yaml(global_config_path()))
    base = _deep_merge(base, _read_yaml(local_config_path(repo_path)))
    try:
        return AresConfig(**base)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid ARES config: {problems}") from e


def update_task_model(
    task_type: str,
    engine: str,
    model: str | None = None,
    repo_path: Path | None = None,
) -> Path:
    """Persist a selection rule. Writes the project file if present, else the global one."""
    local = local_config_path(repo_path)
    target = local if local.exists() else global_config_path()

    data = _read_yaml(target)
    data.setdefault("models", {})[task_type] = {"engine": engine, "model": model}

    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)

    logger.info(f"[CONFIG] {task_type} -> {engine} ({model or 'default'}) saved to {target}")
    return target
