from __future__ import annotations

from types import SimpleNamespace

import pytest

from ares.adapters import AdapterError
from ares.config_loader import AresConfig
from ares.model_selector import ModelSelector
from ares.models import DiagnosticSummary
from ares.terminal_runner import CommandResult


@pytest.fixture(autouse=True)
def ares_home(tmp_path, monkeypatch):
    """Keep global config and quota state out of the real home directory."""
    home = tmp_path / "ares-home"
    monkeypatch.setenv("ARES_HOME", str(home))
    return home


@pytest.fixture
def project(tmp_path, monkeypatch):
    root = tmp_path / "project"
    root.mkdir()
    monkeypatch.chdir(root)
    return root


class FakeQuota:
    def __init__(self, exceeded: bool = False):
        self.increments: list[tuple[str, str]] = []
        self._exceeded = exceeded

    def increment(self, engine, kind="task"):
        self.increments.append((engine, kind))
        return len(self.increments)

    def check(self, engine=None):
        if self._exceeded:
            from ares.quota import QuotaExceededError

            raise QuotaExceededError(engine or "claude", 50, 50)


class FakeAdapter:
    option_defaults: dict = {}

    def __init__(self, name: str, output: str | None = None, fail: bool = False, log: list | None = None):
        self.name = name
        self.output = output if output is not None else f"{name} output"
        self.fail = fail
        self.log = log if log is not None else []

    def shape_options(self, options):
        return {}

    def invoke(self, prompt, model=None, **options):
        self.log.append(self.name)
        if self.fail:
            raise AdapterError(f"{self.name} exploded\nstack line", engine=self.name)
        return self.output


class FakeChain:
    """Stands in for EngineChain; returns canned responses in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.options = []

    def _next(self, prompt, options):
        self.prompts.append(prompt)
        self.options.append(options)
        return self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]

    def execute(self, prompt, options=None):
        return self._next(prompt, options)

    def execute_fix(self, prompt, options=None, on_attempt=None):
        if on_attempt is not None:
            on_attempt("claude")
        return self._next(prompt, options)


class FakeSummarizer:
    def __init__(self, summary: DiagnosticSummary | None = None):
        self.summary = summary or DiagnosticSummary(error_summary="Safe Mode: Ollama skipped")
        self.calls: list[tuple[str, str]] = []

    def summarize(self, output, diagnostic_type="test"):
        self.calls.append((output, diagnostic_type))
        return self.summary


class ScriptedCommands:
    """Verification runner returning scripted results, last one repeated."""

    def __init__(self, *results: tuple[int, str]):
        self.results = list(results)
        self.commands: list = []

    def __call__(self, command, cwd=None, timeout=None):
        self.commands.append(command)
        exit_status, output = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        return CommandResult(command=command, output=output, exit_status=exit_status)


def make_core(summarizer=None, quota=None, config=None):
    config = config or AresConfig()
    return SimpleNamespace(
        selector=ModelSelector(config_loader=lambda: config),
        summarizer=summarizer or FakeSummarizer(),
        quota=quota or FakeQuota(),
    )
