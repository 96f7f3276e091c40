"""Shared data types flowing between the planner, selector, chain and fix loop."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

TaskType = Literal[
    "architecture",
    "refactor",
    "bulk_patch",
    "test_generation",
    "summarization",
    "interactive_edit",
]
RiskLevel = Literal["low", "medium", "high"]
EngineName = Literal["claude", "codex", "cursor", "ollama"]
DiagnosticType = Literal["lint", "syntax", "test"]

CODE_MODIFYING_TASKS = frozenset({"refactor", "architecture", "bulk_patch", "test_generation"})


class TaskPlan(BaseModel):
    """Structured decomposition of a task. Immutable once produced."""

    model_config = {"frozen": True}

    task_type: TaskType = "refactor"
    risk_level: RiskLevel = "medium"
    confidence: float = 1.0
    slices: list[str] = Field(default_factory=list)

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value: object) -> float:
        try:
            number = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 1.0
        return min(1.0, max(0.0, number))


class Selection(BaseModel):
    engine: EngineName
    model: str | None = None

    def describe(self) -> str:
        return f"{self.engine} ({self.model or 'default'})"


class DiagnosticFile(BaseModel):
    model_config = {"frozen": True}

    path: str
    line: int = 0


class DiagnosticSummary(BaseModel):
    """
    Normalized view of a failed verification run.

    `files` is always deduplicated by (path, line), first occurrence wins.
    `structured` is False when the output matched no known format and the
    summary only carries raw lines.
    """

    failed_items: list[str] = Field(default_factory=list)
    error_summary: str = ""
    files: list[DiagnosticFile] = Field(default_factory=list)
    structured: bool = True

    @field_validator("files", mode="after")
    @classmethod
    def dedupe_files(cls, files: list[DiagnosticFile]) -> list[DiagnosticFile]:
        seen: set[tuple[str, int]] = set()
        unique = []
        for f in files:
            key = (f.path, f.line)
            if key in seen:
                continue
            seen.add(key)
            unique.append(f)
        return unique

    @property
    def actionable(self) -> bool:
        return self.structured and bool(self.files or self.failed_items)


class FilePatch(BaseModel):
    file: str
    content: str


class FixResult(BaseModel):
    explanation: str = ""
    patches: list[FilePatch] = Field(default_factory=list)


class EngineOptions(BaseModel):
    """Generic invocation options; the chain forwards only what each adapter accepts."""

    model: str | None = None
    fork_session: bool = False
    resume: bool = True
    cloud: bool = False
    json_schema: dict | None = None


class DiagnosticOutcome(BaseModel):
    """Terminal state of one diagnostic run."""

    diagnostic_type: DiagnosticType
    status: Literal["passed", "fixed", "failed", "exhausted", "skipped"]
    iterations: int = 0
    summary: DiagnosticSummary | None = None

    @property
    def ok(self) -> bool:
        return self.status in ("passed", "fixed")


class RunResult(BaseModel):
    task_id: str
    status: Literal["completed", "dry_run", "aborted", "diagnostic"]
    selection: Selection | None = None
    output: str = ""
    diagnostic: DiagnosticOutcome | None = None

    @property
    def ok(self) -> bool:
        if self.diagnostic is not None:
            return self.diagnostic.ok
        return self.status != "aborted"
