"""
ARES Diagnostic Parser

Turns raw verification output into a DiagnosticSummary without calling a
model. Pure and deterministic: no I/O, same input → same summary.

Recognized formats:
  lint    RuboCop JSON ({"files": [{"path", "offenses"}]}),
          pylint / ruff JSON (list of messages),
          text `path:line:col: C: message` (severity C/W/E/F, optional code)
  test    RSpec JSON ({"examples": [...]}),
          pytest-json-report ({"tests": [...]}),
          text location markers (`path.ext:line`, `File "path", line N`)
  syntax  text `path:line: message`, `File "path", line N`
"""

from __future__ import annotations

import json
import re
from typing import Any

from ares.models import DiagnosticFile, DiagnosticSummary

ANSI_PATTERN = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]|\x1b\][^\x07]*\x07")

LINT_TEXT = re.compile(r"^(?P<path>[^\s:][^:]*):(?P<line>\d+):(?:\d+:)?\s*(?P<sev>[CWEF])\d*:\s*(?P<msg>.+)$")
SYNTAX_TEXT = re.compile(r"^(?P<path>[^\s:][^:]*):(?P<line>\d+):\s*(?P<msg>.+)$")
PY_TRACE = re.compile(r'File "(?P<path>[^"]+)", line (?P<line>\d+)(?:, in .+)?')
LOCATION_MARKER = re.compile(r"(?:^|[\s(#])(?:\./)?(?P<path>[\w./-]+\.\w+):(?P<line>\d+)(?::in\s|:|\b)")

FALLBACK_LINES = 50


def strip_ansi(text: Any) -> str:
    if not isinstance(text, str):
        return "" if text is None else str(text)
    return ANSI_PATTERN.sub("", text)


def parse(output: str | None, diagnostic_type: str) -> DiagnosticSummary:
    """Parse verification output for `diagnostic_type` (lint, syntax or test)."""
    text = strip_ansi(output)
    if not text.strip():
        return fallback_summary(text, diagnostic_type)

    if diagnostic_type == "lint":
        return parse_lint(text)
    if diagnostic_type == "syntax":
        return parse_syntax(text)
    return parse_test(text)


# ---------------------------------------------------------------------------
# Lint
# ---------------------------------------------------------------------------

def parse_lint(text: str) -> DiagnosticSummary:
    data = _load_json(text)
    if isinstance(data, dict) and "files" in data:
        return _rubocop_json(data)
    if isinstance(data, list):
        return _message_list_json(data)

    items: list[str] = []
    files: list[DiagnosticFile] = []
    for raw in text.splitlines():
        match = LINT_TEXT.match(raw.strip())
        if not match:
            continue
        path, line = match["path"].strip(), int(match["line"])
        items.append(f"{path}:{line}: {match['msg'].strip()}")
        files.append(DiagnosticFile(path=path, line=line))

    if not items:
        return fallback_summary(text, "lint")
    return _summary(items, files, "Lint")


def _rubocop_json(data: dict) -> DiagnosticSummary:
    items: list[str] = []
    files: list[DiagnosticFile] = []
    for entry in data.get("files") or []:
        path = entry.get("path", "")
        for offense in entry.get("offenses") or []:
            location = offense.get("location") or {}
            line = _as_int(location.get("line", location.get("start_line")))
            items.append(f"{path}:{line}: {offense.get('message', '')}")
            files.append(DiagnosticFile(path=path, line=line))
    return _summary(items, files, "RuboCop")


def _message_list_json(data: list) -> DiagnosticSummary:
    """pylint --output-format=json and ruff --output-format=json."""
    items: list[str] = []
    files: list[DiagnosticFile] = []
    for message in data:
        if not isinstance(message, dict):
            continue
        path = message.get("path") or message.get("filename") or ""
        line = _as_int(message.get("line", (message.get("location") or {}).get("row")))
        code = message.get("message-id") or message.get("code") or ""
        text = message.get("message", "")
        items.append(f"{path}:{line}: {code + ' ' if code else ''}{text}")
        files.append(DiagnosticFile(path=path, line=line))
    return _summary(items, files, "Lint")


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

def parse_test(text: str) -> DiagnosticSummary:
    data = _load_json(text)
    if isinstance(data, dict) and "examples" in data:
        return _rspec_json(data)
    if isinstance(data, dict) and "tests" in data:
        return _pytest_json(data)

    items: list[str] = []
    files: list[DiagnosticFile] = []
    for raw in text.splitlines():
        match = PY_TRACE.search(raw) or LOCATION_MARKER.search(raw)
        if not match:
            continue
        path, line = _clean_path(match["path"]), int(match["line"])
        items.append(f"{path}:{line}: {raw.strip()}")
        files.append(DiagnosticFile(path=path, line=line))

    if not items:
        return fallback_summary(text, "test")
    return _summary(items, files, "Test")


def _rspec_json(data: dict) -> DiagnosticSummary:
    items: list[str] = []
    files: list[DiagnosticFile] = []
    for example in data.get("examples") or []:
        if example.get("status") != "failed":
            continue
        path = _clean_path(example.get("file_path") or "")
        line = _as_int(example.get("line_number"))
        message = (example.get("exception") or {}).get("message") or example.get("full_description", "")
        items.append(f"{path}:{line}: {message}")
        files.append(DiagnosticFile(path=path, line=line))
    return _summary(items, files, "RSpec")


def _pytest_json(data: dict) -> DiagnosticSummary:
    items: list[str] = []
    files: list[DiagnosticFile] = []
    for test in data.get("tests") or []:
        if test.get("outcome") not in ("failed", "error"):
            continue
        crash = (test.get("call") or test.get("setup") or {}).get("crash") or {}
        path = _clean_path(crash.get("path") or test.get("nodeid", "").split("::")[0])
        line = _as_int(crash.get("lineno", test.get("lineno")))
        message = crash.get("message") or test.get("nodeid", "")
        items.append(f"{path}:{line}: {message}")
        files.append(DiagnosticFile(path=path, line=line))
    return _summary(items, files, "Pytest")


# ---------------------------------------------------------------------------
# Syntax
# ---------------------------------------------------------------------------

def parse_syntax(text: str) -> DiagnosticSummary:
    items: list[str] = []
    files: list[DiagnosticFile] = []
    lines = text.splitlines()
    for index, raw in enumerate(lines):
        trace = PY_TRACE.search(raw)
        if trace:
            path, line = _clean_path(trace["path"]), int(trace["line"])
            detail = _python_error_detail(lines, index)
            items.append(f"{path}:{line}: {detail}")
            files.append(DiagnosticFile(path=path, line=line))
            continue

        match = SYNTAX_TEXT.match(raw.strip())
        if match:
            path, line = match["path"].strip(), int(match["line"])
            items.append(f"{path}:{line}: {match['msg'].strip()}")
            files.append(DiagnosticFile(path=path, line=line))

    if not items:
        return fallback_summary(text, "syntax")
    return _summary(items, files, "syntax")


def _python_error_detail(lines: list[str], start: int) -> str:
    # compileall prints the caret block then `SyntaxError: ...` a few lines down
    for raw in lines[start + 1:start + 6]:
        if "Error" in raw:
            return raw.strip()
    return "syntax error"


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------

def build_error_summary(failed_items: list[str], source: str) -> str:
    if not failed_items:
        return f"No {source} issues found."
    return f"There are {len(failed_items)} failed {source.lower()} item(s)."


def fallback_summary(output: str, diagnostic_type: str) -> DiagnosticSummary:
    """Raw-line summary for output that matched no known format."""
    lines = output.splitlines()[:FALLBACK_LINES]
    raw = "\n".join(lines)
    return DiagnosticSummary(
        failed_items=[raw] if raw.strip() else [],
        error_summary=f"Could not parse {diagnostic_type} output; raw output provided via fallback.",
        files=[],
        structured=False,
    )


def _summary(items: list[str], files: list[DiagnosticFile], source: str) -> DiagnosticSummary:
    return DiagnosticSummary(
        failed_items=items,
        error_summary=build_error_summary(items, source),
        files=files,
    )


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _clean_path(path: str) -> str:
    return path[2:] if path.startswith("./") else path
