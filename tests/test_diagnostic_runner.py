import pytest

from ares import diagnostic_parser
from ares.diagnostic_runner import DiagnosticRunner
from ares.fix_applicator import FixApplicator
from ares.models import DiagnosticFile, DiagnosticOutcome, DiagnosticSummary
from conftest import FakeSummarizer, ScriptedCommands, make_core

LLM_SUMMARY = DiagnosticSummary(
    failed_items=["app.py:4: boom"],
    error_summary="1 failure",
    files=[DiagnosticFile(path="app.py", line=4)],
)


def test_passing_command_reports_passed(tmp_path):
    runner = DiagnosticRunner(make_core(), command_runner=ScriptedCommands((0, "ok")), root=tmp_path)
    outcome = runner.run_loop("pytest", "test")
    assert outcome.status == "passed"
    assert outcome.ok


def test_dry_run_skips_escalation(tmp_path, monkeypatch):
    monkeypatch.setattr(FixApplicator, "escalate", lambda *a, **k: pytest.fail("escalated during dry run"))
    commands = ScriptedCommands((1, "lib/foo.rb:10:5: C: Line is too long"))
    runner = DiagnosticRunner(make_core(), command_runner=commands, root=tmp_path)

    outcome = runner.run_loop("lint-cmd", "lint", dry_run=True)

    assert outcome.status == "skipped"
    assert outcome.summary.files == [DiagnosticFile(path="lib/foo.rb", line=10)]
    assert commands.commands == ["lint-cmd"]


def test_failure_escalates_with_parsed_summary(tmp_path, monkeypatch):
    seen = {}

    def fake_escalate(self, diagnostic_type, summary, verify_command):
        seen.update(type=diagnostic_type, summary=summary, command=verify_command)
        return DiagnosticOutcome(diagnostic_type=diagnostic_type, status="fixed", iterations=1)

    monkeypatch.setattr(FixApplicator, "escalate", fake_escalate)
    runner = DiagnosticRunner(
        make_core(), command_runner=ScriptedCommands((1, "lib/bar.rb:5: syntax error")), root=tmp_path
    )

    outcome = runner.run_loop("syntax-cmd", "syntax")

    assert outcome.status == "fixed"
    assert seen["type"] == "syntax"
    assert seen["command"] == "syntax-cmd"
    assert seen["summary"].files == [DiagnosticFile(path="lib/bar.rb", line=5)]


def test_actionable_parse_skips_summarizer(tmp_path):
    summarizer = FakeSummarizer(LLM_SUMMARY)
    runner = DiagnosticRunner(make_core(summarizer=summarizer), root=tmp_path)

    summary = runner.parse_summary("lib/foo.rb:10:5: C: Line is too long", "lint")

    assert summary.files == [DiagnosticFile(path="lib/foo.rb", line=10)]
    assert summarizer.calls == []


def test_unstructured_output_goes_to_summarizer(tmp_path):
    summarizer = FakeSummarizer(LLM_SUMMARY)
    runner = DiagnosticRunner(make_core(summarizer=summarizer), root=tmp_path)

    summary = runner.parse_summary("weird failure without locations", "test")

    assert summary == LLM_SUMMARY
    assert summarizer.calls == [("weird failure without locations", "test")]


def test_safe_mode_summary_keeps_raw_lines(tmp_path):
    runner = DiagnosticRunner(make_core(summarizer=FakeSummarizer()), root=tmp_path)

    summary = runner.parse_summary("weird failure", "test")

    assert summary.failed_items == ["weird failure"]
    assert "Safe Mode: Ollama skipped" in summary.error_summary


def test_parser_exception_falls_back_to_summarizer(tmp_path, monkeypatch):
    def explode(output, diagnostic_type):
        raise RuntimeError("parser bug")

    monkeypatch.setattr(diagnostic_parser, "parse", explode)
    summarizer = FakeSummarizer(LLM_SUMMARY)
    runner = DiagnosticRunner(make_core(summarizer=summarizer), root=tmp_path)

    assert runner.parse_summary("lib/foo.rb:10:5: C: x", "lint") == LLM_SUMMARY


def test_run_type_uses_configured_command(project):
    (project / ".ares").mkdir()
    (project / ".ares" / "config.yaml").write_text('diagnostics:\n  test: "make check"\n')
    commands = ScriptedCommands((0, "ok"))
    runner = DiagnosticRunner(make_core(), command_runner=commands, root=project)

    assert runner.run_tests().status == "passed"
    assert commands.commands == ["make check"]


def test_print_summary_handles_markup_characters(capsys):
    summary = DiagnosticSummary(failed_items=["a.py:1: [/bold] odd"], error_summary="[red]")
    DiagnosticRunner.print_summary(summary, "lint")
    assert "[/bold] odd" in capsys.readouterr().out
