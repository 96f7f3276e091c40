from ares.context_loader import find_workspace_root, load_context
from ares.models import DiagnosticFile
from ares.prompt_builder import PromptBuilder


def test_sections_join_with_blank_lines_and_skip_empty():
    prompt = (
        PromptBuilder()
        .add_context("ctx")
        .add_instruction("   ")
        .add_task("do the thing")
        .add_instruction(None)
        .add_instruction("be brief")
        .build()
    )
    assert prompt == "ctx\n\nTASK:\ndo the thing\n\nbe brief"


def test_diagnostic_section():
    prompt = PromptBuilder().add_diagnostic("lint", ["a.py:1: x", "b.py:2: y"], "2 offenses").build()
    assert prompt == "DIAGNOSTIC SUMMARY (LINT):\nFailed Items: a.py:1: x, b.py:2: y\nError: 2 offenses"


def test_files_are_inlined_once_and_missing_skipped(tmp_path):
    (tmp_path / "a.py").write_text("print('a')\n")
    files = [
        DiagnosticFile(path="a.py", line=1),
        DiagnosticFile(path="a.py", line=9),
        DiagnosticFile(path="gone.py", line=3),
    ]

    prompt = PromptBuilder().add_files(files, root=tmp_path).build()

    assert prompt.count("--- FILE: a.py ---") == 1
    assert "gone.py" not in prompt
    assert prompt.startswith("FAILING FILE CONTENTS:\n")


def test_no_existing_files_adds_nothing(tmp_path):
    assert PromptBuilder().add_files([DiagnosticFile(path="nope.py")], root=tmp_path).build() == ""


def test_workspace_root_prefers_registered_workspace(tmp_path):
    workspace = tmp_path / "ws"
    nested = workspace / "svc" / "api"
    nested.mkdir(parents=True)
    (workspace / "svc" / "AGENTS.md").write_text("inner")

    assert find_workspace_root(nested, registered=[str(workspace)]) == workspace.resolve()


def test_workspace_root_walks_up_to_agents_file(tmp_path):
    nested = tmp_path / "repo" / "src"
    nested.mkdir(parents=True)
    (tmp_path / "repo" / "AGENTS.md").write_text("rules")

    assert find_workspace_root(nested, registered=[]) == (tmp_path / "repo").resolve()


def test_workspace_root_defaults_to_start(tmp_path):
    start = tmp_path / "plain"
    start.mkdir()
    assert find_workspace_root(start, registered=[]) == start.resolve()


def test_context_includes_agents_and_skills(tmp_path):
    root = tmp_path / "repo"
    skill = root / ".skills" / "testing"
    skill.mkdir(parents=True)
    (root / "AGENTS.md").write_text("Always run the tests.")
    (skill / "SKILL.md").write_text("Use pytest fixtures.")

    context = load_context(root, registered=[])

    assert context.startswith(f"Workspace Root: {root.resolve()}\n")
    assert "Always run the tests." in context
    assert "Use pytest fixtures." in context
