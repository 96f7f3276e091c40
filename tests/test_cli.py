import yaml
from typer.testing import CliRunner

from ares import __version__
from ares.cli import app
from ares.config_loader import global_config_path
from ares.quota import QuotaExceededError

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"ARES v{__version__}" in result.stdout


def test_init_creates_project_files(project):
    result = runner.invoke(app, ["init"])

    assert result.exit_code == 0
    assert (project / ".ares" / "config.yaml").exists()
    assert (project / ".ares" / "logs").is_dir()
    assert ".ares/logs/" in (project / ".gitignore").read_text()

    again = runner.invoke(app, ["init"])
    assert again.exit_code == 0
    assert "already exists" in again.stdout


def test_set_model_persists_rule(project):
    result = runner.invoke(app, ["set-model", "bulk_patch", "cursor"])

    assert result.exit_code == 0
    data = yaml.safe_load(global_config_path().read_text())
    assert data["models"]["bulk_patch"]["engine"] == "cursor"


def test_set_model_rejects_unknown_engine(project):
    result = runner.invoke(app, ["set-model", "refactor", "gemini"])
    assert result.exit_code == 1
    assert not global_config_path().exists()


def test_set_model_rejects_unknown_task_type(project):
    result = runner.invoke(app, ["set-model", "poetry", "claude"])
    assert result.exit_code == 1


def test_quota_command(project):
    result = runner.invoke(app, ["quota"])
    assert result.exit_code == 0
    assert "claude" in result.stdout


def test_logs_without_history(project):
    result = runner.invoke(app, ["logs"])
    assert result.exit_code == 0
    assert "No task logs yet" in result.stdout


def test_run_exits_nonzero_on_quota(project, monkeypatch):
    class QuotaRouter:
        def run(self, *args, **kwargs):
            raise QuotaExceededError("claude", 50, 50)

    monkeypatch.setattr("ares.cli.Router", QuotaRouter)
    result = runner.invoke(app, ["run", "add", "caching"])

    assert result.exit_code == 1
    assert "Quota exceeded" in result.stdout


def test_run_joins_task_words(project, monkeypatch):
    seen = {}

    class RecordingRouter:
        def run(self, task, **kwargs):
            from ares.models import RunResult

            seen.update(task=task, **kwargs)
            return RunResult(task_id="t", status="dry_run")

    monkeypatch.setattr("ares.cli.Router", RecordingRouter)
    result = runner.invoke(app, ["run", "--dry-run", "--yes", "add", "caching"])

    assert result.exit_code == 0
    assert seen["task"] == "add caching"
    assert seen["dry_run"] is True
    assert seen["auto_approve"] is True


def test_config_reports_invalid_engine(project):
    (project / ".ares").mkdir()
    (project / ".ares" / "config.yaml").write_text("models:\n  refactor:\n    engine: gemini\n")

    result = runner.invoke(app, ["config"])

    assert result.exit_code == 1
    assert "Invalid ARES config" in result.stdout
