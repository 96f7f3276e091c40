import pytest
import yaml

from ares.config_loader import ConfigError, global_config_path, load_config, project_root, update_task_model


def test_builtin_defaults(project):
    config = load_config()

    assert config.models["architecture"].engine == "claude"
    assert config.models["architecture"].model == "opus"
    assert config.models["bulk_patch"].engine == "codex"
    assert config.engines.timeout_for("claude") == 30
    assert config.engines.timeout_for("cursor") == 300
    assert config.quota.limits["claude"] == 50
    assert config.ollama.base_url == "http://localhost:11434"


def test_global_then_project_overrides(project, ares_home):
    ares_home.mkdir()
    (ares_home / "config.yaml").write_text(
        "models:\n  refactor:\n    engine: codex\n    model: null\nollama:\n  timeout: 5\n"
    )
    (project / ".ares").mkdir()
    (project / ".ares" / "config.yaml").write_text("ollama:\n  timeout: 9\n")

    config = load_config()

    assert config.models["refactor"].engine == "codex"
    assert config.models["architecture"].model == "opus"
    assert config.ollama.timeout == 9
    assert config.ollama.num_ctx == 8192


def test_project_root_walks_up(project):
    (project / ".ares").mkdir()
    (project / ".ares" / "config.yaml").write_text("{}\n")
    nested = project / "src" / "pkg"
    nested.mkdir(parents=True)

    assert project_root(nested) == project.resolve()


def test_malformed_override_is_ignored(project):
    (project / ".ares").mkdir()
    (project / ".ares" / "config.yaml").write_text("models: [unclosed\n")

    assert load_config().models["refactor"].model == "sonnet"


def test_update_task_model_writes_global_without_project_file(project):
    target = update_task_model("bulk_patch", "cursor")

    assert target == global_config_path()
    assert yaml.safe_load(target.read_text())["models"]["bulk_patch"] == {"engine": "cursor", "model": None}
    assert load_config().models["bulk_patch"].engine == "cursor"


def test_update_task_model_prefers_project_file(project):
    (project / ".ares").mkdir()
    local = project / ".ares" / "config.yaml"
    local.write_text("diagnostics:\n  test: make test\n")

    target = update_task_model("refactor", "codex", "gpt-5")

    assert target == local.resolve() or target == local
    data = yaml.safe_load(local.read_text())
    assert data["models"]["refactor"] == {"engine": "codex", "model": "gpt-5"}
    assert data["diagnostics"]["test"] == "make test"


def test_unknown_engine_in_rules_fails_at_load(project):
    (project / ".ares").mkdir()
    (project / ".ares" / "config.yaml").write_text("models:\n  refactor:\n    engine: gemini\n")

    with pytest.raises(ConfigError, match="models.refactor.engine"):
        load_config()
