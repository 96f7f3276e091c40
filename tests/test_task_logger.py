import json
import os
import sys

import pytest

from ares.git_manager import branch_name
from ares.models import Selection, TaskPlan
from ares.task_logger import TaskLogger, recent_logs
from ares.terminal_runner import run_command


def test_log_task_then_result(tmp_path):
    task_logger = TaskLogger(log_dir=tmp_path)
    task_logger.log_task("add caching", TaskPlan(slices=["add caching"]), Selection(engine="claude", model="sonnet"))

    data = json.loads(task_logger.log_file.read_text())
    assert data["task_id"] == task_logger.task_id
    assert data["plan"]["task_type"] == "refactor"
    assert data["selection"] == {"engine": "claude", "model": "sonnet"}
    assert "result" not in data

    task_logger.log_result("all done")
    data = json.loads(task_logger.log_file.read_text())
    assert data["result"] == "all done"
    assert "completed_at" in data


def test_log_result_without_task_is_a_noop(tmp_path):
    task_logger = TaskLogger(log_dir=tmp_path)
    task_logger.log_result("orphan")
    assert not task_logger.log_file.exists()


def test_task_ids_are_unique(tmp_path):
    assert TaskLogger(log_dir=tmp_path).task_id != TaskLogger(log_dir=tmp_path).task_id


def test_recent_logs_newest_first(tmp_path):
    for index, name in enumerate(["old", "new"]):
        path = tmp_path / f"{name}.json"
        path.write_text(json.dumps({"task": name}))
        os.utime(path, (1_000_000 + index, 1_000_000 + index))
    (tmp_path / "broken.json").write_text("{")
    os.utime(tmp_path / "broken.json", (1, 1))

    assert [entry["task"] for entry in recent_logs(tmp_path)] == ["new", "old"]
    assert recent_logs(tmp_path / "missing") == []


def test_run_command_captures_output_and_status():
    result = run_command([sys.executable, "-c", "import sys; print('out'); sys.exit(3)"])
    assert result.exit_status == 3
    assert not result.success
    assert "out" in result.output


def test_run_command_merges_stderr():
    result = run_command([sys.executable, "-c", "import sys; sys.stderr.write('err')"])
    assert result.success
    assert "err" in result.output


def test_run_command_missing_binary():
    result = run_command(["ares-definitely-missing-binary"])
    assert result.exit_status == 127


@pytest.mark.parametrize(
    "description,expected",
    [
        (None, "ares/task-1234abcd"),
        ("Add a --json flag!", "ares/task-1234abcd-add-a-json-flag"),
        ("!!!", "ares/task-1234abcd"),
    ],
)
def test_branch_names(description, expected):
    assert branch_name("1234abcd-5678", description) == expected
