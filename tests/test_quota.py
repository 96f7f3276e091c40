import json
from datetime import date, timedelta

import pytest

from ares.config_loader import QuotaConfig
from ares.quota import QuotaExceededError, QuotaManager


@pytest.fixture
def quota(tmp_path):
    return QuotaManager(QuotaConfig(limits={"claude": 2, "codex": 5}), path=tmp_path / "quota.json")


def test_defaults_to_ares_home(ares_home):
    assert QuotaManager(QuotaConfig()).path == ares_home / "quota.json"


def test_increment_is_persisted_by_kind(quota):
    quota.increment("claude")
    quota.increment("claude", kind="fix")

    assert quota.usage("claude") == 2
    assert quota.usage_by_kind("claude", "task") == 1
    assert quota.usage_by_kind("claude", "fix") == 1

    data = json.loads(quota.path.read_text())
    assert data[date.today().isoformat()]["claude"] == {"task": 1, "fix": 1}


def test_usage_is_per_day(quota):
    yesterday = (date.today() - timedelta(days=1)).isoformat()
    quota.path.write_text(json.dumps({yesterday: {"claude": {"task": 9}}}))

    assert quota.usage("claude") == 0
    assert quota.usage("claude", day=date.today() - timedelta(days=1)) == 9


def test_exceeded_checks_rate_limited_engine(quota):
    assert not quota.exceeded()
    quota.increment("claude")
    quota.increment("claude")

    assert quota.exceeded()
    assert quota.remaining("claude") == 0
    with pytest.raises(QuotaExceededError, match="Quota exceeded for Claude"):
        quota.check()


def test_engines_without_limit_are_counted_not_vetoed(quota):
    for _ in range(10):
        quota.increment("cursor")
    assert quota.usage("cursor") == 10
    assert quota.remaining("cursor") is None
    assert not quota.exceeded("cursor")


def test_corrupt_file_reads_as_empty(quota):
    quota.path.write_text("{not json")
    assert quota.usage("claude") == 0
    assert quota.increment("claude") == 1


def test_plain_integer_entries_are_upgraded(quota):
    quota.path.write_text(json.dumps({date.today().isoformat(): {"claude": 1}}))
    assert quota.usage("claude") == 1
    assert quota.increment("claude", kind="fix") == 2
    assert quota.usage_by_kind("claude", "task") == 1


def test_snapshot_lists_limited_and_used_engines(quota):
    quota.increment("ollama")
    snapshot = quota.snapshot()

    assert snapshot["claude"] == {"used": 0, "limit": 2}
    assert snapshot["ollama"] == {"used": 1, "limit": None}


def test_no_temp_files_left_behind(quota):
    quota.increment("claude")
    leftovers = [p.name for p in quota.path.parent.iterdir() if p.suffix == ".tmp"]
    assert leftovers == []
