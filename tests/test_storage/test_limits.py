"""Tests for the storage quota guard."""

import logging

import pytest

from chat_archiver.exceptions import StorageLimitError
from chat_archiver.storage.limits import FileUsageEstimator, StorageGuard, resolve_status


@pytest.mark.parametrize(
    "used,expected",
    [(0, "ok"), (899, "ok"), (900, "warning"), (999, "warning"), (1000, "blocked"), (5000, "blocked")],
)
def test_resolve_status(used, expected):
    assert resolve_status(used, soft_limit=900, hard_limit=1000) == expected


def test_snapshot(fake_estimator):
    guard = StorageGuard(fake_estimator(usage=950, quota=10_000, local=12), soft_limit_bytes=900, hard_limit_bytes=1000)
    snapshot = guard.snapshot()
    assert snapshot.origin_used == 950
    assert snapshot.origin_quota == 10_000
    assert snapshot.local_used == 12
    assert snapshot.soft_limit_bytes == 900
    assert snapshot.hard_limit_bytes == 1000
    assert snapshot.status == "warning"


def test_default_limits(fake_estimator):
    snapshot = StorageGuard(fake_estimator()).snapshot()
    assert snapshot.soft_limit_bytes == 900 * 1024 * 1024
    assert snapshot.hard_limit_bytes == 1024 * 1024 * 1024
    assert snapshot.status == "ok"


def test_enforce_ok(fake_estimator):
    assert StorageGuard(fake_estimator(usage=10)).enforce_write_guard() == "ok"


def test_enforce_warns_at_soft_limit(fake_estimator, caplog):
    guard = StorageGuard(fake_estimator(usage=900), soft_limit_bytes=900, hard_limit_bytes=1000)
    with caplog.at_level(logging.WARNING):
        assert guard.enforce_write_guard() == "warning"
    assert "above soft limit" in caplog.text


def test_enforce_blocks_at_hard_limit(fake_estimator):
    guard = StorageGuard(fake_estimator(usage=1000), soft_limit_bytes=900, hard_limit_bytes=1000)
    with pytest.raises(StorageLimitError) as exc_info:
        guard.enforce_write_guard()
    assert exc_info.value.code == "STORAGE_HARD_LIMIT_REACHED"


def test_usage_is_estimated_on_every_call(fake_estimator):
    estimator = fake_estimator(usage=0)
    guard = StorageGuard(estimator, soft_limit_bytes=900, hard_limit_bytes=1000)
    assert guard.enforce_write_guard() == "ok"
    estimator.usage = 1000
    with pytest.raises(StorageLimitError):
        guard.enforce_write_guard()


def test_file_estimator_counts_sidecars(tmp_path):
    db = tmp_path / "conversations.db"
    db.write_bytes(b"x" * 100)
    (tmp_path / "conversations.db-wal").write_bytes(b"x" * 30)
    settings = tmp_path / "settings.json"
    settings.write_text("{}", encoding="utf-8")

    estimator = FileUsageEstimator(db, settings)
    usage, quota = estimator.estimate()
    assert usage == 130
    assert quota is not None and quota > 0
    assert estimator.local_bytes() == 2


def test_file_estimator_missing_files(tmp_path):
    estimator = FileUsageEstimator(tmp_path / "missing.db", tmp_path / "missing.json")
    usage, _ = estimator.estimate()
    assert usage == 0
    assert estimator.local_bytes() == 0
    assert FileUsageEstimator(tmp_path / "missing.db").local_bytes() == 0
