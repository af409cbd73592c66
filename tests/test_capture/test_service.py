"""Tests for the capture service."""

import logging
import sqlite3

import pytest

from chat_archiver.capture.models import CapturePolicy
from chat_archiver.capture.service import CaptureService, rejected
from chat_archiver.capture.settings import CaptureSettingsStore
from chat_archiver.exceptions import SettingsUnavailableError
from chat_archiver.storage.limits import StorageGuard


@pytest.fixture
def settings(tmp_path):
    return CaptureSettingsStore(tmp_path / "settings.json")


@pytest.fixture
def service(store, guard, settings):
    return CaptureService(store, guard, settings)


def test_mirror_capture_saves(service, store, make_payload):
    result = service.capture(make_payload(4), now=1_000)
    assert result.saved is True
    assert result.new_message_count == 4
    assert result.decision.reason == "mode_mirror"
    assert store.count_messages(result.conversation_id) == 4


def test_recapture_unchanged_is_noop(service, make_payload):
    first = service.capture(make_payload(4))
    second = service.capture(make_payload(4))
    assert second.saved is False
    assert second.new_message_count == 0
    assert second.conversation_id == first.conversation_id
    assert second.decision.decision == "committed"


def test_held_capture_writes_nothing(service, settings, store, make_payload):
    settings.save(CapturePolicy(mode="manual"))
    result = service.capture(make_payload(4))
    assert result.saved is False
    assert result.decision.reason == "mode_manual_hold"
    assert store.get_stats()["total_conversations"] == 0


def test_storage_limit_rejects(store, settings, fake_estimator, make_payload, caplog):
    guard = StorageGuard(fake_estimator(usage=2_000), soft_limit_bytes=500, hard_limit_bytes=1_000)
    service = CaptureService(store, guard, settings)
    with caplog.at_level(logging.WARNING):
        result = service.capture(make_payload(4))
    assert result.saved is False
    assert result.decision.decision == "rejected"
    assert result.decision.reason == "storage_limit_blocked"
    assert result.decision.intercepted is True
    assert store.get_stats()["total_conversations"] == 0
    assert "storage_limit_blocked" in caplog.text


def test_persist_failure_rejects_and_rolls_back(service, store, make_payload, monkeypatch):
    def fail(conversation_id, rows):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store, "insert_messages", fail)
    result = service.capture(make_payload(4))
    assert result.saved is False
    assert result.decision.reason == "persist_failed"
    assert store.get_stats()["total_conversations"] == 0


def test_settings_errors_propagate(store, guard, tmp_path, make_payload):
    service = CaptureService(store, guard, CaptureSettingsStore(tmp_path / "nope" / "settings.json"))
    with pytest.raises(SettingsUnavailableError):
        service.capture(make_payload(4))


def test_rejected_copies_decision(service, make_payload):
    decision = service.capture(make_payload(4), now=77).decision
    changed = rejected(decision, "persist_failed")
    assert changed.decision == "rejected"
    assert changed.reason == "persist_failed"
    assert changed.occurred_at == 77
    assert decision.decision == "committed"
