"""Gate a capture and persist it when committed."""

from __future__ import annotations

import dataclasses
import logging
import sqlite3

from chat_archiver.capture.gate import decide
from chat_archiver.capture.models import COMMITTED, REJECTED, CaptureDecision, CapturePayload, CaptureResult
from chat_archiver.capture.settings import CaptureSettingsStore
from chat_archiver.exceptions import StorageError, StorageLimitError
from chat_archiver.storage.database import ConversationStore
from chat_archiver.storage.dedup import save_or_merge
from chat_archiver.storage.limits import StorageGuard

logger = logging.getLogger(__name__)


def rejected(decision: CaptureDecision, reason: str) -> CaptureDecision:
    return dataclasses.replace(decision, decision=REJECTED, reason=reason, intercepted=True)


class CaptureService:
    """Entry point for every capture attempt.

    Storage failures never escape :meth:`capture`; they come back as a
    rejected decision. Settings errors do propagate.
    """

    def __init__(self, store: ConversationStore, guard: StorageGuard, settings: CaptureSettingsStore):
        self.store = store
        self.guard = guard
        self.settings = settings

    def capture(self, payload: CapturePayload, now: int | None = None) -> CaptureResult:
        policy = self.settings.load()
        decision = decide(payload, policy, now=now)

        logger.info(
            "Capture gate decision: %s/%s mode=%s messages=%d turns=%d force=%s",
            decision.decision,
            decision.reason,
            decision.mode,
            decision.message_count,
            decision.turn_count,
            decision.force_flag,
        )

        if decision.decision != COMMITTED:
            return CaptureResult(saved=False, new_message_count=0, decision=decision)

        try:
            merged = save_or_merge(
                self.store,
                self.guard,
                payload.conversation,
                payload.messages,
                now=now,
            )
        except StorageLimitError as e:
            logger.warning(f"Capture persistence rejected: storage_limit_blocked ({e})")
            return CaptureResult(
                saved=False,
                new_message_count=0,
                decision=rejected(decision, "storage_limit_blocked"),
            )
        except (StorageError, sqlite3.Error) as e:
            logger.warning(f"Capture persistence rejected: persist_failed ({e})")
            return CaptureResult(
                saved=False,
                new_message_count=0,
                decision=rejected(decision, "persist_failed"),
            )

        return CaptureResult(
            saved=merged.saved,
            new_message_count=merged.new_message_count,
            conversation_id=merged.conversation_id,
            decision=decision,
        )
