"""Retains the latest capture of a page so a held capture can be forced."""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import TYPE_CHECKING

from chat_archiver.capture.metrics import turn_count
from chat_archiver.capture.models import CaptureDecision, CapturePayload, CaptureResult, TransientStatus
from chat_archiver.exceptions import TransientNotFoundError

if TYPE_CHECKING:
    from chat_archiver.capture.service import CaptureService

logger = logging.getLogger(__name__)


def transient_key(platform: str, external_id: str) -> str:
    suffix = external_id.strip() if external_id and external_id.strip() else "pending"
    return f"{platform}:{suffix}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class TransientCaptureStore:
    """Latest payload and decision for one page context.

    Held captures are never persisted; this is the only place they live
    until they are forced or replaced.
    """

    def __init__(self) -> None:
        self._payload: CapturePayload | None = None
        self._last_decision: CaptureDecision | None = None
        self._updated_at: int | None = None

    def set_payload(self, payload: CapturePayload) -> None:
        self._payload = CapturePayload(
            conversation=payload.conversation,
            messages=list(payload.messages),
        )
        self._updated_at = _now_ms()

    def set_decision(self, decision: CaptureDecision) -> None:
        self._last_decision = decision
        self._updated_at = _now_ms()

    def get_payload(self) -> CapturePayload | None:
        return self._payload

    def get_status(self) -> TransientStatus:
        if self._payload is None:
            return TransientStatus(
                available=False,
                reason="no_transient",
                last_decision=self._last_decision,
                updated_at=self._updated_at,
            )

        conversation = self._payload.conversation
        message_count = len(self._payload.messages)
        return TransientStatus(
            available=True,
            reason="ok",
            platform=conversation.platform,
            external_id=conversation.external_id.strip() or None,
            transient_key=transient_key(conversation.platform, conversation.external_id),
            message_count=message_count,
            turn_count=turn_count(message_count),
            last_decision=self._last_decision,
            updated_at=self._updated_at,
        )

    def capture(self, service: CaptureService, payload: CapturePayload) -> CaptureResult:
        """Retain ``payload`` and run it through ``service``."""
        self.set_payload(payload)
        result = service.capture(payload)
        self.set_decision(result.decision)
        return result

    def force_archive(self, service: CaptureService) -> CaptureResult:
        """Re-submit the retained payload, bypassing the capture mode.

        Raises:
            TransientNotFoundError: Nothing has been captured on this page.
        """
        if self._payload is None:
            raise TransientNotFoundError("No transient capture available")

        forced = dataclasses.replace(self._payload, force_flag=True)
        result = service.capture(forced)
        self.set_decision(result.decision)
        logger.info(
            "Force archive %s: %s/%s",
            transient_key(forced.conversation.platform, forced.conversation.external_id),
            result.decision.decision,
            result.decision.reason,
        )
        return result
