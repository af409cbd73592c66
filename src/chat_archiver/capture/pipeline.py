"""Turn a page snapshot into a capture payload and hand it off."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from chat_archiver.capture.metrics import turn_count
from chat_archiver.capture.models import CapturePayload, ConversationDraft
from chat_archiver.config import SNIPPET_LENGTH
from chat_archiver.extraction.base import BaseParser
from chat_archiver.page.snapshot import PageSnapshot

logger = logging.getLogger(__name__)

PageSource = Callable[[], PageSnapshot]
CaptureSender = Callable[[CapturePayload], Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


class CapturePipeline:
    """Extract, build a draft, send.

    Args:
        parser: Platform parser for the observed page.
        page_source: Returns a fresh snapshot of the page on every call.
        sender: Receives the payload; its return value is passed through.
        clock: Epoch-millisecond clock.
    """

    def __init__(
        self,
        parser: BaseParser,
        page_source: PageSource,
        sender: CaptureSender,
        clock: Callable[[], int] = _now_ms,
    ):
        self.parser = parser
        self.page_source = page_source
        self.sender = sender
        self.clock = clock

    def build_payload(self, page: PageSnapshot) -> CapturePayload | None:
        platform = self.parser.detect(page)
        if not platform:
            return None

        messages = self.parser.get_messages(page)
        if not messages:
            return None

        now = self.clock()
        conversation = ConversationDraft(
            external_id=self.parser.get_external_id(page) or "",
            platform=platform,
            title=self.parser.get_title(page),
            snippet=messages[0].text[:SNIPPET_LENGTH],
            source_url=page.url,
            source_created_at=self.parser.get_source_created_at(page),
            captured_at=now,
            updated_at=now,
            message_count=len(messages),
            turn_count=turn_count(len(messages)),
        )
        return CapturePayload(conversation=conversation, messages=messages)

    def capture(self) -> Any:
        """Run one capture cycle; returns the sender's result or None.

        Failures are logged, never raised, so an observer loop keeps running.
        """
        try:
            payload = self.build_payload(self.page_source())
            if payload is None:
                return None
            result = self.sender(payload)
            logger.info(
                f"Captured {payload.conversation.platform} conversation "
                f"with {payload.conversation.message_count} messages"
            )
            return result
        except Exception:
            logger.exception("Capture failed")
            return None
