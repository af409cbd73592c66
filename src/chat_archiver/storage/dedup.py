"""Signature-based dedup and merge of captures into the store."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Sequence

from chat_archiver.capture.metrics import turn_count as count_turns
from chat_archiver.config import SNIPPET_LENGTH
from chat_archiver.extraction.base import message_signature
from chat_archiver.extraction.models import ParsedMessage
from chat_archiver.extraction.selectors import normalize_whitespace
from chat_archiver.storage.database import ConversationStore
from chat_archiver.storage.limits import StorageGuard
from chat_archiver.storage.models import MergeResult, StoredMessage

if TYPE_CHECKING:
    from chat_archiver.capture.models import ConversationDraft

logger = logging.getLogger(__name__)


def sanitize_messages(messages: Sequence[ParsedMessage]) -> list[ParsedMessage]:
    return [m for m in messages if normalize_whitespace(m.text)]


def stored_signatures(messages: Sequence[StoredMessage]) -> list[str]:
    ordered = sorted(messages, key=lambda m: (m.created_at, m.id))
    return [message_signature(m.role, m.text) for m in ordered]


def _message_rows(messages: Sequence[ParsedMessage], base_ms: int) -> list[tuple[str, str, int]]:
    return [
        (m.role, m.text, m.timestamp if m.timestamp is not None else base_ms + index)
        for index, m in enumerate(messages)
    ]


def save_or_merge(
    store: ConversationStore,
    guard: StorageGuard,
    draft: ConversationDraft,
    messages: Sequence[ParsedMessage],
    now: int | None = None,
) -> MergeResult:
    """Insert a new conversation or reconcile it with the stored copy.

    Recapturing an unchanged conversation writes nothing. A changed one has
    its messages replaced wholesale; the stored title is kept so user
    renames survive.

    Raises:
        StorageLimitError: Storage is at the hard limit; nothing was written.
        PersistError: The store failed; the transaction was rolled back.
    """
    clean = sanitize_messages(messages)
    if not clean:
        return MergeResult(saved=False)

    guard.enforce_write_guard()

    base_ms = now if now is not None else int(time.time() * 1000)
    snippet = clean[0].text[:SNIPPET_LENGTH]
    turns = count_turns(len(clean))

    with store.transaction():
        existing = store.find_by_external_id(draft.external_id)

        if existing is None:
            conversation_id = store.insert_conversation(
                draft,
                message_count=len(clean),
                turn_count=turns,
                snippet=snippet,
            )
            store.insert_messages(conversation_id, _message_rows(clean, base_ms))
            logger.info(f"Saved new {draft.platform} conversation {conversation_id} with {len(clean)} messages")
            return MergeResult(saved=True, new_message_count=len(clean), conversation_id=conversation_id)

        stored = store.list_messages(existing.id)
        incoming = [message_signature(m.role, m.text) for m in clean]
        if incoming == stored_signatures(stored):
            logger.debug("Conversation %d unchanged, skipping write", existing.id)
            return MergeResult(saved=False, new_message_count=0, conversation_id=existing.id)

        store.delete_messages(existing.id)
        store.insert_messages(existing.id, _message_rows(clean, base_ms))
        store.update_conversation_stats(
            existing.id,
            updated_at=draft.updated_at,
            message_count=len(clean),
            turn_count=turns,
            snippet=snippet,
        )

    new_count = max(0, len(clean) - len(stored))
    logger.info(
        f"Replaced messages of conversation {existing.id}: "
        f"{len(stored)} stored, {len(clean)} incoming"
    )
    return MergeResult(saved=True, new_message_count=new_count, conversation_id=existing.id)
