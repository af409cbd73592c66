"""Turn counting shared by the gate, the pipeline, and the store."""

from __future__ import annotations

from typing import Any, Iterable

from chat_archiver.extraction.models import AI


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if value != value or value in (float("inf"), float("-inf")) or value <= 0:
        return 0
    return int(value)


def turn_count(message_count: int) -> int:
    """A turn is one user/assistant exchange."""
    return max(0, message_count) // 2


def count_ai_turns(messages: Iterable) -> int:
    return sum(1 for m in messages if m.role == AI)


def resolve_turn_count(stored_turn_count: Any, message_count: Any) -> int:
    """Stored turn count, or ``message_count // 2`` when it is missing."""
    turns = _non_negative_int(stored_turn_count)
    messages = _non_negative_int(message_count)
    if turns > 0 or messages == 0:
        return turns
    return messages // 2
