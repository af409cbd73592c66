"""Capture decision gate.

``decide`` is pure and total: every payload maps to exactly one decision and
nothing here raises. Rules are evaluated in order and the first match wins.
"""

from __future__ import annotations

import time

from chat_archiver.capture.metrics import turn_count as count_turns
from chat_archiver.capture.models import (
    COMMITTED,
    HELD,
    MODE_MANUAL,
    MODE_MIRROR,
    REJECTED,
    CaptureDecision,
    CapturePayload,
    CapturePolicy,
)


def normalize_keywords(keywords: list[str]) -> list[str]:
    return [k.strip().lower() for k in keywords if k and k.strip()]


def combined_text(payload: CapturePayload) -> str:
    """Lowercased title, snippet, and message text the blacklist is matched against."""
    message_text = " ".join(m.text for m in payload.messages)
    conversation = payload.conversation
    return f"{conversation.title} {conversation.snippet} {message_text}".lower().strip()


def decide(payload: CapturePayload, policy: CapturePolicy, now: int | None = None) -> CaptureDecision:
    message_count = len(payload.messages)
    turns = count_turns(message_count)
    occurred_at = now if now is not None else int(time.time() * 1000)
    force_flag = payload.force_flag is True

    def verdict(decision: str, reason: str, blacklist_hit: bool = False) -> CaptureDecision:
        return CaptureDecision(
            mode=policy.mode,
            decision=decision,
            reason=reason,
            message_count=message_count,
            turn_count=turns,
            blacklist_hit=blacklist_hit,
            force_flag=force_flag,
            intercepted=decision != COMMITTED,
            occurred_at=occurred_at,
        )

    if message_count == 0:
        return verdict(REJECTED, "empty_payload")
    if not (payload.conversation.external_id or "").strip():
        return verdict(HELD, "missing_conversation_id")
    if force_flag:
        return verdict(COMMITTED, "force_archive")
    if policy.mode == MODE_MIRROR:
        return verdict(COMMITTED, "mode_mirror")
    if policy.mode == MODE_MANUAL:
        return verdict(HELD, "mode_manual_hold")

    # smart
    keywords = normalize_keywords(policy.smart.blacklist_keywords)
    text = combined_text(payload)
    if any(keyword in text for keyword in keywords):
        return verdict(HELD, "smart_keyword_blocked", blacklist_hit=True)
    if turns < policy.smart.min_turns:
        return verdict(HELD, "smart_below_min_turns")
    return verdict(COMMITTED, "smart_pass")
