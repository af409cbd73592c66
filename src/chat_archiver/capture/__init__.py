"""Capture gating, policy settings, and the observation loop."""

from chat_archiver.capture.models import (
    CaptureDecision,
    CapturePayload,
    CapturePolicy,
    CaptureResult,
    ConversationDraft,
    SmartConfig,
    TransientStatus,
)
from chat_archiver.capture.gate import decide

__all__ = [
    "CaptureDecision",
    "CapturePayload",
    "CapturePolicy",
    "CaptureResult",
    "ConversationDraft",
    "SmartConfig",
    "TransientStatus",
    "decide",
]
