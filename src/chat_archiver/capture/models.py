"""Data models for capture gating."""

from __future__ import annotations

from dataclasses import dataclass, field

from chat_archiver.extraction.models import ParsedMessage

MODE_MIRROR = "mirror"
MODE_SMART = "smart"
MODE_MANUAL = "manual"
CAPTURE_MODES = (MODE_MIRROR, MODE_SMART, MODE_MANUAL)

COMMITTED = "committed"
HELD = "held"
REJECTED = "rejected"

DEFAULT_MIN_TURNS = 3


@dataclass
class ConversationDraft:
    """Conversation metadata built from one extraction pass.

    An empty ``external_id`` is allowed but degraded: the gate holds it.
    """

    external_id: str
    platform: str
    title: str
    snippet: str
    source_url: str
    captured_at: int  # epoch ms
    updated_at: int  # epoch ms
    message_count: int
    turn_count: int
    source_created_at: int | None = None
    tags: list[str] = field(default_factory=list)
    topic_id: int | None = None
    archived: bool = False
    trashed: bool = False
    starred: bool = False


@dataclass
class CapturePayload:
    conversation: ConversationDraft
    messages: list[ParsedMessage]
    force_flag: bool = False


@dataclass(frozen=True)
class CaptureDecision:
    """Gate outcome for a single capture attempt; never persisted."""

    mode: str
    decision: str  # "committed" | "held" | "rejected"
    reason: str
    message_count: int
    turn_count: int
    blacklist_hit: bool
    force_flag: bool
    intercepted: bool
    occurred_at: int  # epoch ms


@dataclass
class SmartConfig:
    min_turns: int = DEFAULT_MIN_TURNS
    blacklist_keywords: list[str] = field(default_factory=list)


@dataclass
class CapturePolicy:
    mode: str = MODE_MIRROR
    smart: SmartConfig = field(default_factory=SmartConfig)

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "smart_config": {
                "min_turns": self.smart.min_turns,
                "blacklist_keywords": list(self.smart.blacklist_keywords),
            },
        }


@dataclass
class CaptureResult:
    saved: bool
    new_message_count: int
    decision: CaptureDecision
    conversation_id: int | None = None


@dataclass
class TransientStatus:
    """What the transient store holds for the current page."""

    available: bool
    reason: str  # "ok" | "no_transient"
    platform: str | None = None
    external_id: str | None = None
    transient_key: str | None = None
    message_count: int | None = None
    turn_count: int | None = None
    last_decision: CaptureDecision | None = None
    updated_at: int | None = None
