"""Data models for the conversation store."""

from __future__ import annotations

from dataclasses import dataclass, field

STATUS_OK = "ok"
STATUS_WARNING = "warning"
STATUS_BLOCKED = "blocked"


@dataclass
class StoredConversation:
    """A conversation row from the store."""

    id: int
    external_id: str
    platform: str
    title: str
    snippet: str
    source_url: str
    created_at: int  # epoch ms
    updated_at: int  # epoch ms
    message_count: int
    turn_count: int
    source_created_at: int | None = None
    topic_id: int | None = None
    archived: bool = False
    trashed: bool = False
    starred: bool = False
    tags: list[str] = field(default_factory=list)


@dataclass
class StoredMessage:
    """A message row, owned by its conversation."""

    id: int
    conversation_id: int
    role: str  # "user" | "ai"
    text: str
    created_at: int  # epoch ms


@dataclass
class StorageUsageSnapshot:
    origin_used: int
    origin_quota: int | None
    local_used: int
    soft_limit_bytes: int
    hard_limit_bytes: int
    status: str  # "ok" | "warning" | "blocked"


@dataclass
class MergeResult:
    """Outcome of reconciling one capture with stored state.

    ``new_message_count`` is ``max(0, incoming - stored)``: an approximation
    when a recapture both edits and appends messages.
    """

    saved: bool
    new_message_count: int = 0
    conversation_id: int | None = None
