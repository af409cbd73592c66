"""Data models for the extraction engine."""

from __future__ import annotations

from dataclasses import dataclass, field

USER = "user"
AI = "ai"

CHATGPT = "ChatGPT"
CLAUDE = "Claude"
GEMINI = "Gemini"
DEEPSEEK = "DeepSeek"
QWEN = "Qwen"
DOUBAO = "Doubao"

PLATFORMS = (CHATGPT, CLAUDE, GEMINI, DEEPSEEK, QWEN, DOUBAO)


@dataclass(frozen=True)
class ParsedMessage:
    """One role-tagged message extracted from the page."""

    role: str  # "user" | "ai"
    text: str
    html: str | None = None
    timestamp: int | None = None  # epoch ms, when the page exposes one


@dataclass
class ExtractionResult:
    """Output of one extraction strategy over a snapshot."""

    source: str  # "anchor" | "selector"
    messages: list[ParsedMessage] = field(default_factory=list)
    total_candidates: int = 0
    dropped_noise: int = 0
    dropped_unknown_role: int = 0

    @property
    def user_count(self) -> int:
        return sum(1 for m in self.messages if m.role == USER)

    @property
    def ai_count(self) -> int:
        return len(self.messages) - self.user_count


@dataclass
class ParserStats:
    """Per-pass extraction telemetry, logged after every extraction."""

    platform: str
    source: str
    total_candidates: int
    kept_messages: int
    role_distribution: dict[str, int]
    dropped_noise: int
    dropped_unknown_role: int
    duration_ms: int = 0
