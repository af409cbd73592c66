"""Per-platform selector tables consumed by the shared extraction algorithm."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Pattern

from chat_archiver.extraction import models


def _patterns(*expressions: str) -> list[Pattern[str]]:
    return [re.compile(expr, re.IGNORECASE) for expr in expressions]


_BASE_NOISE_CONTAINERS = [
    "form",
    "footer",
    "nav",
    "[role='navigation']",
    "[data-testid*='composer']",
    "[contenteditable='true']",
]

_COMMON_NOISE_TEXT = _patterns(
    r"^new chat$",
    r"^retry$",
    r"^edit$",
    r"^copy$",
    r"^regenerate$",
    r"^重新生成$",
    r"^复制$",
    r"^编辑$",
    r"^新对话$",
)

_ACTION_PREFIX = re.compile(r"^(copy|edit|retry)\s+", re.IGNORECASE)

_SESSION_QUERY_KEYS = [
    "conversation",
    "conversation_id",
    "chat",
    "chat_id",
    "session",
    "session_id",
    "id",
]

_INVALID_SESSION_IDS = {"chat", "new", "conversation", "session", "search", "history", "app"}


@dataclass
class SelectorProfile:
    """Everything platform-specific about extracting one chat UI."""

    platform: str
    hosts: list[str]
    role_anchors: list[str]
    turn_blocks: list[str]
    message_content: list[str]
    heading_selectors: list[str]
    generating: list[str]
    noise_text_patterns: list[Pattern[str]]
    noise_containers: list[str] = field(default_factory=lambda: list(_BASE_NOISE_CONTAINERS))
    # Strong user markers; the anchor strategy expands these into turns.
    user_anchors: list[str] = field(default_factory=list)
    # Controls that only render on assistant turns.
    copy_action_anchors: list[str] = field(default_factory=list)
    ai_markers: list[str] = field(default_factory=list)
    role_ancestor_hints: list[str] = field(
        default_factory=lambda: ["[data-message-author-role]", "[data-author]", "[data-role]", "[data-testid]"]
    )
    role_attributes: list[str] = field(
        default_factory=lambda: ["data-message-author-role", "data-author", "data-role"]
    )
    user_hints: tuple[str, ...] = ("user", "human")
    ai_hints: tuple[str, ...] = ("assistant", "model", "ai", "response")
    source_times: list[str] = field(default_factory=lambda: ["main time[datetime]", "article time[datetime]"])
    cleanup_patterns: list[Pattern[str]] = field(default_factory=lambda: [_ACTION_PREFIX])
    user_prefix_patterns: list[Pattern[str]] = field(default_factory=list)
    session_query_keys: list[str] = field(default_factory=lambda: list(_SESSION_QUERY_KEYS))
    session_path_patterns: list[Pattern[str]] = field(default_factory=list)
    invalid_session_ids: set[str] = field(default_factory=lambda: set(_INVALID_SESSION_IDS))
    generic_titles: set[str] = field(default_factory=set)
    title_boundary_chars: tuple[str, ...] = ("\n", "。", "？", "！", "?", "!")
    min_text_length: int = 2
    # Conversation-root discovery; empty means "whole document".
    root_selectors: list[str] = field(default_factory=list)
    root_message_hints: list[str] = field(default_factory=list)
    root_history_keywords: tuple[str, ...] = ()


CHATGPT_PROFILE = SelectorProfile(
    platform=models.CHATGPT,
    hosts=["chatgpt.com", "chat.openai.com"],
    role_anchors=[
        "[data-message-author-role='user']",
        "[data-message-author-role='assistant']",
    ],
    turn_blocks=[
        "[data-testid^='conversation-turn']",
        "[data-testid*='conversation-turn']",
        "[data-message-id]",
    ],
    message_content=[
        ".markdown",
        ".prose",
        "[data-testid*='message-content']",
        "[data-message-content]",
        "div[class*='markdown']",
        "div[class*='whitespace-pre-wrap']",
    ],
    heading_selectors=["nav h1", "main h1"],
    generating=[
        ".result-streaming",
        "[data-testid='result-streaming']",
        "[data-testid*='streaming']",
        ".typing",
        "[data-is-streaming='true']",
    ],
    noise_text_patterns=_COMMON_NOISE_TEXT + _patterns(
        r"^search chats$",
        r"^chatgpt can make mistakes\.?",
        r"^upgrade plan$",
    ),
    ai_hints=("assistant", "chatgpt", "model"),
    session_path_patterns=_patterns(r"/c/([a-zA-Z0-9_-]{8,})"),
    generic_titles={"chatgpt", "new chat"},
)

CLAUDE_PROFILE = SelectorProfile(
    platform=models.CLAUDE,
    hosts=["claude.ai"],
    user_anchors=["[data-testid='user-message']", "[data-testid*='user-message']"],
    role_anchors=[
        "[data-author='user']",
        "[data-author='human']",
        "[data-author='assistant']",
        "[data-message-author-role='user']",
        "[data-message-author-role='assistant']",
        "[data-testid*='user-message']",
        "[data-testid*='human-message']",
        "[data-testid*='assistant-message']",
        "[data-testid*='claude-message']",
        "[data-testid*='model-message']",
        "[data-testid*='response-message']",
        "[class*='font-user-message']",
        "[class*='font-claude-message']",
    ],
    turn_blocks=[
        "main [data-testid*='message']",
        "main [data-testid*='conversation']",
        "main article",
        "main [role='listitem']",
        "main [class*='message']",
    ],
    message_content=[
        "[data-testid*='message-content']",
        "[data-testid='user-message']",
        ".markdown",
        ".prose",
        "div[class*='whitespace-pre-wrap']",
        "div[class*='font-claude-message']",
        "div[class*='font-user-message']",
    ],
    heading_selectors=["nav h1", "main h1", "header h1"],
    generating=[
        "[data-is-streaming='true']",
        "[data-testid*='stream']",
        ".typing",
        ".cursor",
    ],
    noise_containers=_BASE_NOISE_CONTAINERS + ["[data-testid*='chat-input']"],
    noise_text_patterns=_COMMON_NOISE_TEXT + _patterns(
        r"^search chats$",
        r"^message copied$",
        r"^thought for\s+\d+s",
        r"^claude can make mistakes\.?",
    ),
    copy_action_anchors=["[data-testid='action-bar-copy']"],
    ai_markers=[
        "[data-testid*='assistant-message']",
        "[data-testid*='claude-message']",
        "[class*='claude-message']",
    ],
    role_ancestor_hints=["[data-author]", "[data-message-author-role]", "[data-testid]"],
    role_attributes=["data-author", "data-message-author-role"],
    user_hints=("user-message", "user", "human"),
    ai_hints=("claude-message", "assistant-message", "assistant", "claude", "model", "ai", "response"),
    cleanup_patterns=[
        re.compile(r"^Thought for\s+\d+s.*?Show more\s*Done\s*", re.IGNORECASE),
        re.compile(r"^Thought for\s+\d+s\s*", re.IGNORECASE),
        re.compile(r"^Show more\s*Done\s*", re.IGNORECASE),
        _ACTION_PREFIX,
    ],
    session_path_patterns=_patterns(r"/chat/([a-zA-Z0-9_-]{8,})"),
    generic_titles={"claude", "new chat"},
    min_text_length=2,
)

GEMINI_PROFILE = SelectorProfile(
    platform=models.GEMINI,
    hosts=["gemini.google.com"],
    role_anchors=[
        "[data-message-author-role='user']",
        "[data-message-author-role='assistant']",
        "[data-message-author-role='model']",
        "[data-role='user']",
        "[data-role='assistant']",
        "[data-role='model']",
        "[data-testid*='user']",
        "[data-testid*='model']",
        "[data-testid*='assistant']",
        "[class*='user-query']",
        "[class*='model-response']",
        "[class*='message-user']",
        "[class*='message-model']",
    ],
    turn_blocks=[
        "main [data-message-id]",
        "main [data-testid*='message']",
        "main [role='listitem']",
        "main article",
        "main [class*='message']",
        "main [class*='response']",
    ],
    message_content=[
        "[data-testid*='message-content']",
        "[data-testid*='response-content']",
        ".markdown",
        ".prose",
        "div[class*='markdown']",
        "div[class*='message-content']",
        "div[class*='response-content']",
    ],
    heading_selectors=["[role='heading']", "main h1", "header h1"],
    generating=[
        "[data-is-streaming='true']",
        "[data-testid*='streaming']",
        "[data-testid*='typing']",
        ".typing",
        ".result-streaming",
    ],
    noise_text_patterns=_COMMON_NOISE_TEXT + _patterns(
        r"^help$",
        r"^gemini can make mistakes\.?",
    ),
    user_hints=("user", "human", "prompt", "query"),
    ai_hints=("assistant", "model", "gemini", "response", "ai"),
    user_prefix_patterns=_patterns(r"^you said\s+"),
    session_query_keys=["conversation", "conversation_id", "chat", "chat_id", "id", "cid"],
    session_path_patterns=_patterns(
        r"/app/([a-zA-Z0-9_-]{8,})",
        r"/chat/([a-zA-Z0-9_-]{8,})",
        r"/c/([a-zA-Z0-9_-]{8,})",
    ),
    generic_titles={"chats", "gemini", "google gemini"},
)

DEEPSEEK_PROFILE = SelectorProfile(
    platform=models.DEEPSEEK,
    hosts=["chat.deepseek.com"],
    role_anchors=[
        "[data-role='user']",
        "[data-role='assistant']",
        "[data-message-author-role='user']",
        "[data-message-author-role='assistant']",
        "[class*='user-message']",
        "[class*='ds-markdown']",
    ],
    turn_blocks=[
        "[data-message-id]",
        "[data-virtual-list-item-key]",
        "[class*='ds-message']",
        "[class*='message-item']",
        "article",
    ],
    message_content=[
        "[class*='ds-markdown']",
        "[class*='message-content']",
        ".markdown",
        "div[class*='markdown']",
    ],
    heading_selectors=["[class*='chat-title']", "header h1", "main h1"],
    generating=[
        "[data-is-streaming='true']",
        "[class*='ds-loading']",
        "[class*='typing']",
        "[class*='stream']",
    ],
    noise_containers=_BASE_NOISE_CONTAINERS + ["aside", "[class*='sidebar']"],
    noise_text_patterns=_COMMON_NOISE_TEXT + _patterns(
        r"^deepthink",
        r"^已深度思考",
        r"^ai-generated, for reference only",
        r"^内容由 ai 生成",
    ),
    ai_markers=["[class*='ds-markdown']"],
    user_hints=("user", "human", "question"),
    ai_hints=("assistant", "ds-markdown", "answer", "ai"),
    session_path_patterns=_patterns(
        r"/a/chat/s/([a-zA-Z0-9_-]{8,})",
        r"/chat/s/([a-zA-Z0-9_-]{8,})",
        r"/s/([a-zA-Z0-9_-]{8,})",
    ),
    generic_titles={"deepseek", "deepseek - into the unknown", "new chat"},
)

QWEN_PROFILE = SelectorProfile(
    platform=models.QWEN,
    hosts=["chat.qwen.ai"],
    role_anchors=[
        ".questionItem",
        ".bubble-element",
        "[data-role='user']",
        "[data-role='assistant']",
        "[data-author='user']",
        "[data-author='assistant']",
        "[data-message-author-role='user']",
        "[data-message-author-role='assistant']",
        "[class*='user-message']",
        "[class*='assistant-message']",
        "[data-testid*='message']",
    ],
    turn_blocks=[
        "[data-msgid]",
        "[data-message-id]",
        ".chat-message-item",
        "[class*='message-item']",
        "[class*='message-row']",
        "[class*='message-block']",
        "article",
        "[role='listitem']",
    ],
    message_content=[
        ".bubble-element",
        "[class*='bubble']",
        "[data-testid*='message-content']",
        "[data-testid*='response-content']",
        ".markdown",
        ".prose",
        "div[class*='markdown']",
        "div[class*='content']",
    ],
    heading_selectors=[".conversation-title", ".chat-title", ".session-title", ".header-title", "[role='heading']", "h1"],
    generating=[
        "[data-is-streaming='true']",
        "[data-testid*='stream']",
        "[data-testid*='typing']",
        "[class*='typing']",
        "[class*='stream']",
    ],
    noise_containers=_BASE_NOISE_CONTAINERS + [
        "aside",
        "[role='complementary']",
        "[class*='history']",
        "[class*='sidebar']",
        "[class*='session-list']",
        "[id*='history']",
        "[id*='sidebar']",
    ],
    noise_text_patterns=_COMMON_NOISE_TEXT + _patterns(r"^qwen can make mistakes\.?"),
    role_ancestor_hints=["[data-role]", "[data-author]", "[data-testid]", "[class]"],
    role_attributes=["data-role", "data-author", "data-message-author-role"],
    user_hints=("questionitem", "user", "human", "prompt", "query", "question"),
    ai_hints=("bubble-element", "assistant", "model", "qwen", "reply", "response"),
    session_path_patterns=_patterns(
        r"/c/([a-zA-Z0-9_-]{8,})",
        r"/chat/([a-zA-Z0-9_-]{8,})",
        r"/conversation/([a-zA-Z0-9_-]{8,})",
    ),
    generic_titles={"qwen chat", "qwen", "download app", "qwen3-max"},
    title_boundary_chars=("。", "！", "？", "!", "?", "."),
    root_selectors=[
        "main",
        "[role='main']",
        "[class*='chat-window']",
        "[class*='thread']",
        "[class*='conversation-content']",
        "[class*='conversation']",
    ],
    root_message_hints=[
        ".questionItem",
        ".bubble-element",
        "[data-role='user']",
        "[data-role='assistant']",
        "[data-message-author-role='assistant']",
        "[data-testid*='message']",
    ],
    root_history_keywords=("history", "sidebar", "session-list", "conversation-list", "menu-list"),
)

DOUBAO_PROFILE = SelectorProfile(
    platform=models.DOUBAO,
    hosts=["www.doubao.com", "doubao.com"],
    role_anchors=[
        "[data-testid='send_message']",
        "[data-testid='receive_message']",
        "[data-testid='message-block-container']",
        ".message-content-wrapper",
        ".chat-item",
        ".message-item",
    ],
    turn_blocks=[
        "[data-testid='message-block-container']",
        "[data-message-id]",
        "[class*='message-item']",
        "article",
        "[role='listitem']",
    ],
    message_content=[
        "[data-testid='message_text_content']",
        "[data-testid*='message-content']",
        "[class*='message-content']",
        ".markdown",
        ".prose",
        "div[class*='markdown']",
    ],
    heading_selectors=[".chat-title", ".conversation-title", ".session-title", "[role='heading']", "h1"],
    generating=[
        "[data-is-streaming='true']",
        "[data-testid*='stream']",
        "[data-testid*='typing']",
        "[class*='typing']",
        "[class*='stream']",
    ],
    noise_text_patterns=_COMMON_NOISE_TEXT + _patterns(r"^doubao can make mistakes\.?"),
    role_attributes=["data-role", "data-author", "data-message-author-role", "role"],
    user_hints=("send_message", "send-message", "user", "human", "question"),
    ai_hints=("receive_message", "receive-message", "assistant", "bot", "answer"),
    source_times=["time[datetime]", "article time[datetime]"],
    session_path_patterns=_patterns(
        r"/chat/([a-zA-Z0-9_-]{8,})",
        r"/conversation/([a-zA-Z0-9_-]{8,})",
        r"/s/([a-zA-Z0-9_-]{8,})",
    ),
    invalid_session_ids=_INVALID_SESSION_IDS | {"explore"},
    generic_titles={"doubao", "豆包"},
)

PROFILES = {
    profile.platform: profile
    for profile in (
        CHATGPT_PROFILE,
        CLAUDE_PROFILE,
        GEMINI_PROFILE,
        DEEPSEEK_PROFILE,
        QWEN_PROFILE,
        DOUBAO_PROFILE,
    )
}
