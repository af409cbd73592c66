"""Map page hosts to platform parsers."""

from __future__ import annotations

from urllib.parse import urlparse

from chat_archiver.extraction.base import BaseParser
from chat_archiver.extraction.claude import ClaudeParser
from chat_archiver.extraction.platforms import (
    ChatGPTParser,
    DeepSeekParser,
    DoubaoParser,
    GeminiParser,
    QwenParser,
)
from chat_archiver.page.snapshot import PageSnapshot

PARSERS: dict[str, type[BaseParser]] = {
    cls.profile.platform: cls
    for cls in (
        ChatGPTParser,
        ClaudeParser,
        GeminiParser,
        DeepSeekParser,
        QwenParser,
        DoubaoParser,
    )
}


def detect_platform(url: str) -> str | None:
    """Platform name for ``url`` or None when no parser recognizes the host."""
    host = (urlparse(url).hostname or "").lower()
    if not host:
        return None
    for platform, cls in PARSERS.items():
        for known in cls.profile.hosts:
            if host == known or host.endswith(f".{known}"):
                return platform
    return None


def parser_for_platform(platform: str) -> BaseParser:
    try:
        return PARSERS[platform]()
    except KeyError:
        raise ValueError(f"Unsupported platform: {platform}") from None


def parser_for(page: PageSnapshot) -> BaseParser | None:
    """A fresh parser for the page's platform, or None if unsupported."""
    platform = detect_platform(page.url)
    if platform is None:
        return None
    return parser_for_platform(platform)
