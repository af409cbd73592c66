"""Profile-driven parsers for the remaining chat platforms."""

from __future__ import annotations

import logging

from chat_archiver.config import MAX_TITLE_LENGTH, UNTITLED_CONVERSATION
from chat_archiver.extraction.base import BaseParser
from chat_archiver.extraction.profiles import (
    CHATGPT_PROFILE,
    DEEPSEEK_PROFILE,
    DOUBAO_PROFILE,
    GEMINI_PROFILE,
    QWEN_PROFILE,
)
from chat_archiver.extraction.selectors import normalize_whitespace
from chat_archiver.page.snapshot import PageSnapshot

logger = logging.getLogger(__name__)


class ChatGPTParser(BaseParser):
    profile = CHATGPT_PROFILE


class GeminiParser(BaseParser):
    profile = GEMINI_PROFILE


class DeepSeekParser(BaseParser):
    profile = DEEPSEEK_PROFILE


class DoubaoParser(BaseParser):
    profile = DOUBAO_PROFILE


class QwenParser(BaseParser):
    """Qwen keeps a history sidebar full of message-like nodes.

    Extraction is scoped to the highest-scoring conversation root, and the
    document title is only trusted when it contains no product placeholder.
    """

    profile = QWEN_PROFILE

    # Boundaries this close to the start usually belong to a version string
    # or an abbreviation, not the end of a sentence.
    MIN_BOUNDARY_INDEX = 10

    def get_title(self, page: PageSnapshot) -> str:
        try:
            first_user = self._title_from_first_user_message(page)
            if first_user:
                return first_user
        except Exception as e:
            logger.warning(f"{self.platform} title lookup failed: {e}")

        document_title = self.to_concise_title(page.document_title)
        if self.is_usable_title(document_title):
            return document_title

        heading = self._read_heading(page.root)
        if heading:
            return heading
        return UNTITLED_CONVERSATION

    def to_concise_title(self, raw_title: str) -> str:
        text = normalize_whitespace(raw_title)
        if not text:
            return ""

        boundary = -1
        for token in self.profile.title_boundary_chars:
            index = text.find(token)
            if index <= self.MIN_BOUNDARY_INDEX:
                continue
            if boundary == -1 or index < boundary:
                boundary = index
        if boundary >= 0:
            text = text[: boundary + 1]
        return text[:MAX_TITLE_LENGTH].strip()

    def is_usable_title(self, title: str) -> bool:
        if not title or len(title.strip()) <= 3:
            return False
        normalized = title.strip().lower()
        return not any(generic in normalized for generic in self.profile.generic_titles)
