"""Shared multi-strategy extraction algorithm.

Every platform parser runs two independent strategies over the same page
snapshot, scores them, keeps the better one, and finally squeezes out
near-duplicate fragments left behind by streaming re-renders. Platform
differences live in a :class:`SelectorProfile`; subclasses only override the
hooks whose *shape* differs (anchor expansion, conversation root).
"""

from __future__ import annotations

import logging
import re
import time
from typing import Iterable

from bs4 import Tag

from chat_archiver.config import MAX_TITLE_LENGTH, UNTITLED_CONVERSATION
from chat_archiver.extraction.models import (
    AI,
    USER,
    ExtractionResult,
    ParsedMessage,
    ParserStats,
)
from chat_archiver.extraction.profiles import SelectorProfile
from chat_archiver.extraction.selectors import (
    class_string,
    closest_any,
    extract_earliest_time,
    has_any_selector,
    is_hidden,
    matches_any,
    matches_or_contains,
    normalize_candidate_nodes,
    normalize_whitespace,
    query_all_unique,
    query_first,
    query_first_within,
    safe_text,
    unique_in_document_order,
)
from chat_archiver.page.snapshot import PageSnapshot

logger = logging.getLogger(__name__)

# How many of the most recently kept messages a new message is compared to.
NEAR_DUPLICATE_WINDOW = 2

_SESSION_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
MIN_SESSION_ID_LENGTH = 8

USER_ROLE_VALUES = {"user", "human"}
AI_ROLE_VALUES = {"assistant", "ai", "model", "bot", "chatgpt", "claude", "gemini", "qwen", "deepseek"}


def message_signature(role: str, text: str) -> str:
    """Cheap equality key for a message: ``role|normalized text``."""
    return f"{role}|{normalize_whitespace(text)}"


def score_extraction(result: ExtractionResult) -> int:
    """Reward balanced user/assistant turns over many same-role nodes."""
    if not result.messages:
        return 0
    user_count = result.user_count
    ai_count = result.ai_count
    balanced_pairs = min(user_count, ai_count)
    return balanced_pairs * 8 + ai_count * 4 + user_count * 2 + len(result.messages)


def choose_best_extraction(anchor: ExtractionResult, selector: ExtractionResult) -> ExtractionResult:
    anchor_score = score_extraction(anchor)
    selector_score = score_extraction(selector)

    if anchor_score == 0 and selector_score == 0:
        return anchor
    if anchor_score > selector_score:
        return anchor
    if selector_score > anchor_score:
        return selector
    return anchor if len(anchor.messages) >= len(selector.messages) else selector


def dedupe_near_duplicates(
    messages: Iterable[ParsedMessage],
    window: int = NEAR_DUPLICATE_WINDOW,
) -> list[ParsedMessage]:
    """Drop a message repeating one of the last ``window`` kept messages.

    The lookback is bounded on purpose: a user repeating "ok" five turns
    later is a real message, a fragment duplicated by a re-render is not.
    """
    kept: list[ParsedMessage] = []
    kept_signatures: list[str] = []
    for message in messages:
        signature = message_signature(message.role, message.text)
        recent = kept_signatures[-window:] if window > 0 else []
        if signature in recent:
            continue
        kept.append(message)
        kept_signatures.append(signature)
    return kept


def role_from_attribute(value: str | None) -> str | None:
    if not value or not isinstance(value, str):
        return None
    normalized = value.strip().lower()
    if normalized in USER_ROLE_VALUES:
        return USER
    if normalized in AI_ROLE_VALUES:
        return AI
    return None


def _hint_token_re(hint: str) -> re.Pattern[str]:
    return re.compile(rf"(^|[-_:\s]){re.escape(hint)}([-_:\s]|$)")


def role_from_hint(
    value: str | None,
    user_hints: tuple[str, ...],
    ai_hints: tuple[str, ...],
) -> str | None:
    """Infer a role from a class list or test id.

    Whole-token matches win over substring matches; hints of two characters
    or fewer (``ai``) are only ever matched as whole tokens.
    """
    if not value or not isinstance(value, str):
        return None
    normalized = value.lower()

    for role, hints in ((USER, user_hints), (AI, ai_hints)):
        if any(_hint_token_re(hint).search(normalized) for hint in hints):
            return role
    for role, hints in ((USER, user_hints), (AI, ai_hints)):
        if any(hint in normalized for hint in hints if len(hint) > 2):
            return role
    return None


class BaseParser:
    """Platform parser driven by a :class:`SelectorProfile`."""

    profile: SelectorProfile

    def __init__(self) -> None:
        self._latest_page: PageSnapshot | None = None
        self._latest_messages: list[ParsedMessage] = []

    @property
    def platform(self) -> str:
        return self.profile.platform

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect(self, page: PageSnapshot) -> str | None:
        host = page.host
        for known in self.profile.hosts:
            if host == known or host.endswith(f".{known}"):
                return self.platform
        return None

    def get_messages(self, page: PageSnapshot) -> list[ParsedMessage]:
        """Extract the conversation; an empty list means nothing to capture."""
        started = time.perf_counter()
        try:
            root = self.conversation_root(page)
            anchor_result = self.extract_anchor_strategy(root)
            selector_result = self.extract_selector_strategy(root)
        except Exception as e:
            logger.warning(f"{self.platform} extraction failed, treating as empty: {e}")
            return []

        chosen = choose_best_extraction(anchor_result, selector_result)
        deduped = dedupe_near_duplicates(chosen.messages)

        role_distribution = {USER: 0, AI: 0}
        for message in deduped:
            role_distribution[message.role] += 1

        stats = ParserStats(
            platform=self.platform,
            source=chosen.source,
            total_candidates=chosen.total_candidates,
            kept_messages=len(deduped),
            role_distribution=role_distribution,
            dropped_noise=chosen.dropped_noise + (len(chosen.messages) - len(deduped)),
            dropped_unknown_role=chosen.dropped_unknown_role,
            duration_ms=round((time.perf_counter() - started) * 1000),
        )

        self._latest_page = page
        self._latest_messages = deduped
        self._log_stats(stats, deduped)
        return deduped

    def get_title(self, page: PageSnapshot) -> str:
        """Heading, else first user message, else document title, else a fallback."""
        try:
            heading = self._read_heading(page.root)
            if heading:
                return heading

            first_user = self._title_from_first_user_message(page)
            if first_user:
                return first_user
        except Exception as e:
            logger.warning(f"{self.platform} title lookup failed: {e}")

        document_title = self.to_concise_title(page.document_title)
        if self.is_usable_title(document_title):
            return document_title
        return UNTITLED_CONVERSATION

    def get_external_id(self, page: PageSnapshot) -> str | None:
        """Platform-native session id from the URL, when one is present."""
        query = page.query
        for key in self.profile.session_query_keys:
            for value in query.get(key, []):
                normalized = self.normalize_session_id(value)
                if normalized:
                    return normalized

        for pattern in self.profile.session_path_patterns:
            match = pattern.search(page.path)
            if match:
                normalized = self.normalize_session_id(match.group(1))
                if normalized:
                    return normalized
        return None

    def is_generating(self, page: PageSnapshot) -> bool:
        try:
            return query_first(page.root, self.profile.generating) is not None
        except Exception as e:
            logger.warning(f"{self.platform} generating check failed: {e}")
            return False

    def get_source_created_at(self, page: PageSnapshot) -> int | None:
        try:
            return extract_earliest_time(page.root, self.profile.source_times)
        except Exception as e:
            logger.warning(f"{self.platform} source time lookup failed: {e}")
            return None

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def conversation_root(self, page: PageSnapshot) -> Tag:
        """Element both strategies search under."""
        if not self.profile.root_selectors:
            return page.root

        best: Tag | None = None
        best_score = 0
        for selector in self.profile.root_selectors:
            for candidate in page.root.select(selector):
                score = self._score_root(candidate, selector)
                if best is None or score > best_score:
                    best = candidate
                    best_score = score

        if best is not None and best_score > 0:
            return best
        return page.body

    def extract_anchor_strategy(self, root: Tag) -> ExtractionResult:
        """Expand each role anchor into the smallest turn block around it."""
        anchors = query_all_unique(root, self.profile.role_anchors)
        if not anchors:
            return ExtractionResult(source="anchor")

        anchor_of: dict[int, Tag] = {}
        blocks = []
        for anchor in anchors:
            block = self._resolve_anchor_node(anchor)
            # Prefer an inner anchor over the block itself when both are anchors.
            known = anchor_of.get(id(block))
            if known is None or known is block:
                anchor_of[id(block)] = anchor
            blocks.append(block)
        resolved = unique_in_document_order(blocks)
        return self._parse_candidates("anchor", resolved, anchor_of)

    def extract_selector_strategy(self, root: Tag) -> ExtractionResult:
        return self._parse_candidates("selector", self.collect_selector_candidates(root))

    def collect_selector_candidates(self, root: Tag) -> list[Tag]:
        candidates = list(query_all_unique(root, self.profile.role_anchors))
        candidates.extend(self._collect_copy_action_candidates(root))

        for turn in query_all_unique(root, self.profile.turn_blocks):
            split = query_all_unique(turn, self.profile.role_anchors)
            if split:
                candidates.extend(split)
            else:
                candidates.append(turn)

        return unique_in_document_order(candidates)

    def _parse_candidates(
        self,
        source: str,
        nodes: list[Tag],
        anchor_of: dict[int, Tag] | None = None,
    ) -> ExtractionResult:
        """Filter, role-tag, and parse candidates.

        ``anchor_of`` maps an expanded turn block (by ``id``) to the anchor it
        was expanded from; the anchor's role is used when the block has none.
        """
        profile = self.profile
        normalized = normalize_candidate_nodes(
            nodes,
            min_text_length=profile.min_text_length,
            noise_container_selectors=profile.noise_containers,
            noise_text_patterns=profile.noise_text_patterns,
        )
        result = ExtractionResult(
            source=source,
            total_candidates=len(nodes),
            dropped_noise=normalized.dropped_noise,
        )

        for node in normalized.nodes:
            role = self.infer_role(node)
            anchor = anchor_of.get(id(node)) if anchor_of else None
            if role is None and anchor is not None and anchor is not node:
                role = self.infer_role(anchor)
            if role is None:
                result.dropped_unknown_role += 1
                continue
            message = self.parse_message_node(node, role)
            if message is None:
                result.dropped_noise += 1
                continue
            result.messages.append(message)

        return result

    def _resolve_anchor_node(self, anchor: Tag) -> Tag:
        current = anchor
        while current is not None and current.parent is not None:
            if matches_any(current, self.profile.turn_blocks):
                if current is anchor:
                    return current
                # A block holding several anchors is a container, not a turn.
                if len(query_all_unique(current, self.profile.role_anchors)) <= 1:
                    return current
                return anchor
            current = current.parent
        return anchor

    def _collect_copy_action_candidates(self, root: Tag) -> list[Tag]:
        if not self.profile.copy_action_anchors:
            return []

        resolved = []
        for action in query_all_unique(root, self.profile.copy_action_anchors):
            node = self._resolve_copy_action_node(action)
            if node is not None:
                resolved.append(node)

        by_signature: dict[str, Tag] = {}
        for node in unique_in_document_order(resolved):
            text = self.extract_message_text(node, AI)
            if not text:
                continue
            by_signature.setdefault(f"{text[:220]}::{len(text)}", node)
        return unique_in_document_order(by_signature.values())

    def _resolve_copy_action_node(self, action: Tag) -> Tag | None:
        current = action.parent
        while current is not None and current.parent is not None:
            if matches_any(current, self.profile.noise_containers):
                return None

            text = self.extract_message_text(current, AI)
            if 12 <= len(text) <= 12000 and not self.has_user_marker(current):
                if has_any_selector(current, self.profile.copy_action_anchors):
                    return current
            current = current.parent
        return None

    # ------------------------------------------------------------------
    # Node parsing
    # ------------------------------------------------------------------

    def infer_role(self, node: Tag) -> str | None:
        """Attribute, class hint, test-id hint, ancestor, then structural markers."""
        role = self._role_from_node(node)
        if role:
            return role

        ancestor = closest_any(node.parent, self.profile.role_ancestor_hints)
        if ancestor is not None:
            role = self._role_from_node(ancestor)
            if role:
                return role

        if self.has_user_marker(node):
            return USER
        if self.profile.copy_action_anchors and has_any_selector(node, self.profile.copy_action_anchors):
            return AI
        if self.profile.ai_markers and matches_or_contains(node, self.profile.ai_markers):
            return AI
        return None

    def _role_from_node(self, node: Tag) -> str | None:
        for attribute in self.profile.role_attributes:
            role = role_from_attribute(node.get(attribute))
            if role:
                return role

        hints = (self.profile.user_hints, self.profile.ai_hints)
        role = role_from_hint(class_string(node), *hints)
        if role:
            return role
        return role_from_hint(node.get("data-testid"), *hints)

    def has_user_marker(self, node: Tag) -> bool:
        if not self.profile.user_anchors:
            return False
        return matches_or_contains(node, self.profile.user_anchors)

    def parse_message_node(self, node: Tag, role: str) -> ParsedMessage | None:
        content = self._content_node(node, role)
        text = self.clean_text(safe_text(node if content is None else content), role)
        if not text:
            return None
        html = content.decode_contents() if content is not None else None
        return ParsedMessage(role=role, text=text, html=html)

    def extract_message_text(self, node: Tag, role: str) -> str:
        content = self._content_node(node, role)
        return self.clean_text(safe_text(node if content is None else content), role)

    def _content_node(self, node: Tag, role: str) -> Tag | None:
        if role == USER and self.profile.user_anchors:
            content = query_first_within(node, self.profile.user_anchors)
            if content is not None:
                return content
        return query_first_within(node, self.profile.message_content)

    def clean_text(self, raw_text: str, role: str) -> str:
        text = normalize_whitespace(raw_text)
        for pattern in self.profile.cleanup_patterns:
            text = pattern.sub("", text, count=1).strip()
        if role == USER:
            for pattern in self.profile.user_prefix_patterns:
                text = pattern.sub("", text, count=1).strip()
        return text

    def is_message_block(self, node: Tag) -> bool:
        if matches_any(node, self.profile.noise_containers) or is_hidden(node):
            return False
        text = self.clean_text(safe_text(node), AI)
        if len(text) < 4:
            return False
        return not any(p.search(text) for p in self.profile.noise_text_patterns)

    # ------------------------------------------------------------------
    # Titles and ids
    # ------------------------------------------------------------------

    def to_concise_title(self, raw_title: str) -> str:
        """Cut at the first sentence boundary and cap the length."""
        text = (raw_title or "").strip()
        for pattern in self.profile.user_prefix_patterns:
            text = pattern.sub("", text, count=1).strip()
        if not text:
            return ""

        boundary = -1
        for token in self.profile.title_boundary_chars:
            index = text.find(token)
            if index != -1 and (boundary == -1 or index < boundary):
                boundary = index
        if boundary >= 0:
            text = text[: boundary + 1]
        return normalize_whitespace(text)[:MAX_TITLE_LENGTH].strip()

    def is_usable_title(self, title: str) -> bool:
        if not title:
            return False
        return title.strip().lower() not in self.profile.generic_titles

    def normalize_session_id(self, value: str | None) -> str | None:
        if not value:
            return None
        normalized = value.strip()
        if len(normalized) < MIN_SESSION_ID_LENGTH:
            return None
        if not _SESSION_ID_RE.match(normalized):
            return None
        if normalized.lower() in self.profile.invalid_session_ids:
            return None
        return normalized

    def _read_heading(self, root: Tag) -> str | None:
        for selector in self.profile.heading_selectors:
            node = root.select_one(selector)
            title = normalize_whitespace(safe_text(node))[:MAX_TITLE_LENGTH].strip()
            if self.is_usable_title(title):
                return title
        return None

    def _title_from_first_user_message(self, page: PageSnapshot) -> str | None:
        if self._latest_page is page:
            messages = self._latest_messages
        else:
            messages = self.get_messages(page)

        for message in messages:
            if message.role != USER or not message.text.strip():
                continue
            title = self.to_concise_title(message.text)
            if self.is_usable_title(title):
                return title
        return None

    def _score_root(self, candidate: Tag, selector: str) -> int:
        score = 10 if selector in ("main", "[role='main']") else 0
        for hint in self.profile.root_message_hints:
            score += min(len(candidate.select(hint)), 8)
        if closest_any(candidate, ["aside", "[role='complementary']"]) is not None:
            score -= 20

        marker = " ".join(
            [
                candidate.get("id") or "",
                class_string(candidate),
                candidate.get("data-testid") or "",
                candidate.get("aria-label") or "",
            ]
        ).lower()
        if any(keyword in marker for keyword in self.profile.root_history_keywords):
            score -= 30
        return score

    def _log_stats(self, stats: ParserStats, messages: list[ParsedMessage]) -> None:
        logger.info(
            "%s parse stats: source=%s candidates=%d kept=%d user=%d ai=%d "
            "dropped_noise=%d dropped_unknown_role=%d duration_ms=%d",
            stats.platform,
            stats.source,
            stats.total_candidates,
            stats.kept_messages,
            stats.role_distribution[USER],
            stats.role_distribution[AI],
            stats.dropped_noise,
            stats.dropped_unknown_role,
            stats.duration_ms,
        )
        if not messages:
            return
        if stats.role_distribution[USER] == 0 or stats.role_distribution[AI] == 0:
            samples = [normalize_whitespace(m.text)[:120] for m in messages[:3]]
            logger.warning(
                "%s parser captured only one role (source=%s): %s",
                stats.platform,
                stats.source,
                samples,
            )
