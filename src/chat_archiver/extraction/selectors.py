"""Primitive DOM query helpers shared by all platform parsers.

All helpers are pure and operate on BeautifulSoup ``Tag`` objects. Node
identity matters here: bs4 compares tags structurally with ``==``, so
de-duplication always goes through ``id()``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Pattern

import dateutil.parser as date_parser
from bs4 import Tag

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_DISPLAY_NONE_RE = re.compile(r"display\s*:\s*none", re.IGNORECASE)


@dataclass
class NormalizedCandidates:
    """Candidates that survived noise filtering."""

    nodes: list[Tag] = field(default_factory=list)
    dropped_noise: int = 0


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def safe_text(node: Tag | None) -> str:
    """Text content of ``node``; empty string when missing or unreadable."""
    if node is None:
        return ""
    try:
        return node.get_text(" ", strip=True)
    except (AttributeError, TypeError, RecursionError) as e:
        logger.debug("Failed reading text content: %s", e)
        return ""


def query_first(root: Tag, selectors: Iterable[str]) -> Tag | None:
    """First match of the first selector that matches anything."""
    for selector in selectors:
        el = root.select_one(selector)
        if el is not None:
            return el
    return None


def query_first_within(node: Tag, selectors: Iterable[str]) -> Tag | None:
    return query_first(node, selectors)


def query_all_unique(root: Tag, selectors: Iterable[str]) -> list[Tag]:
    """Union of matches across all selectors, unique and in document order."""
    found: list[Tag] = []
    for selector in selectors:
        found.extend(root.select(selector))
    return unique_in_document_order(found)


def has_any_selector(node: Tag, selectors: Iterable[str]) -> bool:
    return any(node.select_one(selector) is not None for selector in selectors)


def matches_any(node: Tag, selectors: Iterable[str]) -> bool:
    selector_list = ", ".join(selectors)
    if not selector_list or not isinstance(node, Tag):
        return False
    return node.css.match(selector_list)


def closest_any(node: Tag | None, selectors: Iterable[str]) -> Tag | None:
    """Nearest inclusive ancestor of ``node`` matching any selector."""
    selector_list = ", ".join(selectors)
    if node is None or not selector_list:
        return None
    return node.css.closest(selector_list)


def matches_or_contains(node: Tag, selectors: Iterable[str]) -> bool:
    selectors = list(selectors)
    return matches_any(node, selectors) or has_any_selector(node, selectors)


def is_hidden(node: Tag) -> bool:
    """Markup-level stand-in for a zero rendered height."""
    if node.has_attr("hidden"):
        return True
    if (node.get("aria-hidden") or "").lower() == "true":
        return True
    return bool(_DISPLAY_NONE_RE.search(node.get("style") or ""))


def class_string(node: Tag) -> str:
    classes = node.get("class") or []
    if isinstance(classes, str):
        return classes
    return " ".join(classes)


def document_position(node: Tag) -> tuple[int, ...]:
    """Sibling-index path from the tree root; sorts in document order."""
    path: list[int] = []
    current = node
    while current.parent is not None:
        parent = current.parent
        index = next(i for i, child in enumerate(parent.contents) if child is current)
        path.append(index)
        current = parent
    return tuple(reversed(path))


def unique_in_document_order(nodes: Iterable[Tag]) -> list[Tag]:
    """Drop repeated nodes (by identity) and sort by document position."""
    seen: set[int] = set()
    unique: list[Tag] = []
    for node in nodes:
        if node is None or id(node) in seen:
            continue
        seen.add(id(node))
        unique.append(node)
    unique.sort(key=document_position)
    return unique


def normalize_candidate_nodes(
    nodes: Iterable[Tag],
    min_text_length: int,
    noise_container_selectors: list[str],
    noise_text_patterns: list[Pattern[str]],
) -> NormalizedCandidates:
    """Apply the container, length, and noise-phrase filters to candidates."""
    result = NormalizedCandidates()
    for node in unique_in_document_order(nodes):
        if closest_any(node, noise_container_selectors) is not None or is_hidden(node):
            result.dropped_noise += 1
            continue

        text = normalize_whitespace(safe_text(node))
        if len(text) < min_text_length:
            result.dropped_noise += 1
            continue

        if any(pattern.search(text) for pattern in noise_text_patterns):
            result.dropped_noise += 1
            continue

        result.nodes.append(node)
    return result


def parse_datetime_ms(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(date_parser.isoparse(value.strip()).timestamp() * 1000)
    except (ValueError, OverflowError):
        return None


def extract_earliest_time(root: Tag, selectors: Iterable[str]) -> int | None:
    """Earliest ``datetime`` attribute (epoch ms) among matched elements."""
    earliest: int | None = None
    for node in query_all_unique(root, selectors):
        ts = parse_datetime_ms(node.get("datetime"))
        if ts is None:
            continue
        if earliest is None or ts < earliest:
            earliest = ts
    return earliest
