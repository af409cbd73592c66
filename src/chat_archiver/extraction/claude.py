"""Claude parser.

Claude renders only user turns with a stable marker; assistant turns are
bare siblings in the same flow container. The anchor strategy therefore
finds that container and classifies each child, rather than expanding
anchors into turn blocks.
"""

from __future__ import annotations

import logging

from bs4 import Tag

from chat_archiver.extraction.base import BaseParser
from chat_archiver.extraction.models import AI, USER, ExtractionResult, ParsedMessage
from chat_archiver.extraction.profiles import CLAUDE_PROFILE
from chat_archiver.extraction.selectors import query_all_unique

logger = logging.getLogger(__name__)


def _contains(ancestor: Tag, node: Tag) -> bool:
    return node is ancestor or any(parent is ancestor for parent in node.parents)


class ClaudeParser(BaseParser):
    profile = CLAUDE_PROFILE

    def extract_anchor_strategy(self, root: Tag) -> ExtractionResult:
        user_nodes = query_all_unique(root, self.profile.user_anchors)
        if not user_nodes:
            return ExtractionResult(source="anchor")

        container = self.find_flow_container(root, user_nodes)
        if container is None:
            return ExtractionResult(source="anchor", total_candidates=len(user_nodes))

        blocks = container.find_all(recursive=False)
        result = ExtractionResult(source="anchor", total_candidates=len(blocks))
        for block in blocks:
            if not self.is_message_block(block):
                result.dropped_noise += 1
                continue

            role = USER if self.has_user_marker(block) else AI
            text = self.extract_message_text(block, role)
            if not text:
                result.dropped_noise += 1
                continue
            result.messages.append(ParsedMessage(role=role, text=text))
        return result

    def find_flow_container(self, root: Tag, user_nodes: list[Tag]) -> Tag | None:
        """Ancestor of the first user turn whose children look most like a chat."""
        main = root.select_one("main")
        body = root.find("body")

        best: Tag | None = None
        best_score = -1
        current = user_nodes[0].parent
        while current is not None and current is not body and current.parent is not None:
            if main is not None and not _contains(main, current):
                current = current.parent
                continue

            children = current.find_all(recursive=False)
            if len(children) < 2:
                current = current.parent
                continue

            covered_users = sum(1 for node in user_nodes if _contains(current, node))
            if covered_users == 0:
                current = current.parent
                continue

            user_children = sum(1 for child in children if self.has_user_marker(child))
            message_like = [child for child in children if self.is_message_block(child)]
            non_user_children = sum(1 for child in message_like if not self.has_user_marker(child))
            if user_children == 0 or len(message_like) < 2:
                current = current.parent
                continue

            score = (
                covered_users * 10
                + user_children * 6
                + non_user_children * 5
                + len(message_like)
                - abs(len(children) - len(message_like))
            )
            if score > best_score:
                best = current
                best_score = score
            current = current.parent

        if best is not None:
            logger.debug("Claude flow container score=%d children=%d", best_score, len(best.find_all(recursive=False)))
        return best
