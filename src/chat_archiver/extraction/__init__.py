"""DOM chat extraction for supported AI chat platforms."""

from chat_archiver.extraction.models import AI, USER, ExtractionResult, ParsedMessage, ParserStats
from chat_archiver.extraction.base import BaseParser, choose_best_extraction, dedupe_near_duplicates
from chat_archiver.extraction.registry import PARSERS, detect_platform, parser_for, parser_for_platform

__all__ = [
    "AI",
    "USER",
    "ExtractionResult",
    "ParsedMessage",
    "ParserStats",
    "BaseParser",
    "choose_best_extraction",
    "dedupe_near_duplicates",
    "PARSERS",
    "detect_platform",
    "parser_for",
    "parser_for_platform",
]
