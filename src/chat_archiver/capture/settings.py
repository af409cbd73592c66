"""Capture policy normalization and persistence."""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any

from chat_archiver.capture.models import (
    DEFAULT_MIN_TURNS,
    MODE_MANUAL,
    MODE_MIRROR,
    MODE_SMART,
    CapturePolicy,
    SmartConfig,
)
from chat_archiver.exceptions import ConfigError, SettingsUnavailableError

logger = logging.getLogger(__name__)

SETTINGS_KEY = "capture_settings"

MIN_TURNS_LIMIT = 1
MAX_TURNS_LIMIT = 20

# Mode names written by earlier releases are still accepted.
LEGACY_MODE_MAP = {
    "full_mirror": MODE_MIRROR,
    "smart_denoise": MODE_SMART,
    "curator": MODE_MANUAL,
    MODE_MIRROR: MODE_MIRROR,
    MODE_SMART: MODE_SMART,
    MODE_MANUAL: MODE_MANUAL,
}


def normalize_mode(value: Any) -> str:
    if not isinstance(value, str):
        return MODE_MIRROR
    return LEGACY_MODE_MAP.get(value.strip().lower(), MODE_MIRROR)


def normalize_min_turns(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_MIN_TURNS
    if not math.isfinite(number):
        return DEFAULT_MIN_TURNS
    # Half-up rounding, not banker's rounding.
    return min(MAX_TURNS_LIMIT, max(MIN_TURNS_LIMIT, math.floor(number + 0.5)))


def normalize_blacklist_keywords(value: Any) -> list[str]:
    """Accept a list or a comma-separated string; trim and de-duplicate."""
    if isinstance(value, (list, tuple)):
        raw_items = value
    elif isinstance(value, str):
        raw_items = value.split(",")
    else:
        raw_items = []

    keywords: list[str] = []
    seen: set[str] = set()
    for raw in raw_items:
        keyword = str(raw).strip()
        if not keyword or keyword in seen:
            continue
        seen.add(keyword)
        keywords.append(keyword)
    return keywords


def normalize_capture_policy(raw: Any) -> CapturePolicy:
    """Coerce a stored or user-supplied mapping into a valid policy."""
    if isinstance(raw, CapturePolicy):
        raw = raw.to_dict()
    if not isinstance(raw, dict):
        return CapturePolicy()

    smart = raw.get("smart_config")
    if not isinstance(smart, dict):
        smart = {}
    return CapturePolicy(
        mode=normalize_mode(raw.get("mode")),
        smart=SmartConfig(
            min_turns=normalize_min_turns(smart.get("min_turns")),
            blacklist_keywords=normalize_blacklist_keywords(smart.get("blacklist_keywords")),
        ),
    )


class CaptureSettingsStore:
    """Capture policy kept in a JSON document under ``capture_settings``.

    Other top-level keys in the document are preserved on save.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def load(self) -> CapturePolicy:
        document = self._read_document()
        return normalize_capture_policy(document.get(SETTINGS_KEY))

    def save(self, policy: CapturePolicy | dict) -> CapturePolicy:
        normalized = normalize_capture_policy(policy)
        document = self._read_document()
        document[SETTINGS_KEY] = normalized.to_dict()
        try:
            self.path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot write capture settings to {self.path}: {e}") from e
        logger.info(f"Saved capture settings: mode={normalized.mode}")
        return normalized

    def _read_document(self) -> dict:
        if not self.path.parent.is_dir():
            raise SettingsUnavailableError(f"Settings directory does not exist: {self.path.parent}")
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read capture settings from {self.path}: {e}") from e
        if not isinstance(document, dict):
            raise ConfigError(f"Capture settings file {self.path} is not a JSON object")
        return document
