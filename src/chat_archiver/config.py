"""Central configuration for paths and constants."""

import os
from pathlib import Path

# Data directory; override with CHAT_ARCHIVER_DATA_DIR env var
DATA_DIR = Path(
    os.environ.get("CHAT_ARCHIVER_DATA_DIR", str(Path.home() / ".chat-archiver"))
)

SQLITE_PATH = DATA_DIR / "conversations.db"
SETTINGS_PATH = DATA_DIR / "settings.json"

LOG_LEVEL = os.environ.get("CHAT_ARCHIVER_LOG_LEVEL", "WARNING")

# Observation
DEBOUNCE_SECONDS = 1.0

# Conversation records
SNIPPET_LENGTH = 100
MAX_TITLE_LENGTH = 120
UNTITLED_CONVERSATION = "Untitled Conversation"

# Storage quota (bytes)
SOFT_LIMIT_BYTES = 900 * 1024 * 1024
HARD_LIMIT_BYTES = 1024 * 1024 * 1024
