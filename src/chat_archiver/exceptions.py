"""Unified exception hierarchy for chat-archiver."""


class ChatArchiverError(Exception):
    """Base exception for all chat-archiver errors."""


# Capture
class CaptureError(ChatArchiverError):
    """Base exception for capture operations."""


class TransientNotFoundError(CaptureError):
    """No retained capture payload is available for a force archive."""


# Configuration
class ConfigError(ChatArchiverError):
    """Capture settings could not be read or written."""


class SettingsUnavailableError(ConfigError):
    """The settings store location does not exist."""


# Storage
class StorageError(ChatArchiverError):
    """Base exception for conversation store operations."""


class StorageLimitError(StorageError):
    """Origin storage usage reached the hard limit; writes are blocked."""

    code = "STORAGE_HARD_LIMIT_REACHED"

    def __init__(self, message: str = "STORAGE_HARD_LIMIT_REACHED"):
        super().__init__(message)


class PersistError(StorageError):
    """The storage engine failed while writing."""


class ConversationNotFoundError(StorageError):
    """No stored conversation has the requested id."""


# Page
class PageFetchError(ChatArchiverError):
    """Failed to fetch a conversation page."""
