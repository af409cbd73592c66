"""Local conversation store, quota guard, and dedup/merge engine."""

from chat_archiver.storage.models import MergeResult, StoredConversation, StoredMessage, StorageUsageSnapshot
from chat_archiver.storage.database import ConversationStore
from chat_archiver.storage.limits import FileUsageEstimator, StorageEstimator, StorageGuard
from chat_archiver.storage.dedup import save_or_merge

__all__ = [
    "MergeResult",
    "StoredConversation",
    "StoredMessage",
    "StorageUsageSnapshot",
    "ConversationStore",
    "FileUsageEstimator",
    "StorageEstimator",
    "StorageGuard",
    "save_or_merge",
]
