"""Storage quota guard.

Usage is estimated fresh on every call and compared against a soft limit
(log a warning, keep writing) and a hard limit (refuse the write).
"""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from chat_archiver.config import HARD_LIMIT_BYTES, SOFT_LIMIT_BYTES
from chat_archiver.exceptions import StorageLimitError
from chat_archiver.storage.models import (
    STATUS_BLOCKED,
    STATUS_OK,
    STATUS_WARNING,
    StorageUsageSnapshot,
)

logger = logging.getLogger(__name__)

_SIDECAR_SUFFIXES = ("-wal", "-shm", "-journal")


class StorageEstimator(ABC):
    """Source of storage usage figures."""

    @abstractmethod
    def estimate(self) -> tuple[int, int | None]:
        """Return ``(usage_bytes, quota_bytes or None)`` for the store."""
        ...

    @abstractmethod
    def local_bytes(self) -> int:
        """Bytes used by small local state (settings)."""
        ...


class FileUsageEstimator(StorageEstimator):
    """Estimate usage from the database file and its sidecar files.

    Any filesystem error degrades to zero usage rather than blocking writes.
    """

    def __init__(self, db_path: Path | str, settings_path: Path | str | None = None):
        self.db_path = Path(db_path)
        self.settings_path = Path(settings_path) if settings_path else None

    def estimate(self) -> tuple[int, int | None]:
        usage = 0
        for path in [self.db_path] + [Path(f"{self.db_path}{s}") for s in _SIDECAR_SUFFIXES]:
            try:
                if path.exists():
                    usage += path.stat().st_size
            except OSError as e:
                logger.debug("Cannot stat %s: %s", path, e)
                return 0, None

        try:
            existing = self.db_path if self.db_path.exists() else self.db_path.parent
            quota = shutil.disk_usage(existing).total
        except OSError as e:
            logger.debug("Cannot read disk quota for %s: %s", self.db_path, e)
            quota = None
        return usage, quota

    def local_bytes(self) -> int:
        if self.settings_path is None:
            return 0
        try:
            return self.settings_path.stat().st_size
        except OSError:
            return 0


def resolve_status(used: int, soft_limit: int, hard_limit: int) -> str:
    if used >= hard_limit:
        return STATUS_BLOCKED
    if used >= soft_limit:
        return STATUS_WARNING
    return STATUS_OK


class StorageGuard:
    """Checks storage usage before every write."""

    def __init__(
        self,
        estimator: StorageEstimator,
        soft_limit_bytes: int = SOFT_LIMIT_BYTES,
        hard_limit_bytes: int = HARD_LIMIT_BYTES,
    ):
        self.estimator = estimator
        self.soft_limit_bytes = soft_limit_bytes
        self.hard_limit_bytes = hard_limit_bytes

    def snapshot(self) -> StorageUsageSnapshot:
        used, quota = self.estimator.estimate()
        return StorageUsageSnapshot(
            origin_used=used,
            origin_quota=quota,
            local_used=self.estimator.local_bytes(),
            soft_limit_bytes=self.soft_limit_bytes,
            hard_limit_bytes=self.hard_limit_bytes,
            status=resolve_status(used, self.soft_limit_bytes, self.hard_limit_bytes),
        )

    def enforce_write_guard(self) -> str:
        """Return the usage status, raising when writes are blocked."""
        snapshot = self.snapshot()
        if snapshot.status == STATUS_BLOCKED:
            raise StorageLimitError()
        if snapshot.status == STATUS_WARNING:
            logger.warning(
                f"Storage is above soft limit: used={snapshot.origin_used} "
                f"soft_limit={snapshot.soft_limit_bytes}"
            )
        return snapshot.status
