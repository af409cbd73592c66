"""Page snapshots and shared-page fetching."""

from chat_archiver.page.snapshot import PageSnapshot
from chat_archiver.page.fetcher import PageFetcher

__all__ = [
    "PageSnapshot",
    "PageFetcher",
]
