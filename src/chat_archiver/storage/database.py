"""SQLite-backed conversation store."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

from chat_archiver.config import MAX_TITLE_LENGTH
from chat_archiver.exceptions import ConversationNotFoundError, PersistError, StorageError
from chat_archiver.storage.models import StoredConversation, StoredMessage

if TYPE_CHECKING:
    from chat_archiver.capture.models import ConversationDraft

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS conversations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        external_id TEXT NOT NULL,
        platform TEXT NOT NULL,
        title TEXT NOT NULL,
        snippet TEXT NOT NULL DEFAULT '',
        source_url TEXT NOT NULL DEFAULT '',
        source_created_at INTEGER,
        created_at INTEGER NOT NULL,
        updated_at INTEGER NOT NULL,
        message_count INTEGER NOT NULL DEFAULT 0,
        turn_count INTEGER NOT NULL DEFAULT 0,
        topic_id INTEGER,
        tags TEXT NOT NULL DEFAULT '[]',
        archived INTEGER NOT NULL DEFAULT 0,
        trashed INTEGER NOT NULL DEFAULT 0,
        starred INTEGER NOT NULL DEFAULT 0
    );

    CREATE INDEX IF NOT EXISTS idx_conversations_external_id
        ON conversations(external_id);

    CREATE INDEX IF NOT EXISTS idx_conversations_platform_created
        ON conversations(platform, created_at);

    CREATE TABLE IF NOT EXISTS messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        conversation_id INTEGER NOT NULL,
        role TEXT NOT NULL,
        text TEXT NOT NULL,
        created_at INTEGER NOT NULL,
        FOREIGN KEY (conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
    );

    CREATE INDEX IF NOT EXISTS idx_messages_conv
        ON messages(conversation_id);

    CREATE INDEX IF NOT EXISTS idx_messages_conv_created
        ON messages(conversation_id, created_at);
"""


class ConversationStore:
    """Conversations and their messages in a single SQLite file.

    The connection runs in autocommit mode; writes are grouped explicitly
    with :meth:`transaction`, which takes the database write lock up front.

    Args:
        db_path: Database file, or ``":memory:"`` for a throwaway store.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = db_path
        if str(db_path) != MEMORY_DB:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(str(db_path), isolation_level=None)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys=ON")
            if str(db_path) != MEMORY_DB:
                self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.executescript(_SCHEMA)
        except sqlite3.Error as e:
            raise PersistError(f"Cannot open conversation store at {db_path}: {e}") from e
        self._in_transaction = False

    @contextmanager
    def transaction(self) -> Iterator[ConversationStore]:
        """All-or-nothing unit of work; nested calls join the outer one."""
        if self._in_transaction:
            yield self
            return

        try:
            self.conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise PersistError(f"Cannot start transaction: {e}") from e

        self._in_transaction = True
        try:
            yield self
        except sqlite3.Error as e:
            self.conn.execute("ROLLBACK")
            raise PersistError(f"Transaction rolled back: {e}") from e
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        else:
            try:
                self.conn.execute("COMMIT")
            except sqlite3.Error as e:
                self.conn.execute("ROLLBACK")
                raise PersistError(f"Commit failed: {e}") from e
        finally:
            self._in_transaction = False

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def find_by_external_id(self, external_id: str) -> StoredConversation | None:
        row = self.conn.execute(
            "SELECT * FROM conversations WHERE external_id = ? ORDER BY id LIMIT 1",
            (external_id,),
        ).fetchone()
        return _row_to_conversation(row) if row else None

    def get_conversation(self, conversation_id: int) -> StoredConversation | None:
        row = self.conn.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        ).fetchone()
        return _row_to_conversation(row) if row else None

    def insert_conversation(
        self,
        draft: ConversationDraft,
        message_count: int,
        turn_count: int,
        snippet: str,
    ) -> int:
        cursor = self.conn.execute(
            """INSERT INTO conversations (external_id, platform, title, snippet, source_url,
               source_created_at, created_at, updated_at, message_count, turn_count,
               topic_id, tags, archived, trashed, starred)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                draft.external_id,
                draft.platform,
                draft.title,
                snippet,
                draft.source_url,
                draft.source_created_at,
                draft.captured_at,
                draft.updated_at,
                message_count,
                turn_count,
                draft.topic_id,
                json.dumps(draft.tags),
                int(draft.archived),
                int(draft.trashed),
                int(draft.starred),
            ),
        )
        return int(cursor.lastrowid)

    def update_conversation_stats(
        self,
        conversation_id: int,
        updated_at: int,
        message_count: int,
        turn_count: int,
        snippet: str,
    ) -> None:
        """Refresh derived fields after a replace; the title is left alone."""
        self.conn.execute(
            """UPDATE conversations
               SET updated_at = ?, message_count = ?, turn_count = ?, snippet = ?
               WHERE id = ?""",
            (updated_at, message_count, turn_count, snippet, conversation_id),
        )

    def list_conversations(
        self,
        platform: str | None = None,
        search: str | None = None,
        date_range: tuple[int, int] | None = None,
    ) -> list[StoredConversation]:
        """Conversations, most recently updated first.

        ``search`` is a case-insensitive substring match on title and snippet;
        ``date_range`` is an inclusive ``(start_ms, end_ms)`` on ``created_at``.
        """
        clauses: list[str] = []
        params: list = []
        if platform:
            clauses.append("platform = ?")
            params.append(platform)
        if search:
            clauses.append("(LOWER(title) LIKE ? OR LOWER(snippet) LIKE ?)")
            pattern = f"%{search.lower()}%"
            params.extend([pattern, pattern])
        if date_range:
            clauses.append("created_at BETWEEN ? AND ?")
            params.extend(date_range)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.conn.execute(
            f"SELECT * FROM conversations {where} ORDER BY updated_at DESC, id DESC",
            params,
        ).fetchall()
        return [_row_to_conversation(r) for r in rows]

    def update_title(self, conversation_id: int, title: str) -> StoredConversation:
        normalized = title.strip()
        if not normalized:
            raise StorageError("Title must not be empty")
        if len(normalized) > MAX_TITLE_LENGTH:
            raise StorageError(f"Title exceeds {MAX_TITLE_LENGTH} characters")

        existing = self.get_conversation(conversation_id)
        if existing is None:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        if existing.title == normalized:
            return existing

        with self.transaction():
            self.conn.execute(
                "UPDATE conversations SET title = ? WHERE id = ?",
                (normalized, conversation_id),
            )
        existing.title = normalized
        return existing

    def delete_conversation(self, conversation_id: int) -> bool:
        with self.transaction():
            self.conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
            cursor = self.conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
        return cursor.rowcount > 0

    def clear_all(self) -> None:
        with self.transaction():
            self.conn.execute("DELETE FROM messages")
            self.conn.execute("DELETE FROM conversations")
        logger.info(f"Cleared all conversations from {self.db_path}")

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def list_messages(self, conversation_id: int) -> list[StoredMessage]:
        rows = self.conn.execute(
            """SELECT id, conversation_id, role, text, created_at FROM messages
               WHERE conversation_id = ? ORDER BY created_at, id""",
            (conversation_id,),
        ).fetchall()
        return [
            StoredMessage(
                id=r["id"],
                conversation_id=r["conversation_id"],
                role=r["role"],
                text=r["text"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    def insert_messages(self, conversation_id: int, rows: list[tuple[str, str, int]]) -> None:
        """Bulk insert ``(role, text, created_at)`` rows."""
        self.conn.executemany(
            "INSERT INTO messages (conversation_id, role, text, created_at) VALUES (?, ?, ?, ?)",
            [(conversation_id, role, text, created_at) for role, text, created_at in rows],
        )

    def delete_messages(self, conversation_id: int) -> None:
        self.conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))

    def count_messages(self, conversation_id: int) -> int:
        return self.conn.execute(
            "SELECT COUNT(*) FROM messages WHERE conversation_id = ?", (conversation_id,)
        ).fetchone()[0]

    def get_stats(self) -> dict:
        """Totals across the store, with a per-platform breakdown."""
        conv_count = self.conn.execute("SELECT COUNT(*) FROM conversations").fetchone()[0]
        msg_count = self.conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
        platforms = self.conn.execute(
            """SELECT platform, COUNT(*) AS cnt FROM conversations
               GROUP BY platform ORDER BY cnt DESC, platform"""
        ).fetchall()
        return {
            "total_conversations": conv_count,
            "total_messages": msg_count,
            "platforms": {r["platform"]: r["cnt"] for r in platforms},
        }

    def close(self) -> None:
        self.conn.close()


def _row_to_conversation(row: sqlite3.Row) -> StoredConversation:
    return StoredConversation(
        id=row["id"],
        external_id=row["external_id"],
        platform=row["platform"],
        title=row["title"],
        snippet=row["snippet"],
        source_url=row["source_url"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        message_count=row["message_count"],
        turn_count=row["turn_count"],
        source_created_at=row["source_created_at"],
        topic_id=row["topic_id"],
        archived=bool(row["archived"]),
        trashed=bool(row["trashed"]),
        starred=bool(row["starred"]),
        tags=json.loads(row["tags"] or "[]"),
    )
