"""SQLite storage for conversations, with FTS5 full-text search."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from .models import Conversation, ConversationSummary, Message, ParsedContent


class ConversationStore:
    """SQLite-backed storage for conversations and messages."""

    def __init__(self, db_path: Path | str):
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._migrate()

    def _migrate(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                created_at INTEGER,
                updated_at INTEGER,
                is_private INTEGER NOT NULL DEFAULT 0,
                summary_text TEXT,
                summary_count INTEGER,
                message_count INTEGER,
                full_text TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS messages (
                id TEXT NOT NULL,
                conversation_id TEXT NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                status TEXT NOT NULL,
                format TEXT NOT NULL,
                parsed_content TEXT,
                timestamp INTEGER,
                is_error INTEGER NOT NULL DEFAULT 0,
                message_index INTEGER NOT NULL,
                FOREIGN KEY (conversation_id) REFERENCES conversations(id)
            );

            CREATE INDEX IF NOT EXISTS idx_messages_conv
                ON messages(conversation_id);

            CREATE VIRTUAL TABLE IF NOT EXISTS conversations_fts USING fts5(
                title,
                full_text,
                content='conversations',
                content_rowid='rowid',
                tokenize='porter unicode61'
            );

            CREATE TRIGGER IF NOT EXISTS conversations_ai
                AFTER INSERT ON conversations BEGIN
                    INSERT INTO conversations_fts(rowid, title, full_text)
                    VALUES (new.rowid, new.title, new.full_text);
                END;

            CREATE TRIGGER IF NOT EXISTS conversations_ad
                AFTER DELETE ON conversations BEGIN
                    INSERT INTO conversations_fts(conversations_fts, rowid, title, full_text)
                    VALUES ('delete', old.rowid, old.title, old.full_text);
                END;

            CREATE TABLE IF NOT EXISTS app_state (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            CREATE TABLE IF NOT EXISTS import_metadata (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                import_time TEXT NOT NULL,
                file_path TEXT,
                conversations_imported INTEGER,
                messages_imported INTEGER
            );
        """)
        self.conn.commit()

    def conversation_exists(self, conversation_id: str) -> bool:
        row = self.conn.execute(
            "SELECT 1 FROM conversations WHERE id = ?", (conversation_id,)
        ).fetchone()
        return row is not None

    def upsert_conversation(self, conv: Conversation):
        """Insert or replace a conversation and its messages."""
        # Error messages are display-only; keep them out of the search index
        full_text = "\n\n".join(
            f"{m.role}: {m.content}" for m in conv.messages if not m.is_error
        )

        self.conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conv.id,))
        self.conn.execute("DELETE FROM conversations WHERE id = ?", (conv.id,))

        self.conn.execute(
            """INSERT INTO conversations (id, title, created_at, updated_at, is_private,
               summary_text, summary_count, message_count, full_text)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                conv.id,
                conv.title,
                conv.created_at,
                conv.updated_at,
                int(conv.is_private),
                conv.summary.text if conv.summary else None,
                conv.summary.message_count_at_update if conv.summary else None,
                len(conv.messages),
                full_text,
            ),
        )

        for idx, msg in enumerate(conv.messages):
            parsed = msg.parsed_content.model_dump_json() if msg.parsed_content else None
            self.conn.execute(
                """INSERT INTO messages (id, conversation_id, role, content, status, format,
                   parsed_content, timestamp, is_error, message_index)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (msg.id, conv.id, msg.role, msg.content, msg.status, msg.format,
                 parsed, msg.timestamp, int(msg.is_error), idx),
            )

        self.conn.commit()

    def _row_to_conversation(self, row: sqlite3.Row) -> Conversation:
        messages = self.conn.execute(
            "SELECT * FROM messages WHERE conversation_id = ? ORDER BY message_index",
            (row["id"],),
        ).fetchall()

        summary = None
        if row["summary_text"] is not None:
            summary = ConversationSummary(
                text=row["summary_text"],
                message_count_at_update=row["summary_count"] or 0,
            )

        return Conversation(
            id=row["id"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            is_private=bool(row["is_private"]),
            summary=summary,
            messages=[
                Message(
                    id=m["id"],
                    role=m["role"],
                    content=m["content"],
                    status=m["status"],
                    format=m["format"],
                    parsed_content=(
                        ParsedContent.model_validate_json(m["parsed_content"])
                        if m["parsed_content"]
                        else None
                    ),
                    timestamp=m["timestamp"],
                    is_error=bool(m["is_error"]),
                )
                for m in messages
            ],
        )

    def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation with all its messages."""
        row = self.conn.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        ).fetchone()
        if not row:
            return None
        return self._row_to_conversation(row)

    def load_conversations(self) -> list[Conversation]:
        """All conversations, most recently updated first."""
        rows = self.conn.execute(
            "SELECT * FROM conversations ORDER BY updated_at DESC"
        ).fetchall()
        return [self._row_to_conversation(r) for r in rows]

    def delete_conversation(self, conversation_id: str):
        self.conn.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
        self.conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
        self.conn.commit()

    def list_conversations(
        self,
        limit: int = 20,
        offset: int = 0,
        keyword: str | None = None,
    ) -> list[dict]:
        """List conversations, optionally filtered by keyword (FTS5)."""
        if keyword:
            rows = self.conn.execute(
                """SELECT c.id, c.title, c.created_at, c.updated_at, c.message_count, c.is_private
                   FROM conversations c
                   JOIN conversations_fts fts ON c.rowid = fts.rowid
                   WHERE conversations_fts MATCH ?
                   ORDER BY c.updated_at DESC
                   LIMIT ? OFFSET ?""",
                (keyword, limit, offset),
            ).fetchall()
        else:
            rows = self.conn.execute(
                """SELECT id, title, created_at, updated_at, message_count, is_private
                   FROM conversations
                   ORDER BY updated_at DESC
                   LIMIT ? OFFSET ?""",
                (limit, offset),
            ).fetchall()

        return [dict(r) for r in rows]

    def get_active_conversation_id(self) -> str | None:
        row = self.conn.execute(
            "SELECT value FROM app_state WHERE key = 'active_conversation_id'"
        ).fetchone()
        return row["value"] if row else None

    def set_active_conversation_id(self, conversation_id: str | None):
        self.conn.execute(
            "INSERT OR REPLACE INTO app_state (key, value) VALUES ('active_conversation_id', ?)",
            (conversation_id,),
        )
        self.conn.commit()

    def get_stats(self) -> dict:
        """Get overall database statistics."""
        conv_count = self.conn.execute("SELECT COUNT(*) FROM conversations").fetchone()[0]
        msg_count = self.conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
        error_count = self.conn.execute(
            "SELECT COUNT(*) FROM messages WHERE is_error = 1"
        ).fetchone()[0]

        date_range = self.conn.execute(
            "SELECT MIN(created_at), MAX(created_at) FROM conversations WHERE created_at IS NOT NULL"
        ).fetchone()

        formats = self.conn.execute(
            """SELECT format, COUNT(*) as cnt FROM messages
               WHERE role = 'assistant' AND is_error = 0
               GROUP BY format ORDER BY cnt DESC"""
        ).fetchall()

        summarized = self.conn.execute(
            "SELECT COUNT(*) FROM conversations WHERE summary_text IS NOT NULL"
        ).fetchone()[0]

        return {
            "total_conversations": conv_count,
            "total_messages": msg_count,
            "error_messages": error_count,
            "summarized_conversations": summarized,
            "date_range_start": _format_ts(date_range[0]) if date_range[0] else None,
            "date_range_end": _format_ts(date_range[1]) if date_range[1] else None,
            "formats": [{"format": r[0], "count": r[1]} for r in formats],
            "avg_messages_per_conversation": round(msg_count / conv_count, 1) if conv_count else 0,
        }

    def record_import(self, file_path: str, conversations: int, messages: int):
        self.conn.execute(
            "INSERT INTO import_metadata (import_time, file_path, conversations_imported, messages_imported) VALUES (?, ?, ?, ?)",
            (datetime.now(timezone.utc).isoformat(), file_path, conversations, messages),
        )
        self.conn.commit()

    def close(self):
        self.conn.close()


def _format_ts(ts_ms: int | None) -> str | None:
    if ts_ms is None:
        return None
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d")
