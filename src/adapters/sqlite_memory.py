"""
SQLite adapter for MessageLog.

Use ":memory:" for tests, a file path for production.
"""

import sqlite3
from datetime import datetime, timezone

from src.domain.memory import MessageLog

_SCHEMA = """
CREATE TABLE IF NOT EXISTS seen_messages (
    message_id      TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL,
    seen_at         TEXT NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteMessageLog(MessageLog):

    def __init__(self, db_path: str = "triage.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)

    async def has_message_been_seen(self, message_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM seen_messages WHERE message_id = ?", (message_id,)
        ).fetchone()
        return row is not None

    async def mark_message_seen(self, message_id: str, conversation_id: str) -> None:
        self._conn.execute(
            "INSERT OR IGNORE INTO seen_messages (message_id, conversation_id, seen_at)"
            " VALUES (?, ?, ?)",
            (message_id, conversation_id, _now()),
        )
        self._conn.commit()
