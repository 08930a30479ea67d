"""
SQLite storage for chat history.
Append-only: every turn of every session, keyed by the client's session id.
Single portable file. No retention policy; turns are kept indefinitely.
"""

import sqlite3
import logging
from pathlib import Path
from contextlib import contextmanager

from deepsite.errors import StorageUnavailable
from deepsite.storage.models import ChatTurn

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 50

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS chat_messages (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    session_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    model TEXT DEFAULT '',
    provider TEXT DEFAULT '',
    token_count INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_chat_messages_session
    ON chat_messages(session_id, seq);
"""


class SQLiteStore:
    """SQLite chat history store. Each call opens its own connection."""

    def __init__(self, db_path: str, history_limit: int = HISTORY_LIMIT):
        self.db_path = Path(db_path)
        self.history_limit = min(history_limit, HISTORY_LIMIT)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailable(f"Cannot open chat store at {self.db_path}: {e}") from e

    def _init_db(self):
        with self._connect() as conn:
            conn.executescript(CREATE_TABLES)
        logger.info("SQLite chat store initialized at %s", self.db_path)

    @contextmanager
    def _connect(self):
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=10)
        except sqlite3.Error as e:
            raise StorageUnavailable(str(e)) from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageUnavailable(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def append(self, turn: ChatTurn) -> None:
        """Store a single turn."""
        self.append_many([turn])

    def append_many(self, turns: list[ChatTurn]) -> None:
        """Store several turns in one transaction: all of them or none."""
        with self._connect() as conn:
            conn.executemany(
                """INSERT INTO chat_messages
                   (id, session_id, role, content, model, provider, token_count, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (t.id, t.session_id, t.role, t.content,
                     t.model, t.provider, t.token_count, t.created_at)
                    for t in turns
                ],
            )
        for t in turns:
            logger.debug("Stored turn %s (role=%s, session=%s)", t.id, t.role, t.session_id)

    def history(self, session_id: str, limit: int | None = None) -> list[ChatTurn]:
        """The most recent `limit` turns of a session, oldest first."""
        limit = self.history_limit if limit is None else min(limit, HISTORY_LIMIT)
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT * FROM (
                       SELECT * FROM chat_messages
                       WHERE session_id = ?
                       ORDER BY seq DESC
                       LIMIT ?
                   ) ORDER BY seq ASC""",
                (session_id, limit),
            ).fetchall()
        return [ChatTurn.from_row(r) for r in rows]

    def count(self, session_id: str) -> int:
        with self._connect() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM chat_messages WHERE session_id = ?",
                (session_id,),
            ).fetchone()[0]

    def list_sessions(self, limit: int = 20) -> list[dict]:
        """Most recently active sessions with their turn counts."""
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT session_id,
                          COUNT(*) AS turns,
                          MIN(created_at) AS started_at,
                          MAX(created_at) AS last_active
                   FROM chat_messages
                   GROUP BY session_id
                   ORDER BY MAX(seq) DESC
                   LIMIT ?""",
                (limit,),
            ).fetchall()
        return [dict(r) for r in rows]

    def delete_session(self, session_id: str) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM chat_messages WHERE session_id = ?", (session_id,)
            )
            deleted = cur.rowcount
        logger.info("Deleted %d turns of session %s", deleted, session_id)
        return deleted

    def get_stats(self) -> dict:
        with self._connect() as conn:
            sessions = conn.execute(
                "SELECT COUNT(DISTINCT session_id) FROM chat_messages"
            ).fetchone()[0]
            turns = conn.execute("SELECT COUNT(*) FROM chat_messages").fetchone()[0]
            tokens = conn.execute(
                "SELECT COALESCE(SUM(token_count), 0) FROM chat_messages"
            ).fetchone()[0]
            provider_rows = conn.execute(
                """SELECT provider, COUNT(*) AS turns
                   FROM chat_messages
                   WHERE role = 'assistant' AND provider != ''
                   GROUP BY provider
                   ORDER BY turns DESC"""
            ).fetchall()
        return {
            "sessions": sessions,
            "turns": turns,
            "tokens": tokens,
            "providers": {r["provider"]: r["turns"] for r in provider_rows},
        }
