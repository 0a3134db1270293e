"""SQLite-backed user reading-history provider.

Stores one row per (user, title) with the engagement status: ``read``,
``queued`` or ``dismissed``.  The router reads every title for a user once
per request to build the exclusion set.  Uses ``aiosqlite`` for async I/O.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import aiosqlite
import structlog

from bookrouter.interfaces.history_provider import IUserHistoryProvider
from bookrouter.utils.errors import HistoryError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/user_history.db")

_VALID_STATUSES = frozenset({"read", "queued", "dismissed"})

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS user_books (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id     TEXT    NOT NULL,
    title       TEXT    NOT NULL,
    status      TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    UNIQUE(user_id, title)
);
"""

_CREATE_INDEX_SQL = "CREATE INDEX IF NOT EXISTS idx_user_books_user ON user_books(user_id);"

_UPSERT_SQL = """\
INSERT INTO user_books (user_id, title, status)
VALUES (?, ?, ?)
ON CONFLICT(user_id, title)
DO UPDATE SET status     = excluded.status,
              updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now');
"""


class SQLiteHistoryProvider(IUserHistoryProvider):
    """SQLite-backed reading history."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the table and index if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.execute(_CREATE_INDEX_SQL)
            await db.commit()
        logger.info("history_db_initialized", path=str(self._db_path))

    async def get_exclusion_titles(self, user_id: str) -> list[str]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    "SELECT title FROM user_books WHERE user_id = ? ORDER BY updated_at DESC",
                    (user_id,),
                )
                rows = await cursor.fetchall()
        except (sqlite3.Error, OSError) as exc:
            raise HistoryError(
                message=f"Cannot read history for user: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [row[0] for row in rows]

    async def record_title(self, user_id: str, title: str, status: str = "read") -> None:
        if status not in _VALID_STATUSES:
            msg = f"status must be one of {sorted(_VALID_STATUSES)}, got {status!r}"
            raise ValueError(msg)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_UPSERT_SQL, (user_id, title.strip(), status))
                await db.commit()
        except (sqlite3.Error, OSError) as exc:
            raise HistoryError(
                message=f"Cannot record history entry: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("history_title_recorded", user_id=user_id, status=status)

    def get_provider_name(self) -> str:
        return "sqlite"
