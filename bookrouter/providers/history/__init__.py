"""User history providers.

    SQLiteHistoryProvider -- per-user read/queued/dismissed titles in SQLite.
"""

from bookrouter.providers.history.sqlite_history_provider import SQLiteHistoryProvider

__all__ = ["SQLiteHistoryProvider"]
