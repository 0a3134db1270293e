"""Abstract base class for the user reading-history store.

The router only reads from it: one call per request to collect the titles a
user has read, queued or dismissed.  Writes (marking a book read, etc.)
belong to the account layer; :meth:`record_title` exists for that layer and
for seeding test databases.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: SQLiteHistoryProvider (bookrouter/providers/history/)
class IUserHistoryProvider(ABC):
    """Contract for per-user engagement history."""

    @abstractmethod
    async def get_exclusion_titles(self, user_id: str) -> list[str]:
        """Return titles the user has read, queued or dismissed.

        Parameters
        ----------
        user_id:
            Opaque user identifier.

        Returns
        -------
        list[str]
            Raw titles, un-normalized.  Unknown users yield ``[]``.

        Raises
        ------
        bookrouter.utils.errors.HistoryError
            If the store cannot be read.
        """

    @abstractmethod
    async def record_title(self, user_id: str, title: str, status: str = "read") -> None:
        """Record that *user_id* engaged with *title* (status: read/queued/dismissed)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"sqlite"``."""
