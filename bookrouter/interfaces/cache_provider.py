"""Abstract base class for cache service providers.

Key-value memoization for embeddings and probe results.  The cache is
advisory: a miss, an eviction or a backend failure never changes a routing
outcome.  Implementations may be in-process (TTL map) or network-backed,
and are injected into the pipeline rather than held as module globals.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value cache services.

    All operations are async so network-backed stores (e.g. Redis) fit
    without blocking the event loop.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value under *key*, or ``None`` if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*.

        Parameters
        ----------
        key:
            The cache key.
        value:
            The value to store.
        ttl:
            Time-to-live in seconds.  ``None`` uses the backend default.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key*; a no-op if it does not exist."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is present and not expired."""
