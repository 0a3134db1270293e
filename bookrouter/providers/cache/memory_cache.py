"""In-memory cache provider using cachetools.

Memoizes query embeddings and probe results for the lifetime of the
process.  Entries expire on a time-to-use basis, so a per-item ``ttl`` is
honoured; the least recently used entry is evicted once ``max_size`` is
reached.  Swap for a network-backed store through :class:`ICacheProvider`.
"""

from __future__ import annotations

from typing import Any, NamedTuple

import structlog
from cachetools import TLRUCache

from bookrouter.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _time_to_use(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class MemoryCacheProvider(ICacheProvider):
    """In-memory TLRU cache backed by ``cachetools.TLRUCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Default time-to-live in seconds for entries stored without one.
    """

    def __init__(self, max_size: int = 1000, ttl: int = 900) -> None:
        self._default_ttl = ttl
        self._cache: TLRUCache[str, _Entry] = TLRUCache(maxsize=max_size, ttu=_time_to_use)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        entry = self._cache.get(key)
        if entry is None:
            logger.debug("cache_miss", key=key)
            return None
        logger.debug("cache_hit", key=key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        effective_ttl = self._default_ttl if ttl is None else ttl
        if effective_ttl <= 0:
            return
        self._cache[key] = _Entry(value, float(effective_ttl))
        logger.debug("cache_set", key=key, ttl=effective_ttl)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def exists(self, key: str) -> bool:
        return key in self._cache

    def __len__(self) -> int:
        return len(self._cache)
