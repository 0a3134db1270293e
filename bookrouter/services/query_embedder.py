"""Query embedding with memoization, a deadline and one bounded retry.

Shared by the catalog probe and the catalog path so a query is embedded at
most once per cache lifetime.  The cache is advisory: a cache backend error
is logged and the embedding service is called as if it were a miss.
"""

from __future__ import annotations

import asyncio
import hashlib

from bookrouter.interfaces.cache_provider import ICacheProvider
from bookrouter.interfaces.embedding_provider import IEmbeddingProvider
from bookrouter.utils.concurrency import retry_once, with_timeout
from bookrouter.utils.errors import EmbeddingError
from bookrouter.utils.logging import get_logger
from bookrouter.utils.text_normalizer import normalize_text


def cache_key(namespace: str, text: str) -> str:
    digest = hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


class QueryEmbedder:
    """Embeds query text; raises on failure, never returns a placeholder vector."""

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        cache: ICacheProvider | None = None,
        timeout: float = 4.0,
        retry_backoff: float = 0.25,
        cache_ttl: int | None = None,
    ) -> None:
        self._provider = embedding_provider
        self._cache = cache
        self._timeout = timeout
        self._backoff = retry_backoff
        self._cache_ttl = cache_ttl
        self._logger = get_logger(__name__)

    async def embed(self, text: str) -> list[float]:
        """Return the embedding for *text*.

        Raises
        ------
        EmbeddingError
            If both attempts fail.
        asyncio.TimeoutError
            If both attempts time out.
        """
        key = cache_key("embed", text)
        cached = await self._cache_get(key)
        if cached is not None:
            return list(cached)

        vector = await retry_once(
            lambda: with_timeout(self._provider.embed_single(text), self._timeout),
            backoff=self._backoff,
            retry_on=(EmbeddingError, asyncio.TimeoutError),
            operation="embed_query",
        )
        if not vector:
            raise EmbeddingError(
                message="Embedding service returned an empty vector",
                provider_name=self._provider.get_provider_name(),
            )
        await self._cache_set(key, list(vector))
        return list(vector)

    async def _cache_get(self, key: str) -> list[float] | None:
        if self._cache is None:
            return None
        try:
            return await self._cache.get(key)
        except Exception as exc:  # noqa: BLE001 -- cache is advisory
            self._logger.warning("embedding_cache_read_failed", error=str(exc))
            return None

    async def _cache_set(self, key: str, vector: list[float]) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(key, vector, ttl=self._cache_ttl)
        except Exception as exc:  # noqa: BLE001 -- cache is advisory
            self._logger.warning("embedding_cache_write_failed", error=str(exc))
