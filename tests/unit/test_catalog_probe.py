"""Unit tests for the query embedder and the catalog probe."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from bookrouter.config.settings import RoutingThresholds
from bookrouter.interfaces.cache_provider import ICacheProvider
from bookrouter.interfaces.catalog_store import ICatalogStore
from bookrouter.models.result import DegradationReason
from bookrouter.models.routing import ProbeResult
from bookrouter.providers.cache.memory_cache import MemoryCacheProvider
from bookrouter.services.catalog_probe import CatalogProbe, summarize_probe
from bookrouter.services.query_embedder import QueryEmbedder, cache_key
from bookrouter.utils.errors import CatalogError, EmbeddingError


# ======================================================================
# Helpers
# ======================================================================


def _embedder(provider: MagicMock, cache: ICacheProvider | None = None) -> QueryEmbedder:
    return QueryEmbedder(provider, cache=cache, timeout=1.0, retry_backoff=0.0)


def _probe(embedder: QueryEmbedder, catalog, cache: ICacheProvider | None = None) -> CatalogProbe:
    return CatalogProbe(
        embedder,
        catalog,
        RoutingThresholds(),
        cache=cache,
        catalog_timeout=1.0,
        retry_backoff=0.0,
    )


# ======================================================================
# Tests
# ======================================================================


class TestSummarizeProbe:
    def test_empty(self) -> None:
        assert summarize_probe([], 0.35) == (0.0, 0.0, 0)

    def test_metrics(self) -> None:
        max_sim, avg_sim, count = summarize_probe([0.6, 0.4, 0.3], 0.35)
        assert max_sim == pytest.approx(0.6)
        assert avg_sim == pytest.approx(0.4333, abs=1e-3)
        assert count == 2


class TestQueryEmbedder:
    def test_cache_key_normalizes_text(self) -> None:
        assert cache_key("embed", "Books about JUSTICE!") == cache_key("embed", "books about justice")
        assert cache_key("embed", "x") != cache_key("probe", "x")

    @pytest.mark.asyncio()
    async def test_second_call_uses_cache(self, mock_embedding_provider: MagicMock) -> None:
        embedder = _embedder(mock_embedding_provider, MemoryCacheProvider())

        first = await embedder.embed("justice")
        second = await embedder.embed("Justice")

        assert first == second == [1.0, 0.0, 0.0, 0.0, 0.0]
        assert mock_embedding_provider.embed_single.await_count == 1

    @pytest.mark.asyncio()
    async def test_retries_once_then_succeeds(self, mock_embedding_provider: MagicMock) -> None:
        mock_embedding_provider.embed_single = AsyncMock(
            side_effect=[EmbeddingError("blip"), [0.1, 0.2]]
        )
        embedder = _embedder(mock_embedding_provider)

        assert await embedder.embed("query") == [0.1, 0.2]
        assert mock_embedding_provider.embed_single.await_count == 2

    @pytest.mark.asyncio()
    async def test_second_failure_propagates(self, mock_embedding_provider: MagicMock) -> None:
        mock_embedding_provider.embed_single = AsyncMock(side_effect=EmbeddingError("down"))
        embedder = _embedder(mock_embedding_provider)

        with pytest.raises(EmbeddingError):
            await embedder.embed("query")
        assert mock_embedding_provider.embed_single.await_count == 2

    @pytest.mark.asyncio()
    async def test_empty_vector_is_an_error(self, mock_embedding_provider: MagicMock) -> None:
        mock_embedding_provider.embed_single = AsyncMock(return_value=[])
        with pytest.raises(EmbeddingError):
            await _embedder(mock_embedding_provider).embed("query")

    @pytest.mark.asyncio()
    async def test_broken_cache_is_ignored(self, mock_embedding_provider: MagicMock) -> None:
        cache = MagicMock(spec=ICacheProvider)
        cache.get = AsyncMock(side_effect=ConnectionError("redis down"))
        cache.set = AsyncMock(side_effect=ConnectionError("redis down"))

        vector = await _embedder(mock_embedding_provider, cache).embed("family")

        assert vector == [0.0, 1.0, 0.0, 0.0, 0.0]


class TestCatalogProbe:
    @pytest.mark.asyncio()
    async def test_strong_catalog_fit(self, mock_embedding_provider, catalog_store) -> None:
        probe = _probe(_embedder(mock_embedding_provider), catalog_store)

        result = await probe.probe("books about justice")

        assert result.is_degraded is False
        assert result.value.success is True
        assert result.value.max_similarity == pytest.approx(1.0)
        assert result.value.match_count == 4
        assert {hit.entry.id for hit in result.value.books} == {"b-001", "b-002", "b-003", "b-004"}

    @pytest.mark.asyncio()
    async def test_no_catalog_fit(self, mock_embedding_provider, catalog_store) -> None:
        probe = _probe(_embedder(mock_embedding_provider), catalog_store)

        result = await probe.probe("hard military sci-fi with naval battles")

        assert result.value.success is True
        assert result.value.max_similarity == 0.0
        assert result.value.match_count == 0

    @pytest.mark.asyncio()
    async def test_embedding_failure_degrades(self, mock_embedding_provider, catalog_store) -> None:
        mock_embedding_provider.embed_single = AsyncMock(side_effect=EmbeddingError("down"))
        probe = _probe(_embedder(mock_embedding_provider), catalog_store)

        result = await probe.probe("books about justice")

        assert result.value.success is False
        assert result.degradation.reason == DegradationReason.PROBE_FAILED

    @pytest.mark.asyncio()
    async def test_catalog_failure_degrades(self, mock_embedding_provider) -> None:
        catalog = MagicMock(spec=ICatalogStore)
        catalog.similarity_search = AsyncMock(side_effect=CatalogError("disk gone"))
        probe = _probe(_embedder(mock_embedding_provider), catalog)

        result = await probe.probe("books about justice")

        assert result.value.success is False
        assert result.degradation.reason == DegradationReason.PROBE_FAILED
        assert catalog.similarity_search.await_count == 2

    @pytest.mark.asyncio()
    async def test_timeout_degrades(self, mock_embedding_provider) -> None:
        async def _slow(*_args, **_kwargs):
            await asyncio.sleep(1)
            return []

        catalog = MagicMock(spec=ICatalogStore)
        catalog.similarity_search = AsyncMock(side_effect=_slow)
        probe = CatalogProbe(
            _embedder(mock_embedding_provider),
            catalog,
            RoutingThresholds(),
            catalog_timeout=0.01,
            retry_backoff=0.0,
        )

        result = await probe.probe("books about justice")

        assert result.value.success is False
        assert result.value.error == "timeout"
        assert result.degradation.reason == DegradationReason.PROBE_TIMEOUT

    @pytest.mark.asyncio()
    async def test_result_is_cached(self, mock_embedding_provider, catalog_store) -> None:
        cache = MemoryCacheProvider()
        probe = _probe(_embedder(mock_embedding_provider, cache), catalog_store, cache)

        first = await probe.probe("books about justice")
        second = await probe.probe("books about justice")

        assert isinstance(await cache.get(cache_key("probe", "books about justice")), ProbeResult)
        assert first.value == second.value
        assert mock_embedding_provider.embed_single.await_count == 1

    @pytest.mark.asyncio()
    async def test_failed_probe_is_not_cached(self, mock_embedding_provider, catalog_store) -> None:
        cache = MemoryCacheProvider()
        mock_embedding_provider.embed_single = AsyncMock(side_effect=EmbeddingError("down"))
        probe = _probe(_embedder(mock_embedding_provider), catalog_store, cache)

        await probe.probe("books about justice")

        assert await cache.exists(cache_key("probe", "books about justice")) is False
