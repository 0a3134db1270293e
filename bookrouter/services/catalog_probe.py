"""Catalog probe: measure how well the catalog *could* answer a query.

The probe is not retrieval.  It embeds the query, asks the catalog for a
handful of nearest neighbours above a permissive floor, and summarizes the
hits as ``max_similarity``, ``avg_similarity`` and ``match_count`` (hits
above a stricter floor).  The routing decision matrix consumes those
numbers; the hits themselves are only kept for diagnostics.

Failure handling: embedding or catalog failures and timeouts produce
``ProbeResult(success=False)`` inside a degraded :class:`StageResult`.  The
router then defaults to HYBRID instead of failing the request.
"""

from __future__ import annotations

import asyncio
import time

from bookrouter.config.settings import RoutingThresholds
from bookrouter.interfaces.cache_provider import ICacheProvider
from bookrouter.interfaces.catalog_store import ICatalogStore
from bookrouter.models.routing import ProbeResult
from bookrouter.models.result import DegradationReason, StageResult
from bookrouter.services.query_embedder import QueryEmbedder, cache_key
from bookrouter.utils.concurrency import retry_once, with_timeout
from bookrouter.utils.errors import BookRouterError, CatalogError
from bookrouter.utils.logging import get_logger

_STAGE = "catalog_probe"


def summarize_probe(
    similarities: list[float],
    match_floor: float,
) -> tuple[float, float, int]:
    """Return (max, avg, count above *match_floor*) for a list of scores."""
    if not similarities:
        return 0.0, 0.0, 0
    max_sim = max(similarities)
    avg_sim = sum(similarities) / len(similarities)
    matches = sum(1 for s in similarities if s >= match_floor)
    return max_sim, avg_sim, matches


class CatalogProbe:
    """Embeds a query and measures nearest-neighbour fit against the catalog."""

    def __init__(
        self,
        embedder: QueryEmbedder,
        catalog: ICatalogStore,
        thresholds: RoutingThresholds,
        cache: ICacheProvider | None = None,
        catalog_timeout: float = 3.0,
        retry_backoff: float = 0.25,
        cache_ttl: int | None = None,
    ) -> None:
        self._embedder = embedder
        self._catalog = catalog
        self._thresholds = thresholds
        self._cache = cache
        self._catalog_timeout = catalog_timeout
        self._backoff = retry_backoff
        self._cache_ttl = cache_ttl
        self._logger = get_logger(__name__)

    async def probe(self, query_text: str) -> StageResult[ProbeResult]:
        started = time.perf_counter()
        key = cache_key("probe", query_text)

        cached = await self._cached(key)
        if cached is not None:
            self._logger.debug("probe_cache_hit")
            return StageResult.ok(cached)

        try:
            vector = await self._embedder.embed(query_text)
            hits = await retry_once(
                lambda: with_timeout(
                    self._catalog.similarity_search(
                        vector,
                        limit=self._thresholds.probe_limit,
                        min_score=self._thresholds.probe_floor,
                    ),
                    self._catalog_timeout,
                ),
                backoff=self._backoff,
                retry_on=(CatalogError, asyncio.TimeoutError),
                operation="probe_similarity_search",
            )
        except asyncio.TimeoutError:
            elapsed = (time.perf_counter() - started) * 1000
            self._logger.warning("probe_timeout", elapsed_ms=round(elapsed, 1))
            return StageResult.degraded(
                ProbeResult.failed("timeout", elapsed),
                _STAGE,
                DegradationReason.PROBE_TIMEOUT,
                "embedding or catalog call timed out",
            )
        except BookRouterError as exc:
            elapsed = (time.perf_counter() - started) * 1000
            self._logger.warning("probe_failed", error=str(exc), elapsed_ms=round(elapsed, 1))
            return StageResult.degraded(
                ProbeResult.failed(str(exc), elapsed),
                _STAGE,
                DegradationReason.PROBE_FAILED,
                str(exc),
            )

        max_sim, avg_sim, match_count = summarize_probe(
            [hit.similarity for hit in hits],
            self._thresholds.probe_match_floor,
        )
        elapsed = (time.perf_counter() - started) * 1000
        result = ProbeResult(
            success=True,
            max_similarity=max_sim,
            avg_similarity=avg_sim,
            match_count=match_count,
            books=hits,
            probe_time_ms=elapsed,
        )
        self._logger.info(
            "probe_complete",
            max_similarity=round(max_sim, 3),
            avg_similarity=round(avg_sim, 3),
            match_count=match_count,
            probe_time_ms=round(elapsed, 1),
        )
        await self._store(key, result)
        return StageResult.ok(result)

    async def _cached(self, key: str) -> ProbeResult | None:
        if self._cache is None:
            return None
        try:
            value = await self._cache.get(key)
        except Exception as exc:  # noqa: BLE001 -- cache is advisory
            self._logger.warning("probe_cache_read_failed", error=str(exc))
            return None
        return value if isinstance(value, ProbeResult) else None

    async def _store(self, key: str, result: ProbeResult) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.set(key, result, ttl=self._cache_ttl)
        except Exception as exc:  # noqa: BLE001 -- cache is advisory
            self._logger.warning("probe_cache_write_failed", error=str(exc))
