"""DuckDuckGo web-search provider implementing IWebSearchProvider.

Keyless fallback for when no Serper key is configured.  The
``duckduckgo_search`` ``DDGS`` client is synchronous, so searches run in a
worker thread via ``asyncio.to_thread``.  DuckDuckGo has no knowledge panel
or answer box, so every result is ``organic``; ISBNs are still picked out
of the snippets.
"""

from __future__ import annotations

import asyncio

import structlog
from duckduckgo_search import DDGS

from bookrouter.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from bookrouter.providers.search.serper_provider import extract_isbn
from bookrouter.utils.errors import SearchError

logger = structlog.get_logger(logger_name=__name__)


class DuckDuckGoSearchProvider(IWebSearchProvider):
    """DuckDuckGo web-search provider.  Free, no API key."""

    def __init__(self) -> None:
        logger.info("duckduckgo_provider_initialized")

    async def search(self, query: str, num_results: int = 5) -> list[SearchResult]:
        try:
            raw_results = await asyncio.to_thread(self._sync_search, query, num_results)
        except Exception as exc:  # noqa: BLE001 -- DDG raises its own rate-limit types
            logger.warning("duckduckgo_search_failed", query=query, error=str(exc))
            raise SearchError(
                message=f"DuckDuckGo search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        results: list[SearchResult] = []
        for item in raw_results or []:
            snippet = item.get("body")
            results.append(
                SearchResult(
                    title=item.get("title", ""),
                    url=item.get("href", item.get("url", "")),
                    snippet=snippet,
                    result_type="organic",
                    isbn=extract_isbn(snippet),
                )
            )

        logger.debug("duckduckgo_search_complete", query=query, result_count=len(results))
        return results

    @staticmethod
    def _sync_search(query: str, max_results: int) -> list[dict]:
        """Run the synchronous DDGS search (called via to_thread)."""
        with DDGS() as ddgs:
            return list(ddgs.text(query, max_results=max_results))

    def get_provider_name(self) -> str:
        return "duckduckgo"

    def is_available(self) -> bool:
        """DuckDuckGo is always available (no API key required)."""
        return True
