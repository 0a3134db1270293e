"""Catalog path: retrieve candidates from the curated collection only.

Lookup order, first non-empty result wins:

1. validated author      -> ``by_author`` (skipped for ``similar_author``,
                              which also drops that author's books)
2. validated title       -> nearest neighbours of that catalog book
3. genre keyword         -> ``by_genre``
4. themes                -> ``by_theme`` (a *theme browse*)
5. nothing specific      -> similarity search on the cleaned query

Every candidate is built with :meth:`CandidateBook.from_catalog`, so it is
``source=catalog`` and ``verified=True`` by construction.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from bookrouter.interfaces.catalog_store import ICatalogStore
from bookrouter.models.book import CandidateBook, CatalogEntry
from bookrouter.models.query import Classification, SearchIntent
from bookrouter.models.result import Degradation, DegradationReason, PathResult
from bookrouter.models.routing import RoutingPath
from bookrouter.services.query_embedder import QueryEmbedder
from bookrouter.utils.concurrency import retry_once, with_timeout
from bookrouter.utils.errors import BookRouterError, CatalogError, EmbeddingError
from bookrouter.utils.logging import get_logger
from bookrouter.utils.text_normalizer import names_match

_T = TypeVar("_T")

_STAGE = "catalog_path"

EXPLAIN_AUTHOR = "Here are {author}'s books from my curated collection."
EXPLAIN_SIMILAR_BOOK = "Here are books from my collection in the spirit of {title}."
EXPLAIN_GENRE = "Here are my favorite {genre} books."
EXPLAIN_THEMES = "Books from my collection that match your mood."
EXPLAIN_SIMILARITY = "Here's what I found in my collection that matches your request."
EXPLAIN_EMPTY = "I couldn't find a close match in my collection."


class CatalogPath:
    """Retrieves verified candidates from the catalog store."""

    def __init__(
        self,
        catalog: ICatalogStore,
        embedder: QueryEmbedder,
        limit: int = 10,
        similarity_floor: float = 0.5,
        similar_book_floor: float = 0.3,
        catalog_timeout: float = 3.0,
        retry_backoff: float = 0.25,
    ) -> None:
        self._catalog = catalog
        self._embedder = embedder
        self._limit = limit
        self._similarity_floor = similarity_floor
        self._similar_book_floor = similar_book_floor
        self._timeout = catalog_timeout
        self._backoff = retry_backoff
        self._logger = get_logger(__name__)

    async def execute(self, classification: Classification) -> PathResult:
        """Run the lookup chain.  Never raises on upstream failure.

        A catalog or embedding failure yields an empty result carrying a
        ``catalog_query_failed`` degradation.
        """
        try:
            result = await self._lookup(classification)
        except (asyncio.TimeoutError, BookRouterError) as exc:
            detail = str(exc) or "catalog call timed out"
            self._logger.warning(
                "catalog_path_failed",
                reason=DegradationReason.CATALOG_QUERY_FAILED.value,
                error=detail,
            )
            return PathResult(
                path=RoutingPath.CATALOG,
                explanation=EXPLAIN_EMPTY,
                degradations=[
                    Degradation(
                        stage=_STAGE,
                        reason=DegradationReason.CATALOG_QUERY_FAILED,
                        detail=detail,
                    )
                ],
            )
        return _without_named_author(result, classification)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _lookup(self, classification: Classification) -> PathResult:
        entities = classification.entities

        if entities.authors and classification.intent != SearchIntent.SIMILAR_AUTHOR:
            author = entities.authors[0]
            entries = await self._read(lambda: self._catalog.by_author(author, limit=self._limit))
            if entries:
                return self._result(entries, EXPLAIN_AUTHOR.format(author=author), "author")

        if entities.titles and classification.intent == SearchIntent.SIMILAR_BOOK:
            title = entities.titles[0]
            candidates = await self._similar_to_title(title)
            if candidates:
                self._log("similar_book", len(candidates))
                return PathResult(
                    path=RoutingPath.CATALOG,
                    candidates=candidates,
                    explanation=EXPLAIN_SIMILAR_BOOK.format(title=title),
                )

        if entities.genres:
            genre = entities.genres[0]
            entries = await self._read(lambda: self._catalog.by_genre(genre, limit=self._limit))
            if entries:
                return self._result(entries, EXPLAIN_GENRE.format(genre=genre), "genre")

        if classification.themes:
            themes = list(classification.themes)
            entries = await self._read(lambda: self._catalog.by_theme(themes, limit=self._limit))
            if entries:
                result = self._result(entries, EXPLAIN_THEMES, "themes")
                return result.model_copy(update={"theme_browse": True, "browse_themes": themes})
            # Flagged as a browse for diagnostics only: with nothing removed,
            # the exhausted-slice fallback does not apply.
            return PathResult(
                path=RoutingPath.CATALOG,
                explanation=EXPLAIN_THEMES,
                theme_browse=True,
                browse_themes=themes,
            )

        vector = await self._embedder.embed(classification.search_query)
        hits = await self._read(
            lambda: self._catalog.similarity_search(
                vector, limit=self._limit, min_score=self._similarity_floor
            )
        )
        candidates = [CandidateBook.from_catalog(hit.entry, hit.similarity) for hit in hits]
        self._log("similarity", len(candidates))
        return PathResult(
            path=RoutingPath.CATALOG,
            candidates=candidates,
            explanation=EXPLAIN_SIMILARITY if candidates else EXPLAIN_EMPTY,
        )

    async def _similar_to_title(self, title: str) -> list[CandidateBook]:
        entries = await self._read(self._catalog.list_entries)
        source = next((e for e in entries if e.title == title), None)
        if source is None:
            return []
        vector = source.embedding or await self._embedder.embed(source.embedding_text())
        hits = await self._read(
            lambda: self._catalog.similarity_search(
                vector, limit=self._limit + 1, min_score=self._similar_book_floor
            )
        )
        return [
            CandidateBook.from_catalog(hit.entry, hit.similarity)
            for hit in hits
            if hit.entry.id != source.id
        ][: self._limit]

    async def _read(self, fn: Callable[[], Awaitable[_T]]) -> _T:
        return await retry_once(
            lambda: with_timeout(fn(), self._timeout),
            backoff=self._backoff,
            retry_on=(CatalogError, EmbeddingError, asyncio.TimeoutError),
            operation="catalog_read",
        )

    def _result(self, entries: list[CatalogEntry], explanation: str, strategy: str) -> PathResult:
        candidates = [CandidateBook.from_catalog(entry) for entry in entries[: self._limit]]
        self._log(strategy, len(candidates))
        return PathResult(path=RoutingPath.CATALOG, candidates=candidates, explanation=explanation)

    def _log(self, strategy: str, count: int) -> None:
        self._logger.info("catalog_path_complete", strategy=strategy, candidates=count)


def _without_named_author(result: PathResult, classification: Classification) -> PathResult:
    if classification.intent != SearchIntent.SIMILAR_AUTHOR or not classification.entities.authors:
        return result
    author = classification.entities.authors[0]
    kept = [c for c in result.candidates if not names_match(author, c.author)]
    if len(kept) == len(result.candidates):
        return result
    return result.model_copy(
        update={"candidates": kept, "explanation": result.explanation if kept else EXPLAIN_EMPTY}
    )
