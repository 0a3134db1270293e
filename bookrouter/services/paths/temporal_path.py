"""Temporal path: new and upcoming releases via web search.

Flow
----
1. Build a search phrase from the author, genre and timeframe entities.
   The author is the catalog-validated one, else any name spelled out
   literally in the query; step 3 checks the edition against it either way.
2. Run the web search under a hard deadline.
3. Try to resolve a *specific edition*: an ISBN spotted in a snippet is
   looked up directly; otherwise the knowledge-panel (or top) title is
   looked up together with the author.  When an author is known, the
   resolved edition's authors must match it.
4. A resolved edition becomes the single verified candidate and the
   formatter is skipped (``skip_formatting``).
5. Otherwise a constrained generative call extracts book mentions from the
   snippets, and each mention is kept only if its title literally appears
   in the retrieved text.

Search or metadata failures degrade; they never raise.
"""

from __future__ import annotations

import asyncio
from datetime import date

from pydantic import BaseModel, Field

from bookrouter.interfaces.book_metadata_provider import IBookMetadataProvider
from bookrouter.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from bookrouter.models.book import BookMetadata, BookSource, CandidateBook
from bookrouter.models.query import Classification
from bookrouter.models.result import Degradation, DegradationReason, PathResult
from bookrouter.models.routing import RoutingPath
from bookrouter.services.structured_text import StructuredTextService
from bookrouter.utils.concurrency import with_timeout
from bookrouter.utils.errors import MetadataLookupError, RateLimitError, SearchError
from bookrouter.utils.logging import get_logger
from bookrouter.utils.text_normalizer import contains_phrase, names_match, normalize_text

_STAGE = "temporal_path"

EXPLAIN_RESOLVED_AUTHOR = "Here's the newest book from {author}."
EXPLAIN_RESOLVED = "Here's a new release I found."
EXPLAIN_MENTIONS = "Here are new releases I found."
EXPLAIN_NONE = "I couldn't confirm any new releases for that right now."


class SnippetBook(BaseModel):
    title: str = Field(description="Book title exactly as written in the search results.")
    author: str = Field(description="Author name exactly as written in the search results.")


class SnippetBooks(BaseModel):
    """Arguments of the ``extract_books_from_results`` tool."""

    books: list[SnippetBook] = Field(default_factory=list)


def search_author(classification: Classification) -> str | None:
    """Catalog-validated author, else the author named in the query."""
    entities = classification.entities
    if entities.authors:
        return entities.authors[0]
    return entities.mentioned_authors[0] if entities.mentioned_authors else None


def build_search_phrase(classification: Classification, today: date | None = None) -> str:
    """Search phrase for the web search from the classified entities."""
    entities = classification.entities
    timeframe = entities.timeframe or str((today or date.today()).year)
    author = search_author(classification)
    if author:
        return f"{author} newest book {timeframe} release date"
    if entities.genres:
        return f"best {entities.genres[0]} books {timeframe} new releases"
    return f"best new books {timeframe} releases highly anticipated"


class TemporalPath:
    """Finds verified new releases through web search and a metadata lookup."""

    def __init__(
        self,
        search_provider: IWebSearchProvider,
        metadata_provider: IBookMetadataProvider,
        structured_text: StructuredTextService,
        search_timeout: float = 8.0,
        metadata_timeout: float = 6.0,
        num_results: int = 8,
        mention_limit: int = 5,
        today: date | None = None,
    ) -> None:
        self._search = search_provider
        self._metadata = metadata_provider
        self._structured = structured_text
        self._search_timeout = search_timeout
        self._metadata_timeout = metadata_timeout
        self._num_results = num_results
        self._mention_limit = mention_limit
        self._today = today
        self._logger = get_logger(__name__)

    async def execute(self, classification: Classification) -> PathResult:
        author = search_author(classification)
        phrase = build_search_phrase(classification, self._today)
        degradations: list[Degradation] = []

        try:
            results = await with_timeout(
                self._search.search(phrase, num_results=self._num_results),
                self._search_timeout,
            )
        except (asyncio.TimeoutError, SearchError, RateLimitError) as exc:
            detail = str(exc) or "web search timed out"
            self._logger.warning("temporal_search_failed", error=detail)
            return PathResult(
                path=RoutingPath.TEMPORAL,
                explanation=EXPLAIN_NONE,
                degradations=[
                    Degradation(stage=_STAGE, reason=DegradationReason.SEARCH_FAILED, detail=detail)
                ],
            )

        if not results:
            self._logger.info("temporal_search_empty", phrase=phrase)
            return PathResult(path=RoutingPath.TEMPORAL, explanation=EXPLAIN_NONE)

        edition, lookup_degradation = await self._resolve_edition(results, author)
        if lookup_degradation is not None:
            degradations.append(lookup_degradation)

        if edition is not None:
            candidate = CandidateBook(
                title=edition.title,
                author=author or edition.primary_author,
                description=edition.description,
                reputation=_release_line(edition),
                source=BookSource.TEMPORAL,
                verified=True,
                isbn=edition.isbn,
            )
            self._logger.info("temporal_edition_resolved", isbn=edition.isbn)
            return PathResult(
                path=RoutingPath.TEMPORAL,
                candidates=[candidate],
                explanation=(
                    EXPLAIN_RESOLVED_AUTHOR.format(author=candidate.author)
                    if author
                    else EXPLAIN_RESOLVED
                ),
                skip_formatting=True,
                degradations=degradations,
            )

        candidates, extraction_degradation = await self._snippet_mentions(results, author)
        if extraction_degradation is not None:
            degradations.append(extraction_degradation)
        return PathResult(
            path=RoutingPath.TEMPORAL,
            candidates=candidates,
            explanation=EXPLAIN_MENTIONS if candidates else EXPLAIN_NONE,
            degradations=degradations,
        )

    # ------------------------------------------------------------------
    # Edition resolution
    # ------------------------------------------------------------------

    async def _resolve_edition(
        self,
        results: list[SearchResult],
        author: str | None,
    ) -> tuple[BookMetadata | None, Degradation | None]:
        try:
            for result in results:
                if not result.isbn:
                    continue
                edition = await with_timeout(
                    self._metadata.lookup_isbn(result.isbn), self._metadata_timeout
                )
                if self._acceptable(edition, author):
                    return edition, None

            if author:
                title = _lookup_title(results)
                if title:
                    edition = await with_timeout(
                        self._metadata.lookup_title(title, author), self._metadata_timeout
                    )
                    if self._acceptable(edition, author):
                        return edition, None
        except (asyncio.TimeoutError, MetadataLookupError, RateLimitError) as exc:
            detail = str(exc) or "metadata lookup timed out"
            self._logger.warning("temporal_metadata_lookup_failed", error=detail)
            return None, Degradation(
                stage=_STAGE,
                reason=DegradationReason.METADATA_LOOKUP_FAILED,
                detail=detail,
            )
        return None, None

    @staticmethod
    def _acceptable(edition: BookMetadata | None, author: str | None) -> bool:
        if edition is None or not edition.isbn:
            return False
        if author is None:
            return True
        return any(names_match(author, name) for name in edition.authors)

    # ------------------------------------------------------------------
    # Snippet extraction fallback
    # ------------------------------------------------------------------

    async def _snippet_mentions(
        self,
        results: list[SearchResult],
        author: str | None,
    ) -> tuple[list[CandidateBook], Degradation | None]:
        corpus = "\n".join(
            f"{r.title}\n{r.snippet or ''}" for r in results
        )
        result = await self._structured.query(
            SnippetBooks,
            tool_name="extract_books_from_results",
            tool_description="Record the books mentioned in the search results.",
            system_prompt=(
                "You read web search results about new book releases. List only "
                "books whose title is written in the results, with the author as "
                "written. Never add a book that is not in the text. Return an empty "
                "list if none are mentioned."
            ),
            user_prompt=f"Search results:\n{corpus}",
            stage=_STAGE,
            failure_reason=DegradationReason.EXTRACTION_FAILED,
            max_tokens=800,
        )
        if result.value is None:
            return [], result.degradation

        candidates: list[CandidateBook] = []
        seen: set[str] = set()
        for book in result.value.books:
            key = normalize_text(book.title)
            if not key or key in seen:
                continue
            if not contains_phrase(corpus, book.title):
                self._logger.info("temporal_mention_not_in_results", title=book.title)
                continue
            if author is not None and not names_match(author, book.author):
                continue
            if author is None and not contains_phrase(corpus, book.author):
                continue
            seen.add(key)
            candidates.append(
                CandidateBook(
                    title=book.title.strip(),
                    author=author or book.author.strip(),
                    source=BookSource.TEMPORAL,
                    verified=True,
                )
            )
            if len(candidates) >= self._mention_limit:
                break
        self._logger.info("temporal_mentions_extracted", kept=len(candidates))
        return candidates, None


def _lookup_title(results: list[SearchResult]) -> str | None:
    for result in results:
        if result.result_type == "knowledge" and result.title:
            return result.title
    return results[0].title if results[0].title else None


def _release_line(edition: BookMetadata) -> str | None:
    if edition.published_date and edition.publisher:
        return f"Published {edition.published_date} by {edition.publisher}."
    if edition.published_date:
        return f"Published {edition.published_date}."
    return None
