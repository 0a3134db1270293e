"""Similar-author path: books by *other* writers in the vein of a named one.

Flow
----
1. Web-search for writers readers compare to the named author.
2. A constrained generative call lists the books the results mention.  A
   mention is kept only if its title and its author are both written in
   the retrieved text.
3. Each mention is looked up in the books-metadata service; only a real
   edition whose authors match the mention survives.
4. Anything written by the named author is dropped.

Candidates are ``source=world`` and ``verified=True``.  Search, extraction
and metadata failures degrade to an empty result; they never raise.
"""

from __future__ import annotations

import asyncio

from bookrouter.interfaces.book_metadata_provider import IBookMetadataProvider
from bookrouter.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from bookrouter.models.book import BookSource, CandidateBook
from bookrouter.models.query import Classification
from bookrouter.models.result import Degradation, DegradationReason, PathResult
from bookrouter.models.routing import RoutingPath
from bookrouter.services.paths.temporal_path import SnippetBook, SnippetBooks
from bookrouter.services.structured_text import StructuredTextService
from bookrouter.utils.concurrency import throttled_gather, with_timeout
from bookrouter.utils.errors import BookRouterError, RateLimitError, SearchError
from bookrouter.utils.logging import get_logger
from bookrouter.utils.text_normalizer import contains_phrase, names_match, normalize_text

_STAGE = "similar_author_path"

EXPLAIN_SIMILAR_AUTHOR = "Here are writers in the spirit of {author}."
EXPLAIN_NONE = "I couldn't confirm books by writers like {author} right now."
TRANSPARENCY_NOTE = "These writers are outside my curated collection, but their readers overlap."


def build_similar_author_phrase(author: str) -> str:
    return f"authors similar to {author} books recommendations"


class SimilarAuthorPath:
    """Finds verified books by writers similar to a catalog author."""

    def __init__(
        self,
        search_provider: IWebSearchProvider,
        metadata_provider: IBookMetadataProvider,
        structured_text: StructuredTextService,
        search_timeout: float = 8.0,
        metadata_timeout: float = 6.0,
        num_results: int = 8,
        limit: int = 10,
        verify_concurrency: int = 3,
    ) -> None:
        self._search = search_provider
        self._metadata = metadata_provider
        self._structured = structured_text
        self._search_timeout = search_timeout
        self._metadata_timeout = metadata_timeout
        self._num_results = num_results
        self._limit = limit
        self._verify_concurrency = verify_concurrency
        self._logger = get_logger(__name__)

    async def execute(self, classification: Classification) -> PathResult:
        if not classification.entities.authors:
            return PathResult(path=RoutingPath.WORLD)
        author = classification.entities.authors[0]

        try:
            results = await with_timeout(
                self._search.search(build_similar_author_phrase(author), num_results=self._num_results),
                self._search_timeout,
            )
        except (asyncio.TimeoutError, SearchError, RateLimitError) as exc:
            detail = str(exc) or "web search timed out"
            self._logger.warning("similar_author_search_failed", error=detail)
            return self._empty(author, DegradationReason.SEARCH_FAILED, detail)

        if not results:
            self._logger.info("similar_author_search_empty", author=author)
            return self._empty(author)

        mentions, extraction_degradation = await self._mentions(results, author)
        if extraction_degradation is not None:
            return self._empty(author, extraction_degradation.reason, extraction_degradation.detail)

        outcomes = await throttled_gather(
            [self._verify(mention, author) for mention in mentions],
            limit=self._verify_concurrency,
        )
        candidates: list[CandidateBook] = []
        failures = 0
        for mention, outcome in zip(mentions, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, (asyncio.TimeoutError, BookRouterError)):
                    raise outcome
                failures += 1
                continue
            if outcome is None:
                self._logger.info("similar_author_mention_unverified", title=mention.title)
                continue
            candidates.append(outcome)

        self._logger.info(
            "similar_author_path_complete",
            mentioned=len(mentions),
            verified=len(candidates),
            lookup_failures=failures,
        )
        if not candidates and failures:
            return self._empty(author, DegradationReason.METADATA_LOOKUP_FAILED, f"{failures} lookups failed")
        if not candidates:
            return self._empty(author)
        return PathResult(
            path=RoutingPath.WORLD,
            candidates=candidates,
            explanation=EXPLAIN_SIMILAR_AUTHOR.format(author=author),
            transparency_note=TRANSPARENCY_NOTE,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _mentions(
        self,
        results: list[SearchResult],
        author: str,
    ) -> tuple[list[SnippetBook], Degradation | None]:
        corpus = "\n".join(f"{r.title}\n{r.snippet or ''}" for r in results)
        result = await self._structured.query(
            SnippetBooks,
            tool_name="extract_similar_author_books",
            tool_description="Record the books by other writers mentioned in the search results.",
            system_prompt=(
                f"You read web search results about writers similar to {author}. "
                f"List only books whose title is written in the results and that "
                f"were written by someone other than {author}, with the author as "
                "written. Never add a book that is not in the text. Return an "
                "empty list if none are mentioned."
            ),
            user_prompt=f"Search results:\n{corpus}",
            stage=_STAGE,
            failure_reason=DegradationReason.EXTRACTION_FAILED,
            max_tokens=800,
        )
        if result.value is None:
            return [], result.degradation

        mentions: list[SnippetBook] = []
        seen: set[str] = set()
        for book in result.value.books:
            key = normalize_text(book.title)
            if not key or key in seen:
                continue
            if not (contains_phrase(corpus, book.title) and contains_phrase(corpus, book.author)):
                self._logger.info("similar_author_mention_not_in_results", title=book.title)
                continue
            if names_match(author, book.author):
                continue
            seen.add(key)
            mentions.append(book)
            if len(mentions) >= self._limit:
                break
        return mentions, None

    async def _verify(self, mention: SnippetBook, named_author: str) -> CandidateBook | None:
        edition = await with_timeout(
            self._metadata.lookup_title(mention.title, mention.author),
            self._metadata_timeout,
        )
        if edition is None or not edition.isbn:
            return None
        if not any(names_match(mention.author, name) for name in edition.authors):
            return None
        if any(names_match(named_author, name) for name in edition.authors):
            return None
        return CandidateBook(
            title=edition.title,
            author=mention.author.strip(),
            description=edition.description,
            source=BookSource.WORLD,
            verified=True,
            isbn=edition.isbn,
        )

    @staticmethod
    def _empty(
        author: str,
        reason: DegradationReason | None = None,
        detail: str = "",
    ) -> PathResult:
        degradations = [] if reason is None else [Degradation(stage=_STAGE, reason=reason, detail=detail)]
        return PathResult(
            path=RoutingPath.WORLD,
            explanation=EXPLAIN_NONE.format(author=author),
            degradations=degradations,
        )
