"""Abstract base class for web-search service providers.

Used by the temporal path to find what an author or genre has published
recently.  Results feed the edition resolver (ISBN extraction, metadata
lookup) and, failing that, a constrained extraction step that may only
return titles literally present in the snippets.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SearchResult:
    """A single web-search hit.

    Attributes
    ----------
    title:
        Page title (or knowledge-panel title) as returned by the engine.
    url:
        Result URL; empty for knowledge-panel and answer-box entries.
    snippet:
        Text excerpt.
    result_type:
        ``"organic"``, ``"knowledge"`` or ``"answer"``.
    isbn:
        ISBN spotted in the snippet, if any.
    """

    title: str
    url: str = ""
    snippet: str | None = None
    result_type: str = "organic"
    isbn: str | None = None


# Concrete implementations: SerperSearchProvider, DuckDuckGoSearchProvider
# Located in: bookrouter/providers/search/
class IWebSearchProvider(ABC):
    """Contract for web-search services."""

    @abstractmethod
    async def search(self, query: str, num_results: int = 5) -> list[SearchResult]:
        """Execute a web search and return the top results.

        Parameters
        ----------
        query:
            The search query string.
        num_results:
            Maximum number of organic results to return.

        Returns
        -------
        list[SearchResult]
            Knowledge-panel and answer-box entries first (when the engine
            has them), then organic results by relevance.

        Raises
        ------
        bookrouter.utils.errors.SearchError
            If the search API call fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"serper"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
