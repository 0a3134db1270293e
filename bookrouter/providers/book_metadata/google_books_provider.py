"""Google Books metadata provider implementing IBookMetadataProvider.

Queries the public ``volumes`` endpoint:

- by identifier: ``q=isbn:<digits>``
- by title/author: ``q=intitle:<title>+inauthor:<author>``

and normalizes ``volumeInfo`` (title + subtitle, authors, industry
identifiers, description, publisher, published date, categories, cover
image) into :class:`BookMetadata`.  Only volumes that carry an ISBN are
returned, because an identifier is what makes a book verifiable.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from bookrouter.interfaces.book_metadata_provider import IBookMetadataProvider
from bookrouter.models.book import BookMetadata
from bookrouter.utils.errors import MetadataLookupError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_VOLUMES_URL = "https://www.googleapis.com/books/v1/volumes"
_DEFAULT_TIMEOUT = 6.0


class GoogleBooksProvider(IBookMetadataProvider):
    """Edition lookups against the Google Books API."""

    def __init__(self, api_key: str = "", http_client: httpx.AsyncClient | None = None) -> None:
        self._api_key = api_key
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(_DEFAULT_TIMEOUT))

    # ------------------------------------------------------------------
    # IBookMetadataProvider implementation
    # ------------------------------------------------------------------

    async def lookup_isbn(self, isbn: str) -> BookMetadata | None:
        digits = "".join(ch for ch in isbn if ch.isdigit() or ch in "Xx")
        if len(digits) not in (10, 13):
            return None
        return await self._first_volume(f"isbn:{digits}", max_results=1)

    async def lookup_title(self, title: str, author: str | None = None) -> BookMetadata | None:
        if not title.strip():
            return None
        query = f"intitle:{title.strip()}"
        if author:
            query += f"+inauthor:{author.strip()}"
        return await self._first_volume(query, max_results=3)

    def get_provider_name(self) -> str:
        return "google_books"

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _first_volume(self, query: str, max_results: int) -> BookMetadata | None:
        params: dict[str, Any] = {"q": query, "maxResults": max_results, "printType": "books"}
        if self._api_key:
            params["key"] = self._api_key

        try:
            response = await self._client.get(_VOLUMES_URL, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 429:
                raise RateLimitError(
                    message="Google Books rate limit exceeded",
                    provider_name=self.get_provider_name(),
                ) from exc
            raise MetadataLookupError(
                message=f"HTTP {exc.response.status_code} from Google Books",
                provider_name=self.get_provider_name(),
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise MetadataLookupError(
                message=f"Google Books request failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        for item in data.get("items") or []:
            metadata = self._parse_volume(item.get("volumeInfo") or {})
            if metadata is not None and metadata.isbn:
                logger.debug("google_books_resolved", query=query, title=metadata.title)
                return metadata

        logger.debug("google_books_no_match", query=query)
        return None

    @staticmethod
    def _parse_volume(info: dict[str, Any]) -> BookMetadata | None:
        title = (info.get("title") or "").strip()
        if not title:
            return None

        isbn_13: str | None = None
        isbn_10: str | None = None
        for ident in info.get("industryIdentifiers") or []:
            if ident.get("type") == "ISBN_13":
                isbn_13 = ident.get("identifier")
            elif ident.get("type") == "ISBN_10":
                isbn_10 = ident.get("identifier")

        images = info.get("imageLinks") or {}
        return BookMetadata(
            title=title,
            authors=list(info.get("authors") or []),
            isbn_13=isbn_13,
            isbn_10=isbn_10,
            description=info.get("description"),
            publisher=info.get("publisher"),
            published_date=info.get("publishedDate"),
            categories=list(info.get("categories") or []),
            cover_url=images.get("thumbnail") or images.get("smallThumbnail"),
        )
