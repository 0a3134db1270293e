"""Abstract base class for books-metadata services.

A successful lookup is what turns a book mentioned on the web (or proposed
by the generative service) into a *verified* candidate: the service must
return a concrete edition with an identifier.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from bookrouter.models.book import BookMetadata


# Concrete implementation: GoogleBooksProvider (bookrouter/providers/book_metadata/)
class IBookMetadataProvider(ABC):
    """Contract for edition lookups."""

    @abstractmethod
    async def lookup_isbn(self, isbn: str) -> BookMetadata | None:
        """Resolve an ISBN-10/13 to an edition, or ``None`` if unknown.

        Raises
        ------
        bookrouter.utils.errors.MetadataLookupError
            If the service cannot be reached.
        """

    @abstractmethod
    async def lookup_title(self, title: str, author: str | None = None) -> BookMetadata | None:
        """Resolve a title (optionally narrowed by author) to its best edition.

        Returns ``None`` when nothing matches.

        Raises
        ------
        bookrouter.utils.errors.MetadataLookupError
            If the service cannot be reached.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"google_books"``."""
