"""Abstract base class for read-only access to the curated catalog.

The router never writes the catalog; ingestion happens out of band (see
``bookrouter.cli.ingest``).  Every query returns ``[]`` when nothing
matches -- "not found" is not an error.  Only a genuine backend failure
raises :class:`~bookrouter.utils.errors.CatalogError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from bookrouter.models.book import CatalogEntry, ScoredEntry


# Concrete implementations: JsonCatalogStore, ChromaDBCatalogStore
# Located in: bookrouter/providers/catalog/
class ICatalogStore(ABC):
    """Contract for the curated book collection."""

    @abstractmethod
    async def similarity_search(
        self,
        vector: list[float],
        limit: int = 5,
        min_score: float = 0.0,
    ) -> list[ScoredEntry]:
        """Return the nearest catalog entries to *vector*.

        Parameters
        ----------
        vector:
            Query embedding.
        limit:
            Maximum number of entries to return.
        min_score:
            Minimum cosine similarity (inclusive).

        Returns
        -------
        list[ScoredEntry]
            Entries ordered by descending similarity.
        """

    @abstractmethod
    async def by_theme(self, themes: list[str], limit: int = 10) -> list[CatalogEntry]:
        """Return entries sharing at least one of *themes*.

        Entries overlapping more of the requested themes rank first;
        flagged favorites break ties.
        """

    @abstractmethod
    async def by_author(self, name: str, limit: int = 10) -> list[CatalogEntry]:
        """Return entries whose author matches *name* (case-insensitive)."""

    @abstractmethod
    async def by_genre(self, genre: str, limit: int = 10) -> list[CatalogEntry]:
        """Return entries whose genre matches *genre* (case-insensitive)."""

    @abstractmethod
    async def favorites(self, themes: list[str] | None = None, limit: int = 10) -> list[CatalogEntry]:
        """Return the curator's flagged favorites, optionally limited to *themes*."""

    @abstractmethod
    async def list_entries(self) -> list[CatalogEntry]:
        """Return every entry.  Used once at startup to build the author/title index."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"json"``."""
