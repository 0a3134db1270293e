"""Abstract base class for text-embedding service providers.

Turns free text into a fixed-length vector.  Used by the catalog probe and
the catalog path's similarity fallback; the catalog's own vectors were
produced by the same model at ingestion time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (bookrouter/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*.

        Raises
        ------
        bookrouter.utils.errors.EmbeddingError
            If the embedding API call fails.  A failure is never reported as
            a zero vector.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Embed one string (a query, usually)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""
