"""Embedding provider implementations.

Embeddings turn query text into vectors comparable with the catalog's
precomputed vectors.  The catalog must be embedded with the same model the
router uses at query time (see ``bookrouter.cli.ingest``).

    OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims) or any
    OpenAI-compatible embeddings endpoint.
"""

from bookrouter.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
