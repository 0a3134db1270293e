"""Public interface definitions for all external collaborators.

Every external API or store the router touches is accessed through the
abstract base classes in this package.  Concrete adapters implement them and
are wired together in ``bookrouter/main.py``; tests inject fakes instead.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in bookrouter/providers/)
    ─────────────────────────────────────────────────────────────────────
    ILLMProvider               →  AnthropicLLMProvider, OpenAILLMProvider
    IEmbeddingProvider         →  OpenAIEmbeddingProvider
    ICatalogStore              →  JsonCatalogStore, ChromaDBCatalogStore
    IWebSearchProvider         →  SerperSearchProvider, DuckDuckGoSearchProvider
    IBookMetadataProvider      →  GoogleBooksProvider
    ICacheProvider             →  MemoryCacheProvider
    IUserHistoryProvider       →  SQLiteHistoryProvider
"""

from bookrouter.interfaces.book_metadata_provider import IBookMetadataProvider
from bookrouter.interfaces.cache_provider import ICacheProvider
from bookrouter.interfaces.catalog_store import ICatalogStore
from bookrouter.interfaces.embedding_provider import IEmbeddingProvider
from bookrouter.interfaces.history_provider import IUserHistoryProvider
from bookrouter.interfaces.llm_provider import ILLMProvider
from bookrouter.interfaces.web_search_provider import IWebSearchProvider, SearchResult

__all__ = [
    "IBookMetadataProvider",
    "ICacheProvider",
    "ICatalogStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IUserHistoryProvider",
    "IWebSearchProvider",
    "SearchResult",
]
