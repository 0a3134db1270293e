"""Utility modules for bookrouter.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at BookRouterError;
  providers wrap SDK and HTTP failures in these so pipeline stages can
  recover from them without broad ``except Exception`` blocks.
- **concurrency** -- hard deadlines, a single bounded retry for idempotent
  reads, and semaphore-throttled fan-out.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- title/author normalization, fuzzy name matching
  and literal phrase detection used by every validation step.
"""

# -- Domain exception hierarchy --------------------------------------------
from bookrouter.utils.errors import (
    BookRouterError,
    CatalogError,
    ConfigurationError,
    EmbeddingError,
    HistoryError,
    LLMError,
    MetadataLookupError,
    ProviderUnavailableError,
    RateLimitError,
    SearchError,
    StructuredOutputError,
)

# -- Async concurrency helpers ---------------------------------------------
from bookrouter.utils.concurrency import retry_once, throttled_gather, with_timeout

# -- Structured logging setup ----------------------------------------------
from bookrouter.utils.logging import configure_logging, get_logger

# -- Text normalization (titles, author names, literal presence) -----------
from bookrouter.utils.text_normalizer import (
    contains_phrase,
    fuzzy_match,
    names_match,
    normalize_text,
    normalize_title,
    titles_match,
)

__all__ = [
    "BookRouterError",
    "CatalogError",
    "ConfigurationError",
    "EmbeddingError",
    "HistoryError",
    "LLMError",
    "MetadataLookupError",
    "ProviderUnavailableError",
    "RateLimitError",
    "SearchError",
    "StructuredOutputError",
    "configure_logging",
    "contains_phrase",
    "fuzzy_match",
    "get_logger",
    "names_match",
    "normalize_text",
    "normalize_title",
    "retry_once",
    "throttled_gather",
    "titles_match",
    "with_timeout",
]
