"""Custom exception hierarchy for bookrouter.

All application exceptions inherit from :class:`BookRouterError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "serper", "google_books") caused the
failure.

The hierarchy is organized by collaborator:

    BookRouterError  (base -- catch-all for any bookrouter error)
    +-- LLMError                 (generative text call failed)
    |   +-- StructuredOutputError (tool call missing or schema mismatch)
    +-- EmbeddingError           (embedding service failure)
    +-- CatalogError             (catalog store read failure)
    +-- SearchError              (web search failure)
    +-- MetadataLookupError      (books-metadata service failure)
    +-- HistoryError             (user history store failure)
    +-- ConfigurationError       (startup / missing config)
    +-- RateLimitError           (provider rate-limit exceeded)
    +-- ProviderUnavailableError (external service down / unreachable)

None of these ever reach the caller of the recommendation pipeline: every
stage converts them into a :class:`~bookrouter.models.result.DegradationReason`
and falls back to the next-safer behaviour.  They exist so that providers
can report failures precisely and the stage wrappers can log them.
"""


class BookRouterError(Exception):
    """Base exception for all bookrouter errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for log
    output, e.g. ``[serper] HTTP 403``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Generative text errors
# ---------------------------------------------------------------------------

class LLMError(BookRouterError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StructuredOutputError(LLMError):
    """Raised when a schema-constrained call returns no tool call or bad fields."""

    def __init__(
        self,
        message: str = "Structured output did not match the requested schema",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Retrieval errors
# ---------------------------------------------------------------------------

class EmbeddingError(BookRouterError):
    """Raised when the embedding service fails.  Never replaced by a zero vector."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CatalogError(BookRouterError):
    """Raised when the catalog store cannot be read.

    "Not found" is never an error -- catalog queries return ``[]`` instead.
    """

    def __init__(
        self,
        message: str = "Catalog store query failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SearchError(BookRouterError):
    """Raised when a web search request fails."""

    def __init__(
        self,
        message: str = "Web search failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class MetadataLookupError(BookRouterError):
    """Raised when the books-metadata service cannot be queried."""

    def __init__(
        self,
        message: str = "Book metadata lookup failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class HistoryError(BookRouterError):
    """Raised when the user history store cannot be read."""

    def __init__(
        self,
        message: str = "User history lookup failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(BookRouterError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(BookRouterError):
    """Raised when an API rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(BookRouterError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
