"""bookrouter FastAPI application entry point.

Wires together all providers, services and routes via dependency
injection.  Loads configuration from ``.env`` and ``config/config.yaml``
and configures structured logging.

``build_pipeline`` assembles a :class:`RecommendationPipeline` from already
constructed providers, so the CLI and the tests can reuse the exact wiring
the web server uses.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from bookrouter.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from bookrouter.api.routes import API_VERSION
from bookrouter.api.routes import router as api_router
from bookrouter.config.loader import load_config
from bookrouter.config.settings import Settings
from bookrouter.interfaces.book_metadata_provider import IBookMetadataProvider
from bookrouter.interfaces.cache_provider import ICacheProvider
from bookrouter.interfaces.catalog_store import ICatalogStore
from bookrouter.interfaces.embedding_provider import IEmbeddingProvider
from bookrouter.interfaces.history_provider import IUserHistoryProvider
from bookrouter.interfaces.llm_provider import ILLMProvider
from bookrouter.interfaces.web_search_provider import IWebSearchProvider
from bookrouter.models.book import CatalogEntry
from bookrouter.models.result import RecommendationResponse
from bookrouter.pipeline.orchestrator import RecommendationPipeline
from bookrouter.pipeline.router import QueryRouter
from bookrouter.providers.book_metadata.google_books_provider import GoogleBooksProvider
from bookrouter.providers.cache.memory_cache import MemoryCacheProvider
from bookrouter.providers.catalog.json_catalog_store import JsonCatalogStore
from bookrouter.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from bookrouter.providers.history.sqlite_history_provider import SQLiteHistoryProvider
from bookrouter.providers.llm.anthropic_provider import AnthropicLLMProvider
from bookrouter.providers.llm.openai_provider import OpenAILLMProvider
from bookrouter.providers.search.duckduckgo_provider import DuckDuckGoSearchProvider
from bookrouter.providers.search.serper_provider import SerperSearchProvider
from bookrouter.services.catalog_probe import CatalogProbe
from bookrouter.services.entity_extractor import EntityExtractor
from bookrouter.services.entity_validator import CatalogIndex, EntityValidator
from bookrouter.services.exclusion_filter import ExclusionFilter
from bookrouter.services.paths import (
    CatalogPath,
    HybridPath,
    SimilarAuthorPath,
    TemporalPath,
    WorldPath,
)
from bookrouter.services.query_classifier import QueryClassifier
from bookrouter.services.query_embedder import QueryEmbedder
from bookrouter.services.response_formatter import ResponseFormatter
from bookrouter.services.structured_text import StructuredTextService
from bookrouter.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=config.get("logging", {}).get("level", settings.log_level),
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the first available LLM provider based on configured API keys.

    Priority order: Anthropic -> OpenAI.  With no key configured the
    Anthropic provider is still returned; its calls fail and every
    generative stage falls back to its deterministic default.
    """
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    _logger.warning("no_llm_provider_configured")
    return AnthropicLLMProvider(settings=app_settings)


def _build_search_provider(
    app_settings: Settings,
    http_client: httpx.AsyncClient,
) -> IWebSearchProvider:
    """Serper when a key is set, DuckDuckGo otherwise."""
    if app_settings.serper_api_key:
        return SerperSearchProvider(api_key=app_settings.serper_api_key, http_client=http_client)
    return DuckDuckGoSearchProvider()


def _build_catalog_store(app_settings: Settings) -> ICatalogStore:
    if app_settings.catalog_backend == "chromadb":
        # Imported lazily: chromadb is heavy and only needed for this backend.
        from bookrouter.providers.catalog.chromadb_catalog_store import ChromaDBCatalogStore

        return ChromaDBCatalogStore(
            persist_directory=app_settings.chromadb_persist_dir,
            collection_name=app_settings.chromadb_collection,
        )
    return JsonCatalogStore.from_file(app_settings.catalog_json_path)


# ---------------------------------------------------------------------------
# Pipeline assembly
# ---------------------------------------------------------------------------


def build_pipeline(
    app_settings: Settings,
    *,
    llm_provider: ILLMProvider,
    embedding_provider: IEmbeddingProvider,
    catalog_store: ICatalogStore,
    catalog_entries: list[CatalogEntry],
    search_provider: IWebSearchProvider,
    metadata_provider: IBookMetadataProvider,
    history_provider: IUserHistoryProvider | None = None,
    cache: ICacheProvider | None = None,
    today: date | None = None,
) -> RecommendationPipeline:
    """Wire every service of the recommendation pipeline.

    ``catalog_entries`` is the snapshot the entity validator indexes; it is
    read once at startup.
    """
    thresholds = app_settings.routing_thresholds()
    cache = cache if cache is not None else MemoryCacheProvider(
        max_size=app_settings.cache_max_size,
        ttl=app_settings.cache_ttl,
    )
    structured = StructuredTextService(llm_provider, timeout=app_settings.llm_timeout)
    embedder = QueryEmbedder(
        embedding_provider,
        cache=cache,
        timeout=app_settings.embedding_timeout,
        retry_backoff=app_settings.read_retry_backoff,
        cache_ttl=app_settings.cache_ttl,
    )

    probe = CatalogProbe(
        embedder,
        catalog_store,
        thresholds,
        cache=cache,
        catalog_timeout=app_settings.catalog_timeout,
        retry_backoff=app_settings.read_retry_backoff,
        cache_ttl=app_settings.cache_ttl,
    )
    catalog_path = CatalogPath(
        catalog_store,
        embedder,
        limit=app_settings.catalog_path_limit,
        similarity_floor=app_settings.catalog_similarity_floor,
        similar_book_floor=app_settings.similar_book_floor,
        catalog_timeout=app_settings.catalog_timeout,
        retry_backoff=app_settings.read_retry_backoff,
    )
    world_path = WorldPath()

    return RecommendationPipeline(
        router=QueryRouter(probe, thresholds, today=today),
        entity_extractor=EntityExtractor(structured),
        entity_validator=EntityValidator(CatalogIndex.from_entries(catalog_entries)),
        classifier=QueryClassifier(today=today),
        catalog_path=catalog_path,
        world_path=world_path,
        hybrid_path=HybridPath(
            catalog_path,
            world_path,
            min_catalog=app_settings.hybrid_min_catalog,
        ),
        temporal_path=TemporalPath(
            search_provider,
            metadata_provider,
            structured,
            search_timeout=app_settings.search_timeout,
            metadata_timeout=app_settings.metadata_timeout,
            today=today,
        ),
        exclusion_filter=ExclusionFilter(
            catalog_store,
            history_provider,
            history_timeout=app_settings.history_timeout,
            requery_limit=app_settings.exhaustion_requery_limit,
            favorites_limit=app_settings.max_recommendations,
            catalog_timeout=app_settings.catalog_timeout,
            retry_backoff=app_settings.read_retry_backoff,
        ),
        formatter=ResponseFormatter(
            structured,
            metadata_provider,
            metadata_timeout=app_settings.metadata_timeout,
            proposal_limit=app_settings.world_proposal_limit,
        ),
        similar_author_path=SimilarAuthorPath(
            search_provider,
            metadata_provider,
            structured,
            search_timeout=app_settings.search_timeout,
            metadata_timeout=app_settings.metadata_timeout,
            limit=app_settings.similar_author_limit,
        ),
        max_recommendations=app_settings.max_recommendations,
    )


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


async def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    http_client = httpx.AsyncClient(timeout=30.0)

    llm = _build_llm_provider(app_settings)
    embedding = OpenAIEmbeddingProvider(settings=app_settings)
    catalog = _build_catalog_store(app_settings)
    search = _build_search_provider(app_settings, http_client)
    metadata = GoogleBooksProvider(api_key=app_settings.google_books_api_key, http_client=http_client)
    history = SQLiteHistoryProvider(app_settings.history_db_path)
    await history.initialize()

    entries = await catalog.list_entries()
    pipeline = build_pipeline(
        app_settings,
        llm_provider=llm,
        embedding_provider=embedding,
        catalog_store=catalog,
        catalog_entries=entries,
        search_provider=search,
        metadata_provider=metadata,
        history_provider=history,
    )

    provider_registry = {
        "llm": llm.is_available(),
        "llm_name": llm.get_provider_name(),
        "embedding": embedding.is_available(),
        "catalog": bool(entries),
        "catalog_entries": len(entries),
        "catalog_backend": catalog.get_provider_name(),
        "search": search.is_available(),
        "search_name": search.get_provider_name(),
        "metadata": metadata.get_provider_name(),
        "history": history.get_provider_name(),
    }
    return {
        "http_client": http_client,
        "pipeline": pipeline,
        "history_provider": history,
        "provider_registry": provider_registry,
    }


async def run_recommendation(
    query_text: str,
    *,
    user_id: str | None = None,
    reading_history: list[str] | None = None,
    theme_filters: list[str] | None = None,
    session_shown_titles: list[str] | None = None,
) -> RecommendationResponse:
    """One-shot pipeline run outside the web server (CLI, scripts)."""
    components = await _build_all(settings)
    try:
        pipeline: RecommendationPipeline = components["pipeline"]
        return await pipeline.get_recommendations(
            query_text,
            user_id=user_id,
            reading_history=reading_history or [],
            theme_filters=theme_filters or [],
            session_shown_titles=session_shown_titles or [],
        )
    finally:
        await components["http_client"].aclose()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = await _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    registry = components["provider_registry"]
    _logger.info(
        "app_startup",
        version=API_VERSION,
        environment=settings.app_env,
        llm=registry["llm_name"],
        catalog_entries=registry["catalog_entries"],
    )

    yield

    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="bookrouter API",
        version=API_VERSION,
        description=(
            "Route book recommendation requests between a curated catalog and "
            "the open world, and return only verified, unseen books."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()


def main() -> None:
    uvicorn.run(
        "bookrouter.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    main()
