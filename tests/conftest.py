"""Shared pytest fixtures for the bookrouter test suite."""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from bookrouter.config.settings import Settings
from bookrouter.interfaces.book_metadata_provider import IBookMetadataProvider
from bookrouter.interfaces.embedding_provider import IEmbeddingProvider
from bookrouter.interfaces.llm_provider import ILLMProvider
from bookrouter.interfaces.web_search_provider import IWebSearchProvider, SearchResult
from bookrouter.models.book import BookMetadata, CatalogEntry
from bookrouter.providers.cache.memory_cache import MemoryCacheProvider
from bookrouter.providers.catalog.json_catalog_store import JsonCatalogStore
from bookrouter.utils.errors import LLMError
from bookrouter.utils.text_normalizer import normalize_text

# Fixed reference date so year-based routing rules are stable.
TODAY = date(2026, 3, 1)

# Keyword axes of the toy embedding space.  A text's vector counts how often
# each axis word occurs in it, so similarities are predictable by reading
# the query.
AXES = ("justice", "family", "beach", "faith", "women")

_PROMPT_CANDIDATE_RE = re.compile(r"^\d+\.\s+(?P<title>.+?)\s+by\s+(?P<author>[^:\n]+)", re.MULTILINE)


def keyword_vector(text: str) -> list[float]:
    lowered = text.lower()
    return [float(lowered.count(word)) for word in AXES]


def _request_text(user_prompt: str) -> str:
    first = user_prompt.splitlines()[0] if user_prompt else ""
    return first.removeprefix("Request:").strip()


def echo_candidates(user_prompt: str) -> dict[str, Any]:
    """Formatter reply that explains exactly the candidates it was given."""
    return {
        "intro_text": "",
        "recommendations": [
            {
                "title": match.group("title").strip(),
                "author": match.group("author").strip(),
                "why_fits": f"{match.group('title').strip()} fits what you asked for.",
            }
            for match in _PROMPT_CANDIDATE_RE.finditer(user_prompt)
        ],
    }


def plain_extraction(user_prompt: str) -> dict[str, Any]:
    """Extractor reply with no entities."""
    return {"search_query": _request_text(user_prompt), "intent": "theme_search", "themes": []}


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def today() -> date:
    """Return the fixed reference date used by routing and classification."""
    return TODAY


@pytest.fixture
def settings() -> Settings:
    """Return default settings without reading a local .env file."""
    return Settings(_env_file=None)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture
def catalog_entries() -> list[CatalogEntry]:
    """Eight curated books; four tagged ``justice``, two by Brit Bennett."""
    return [
        CatalogEntry(
            id="b-001",
            title="Just Mercy",
            author="Bryan Stevenson",
            themes=["justice"],
            genre="nonfiction",
            curator_assessment="A lawyer's account of fighting for the wrongly condemned.",
            isbn="9780812984965",
            favorite=True,
            embedding=[1.0, 0.0, 0.0, 0.0, 0.0],
        ),
        CatalogEntry(
            id="b-002",
            title="The Hate U Give",
            author="Angie Thomas",
            themes=["justice", "identity"],
            genre="young adult",
            embedding=[1.0, 0.1, 0.0, 0.0, 0.0],
        ),
        CatalogEntry(
            id="b-003",
            title="An American Marriage",
            author="Tayari Jones",
            themes=["justice", "family"],
            genre="literary fiction",
            embedding=[0.8, 0.6, 0.0, 0.0, 0.0],
        ),
        CatalogEntry(
            id="b-004",
            title="The Nickel Boys",
            author="Colson Whitehead",
            themes=["justice"],
            genre="historical fiction",
            favorite=True,
            embedding=[0.9, 0.0, 0.0, 0.2, 0.0],
        ),
        CatalogEntry(
            id="b-005",
            title="The Vanishing Half",
            author="Brit Bennett",
            themes=["identity", "family", "women"],
            genre="literary fiction",
            description="Twin sisters choose different lives.",
            favorite=True,
            embedding=[0.0, 1.0, 0.0, 0.0, 0.5],
        ),
        CatalogEntry(
            id="b-006",
            title="The Mothers",
            author="Brit Bennett",
            themes=["women", "family"],
            genre="literary fiction",
            embedding=[0.0, 0.8, 0.0, 0.0, 0.6],
        ),
        CatalogEntry(
            id="b-007",
            title="Beach Read",
            author="Emily Henry",
            themes=["beach"],
            genre="romance",
            favorite=True,
            embedding=[0.0, 0.0, 1.0, 0.0, 0.0],
        ),
        CatalogEntry(
            id="b-008",
            title="Gilead",
            author="Marilynne Robinson",
            themes=["spiritual"],
            genre="literary fiction",
            embedding=[0.0, 0.0, 0.0, 1.0, 0.0],
        ),
    ]


@pytest.fixture
def justice_titles(catalog_entries: list[CatalogEntry]) -> list[str]:
    """Titles of every catalog entry tagged ``justice``."""
    return [e.title for e in catalog_entries if "justice" in e.themes]


@pytest.fixture
def catalog_store(catalog_entries: list[CatalogEntry]) -> JsonCatalogStore:
    """In-memory catalog store over :func:`catalog_entries`."""
    return JsonCatalogStore(catalog_entries)


@pytest.fixture
def memory_cache() -> MemoryCacheProvider:
    """Return a small in-memory cache."""
    return MemoryCacheProvider(max_size=100, ttl=60)


# ---------------------------------------------------------------------------
# Provider fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MagicMock:
    """Embedding provider over the keyword-axis space."""
    provider = MagicMock(spec=IEmbeddingProvider)
    provider.embed_single = AsyncMock(side_effect=keyword_vector)
    provider.embed = AsyncMock(side_effect=lambda texts: [keyword_vector(t) for t in texts])
    provider.get_dimension.return_value = len(AXES)
    provider.get_provider_name.return_value = "keyword-axes"
    provider.is_available.return_value = True
    return provider


@pytest.fixture
def make_llm() -> Callable[..., MagicMock]:
    """Factory for an LLM whose forced tool calls are scripted per tool name.

    Each override maps a tool name to a reply dict, a callable taking the
    user prompt, or an exception to raise.  Extraction and formatting have
    defaults (no entities; echo the candidate list).
    """

    def _make(**overrides: Any) -> MagicMock:
        replies: dict[str, Any] = {
            "extract_search_intent": plain_extraction,
            "format_recommendations": echo_candidates,
        }
        replies.update(overrides)

        async def _complete_structured(**kwargs: Any) -> dict[str, Any]:
            reply = replies.get(kwargs["tool_name"])
            if reply is None:
                raise LLMError(message=f"no scripted reply for {kwargs['tool_name']}", provider_name="scripted")
            if isinstance(reply, BaseException):
                raise reply
            if callable(reply):
                return reply(kwargs["user_prompt"])
            return reply

        llm = MagicMock(spec=ILLMProvider)
        llm.complete_structured = AsyncMock(side_effect=_complete_structured)
        llm.complete = AsyncMock(return_value="")
        llm.get_provider_name.return_value = "scripted"
        llm.is_available.return_value = True
        return llm

    return _make


@pytest.fixture
def mock_llm(make_llm: Callable[..., MagicMock]) -> MagicMock:
    """Scripted LLM with the default replies."""
    return make_llm()


@pytest.fixture
def known_editions() -> list[BookMetadata]:
    """Editions the fake metadata service can resolve."""
    return [
        BookMetadata(
            title="The Lost Fleet: Dauntless",
            authors=["Jack Campbell"],
            isbn_13="9780441014187",
            description="A fleet stranded deep in enemy space.",
            published_date="2006-06-27",
        ),
        BookMetadata(
            title="Leviathan Wakes",
            authors=["James S. A. Corey"],
            isbn_13="9780316129084",
            published_date="2011-06-15",
        ),
        BookMetadata(
            title="The Glass Orchard",
            authors=["Brit Bennett"],
            isbn_13="9780593999991",
            description="A family saga set in a Louisiana orchard town.",
            publisher="Riverhead",
            published_date="2026-05-05",
        ),
    ]


@pytest.fixture
def mock_metadata_provider(known_editions: list[BookMetadata]) -> MagicMock:
    """Metadata service resolving only :func:`known_editions`."""
    by_isbn = {e.isbn: e for e in known_editions}
    by_title = {normalize_text(e.title): e for e in known_editions}

    async def _lookup_isbn(isbn: str) -> BookMetadata | None:
        return by_isbn.get(isbn)

    async def _lookup_title(title: str, author: str | None = None) -> BookMetadata | None:
        return by_title.get(normalize_text(title))

    provider = MagicMock(spec=IBookMetadataProvider)
    provider.lookup_isbn = AsyncMock(side_effect=_lookup_isbn)
    provider.lookup_title = AsyncMock(side_effect=_lookup_title)
    provider.get_provider_name.return_value = "fake_books"
    return provider


@pytest.fixture
def new_release_results() -> list[SearchResult]:
    """Search results for a catalog author's upcoming book."""
    return [
        SearchResult(
            title="The Glass Orchard",
            snippet="Brit Bennett returns with The Glass Orchard, out May 2026. ISBN 9780593999991",
            result_type="knowledge",
            isbn="9780593999991",
        ),
        SearchResult(
            title="Brit Bennett announces new novel",
            url="https://example.com/news",
            snippet="The Vanishing Half author Brit Bennett has a new book coming.",
        ),
    ]


@pytest.fixture
def mock_search_provider(new_release_results: list[SearchResult]) -> MagicMock:
    """Web search returning :func:`new_release_results`."""
    provider = MagicMock(spec=IWebSearchProvider)
    provider.search = AsyncMock(return_value=new_release_results)
    provider.get_provider_name.return_value = "fake_search"
    provider.is_available.return_value = True
    return provider


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


@pytest.fixture
def make_pipeline(
    settings: Settings,
    mock_embedding_provider: MagicMock,
    catalog_store: JsonCatalogStore,
    catalog_entries: list[CatalogEntry],
    mock_search_provider: MagicMock,
    mock_metadata_provider: MagicMock,
    mock_llm: MagicMock,
) -> Callable[..., Any]:
    """Factory wiring a full pipeline over the fakes; keyword args override providers."""
    from bookrouter.main import build_pipeline

    def _make(**overrides: Any) -> Any:
        wiring: dict[str, Any] = {
            "llm_provider": mock_llm,
            "embedding_provider": mock_embedding_provider,
            "catalog_store": catalog_store,
            "catalog_entries": catalog_entries,
            "search_provider": mock_search_provider,
            "metadata_provider": mock_metadata_provider,
            "history_provider": None,
            "cache": MemoryCacheProvider(max_size=100, ttl=60),
            "today": TODAY,
        }
        wiring.update(overrides)
        return build_pipeline(settings, **wiring)

    return _make
