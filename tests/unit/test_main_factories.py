"""Unit tests for the provider factories and app assembly in bookrouter/main.py."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI

from bookrouter.config.settings import Settings
from bookrouter.main import (
    _build_all,
    _build_catalog_store,
    _build_llm_provider,
    _build_search_provider,
    create_app,
)
from bookrouter.models.book import CatalogEntry
from bookrouter.pipeline.orchestrator import RecommendationPipeline
from bookrouter.providers.catalog.json_catalog_store import JsonCatalogStore
from bookrouter.providers.llm.anthropic_provider import AnthropicLLMProvider
from bookrouter.providers.llm.openai_provider import OpenAILLMProvider
from bookrouter.providers.search.duckduckgo_provider import DuckDuckGoSearchProvider
from bookrouter.providers.search.serper_provider import SerperSearchProvider


def _settings(**overrides) -> Settings:
    """Settings with every key blank unless overridden."""
    defaults = {
        "openai_api_key": "",
        "anthropic_api_key": "",
        "serper_api_key": "",
        "google_books_api_key": "",
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


# ======================================================================
# _build_llm_provider
# ======================================================================


class TestBuildLLMProvider:
    def test_anthropic_first(self) -> None:
        provider = _build_llm_provider(_settings(anthropic_api_key="a", openai_api_key="o"))
        assert isinstance(provider, AnthropicLLMProvider)

    def test_openai_when_only_openai_key(self) -> None:
        assert isinstance(_build_llm_provider(_settings(openai_api_key="o")), OpenAILLMProvider)

    def test_unconfigured_provider_is_still_built(self) -> None:
        provider = _build_llm_provider(_settings())

        assert isinstance(provider, AnthropicLLMProvider)
        assert provider.is_available() is False


# ======================================================================
# _build_search_provider / _build_catalog_store
# ======================================================================


class TestBuildSearchProvider:
    @pytest.mark.asyncio()
    async def test_serper_with_key_else_duckduckgo(self) -> None:
        async with httpx.AsyncClient() as client:
            assert isinstance(_build_search_provider(_settings(serper_api_key="k"), client), SerperSearchProvider)
            assert isinstance(_build_search_provider(_settings(), client), DuckDuckGoSearchProvider)


class TestBuildCatalogStore:
    def test_json_backend(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.json"
        path.write_text('[{"id": "1", "title": "Gilead", "author": "Marilynne Robinson"}]', encoding="utf-8")

        store = _build_catalog_store(_settings(catalog_backend="json", catalog_json_path=str(path)))

        assert isinstance(store, JsonCatalogStore)

    def test_chromadb_backend(self, tmp_path: Path) -> None:
        from bookrouter.providers.catalog.chromadb_catalog_store import ChromaDBCatalogStore

        store = _build_catalog_store(
            _settings(catalog_backend="chromadb", chromadb_persist_dir=str(tmp_path / "chroma"))
        )

        assert isinstance(store, ChromaDBCatalogStore)


# ======================================================================
# _build_all / create_app
# ======================================================================


class TestBuildAll:
    @pytest.mark.asyncio()
    async def test_components_and_registry(
        self, tmp_path: Path, catalog_entries: list[CatalogEntry]
    ) -> None:
        from bookrouter.cli.ingest import write_catalog_json

        catalog_path = tmp_path / "catalog.json"
        write_catalog_json(catalog_entries, catalog_path)
        app_settings = _settings(
            catalog_json_path=str(catalog_path),
            history_db_path=str(tmp_path / "history.db"),
        )

        components = await _build_all(app_settings)
        try:
            registry = components["provider_registry"]
            assert isinstance(components["pipeline"], RecommendationPipeline)
            assert registry["catalog"] is True
            assert registry["catalog_entries"] == len(catalog_entries)
            assert registry["llm"] is False
            assert registry["search_name"] == DuckDuckGoSearchProvider().get_provider_name()
        finally:
            await components["http_client"].aclose()


class TestCreateApp:
    def test_routes_registered(self) -> None:
        app = create_app()

        assert isinstance(app, FastAPI)
        paths = {route.path for route in app.routes}
        assert {"/api/v1/recommendations", "/api/v1/route", "/api/v1/health"} <= paths
