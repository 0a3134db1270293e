"""Unit tests for exclusion-set construction and the exhausted-slice fallback."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from bookrouter.interfaces.catalog_store import ICatalogStore
from bookrouter.interfaces.history_provider import IUserHistoryProvider
from bookrouter.models.book import BookSource, CandidateBook, CatalogEntry
from bookrouter.models.query import ReadingHistoryItem, RecommendationQuery
from bookrouter.models.result import DegradationReason, PathResult, RecommendationSection
from bookrouter.models.routing import RoutingPath
from bookrouter.providers.catalog.json_catalog_store import JsonCatalogStore
from bookrouter.services.exclusion_filter import (
    EXHAUSTED_MESSAGE,
    ExclusionFilter,
    apply_exclusions,
    dedupe,
)
from bookrouter.utils.errors import CatalogError, HistoryError
from bookrouter.utils.text_normalizer import normalize_title


# ======================================================================
# Helpers
# ======================================================================


def _candidate(title: str, source: BookSource = BookSource.CATALOG) -> CandidateBook:
    return CandidateBook(title=title, author="Someone", source=source, verified=True)


def _exclusion(*titles: str) -> frozenset[str]:
    return frozenset(normalize_title(t) for t in titles)


async def _hang(*_args, **_kwargs) -> list[CatalogEntry]:
    await asyncio.sleep(10)
    return []


def _mock_history(titles: list[str] | None = None, error: Exception | None = None) -> MagicMock:
    history = MagicMock(spec=IUserHistoryProvider)
    history.get_exclusion_titles = AsyncMock(return_value=titles or [], side_effect=error)
    history.get_provider_name.return_value = "mock-history"
    return history


async def _theme_browse(
    store: JsonCatalogStore, theme: str, path: RoutingPath = RoutingPath.CATALOG
) -> PathResult:
    entries = await store.by_theme([theme])
    return PathResult(
        path=path,
        candidates=[CandidateBook.from_catalog(e) for e in entries],
        theme_browse=True,
        browse_themes=[theme],
    )


# ======================================================================
# Tests
# ======================================================================


class TestApplyExclusions:
    def test_dedupe_keeps_first_by_normalized_title(self) -> None:
        books = [_candidate("Gilead"), _candidate("GILEAD!"), _candidate("Beach Read")]
        assert [c.title for c in dedupe(books)] == ["Gilead", "Beach Read"]

    def test_removes_excluded_titles(self) -> None:
        books = [_candidate("The Mothers"), _candidate("Gilead"), _candidate("gilead")]

        kept, removed = apply_exclusions(books, _exclusion("the mothers"))

        assert [c.title for c in kept] == ["Gilead"]
        assert removed == 1


class TestBuildExclusionSet:
    @pytest.mark.asyncio()
    async def test_unions_all_sources(self, catalog_store) -> None:
        history = _mock_history(["Beach Read"])
        exclusion_filter = ExclusionFilter(catalog_store, history)
        query = RecommendationQuery(
            raw_text="q",
            user_id="u-1",
            reading_history=[ReadingHistoryItem(title="Gilead", status="dismissed")],
            session_shown_titles=["The Mothers "],
        )

        result = await exclusion_filter.build_exclusion_set(query)

        assert result.value == _exclusion("Gilead", "The Mothers", "Beach Read")
        assert result.is_degraded is False
        history.get_exclusion_titles.assert_awaited_once_with("u-1")

    @pytest.mark.asyncio()
    async def test_no_user_id_skips_the_store(self, catalog_store) -> None:
        history = _mock_history(["Beach Read"])

        result = await ExclusionFilter(catalog_store, history).build_exclusion_set(
            RecommendationQuery(raw_text="q")
        )

        assert result.value == frozenset()
        history.get_exclusion_titles.assert_not_called()

    @pytest.mark.asyncio()
    async def test_history_failure_degrades(self, catalog_store) -> None:
        history = _mock_history(error=HistoryError("locked"))
        query = RecommendationQuery(raw_text="q", user_id="u-1", session_shown_titles=["Gilead"])

        result = await ExclusionFilter(catalog_store, history).build_exclusion_set(query)

        assert result.value == _exclusion("Gilead")
        assert result.degradation.reason == DegradationReason.HISTORY_UNAVAILABLE

    @pytest.mark.asyncio()
    async def test_history_timeout_degrades(self, catalog_store) -> None:
        async def _slow(_user_id: str) -> list[str]:
            await asyncio.sleep(1)
            return []

        history = _mock_history()
        history.get_exclusion_titles = AsyncMock(side_effect=_slow)
        exclusion_filter = ExclusionFilter(catalog_store, history, history_timeout=0.01)

        result = await exclusion_filter.build_exclusion_set(RecommendationQuery(raw_text="q", user_id="u"))

        assert result.degradation.reason == DegradationReason.HISTORY_UNAVAILABLE


class TestApply:
    @pytest.mark.asyncio()
    async def test_plain_filtering(self, catalog_store) -> None:
        path_result = await _theme_browse(catalog_store, "justice")

        outcome = await ExclusionFilter(catalog_store).apply(path_result, _exclusion("Just Mercy"))

        titles = [c.title for c in outcome.candidates]
        assert "Just Mercy" not in titles
        assert len(titles) == 3
        assert outcome.excluded_count == 1
        assert outcome.exhausted is False

    @pytest.mark.asyncio()
    async def test_requery_finds_deeper_unseen_books(self, catalog_entries: list[CatalogEntry]) -> None:
        store = JsonCatalogStore(catalog_entries)
        # The path only saw the first two justice books.
        first_page = (await store.by_theme(["justice"]))[:2]
        path_result = PathResult(
            path=RoutingPath.CATALOG,
            candidates=[CandidateBook.from_catalog(e) for e in first_page],
            theme_browse=True,
            browse_themes=["justice"],
        )

        outcome = await ExclusionFilter(store).apply(path_result, _exclusion(*[e.title for e in first_page]))

        assert [c.title for c in outcome.candidates] == ["The Hate U Give", "An American Marriage"]
        assert outcome.exhausted is False

    @pytest.mark.asyncio()
    async def test_exhausted_theme_returns_favorites(self, catalog_store, justice_titles) -> None:
        path_result = await _theme_browse(catalog_store, "justice")

        outcome = await ExclusionFilter(catalog_store).apply(path_result, _exclusion(*justice_titles))

        assert outcome.exhausted is True
        assert outcome.message == EXHAUSTED_MESSAGE
        assert [c.title for c in outcome.candidates] == ["Just Mercy", "The Nickel Boys"]
        assert all(c.repeat and c.verified for c in outcome.candidates)
        assert outcome.degradations[0].reason == DegradationReason.EXCLUSION_EXHAUSTED

    @pytest.mark.asyncio()
    async def test_exhausted_theme_without_favorites_uses_global_favorites(self, catalog_store) -> None:
        path_result = await _theme_browse(catalog_store, "spiritual")

        outcome = await ExclusionFilter(catalog_store).apply(path_result, _exclusion("Gilead"))

        assert outcome.exhausted is True
        assert outcome.candidates
        assert {c.title for c in outcome.candidates} <= {"Just Mercy", "The Nickel Boys", "The Vanishing Half", "Beach Read"}

    @pytest.mark.asyncio()
    async def test_world_results_never_trigger_the_fallback(self, catalog_store) -> None:
        path_result = PathResult(path=RoutingPath.WORLD, candidates=[_candidate("Leviathan Wakes", BookSource.WORLD)])

        outcome = await ExclusionFilter(catalog_store).apply(path_result, _exclusion("Leviathan Wakes"))

        assert outcome.candidates == []
        assert outcome.exhausted is False

    @pytest.mark.asyncio()
    async def test_sections_are_filtered(self, catalog_store) -> None:
        catalog_book = _candidate("Beach Read")
        world_book = _candidate("Leviathan Wakes", BookSource.WORLD)
        path_result = PathResult(
            path=RoutingPath.HYBRID,
            candidates=[catalog_book, world_book],
            sections=[
                RecommendationSection(label="catalog", candidates=[catalog_book]),
                RecommendationSection(label="world", candidates=[world_book], use_generative_knowledge=True),
            ],
        )

        outcome = await ExclusionFilter(catalog_store).apply(path_result, _exclusion("Beach Read"))

        assert [c.title for c in outcome.candidates] == ["Leviathan Wakes"]
        assert outcome.sections[0].candidates == []
        assert outcome.sections[1].candidates == [world_book]
        assert outcome.excluded_count == 1

    @pytest.mark.asyncio()
    async def test_empty_theme_slice_does_not_fall_back(self, catalog_store) -> None:
        path_result = PathResult(path=RoutingPath.CATALOG, theme_browse=True, browse_themes=["emotional"])

        outcome = await ExclusionFilter(catalog_store).apply(path_result, _exclusion("Gilead"))

        assert outcome.candidates == []
        assert outcome.exhausted is False
        assert outcome.degradations == []


class TestHybridExhaustion:
    @pytest.mark.asyncio()
    async def test_emptied_hybrid_slice_falls_back_to_favorites(self, catalog_store, justice_titles) -> None:
        path_result = await _theme_browse(catalog_store, "justice", RoutingPath.HYBRID)

        outcome = await ExclusionFilter(catalog_store).apply(path_result, _exclusion(*justice_titles))

        assert outcome.exhausted is True
        assert outcome.message == EXHAUSTED_MESSAGE
        assert [c.title for c in outcome.candidates] == ["Just Mercy", "The Nickel Boys"]
        assert all(c.repeat for c in outcome.candidates)

    @pytest.mark.asyncio()
    async def test_hybrid_requery_reaches_past_the_first_page(self, catalog_entries: list[CatalogEntry]) -> None:
        store = JsonCatalogStore(catalog_entries)
        first_page = (await store.by_theme(["justice"]))[:2]
        path_result = PathResult(
            path=RoutingPath.HYBRID,
            candidates=[CandidateBook.from_catalog(e) for e in first_page],
            theme_browse=True,
            browse_themes=["justice"],
        )

        outcome = await ExclusionFilter(store).apply(path_result, _exclusion(*[e.title for e in first_page]))

        assert [c.title for c in outcome.candidates] == ["The Hate U Give", "An American Marriage"]
        assert outcome.exhausted is False


class TestCatalogDeadlines:
    @pytest.mark.asyncio()
    async def test_hanging_requery_still_offers_favorites(self, catalog_entries: list[CatalogEntry]) -> None:
        favorites = [e for e in catalog_entries if e.favorite and "justice" in e.themes]
        catalog = MagicMock(spec=ICatalogStore)
        catalog.by_theme = AsyncMock(side_effect=_hang)
        catalog.favorites = AsyncMock(return_value=favorites)
        exclusion_filter = ExclusionFilter(catalog, catalog_timeout=0.01, retry_backoff=0.0)
        path_result = PathResult(
            path=RoutingPath.CATALOG,
            candidates=[CandidateBook.from_catalog(favorites[0])],
            theme_browse=True,
            browse_themes=["justice"],
        )

        outcome = await exclusion_filter.apply(path_result, _exclusion(favorites[0].title))

        assert outcome.exhausted is True
        assert [c.title for c in outcome.candidates] == ["Just Mercy", "The Nickel Boys"]
        # One bounded retry, then the favorites fallback.
        assert catalog.by_theme.await_count == 2

    @pytest.mark.asyncio()
    @pytest.mark.parametrize("failure", [_hang, CatalogError("down")])
    async def test_failing_favorites_degrade_to_an_empty_exhausted_outcome(
        self, catalog_entries: list[CatalogEntry], failure
    ) -> None:
        catalog = MagicMock(spec=ICatalogStore)
        catalog.by_theme = AsyncMock(return_value=[])
        catalog.favorites = AsyncMock(side_effect=failure)
        exclusion_filter = ExclusionFilter(catalog, catalog_timeout=0.01, retry_backoff=0.0)
        path_result = PathResult(
            path=RoutingPath.CATALOG,
            candidates=[CandidateBook.from_catalog(catalog_entries[0])],
            theme_browse=True,
            browse_themes=["justice"],
        )

        outcome = await exclusion_filter.apply(path_result, _exclusion(catalog_entries[0].title))

        assert outcome.exhausted is True
        assert outcome.candidates == []
        assert outcome.degradations[0].reason == DegradationReason.EXCLUSION_EXHAUSTED
        assert catalog.favorites.await_count == 2
