"""Exclusion-list enforcement.

The exclusion set is the union of three sources, normalized with
:func:`normalize_title`:

- the reading history passed by the caller (read, queued, dismissed),
- titles recorded in the user-history store for ``user_id``,
- titles already shown earlier in the session.

Candidates are first deduplicated by normalized title, then every
candidate whose title is in the set is removed.  When that empties an
otherwise successful catalog or hybrid result, the filter re-queries the same theme
slice for the next unseen books; when nothing unseen remains, it offers the
catalog's flagged favorites as repeats and says so explicitly.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from bookrouter.interfaces.catalog_store import ICatalogStore
from bookrouter.interfaces.history_provider import IUserHistoryProvider
from bookrouter.models.book import CandidateBook, CatalogEntry
from bookrouter.models.query import RecommendationQuery
from bookrouter.models.result import (
    Degradation,
    DegradationReason,
    PathResult,
    RecommendationSection,
    StageResult,
)
from bookrouter.models.routing import RoutingPath
from bookrouter.utils.concurrency import retry_once, with_timeout
from bookrouter.utils.errors import BookRouterError, CatalogError
from bookrouter.utils.logging import get_logger
from bookrouter.utils.text_normalizer import normalize_title

_T = TypeVar("_T")

_REFILLED_PATHS = frozenset({RoutingPath.CATALOG, RoutingPath.HYBRID})

_STAGE = "exclusion_filter"

EXHAUSTED_MESSAGE = (
    "You've seen everything in this part of my collection. "
    "Here are a few of my favorites that are worth revisiting."
)


class ExclusionOutcome(BaseModel):
    """Filtered candidates plus what the filter had to do to get them."""

    model_config = ConfigDict(frozen=True)

    candidates: list[CandidateBook] = Field(default_factory=list)
    sections: list[RecommendationSection] = Field(default_factory=list)
    excluded_count: int = 0
    exhausted: bool = False
    message: str | None = None
    degradations: list[Degradation] = Field(default_factory=list)


def dedupe(candidates: list[CandidateBook]) -> list[CandidateBook]:
    """Drop later candidates whose normalized title was already seen."""
    seen: set[str] = set()
    unique: list[CandidateBook] = []
    for candidate in candidates:
        key = normalize_title(candidate.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def apply_exclusions(
    candidates: list[CandidateBook],
    exclusion_set: frozenset[str],
) -> tuple[list[CandidateBook], int]:
    """Return (kept, removed_count) after dedup and exclusion."""
    unique = dedupe(candidates)
    kept = [c for c in unique if normalize_title(c.title) not in exclusion_set]
    return kept, len(unique) - len(kept)


class ExclusionFilter:
    """Removes already-seen books and handles exhausted catalog slices."""

    def __init__(
        self,
        catalog: ICatalogStore,
        history_provider: IUserHistoryProvider | None = None,
        history_timeout: float = 3.0,
        requery_limit: int = 50,
        favorites_limit: int = 3,
        catalog_timeout: float = 3.0,
        retry_backoff: float = 0.25,
    ) -> None:
        self._catalog = catalog
        self._history = history_provider
        self._history_timeout = history_timeout
        self._requery_limit = requery_limit
        self._favorites_limit = favorites_limit
        self._catalog_timeout = catalog_timeout
        self._backoff = retry_backoff
        self._logger = get_logger(__name__)

    async def build_exclusion_set(self, query: RecommendationQuery) -> StageResult[frozenset[str]]:
        """Normalized titles the user must not be shown.

        A failing history store degrades to the caller-supplied titles only.
        """
        titles: list[str] = [item.title for item in query.reading_history]
        titles.extend(query.session_shown_titles)

        degradation: Degradation | None = None
        if self._history is not None and query.user_id:
            try:
                stored = await with_timeout(
                    self._history.get_exclusion_titles(query.user_id),
                    self._history_timeout,
                )
                titles.extend(stored)
            except (asyncio.TimeoutError, BookRouterError) as exc:
                detail = str(exc) or "history lookup timed out"
                self._logger.warning(
                    "history_unavailable",
                    reason=DegradationReason.HISTORY_UNAVAILABLE.value,
                    error=detail,
                )
                degradation = Degradation(
                    stage=_STAGE,
                    reason=DegradationReason.HISTORY_UNAVAILABLE,
                    detail=detail,
                )

        exclusion = frozenset(key for key in (normalize_title(t) for t in titles) if key)
        return StageResult(value=exclusion, degradation=degradation)

    async def apply(
        self,
        path_result: PathResult,
        exclusion_set: frozenset[str],
    ) -> ExclusionOutcome:
        candidates, removed = apply_exclusions(path_result.candidates, exclusion_set)

        sections: list[RecommendationSection] = []
        for section in path_result.sections:
            kept, section_removed = apply_exclusions(section.candidates, exclusion_set)
            sections.append(section.model_copy(update={"candidates": kept}))
            # Section candidates normally duplicate the flat list.
            if not path_result.candidates:
                removed += section_removed

        if removed:
            self._logger.info("candidates_excluded", count=removed, path=path_result.path.value)

        emptied = bool(path_result.candidates) and not candidates
        if path_result.path in _REFILLED_PATHS and emptied:
            return await self._exhausted_fallback(path_result, exclusion_set, removed)

        return ExclusionOutcome(candidates=candidates, sections=sections, excluded_count=removed)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _exhausted_fallback(
        self,
        path_result: PathResult,
        exclusion_set: frozenset[str],
        removed: int,
    ) -> ExclusionOutcome:
        themes = list(path_result.browse_themes)
        if themes:
            unseen = await self._requery(themes, exclusion_set)
            if unseen:
                self._logger.info("exclusion_requery_found", count=len(unseen), themes=themes)
                return ExclusionOutcome(candidates=unseen, excluded_count=removed)

        try:
            favorites = await self._favorites(themes)
        except (asyncio.TimeoutError, BookRouterError) as exc:
            self._logger.warning("exclusion_favorites_failed", error=str(exc) or "catalog call timed out")
            favorites = []

        repeats = [
            CandidateBook.from_catalog(entry).model_copy(update={"repeat": True})
            for entry in favorites
        ]
        self._logger.warning(
            "exclusion_exhausted",
            reason=DegradationReason.EXCLUSION_EXHAUSTED.value,
            themes=themes,
            favorites=len(repeats),
        )
        return ExclusionOutcome(
            candidates=dedupe(repeats),
            excluded_count=removed,
            exhausted=True,
            message=EXHAUSTED_MESSAGE,
            degradations=[
                Degradation(
                    stage=_STAGE,
                    reason=DegradationReason.EXCLUSION_EXHAUSTED,
                    detail=", ".join(themes) or "catalog",
                )
            ],
        )

    async def _requery(self, themes: list[str], exclusion_set: frozenset[str]) -> list[CandidateBook]:
        try:
            deeper = await self._read(
                lambda: self._catalog.by_theme(themes, limit=self._requery_limit)
            )
        except (asyncio.TimeoutError, BookRouterError) as exc:
            self._logger.warning("exclusion_requery_failed", error=str(exc) or "catalog call timed out")
            return []
        unseen, _ = apply_exclusions(
            [CandidateBook.from_catalog(entry) for entry in deeper],
            exclusion_set,
        )
        return unseen

    async def _favorites(self, themes: list[str]) -> list[CatalogEntry]:
        favorites = await self._read(
            lambda: self._catalog.favorites(themes=themes or None, limit=self._favorites_limit)
        )
        if not favorites and themes:
            favorites = await self._read(lambda: self._catalog.favorites(limit=self._favorites_limit))
        return favorites

    async def _read(self, fn: Callable[[], Awaitable[_T]]) -> _T:
        return await retry_once(
            lambda: with_timeout(fn(), self._catalog_timeout),
            backoff=self._backoff,
            retry_on=(CatalogError, asyncio.TimeoutError),
            operation="exclusion_requery",
        )
