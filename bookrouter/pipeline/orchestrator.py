"""Central orchestrator for the book recommendation pipeline.

:class:`RecommendationPipeline` is the single entry point callers use.  One
call handles one request end to end:

1. **Route + extract** (concurrently): the query router (pre-filter, then
   the catalog probe if needed), the generative entity extractor, and the
   exclusion-set lookup run side by side.
2. **Validate + classify**: extracted entities are checked against the
   catalog index, then the deterministic classifier builds the
   :class:`Classification` the paths consume.
3. **Path**: the chosen path executor retrieves candidates.  A
   ``similar_author`` request is first tried against the open world for
   books by *other* writers; the routed path runs only if that finds none.
   The hybrid path also sees the exclusion set, so it asks for world
   proposals whenever too few unseen catalog books remain.
4. **World verification**: if the path asked for generative knowledge, the
   formatter proposes world books and keeps only metadata-verified ones.
5. **Exclusion**: already-seen titles are removed; an exhausted catalog
   or hybrid slice falls back to repeat-safe favorites.
6. **Cap + format**: the list is capped and the formatter writes the prose
   (skipped for a resolved temporal edition), dropping any book it was not
   given.

Every stage returns a value plus optional degradations rather than raising,
so the request succeeds with a narrower answer when an upstream service is
down.  All degradations end up in :class:`RoutingDiagnostics`.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

import structlog

from bookrouter.models.book import BookSource, CandidateBook
from bookrouter.models.query import (
    Classification,
    ReadingHistoryItem,
    RecommendationQuery,
    SearchIntent,
)
from bookrouter.models.result import (
    Degradation,
    DegradationReason,
    FormattedResponse,
    PathResult,
    RecommendationResponse,
    RecommendationSection,
    RoutingDiagnostics,
)
from bookrouter.models.routing import RoutingConfidence, RoutingDecision, RoutingPath
from bookrouter.pipeline.router import QueryRouter
from bookrouter.services.entity_extractor import EntityExtractor
from bookrouter.services.entity_validator import EntityValidator
from bookrouter.services.exclusion_filter import ExclusionFilter, ExclusionOutcome, apply_exclusions
from bookrouter.services.paths import (
    CatalogPath,
    HybridPath,
    SimilarAuthorPath,
    TemporalPath,
    WorldPath,
)
from bookrouter.services.paths.hybrid_path import CATALOG_SECTION, WORLD_SECTION
from bookrouter.services.query_classifier import QueryClassifier
from bookrouter.services.response_formatter import ResponseFormatter, template_response
from bookrouter.utils.errors import BookRouterError
from bookrouter.utils.logging import get_logger

_HistoryInput = Sequence[ReadingHistoryItem | dict | str]


class RecommendationPipeline:
    """Routes, retrieves, filters and formats book recommendations.

    All collaborators are injected; the pipeline never creates them.
    """

    def __init__(
        self,
        router: QueryRouter,
        entity_extractor: EntityExtractor,
        entity_validator: EntityValidator,
        classifier: QueryClassifier,
        catalog_path: CatalogPath,
        world_path: WorldPath,
        hybrid_path: HybridPath,
        temporal_path: TemporalPath,
        exclusion_filter: ExclusionFilter,
        formatter: ResponseFormatter,
        similar_author_path: SimilarAuthorPath | None = None,
        max_recommendations: int = 3,
    ) -> None:
        self._router = router
        self._extractor = entity_extractor
        self._validator = entity_validator
        self._classifier = classifier
        self._catalog_path = catalog_path
        self._world_path = world_path
        self._hybrid_path = hybrid_path
        self._temporal_path = temporal_path
        self._exclusion = exclusion_filter
        self._formatter = formatter
        self._similar_author_path = similar_author_path
        self._max_recommendations = max_recommendations
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def route(
        self,
        query_text: str,
        theme_filters: Sequence[str] = (),
    ) -> tuple[RoutingDecision, list[Degradation]]:
        """Routing decision only, without retrieval.  Used for diagnostics."""
        return await self._router.route(query_text, list(theme_filters))

    async def get_recommendations(
        self,
        query_text: str,
        user_id: str | None = None,
        reading_history: _HistoryInput = (),
        theme_filters: Sequence[str] = (),
        session_shown_titles: Sequence[str] = (),
    ) -> RecommendationResponse:
        """Run the full pipeline for one request.

        Parameters
        ----------
        query_text:
            The user's free-text request.
        user_id:
            Optional id used to read the user's stored exclusion titles.
        reading_history:
            Books the user has read, queued or dismissed.  Items may be
            :class:`ReadingHistoryItem`, dicts with a ``title`` key, or bare
            title strings.
        theme_filters:
            Curated themes selected in the UI.
        session_shown_titles:
            Titles already shown earlier in this session.

        Returns
        -------
        RecommendationResponse
            ``success`` is False only on an unexpected internal error.
            Cancellation of the calling task propagates.
        """
        started = time.perf_counter()
        try:
            query = RecommendationQuery(
                raw_text=query_text,
                theme_filters=list(theme_filters),
                user_id=user_id,
                reading_history=[_history_item(item) for item in reading_history],
                session_shown_titles=list(session_shown_titles),
            )
            return await self._run(query, started)
        except Exception as exc:
            self._logger.error(
                "pipeline_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return RecommendationResponse(
                success=False,
                explanation="Something went wrong while finding recommendations.",
                routing_diagnostics=RoutingDiagnostics(
                    path=RoutingPath.HYBRID,
                    confidence=RoutingConfidence.NONE,
                    decision_source="error",
                    reason=type(exc).__name__,
                    elapsed_ms=_elapsed(started),
                ),
            )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(self, query: RecommendationQuery, started: float) -> RecommendationResponse:
        (decision, route_degradations), extraction, exclusion = await asyncio.gather(
            self._router.route(query.raw_text, query.theme_filters),
            self._extractor.extract(query.raw_text),
            self._exclusion.build_exclusion_set(query),
        )
        degradations: list[Degradation] = list(route_degradations)
        for stage in (extraction, exclusion):
            if stage.degradation is not None:
                degradations.append(stage.degradation)

        validated = self._validator.validate(extraction.value)
        classification = self._classifier.classify(
            query.raw_text,
            validated,
            theme_filters=query.theme_filters,
            allowed_themes=self._validator.index.allowed_themes,
        )

        path_result = await self._execute_path(decision.path, classification, exclusion.value)
        degradations.extend(path_result.degradations)

        if path_result.use_generative_knowledge and path_result.generative_directive:
            world = await self._formatter.propose_world_candidates(
                query.raw_text, path_result.generative_directive
            )
            if world.degradation is not None:
                degradations.append(world.degradation)
            path_result = attach_world_candidates(path_result, world.value)

        outcome = await self._exclusion.apply(path_result, exclusion.value)
        degradations.extend(outcome.degradations)

        candidates, sections = self._cap(path_result, outcome)
        explanation = outcome.message or path_result.explanation

        if path_result.skip_formatting and candidates:
            formatted = template_response(candidates, explanation)
        else:
            stage = await self._formatter.format(
                query.raw_text,
                candidates,
                intro_text=explanation,
                transparency_note=path_result.transparency_note if candidates else None,
            )
            formatted = stage.value
            if stage.degradation is not None:
                degradations.append(stage.degradation)

        for degradation in degradations:
            self._logger.warning(
                "stage_degraded",
                stage=degradation.stage,
                reason=degradation.reason.value,
                detail=degradation.detail,
            )

        diagnostics = self._diagnostics(
            decision, validated.intent.value, validated.validation.intent_changed,
            outcome, formatted, degradations, started,
        )
        self._logger.info(
            "recommendations_complete",
            path=decision.path.value,
            candidates=len(candidates),
            exhausted=outcome.exhausted,
            degradations=len(degradations),
            elapsed_ms=round(diagnostics.elapsed_ms, 1),
        )
        return RecommendationResponse(
            success=True,
            candidates=candidates,
            explanation=explanation,
            recommendations=formatted.recommendations,
            sections=sections,
            exhausted=outcome.exhausted,
            text=formatted.to_text(),
            routing_diagnostics=diagnostics,
        )

    async def _execute_path(
        self,
        path: RoutingPath,
        classification: Classification,
        exclusion_set: frozenset[str],
    ) -> PathResult:
        if not self._wants_similar_authors(path, classification):
            return await self._run_path(path, classification, exclusion_set)

        similar = await self._similar_author_path.execute(classification)
        unseen, _ = apply_exclusions(similar.candidates, exclusion_set)
        if unseen:
            return similar
        routed = await self._run_path(path, classification, exclusion_set)
        return routed.model_copy(update={"degradations": [*similar.degradations, *routed.degradations]})

    def _wants_similar_authors(self, path: RoutingPath, classification: Classification) -> bool:
        return (
            self._similar_author_path is not None
            and path != RoutingPath.TEMPORAL
            and classification.intent == SearchIntent.SIMILAR_AUTHOR
            and bool(classification.entities.authors)
        )

    async def _run_path(
        self,
        path: RoutingPath,
        classification: Classification,
        exclusion_set: frozenset[str],
    ) -> PathResult:
        try:
            if path == RoutingPath.CATALOG:
                return await self._catalog_path.execute(classification)
            if path == RoutingPath.HYBRID:
                return await self._hybrid_path.execute(classification, exclusion_set)
            if path == RoutingPath.TEMPORAL:
                return await self._temporal_path.execute(classification)
            return self._world_path.execute(classification)
        except BookRouterError as exc:
            self._logger.warning("path_failed", path=path.value, error=str(exc))
            return PathResult(
                path=path,
                degradations=[
                    Degradation(
                        stage=f"{path.value.lower()}_path",
                        reason=DegradationReason.PATH_FAILED,
                        detail=str(exc),
                    )
                ],
            )

    def _cap(
        self,
        path_result: PathResult,
        outcome: ExclusionOutcome,
    ) -> tuple[list[CandidateBook], list[RecommendationSection]]:
        candidates = [c for c in outcome.candidates if c.verified][: self._max_recommendations]
        if path_result.path != RoutingPath.HYBRID:
            return candidates, []
        catalog = [c for c in candidates if c.source == BookSource.CATALOG]
        world = [c for c in candidates if c.source != BookSource.CATALOG]
        sections: list[RecommendationSection] = []
        if catalog:
            sections.append(RecommendationSection(label=CATALOG_SECTION, candidates=catalog))
        if world:
            sections.append(
                RecommendationSection(label=WORLD_SECTION, candidates=world, use_generative_knowledge=True)
            )
        return candidates, sections

    def _diagnostics(
        self,
        decision: RoutingDecision,
        intent: str,
        intent_changed: bool,
        outcome: ExclusionOutcome,
        formatted: FormattedResponse,
        degradations: list[Degradation],
        started: float,
    ) -> RoutingDiagnostics:
        probe = decision.probe
        prefilter = decision.prefilter
        return RoutingDiagnostics(
            path=decision.path,
            confidence=decision.confidence,
            decision_source=decision.source.value,
            reason=decision.reason,
            matched_keyword=prefilter.matched_keyword if prefilter else None,
            probe_max_similarity=probe.max_similarity if probe else None,
            probe_avg_similarity=probe.avg_similarity if probe else None,
            probe_match_count=probe.match_count if probe else None,
            probe_time_ms=probe.probe_time_ms if probe else None,
            intent=intent,
            intent_changed=intent_changed,
            excluded_count=outcome.excluded_count,
            dropped_titles=list(formatted.dropped_titles),
            degradations=degradations,
            elapsed_ms=_elapsed(started),
        )


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------

def attach_world_candidates(path_result: PathResult, world: list[CandidateBook]) -> PathResult:
    """Append verified world candidates to a path result (and its world section)."""
    verified = [c for c in world if c.verified]
    if not verified:
        return path_result
    sections = [
        section.model_copy(update={"candidates": list(section.candidates) + verified})
        if section.use_generative_knowledge
        else section
        for section in path_result.sections
    ]
    return path_result.model_copy(
        update={
            "candidates": list(path_result.candidates) + verified,
            "sections": sections,
        }
    )


def _history_item(item: ReadingHistoryItem | dict | str) -> ReadingHistoryItem:
    if isinstance(item, ReadingHistoryItem):
        return item
    if isinstance(item, str):
        return ReadingHistoryItem(title=item)
    return ReadingHistoryItem.model_validate(item)


def _elapsed(started: float) -> float:
    return (time.perf_counter() - started) * 1000
