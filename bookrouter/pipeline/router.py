"""Query router: pre-filter, then the catalog probe only when needed."""

from __future__ import annotations

from datetime import date

import structlog

from bookrouter.config.settings import RoutingThresholds
from bookrouter.models.result import Degradation
from bookrouter.models.routing import RoutingDecision
from bookrouter.pipeline.decision_matrix import decide_route
from bookrouter.pipeline.prefilter import prefilter
from bookrouter.services.catalog_probe import CatalogProbe
from bookrouter.utils.logging import get_logger


class QueryRouter:
    """Decides which retrieval path serves a query.

    The keyword pre-filter runs first.  The probe (embedding + catalog
    nearest-neighbour query) is only issued when the pre-filter is
    inconclusive.  The decision itself is delegated to
    :func:`decide_route`.
    """

    def __init__(
        self,
        probe: CatalogProbe,
        thresholds: RoutingThresholds,
        today: date | None = None,
    ) -> None:
        self._probe = probe
        self._thresholds = thresholds
        self._today = today
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def route(
        self,
        query_text: str,
        theme_filters: list[str] | None = None,
    ) -> tuple[RoutingDecision, list[Degradation]]:
        """Return the routing decision and any degradation the probe recovered from."""
        verdict = prefilter(query_text, theme_filters, self._today)
        degradations: list[Degradation] = []

        probe_result = None
        if not verdict.is_conclusive:
            stage = await self._probe.probe(query_text)
            probe_result = stage.value
            if stage.degradation is not None:
                degradations.append(stage.degradation)

        decision = decide_route(verdict, probe_result, self._thresholds)
        self._logger.info(
            "route_decided",
            path=decision.path.value,
            confidence=decision.confidence.value,
            source=decision.source.value,
            reason=decision.reason,
            matched_keyword=verdict.matched_keyword,
        )
        return decision, degradations
