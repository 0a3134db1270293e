"""Hybrid path: catalog first, the open world only when the catalog runs short.

The catalog and world sub-paths are independent, so both run concurrently.
The world result is used only when fewer than ``min_catalog`` catalog
candidates are left once the user's exclusion set is applied.  The full
catalog list is handed on (the exclusion filter removes what was seen and
the pipeline caps the rest), so unseen catalog books further down a slice
are never lost.  Output keeps the sources apart in labelled sections
instead of one merged list.
"""

from __future__ import annotations

import asyncio

from bookrouter.models.query import Classification
from bookrouter.models.result import PathResult, RecommendationSection
from bookrouter.models.routing import RoutingPath
from bookrouter.services.exclusion_filter import apply_exclusions
from bookrouter.services.paths.catalog_path import CatalogPath
from bookrouter.services.paths.world_path import WorldPath
from bookrouter.utils.logging import get_logger

CATALOG_SECTION = "From the curated collection"
WORLD_SECTION = "Outside the collection, but aligned"

EXPLAIN_CATALOG_ONLY = "Here's what I found in my collection."
EXPLAIN_BOTH = "I've searched both my collection and beyond."


async def _run_world(world_path: WorldPath, classification: Classification) -> PathResult:
    return world_path.execute(classification)


class HybridPath:
    """Combines the catalog and world paths into source-labelled sections."""

    def __init__(
        self,
        catalog_path: CatalogPath,
        world_path: WorldPath,
        min_catalog: int = 3,
    ) -> None:
        self._catalog_path = catalog_path
        self._world_path = world_path
        self._min_catalog = min_catalog
        self._logger = get_logger(__name__)

    async def execute(
        self,
        classification: Classification,
        exclusion_set: frozenset[str] = frozenset(),
    ) -> PathResult:
        """Run both sub-paths and decide whether the world section is needed.

        Parameters
        ----------
        classification:
            The classified query.
        exclusion_set:
            Normalized titles the user has already seen.  Only used to count
            the catalog candidates still eligible; filtering itself happens
            in the exclusion stage.
        """
        catalog_result, world_result = await asyncio.gather(
            self._catalog_path.execute(classification),
            _run_world(self._world_path, classification),
        )
        catalog_candidates = list(catalog_result.candidates)
        unseen, _ = apply_exclusions(catalog_candidates, exclusion_set)
        needs_world = len(unseen) < self._min_catalog

        sections: list[RecommendationSection] = []
        if catalog_candidates:
            sections.append(RecommendationSection(label=CATALOG_SECTION, candidates=catalog_candidates))
        if needs_world:
            sections.append(RecommendationSection(label=WORLD_SECTION, use_generative_knowledge=True))

        self._logger.info(
            "hybrid_path_complete",
            catalog_candidates=len(catalog_candidates),
            catalog_unseen=len(unseen),
            world_requested=needs_world,
        )
        return PathResult(
            path=RoutingPath.HYBRID,
            candidates=catalog_candidates,
            explanation=EXPLAIN_BOTH if needs_world else EXPLAIN_CATALOG_ONLY,
            sections=sections,
            use_generative_knowledge=needs_world,
            generative_directive=world_result.generative_directive if needs_world else None,
            transparency_note=world_result.transparency_note if needs_world else None,
            theme_browse=catalog_result.theme_browse,
            browse_themes=list(catalog_result.browse_themes),
            degradations=list(catalog_result.degradations),
        )
