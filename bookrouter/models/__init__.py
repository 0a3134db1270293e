"""bookrouter domain models -- re-exports all public model classes.

Submodules by concern:
    - book.py     -- catalog entries, candidate books, metadata lookups
    - query.py    -- caller input, extraction, validation, classification
    - routing.py  -- pre-filter verdicts, probe metrics, routing decisions
    - result.py   -- stage results, path outputs, the final response

Import from ``bookrouter.models`` rather than the submodules.
"""

from __future__ import annotations

from bookrouter.models.book import (
    BookMetadata,
    BookSource,
    CandidateBook,
    CatalogEntry,
    ScoredEntry,
)
from bookrouter.models.query import (
    Classification,
    QueryEntities,
    QueryExtraction,
    ReadingHistoryItem,
    RecommendationQuery,
    SearchIntent,
    Specificity,
    TasteAlignment,
    TemporalIntent,
    ValidatedExtraction,
    ValidationReport,
)
from bookrouter.models.result import (
    Degradation,
    DegradationReason,
    FormattedRecommendation,
    FormattedResponse,
    PathResult,
    RecommendationResponse,
    RecommendationSection,
    RoutingDiagnostics,
    StageResult,
)
from bookrouter.models.routing import (
    DecisionSource,
    PreFilterResult,
    ProbeResult,
    RoutingConfidence,
    RoutingDecision,
    RoutingPath,
)

__all__ = [
    "BookMetadata",
    "BookSource",
    "CandidateBook",
    "CatalogEntry",
    "Classification",
    "DecisionSource",
    "Degradation",
    "DegradationReason",
    "FormattedRecommendation",
    "FormattedResponse",
    "PathResult",
    "PreFilterResult",
    "ProbeResult",
    "QueryEntities",
    "QueryExtraction",
    "ReadingHistoryItem",
    "RecommendationQuery",
    "RecommendationResponse",
    "RecommendationSection",
    "RoutingConfidence",
    "RoutingDecision",
    "RoutingDiagnostics",
    "RoutingPath",
    "ScoredEntry",
    "SearchIntent",
    "Specificity",
    "StageResult",
    "TasteAlignment",
    "TemporalIntent",
    "ValidatedExtraction",
    "ValidationReport",
]
