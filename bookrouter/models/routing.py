"""Routing models: pre-filter verdicts, probe metrics and the final decision."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from bookrouter.models.book import ScoredEntry


class RoutingPath(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """The four retrieval strategies."""

    CATALOG = "CATALOG"
    WORLD = "WORLD"
    HYBRID = "HYBRID"
    TEMPORAL = "TEMPORAL"


class RoutingConfidence(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DecisionSource(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    """Which stage produced the routing decision."""

    KEYWORD_PREFILTER = "keyword_prefilter"
    CATALOG_PROBE = "catalog_probe"
    FALLBACK = "fallback"


class PreFilterResult(BaseModel):
    """Verdict of the keyword pre-filter.

    ``confidence`` is HIGH with a ``path`` when an unambiguous signal was
    found, otherwise NONE and the probe decides.
    """

    model_config = ConfigDict(frozen=True)

    confidence: RoutingConfidence = RoutingConfidence.NONE
    path: RoutingPath | None = None
    matched_keyword: str | None = None
    reason: str = "no_keyword_match"

    @property
    def is_conclusive(self) -> bool:
        return self.confidence == RoutingConfidence.HIGH and self.path is not None


class ProbeResult(BaseModel):
    """Measured catalog fit for a query."""

    model_config = ConfigDict(frozen=True)

    success: bool
    max_similarity: float = 0.0
    avg_similarity: float = 0.0
    match_count: int = 0
    books: list[ScoredEntry] = Field(default_factory=list)
    probe_time_ms: float = 0.0
    error: str | None = None

    @classmethod
    def failed(cls, error: str, probe_time_ms: float = 0.0) -> ProbeResult:
        return cls(success=False, error=error, probe_time_ms=probe_time_ms)


class RoutingDecision(BaseModel):
    """Where a query goes and why.  ``reason`` is diagnostic only."""

    model_config = ConfigDict(frozen=True)

    path: RoutingPath
    confidence: RoutingConfidence
    source: DecisionSource
    reason: str
    prefilter: PreFilterResult | None = None
    probe: ProbeResult | None = None
