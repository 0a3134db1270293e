"""Stage results, path outputs and the final recommendation response.

Every pipeline stage returns a :class:`StageResult` instead of raising: the
stage's value (possibly a safe default) plus an optional
:class:`Degradation` describing what went wrong.  The orchestrator collects
the degradations into :class:`RoutingDiagnostics`, so each fallback in the
chain is observable and can be asserted on in tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from bookrouter.models.book import CandidateBook
from bookrouter.models.routing import RoutingConfidence, RoutingPath

_T = TypeVar("_T")


class DegradationReason(str, Enum):  # noqa: UP042 -- StrEnum requires Python 3.11+
    PROBE_FAILED = "probe_failed"
    PROBE_TIMEOUT = "probe_timeout"
    EXTRACTION_FAILED = "extraction_failed"
    CATALOG_QUERY_FAILED = "catalog_query_failed"
    SEARCH_FAILED = "search_failed"
    METADATA_LOOKUP_FAILED = "metadata_lookup_failed"
    WORLD_GENERATION_FAILED = "world_generation_failed"
    FORMATTING_FAILED = "formatting_failed"
    HISTORY_UNAVAILABLE = "history_unavailable"
    EXCLUSION_EXHAUSTED = "exclusion_exhausted"
    PATH_FAILED = "path_failed"


class Degradation(BaseModel):
    """One recovered failure: which stage, why, and a short detail string."""

    model_config = ConfigDict(frozen=True)

    stage: str
    reason: DegradationReason
    detail: str = ""


@dataclass(frozen=True)
class StageResult(Generic[_T]):
    """Value of a pipeline stage plus the degradation it recovered from, if any."""

    value: _T
    degradation: Degradation | None = None

    @property
    def is_degraded(self) -> bool:
        return self.degradation is not None

    @classmethod
    def ok(cls, value: _T) -> StageResult[_T]:
        return cls(value=value)

    @classmethod
    def degraded(
        cls,
        value: _T,
        stage: str,
        reason: DegradationReason,
        detail: str = "",
    ) -> StageResult[_T]:
        return cls(value=value, degradation=Degradation(stage=stage, reason=reason, detail=detail))


# ---------------------------------------------------------------------------
# Path output
# ---------------------------------------------------------------------------

class RecommendationSection(BaseModel):
    """A source-labelled group of candidates (hybrid responses)."""

    model_config = ConfigDict(frozen=True)

    label: str
    candidates: list[CandidateBook] = Field(default_factory=list)
    use_generative_knowledge: bool = False


class PathResult(BaseModel):
    """What a path executor hands to the rest of the pipeline."""

    model_config = ConfigDict(frozen=True)

    path: RoutingPath
    candidates: list[CandidateBook] = Field(default_factory=list)
    explanation: str = ""
    sections: list[RecommendationSection] = Field(default_factory=list)
    use_generative_knowledge: bool = False
    generative_directive: str | None = None
    transparency_note: str | None = None
    # A resolved temporal edition is already structured and trustworthy.
    skip_formatting: bool = False
    # True when the catalog path ran off a theme browse (eligible for the
    # exhausted-slice fallback).
    theme_browse: bool = False
    browse_themes: list[str] = Field(default_factory=list)
    degradations: list[Degradation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

class FormattedRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    author: str
    why_fits: str
    reputation: str | None = None
    source: str = "catalog"


class FormattedResponse(BaseModel):
    """Prose layer over an already-chosen candidate list."""

    model_config = ConfigDict(frozen=True)

    intro_text: str = ""
    recommendations: list[FormattedRecommendation] = Field(default_factory=list)
    used_fallback: bool = False
    dropped_titles: list[str] = Field(default_factory=list)

    def to_text(self) -> str:
        """Render the fixed Title / Author / Why This Fits / Reputation template."""
        blocks: list[str] = []
        if self.intro_text:
            blocks.append(self.intro_text)
        for rec in self.recommendations:
            lines = [
                f"Title: {rec.title}",
                f"Author: {rec.author}",
                f"Why This Fits: {rec.why_fits}",
            ]
            if rec.reputation:
                lines.append(f"Reputation: {rec.reputation}")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Final response
# ---------------------------------------------------------------------------

class RoutingDiagnostics(BaseModel):
    """Observability payload.  Never rendered verbatim to end users."""

    model_config = ConfigDict(frozen=True)

    path: RoutingPath
    confidence: RoutingConfidence
    decision_source: str
    reason: str
    matched_keyword: str | None = None
    probe_max_similarity: float | None = None
    probe_avg_similarity: float | None = None
    probe_match_count: int | None = None
    probe_time_ms: float | None = None
    intent: str | None = None
    intent_changed: bool = False
    excluded_count: int = 0
    dropped_titles: list[str] = Field(default_factory=list)
    degradations: list[Degradation] = Field(default_factory=list)
    elapsed_ms: float = 0.0


class RecommendationResponse(BaseModel):
    """The pipeline's single output shape."""

    model_config = ConfigDict(frozen=True)

    success: bool
    candidates: list[CandidateBook] = Field(default_factory=list)
    explanation: str = ""
    recommendations: list[FormattedRecommendation] = Field(default_factory=list)
    sections: list[RecommendationSection] = Field(default_factory=list)
    exhausted: bool = False
    text: str = ""
    routing_diagnostics: RoutingDiagnostics
