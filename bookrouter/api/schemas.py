"""Pydantic request/response schemas for the bookrouter API.

Defines the public contract for the REST endpoints: recommendations,
routing diagnostics and health.

Convention: request schemas end with "Request", response schemas end with
"Response".  ``Field(...)`` adds constraints and descriptions for the
generated OpenAPI docs.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from bookrouter.models.book import CandidateBook
from bookrouter.models.query import ReadingHistoryItem
from bookrouter.models.result import (
    Degradation,
    FormattedRecommendation,
    RecommendationSection,
    RoutingDiagnostics,
)


class RecommendationRequest(BaseModel):
    """One recommendation request from the chat UI."""

    query: str = Field(..., min_length=1, max_length=1000)
    user_id: str | None = None
    reading_history: list[ReadingHistoryItem] = Field(default_factory=list)
    theme_filters: list[str] = Field(default_factory=list)
    session_shown_titles: list[str] = Field(default_factory=list)
    include_diagnostics: bool = Field(
        default=False,
        description="Attach routing diagnostics (for operators, not end users).",
    )


class RecommendationsResponse(BaseModel):
    success: bool
    explanation: str
    candidates: list[CandidateBook]
    recommendations: list[FormattedRecommendation]
    sections: list[RecommendationSection] = Field(default_factory=list)
    exhausted: bool = False
    text: str = ""
    routing_diagnostics: RoutingDiagnostics | None = None


class RouteRequest(BaseModel):
    """Ask for the routing decision only."""

    query: str = Field(..., min_length=1, max_length=1000)
    theme_filters: list[str] = Field(default_factory=list)


class ProbeMetrics(BaseModel):
    success: bool
    max_similarity: float
    avg_similarity: float
    match_count: int
    probe_time_ms: float
    error: str | None = None


class RouteResponse(BaseModel):
    """Routing decision with the evidence it was based on."""

    path: str
    confidence: str
    source: str
    reason: str
    matched_keyword: str | None = None
    probe: ProbeMetrics | None = None
    degradations: list[Degradation] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
