"""FastAPI routes for the recommendation pipeline.

Endpoint                      Method  Description
----------------------------  ------  ---------------------------------------
/api/v1/recommendations       POST    Full pipeline: route, retrieve, format
/api/v1/route                 POST    Routing decision only (diagnostics)
/api/v1/health                GET     Health check + provider status

Services are resolved from ``app.state`` (populated by ``main._build_all``)
through ``Depends`` helpers and ``Annotated`` aliases, so tests can swap in
fakes by setting ``app.state`` attributes.

If the client disconnects while the pipeline is running, the pipeline task
is cancelled and every in-flight provider call is aborted with it.
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from bookrouter.api.schemas import (
    HealthResponse,
    ProbeMetrics,
    RecommendationRequest,
    RecommendationsResponse,
    RouteRequest,
    RouteResponse,
)
from bookrouter.models.result import RecommendationResponse
from bookrouter.pipeline.orchestrator import RecommendationPipeline
from bookrouter.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

API_VERSION = "0.1.0"

# Non-standard status used by nginx for "client closed request".
_CLIENT_CLOSED_REQUEST = 499

_DISCONNECT_POLL_SECONDS = 0.25

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependency injection helpers: resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_pipeline(request: Request) -> RecommendationPipeline:
    """Return the pipeline orchestrator from application state."""
    return request.app.state.pipeline


PipelineDep = Annotated[RecommendationPipeline, Depends(_get_pipeline)]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post(
    "/recommendations",
    response_model=RecommendationsResponse,
    summary="Recommend books for a query",
)
async def recommend(
    body: RecommendationRequest,
    request: Request,
    pipeline: PipelineDep,
) -> RecommendationsResponse:
    """Run the recommendation pipeline for one query."""
    task = asyncio.create_task(
        pipeline.get_recommendations(
            body.query,
            user_id=body.user_id,
            reading_history=body.reading_history,
            theme_filters=body.theme_filters,
            session_shown_titles=body.session_shown_titles,
        )
    )
    watcher = asyncio.create_task(_cancel_on_disconnect(request, task))
    try:
        result: RecommendationResponse = await task
    except asyncio.CancelledError:
        if watcher.done() and not watcher.cancelled() and watcher.result():
            _logger.info("request_abandoned", path=str(request.url.path))
            raise HTTPException(
                status_code=_CLIENT_CLOSED_REQUEST,
                detail="Client closed request",
            ) from None
        raise
    finally:
        watcher.cancel()

    return RecommendationsResponse(
        success=result.success,
        explanation=result.explanation,
        candidates=result.candidates,
        recommendations=result.recommendations,
        sections=result.sections,
        exhausted=result.exhausted,
        text=result.text,
        routing_diagnostics=result.routing_diagnostics if body.include_diagnostics else None,
    )


@router.post(
    "/route",
    response_model=RouteResponse,
    summary="Routing decision for a query",
)
async def route_query(body: RouteRequest, pipeline: PipelineDep) -> RouteResponse:
    """Return which path would serve the query, and why."""
    decision, degradations = await pipeline.route(body.query, body.theme_filters)
    probe = decision.probe
    return RouteResponse(
        path=decision.path.value,
        confidence=decision.confidence.value,
        source=decision.source.value,
        reason=decision.reason,
        matched_keyword=decision.prefilter.matched_keyword if decision.prefilter else None,
        probe=(
            ProbeMetrics(
                success=probe.success,
                max_similarity=probe.max_similarity,
                avg_similarity=probe.avg_similarity,
                match_count=probe.match_count,
                probe_time_ms=probe.probe_time_ms,
                error=probe.error,
            )
            if probe is not None
            else None
        ),
        degradations=degradations,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version and provider availability."""
    providers: dict[str, Any] = dict(getattr(request.app.state, "provider_registry", {}))

    # The pipeline can always answer from the catalog; without an LLM it
    # runs on deterministic fallbacks only.
    if providers.get("catalog") and providers.get("llm") and providers.get("embedding"):
        status = "healthy"
    elif providers.get("catalog"):
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(status=status, version=API_VERSION, providers=providers)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _cancel_on_disconnect(request: Request, task: asyncio.Task) -> bool:
    """Cancel *task* if the client goes away.  Returns True if it did."""
    while not task.done():
        if await request.is_disconnected():
            task.cancel()
            return True
        await asyncio.sleep(_DISCONNECT_POLL_SECONDS)
    return False
