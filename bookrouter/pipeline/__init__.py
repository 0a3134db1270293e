"""Routing and orchestration for the book recommendation pipeline."""

from bookrouter.pipeline.decision_matrix import decide_route
from bookrouter.pipeline.orchestrator import RecommendationPipeline
from bookrouter.pipeline.prefilter import prefilter
from bookrouter.pipeline.router import QueryRouter

__all__ = [
    "QueryRouter",
    "RecommendationPipeline",
    "decide_route",
    "prefilter",
]
