"""bookrouter API layer: routes, schemas and middleware."""

from bookrouter.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from bookrouter.api.routes import router
from bookrouter.api.schemas import (
    ErrorResponse,
    HealthResponse,
    RecommendationRequest,
    RecommendationsResponse,
    RouteRequest,
    RouteResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ErrorResponse",
    "HealthResponse",
    "RecommendationRequest",
    "RecommendationsResponse",
    "RouteRequest",
    "RouteResponse",
]
