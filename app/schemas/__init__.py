from app.schemas.schemas import (
    HealthResponse, ErrorResponse,
    RenderedField, PostItem,
    RouteEndpoint, RouteSchemaResponse,
)

__all__ = [
    "HealthResponse", "ErrorResponse",
    "RenderedField", "PostItem",
    "RouteEndpoint", "RouteSchemaResponse",
]
