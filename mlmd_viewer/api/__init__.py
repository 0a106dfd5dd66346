"""API routes package."""

from .routes_graph import router as graph_router
from .routes_entities import router as entities_router
from .routes_events import router as events_router
from .routes_types import router as types_router

__all__ = [
    "graph_router",
    "entities_router",
    "events_router",
    "types_router",
]
