# Graph module - provenance graphs over MLMD events
from .models import NodeId, Node, Edge, ProvenanceGraph
from .fetcher import fetch_entity
from .builder import build_graph, TooManyNodes, MAX_GRAPH_NODES
from .dot import render_dot
from .export import (
    GraphRenderer,
    GraphvizRenderer,
    TextRenderer,
    ImageOutput,
    TextOutput,
    RenderedOutput,
    RendererUnavailable,
    select_renderer,
    export_graph,
)

__all__ = [
    # Models
    "NodeId",
    "Node",
    "Edge",
    "ProvenanceGraph",
    # Fetcher
    "fetch_entity",
    # Builder
    "build_graph",
    "TooManyNodes",
    "MAX_GRAPH_NODES",
    # Rendering
    "render_dot",
    # Export
    "GraphRenderer",
    "GraphvizRenderer",
    "TextRenderer",
    "ImageOutput",
    "TextOutput",
    "RenderedOutput",
    "RendererUnavailable",
    "select_renderer",
    "export_graph",
]
