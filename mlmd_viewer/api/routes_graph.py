# mlmd_viewer/api/routes_graph.py
"""
Provenance graph routes.

GET /artifacts/{id}/graph and /executions/{id}/graph build the lineage
graph around the seed, render it as DOT and return an image when
Graphviz is available, or the DOT text otherwise.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.orm import Session

from ..db.engine import get_session
from ..graph.builder import TooManyNodes, build_graph
from ..graph.dot import render_dot
from ..graph.export import GraphRenderer, ImageOutput, export_graph, select_renderer
from ..graph.models import NodeId
from ..logging import get_logger
from ..metadata.store import MetadataStore, NotFound, StoreError
from ..settings import settings

logger = get_logger(__name__)

router = APIRouter(tags=["graph"])


def get_graph_renderer() -> GraphRenderer:
    """Dependency: renderer picked by probing for Graphviz."""
    return select_renderer(settings)


def _graph_response(seed: NodeId, session: Session, renderer: GraphRenderer) -> Response:
    store = MetadataStore(session)
    try:
        graph = build_graph(store, seed)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TooManyNodes as e:
        raise HTTPException(status_code=500, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Metadata store error: {e}")

    dot_text = render_dot(graph, base_url=settings.public_base_url)
    output = export_graph(dot_text, renderer)

    if isinstance(output, ImageOutput):
        return Response(content=output.data, media_type=output.media_type)
    return PlainTextResponse(content=output.text)


@router.get("/artifacts/{artifact_id}/graph")
def get_artifact_graph(
    artifact_id: int,
    session: Session = Depends(get_session),
    renderer: GraphRenderer = Depends(get_graph_renderer),
) -> Response:
    """
    Provenance graph seeded at an artifact.

    Shows the executions that produced it, their inputs, transitively,
    plus the executions that consumed the seed.
    """
    return _graph_response(NodeId.artifact(artifact_id), session, renderer)


@router.get("/executions/{execution_id}/graph")
def get_execution_graph(
    execution_id: int,
    session: Session = Depends(get_session),
    renderer: GraphRenderer = Depends(get_graph_renderer),
) -> Response:
    """
    Provenance graph seeded at an execution.

    Shows the artifacts it produced, their consumers, transitively,
    plus the artifacts the seed consumed.
    """
    return _graph_response(NodeId.execution(execution_id), session, renderer)
