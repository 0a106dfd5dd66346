# mlmd_viewer/api/routes_entities.py
"""
Entity routes.

Detail routes are the targets of the node deep links in rendered
graphs. Listing routes page through artifacts, executions and
contexts, filtered by type, name, context membership and update time.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db.engine import get_session
from ..graph.fetcher import fetch_entity
from ..metadata.models import Artifact, Context, Entity, EntityKind, Execution, OrderBy
from ..metadata.store import MetadataStore, NotFound, StoreError

router = APIRouter(tags=["entities"])


class EntityResponse(BaseModel):
    """Fields shared by artifacts, executions and contexts."""
    id: int
    type_id: int
    type: str
    name: Optional[str] = None
    create_time: Optional[datetime] = None
    update_time: Optional[datetime] = None
    properties: Dict[str, Any] = {}
    custom_properties: Dict[str, Any] = {}
    graph_url: Optional[str] = None


class ArtifactResponse(EntityResponse):
    uri: Optional[str] = None
    state: str


class ExecutionResponse(EntityResponse):
    state: str


class ContextResponse(EntityResponse):
    artifact_ids: List[int] = []
    execution_ids: List[int] = []


class ArtifactListResponse(BaseModel):
    artifacts: List[ArtifactResponse]
    count: int
    limit: int
    offset: int


class ExecutionListResponse(BaseModel):
    executions: List[ExecutionResponse]
    count: int
    limit: int
    offset: int


class ContextListResponse(BaseModel):
    contexts: List[ContextResponse]
    count: int
    limit: int
    offset: int


def _fetch(store: MetadataStore, kind: EntityKind, entity_id: int) -> Entity:
    try:
        return fetch_entity(store, kind, entity_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Metadata store error: {e}")


def _list(store: MetadataStore, kind: EntityKind, **filters) -> List[Entity]:
    try:
        return store.list_entities(kind, **filters)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Metadata store error: {e}")


def _common_fields(entity: Entity) -> Dict[str, Any]:
    return {
        "id": entity.id,
        "type_id": entity.type_id,
        "type": entity.type_name or "",
        "name": entity.name,
        "create_time": entity.create_time,
        "update_time": entity.update_time,
        "properties": dict(entity.properties),
        "custom_properties": dict(entity.custom_properties),
    }


def _artifact_response(artifact: Artifact) -> ArtifactResponse:
    return ArtifactResponse(
        **_common_fields(artifact),
        uri=artifact.uri,
        state=artifact.state.name,
        graph_url=f"/artifacts/{artifact.id}/graph",
    )


def _execution_response(execution: Execution) -> ExecutionResponse:
    return ExecutionResponse(
        **_common_fields(execution),
        state=execution.state.name,
        graph_url=f"/executions/{execution.id}/graph",
    )


def _context_response(context: Context, **members) -> ContextResponse:
    return ContextResponse(**_common_fields(context), **members)


# ============================================================
# LISTINGS
# ============================================================


@router.get("/artifacts/", response_model=ArtifactListResponse)
def list_artifacts(
    type_name: Optional[str] = Query(default=None, alias="type"),
    name: Optional[str] = None,
    context: Optional[int] = None,
    mtime_start: Optional[datetime] = Query(default=None, alias="mtime-start"),
    mtime_end: Optional[datetime] = Query(default=None, alias="mtime-end"),
    order_by: OrderBy = Query(default=OrderBy.CREATE_TIME, alias="order-by"),
    asc: bool = False,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
) -> ArtifactListResponse:
    """
    List artifacts, most recently created first by default.

    Args:
        type: Only artifacts of this type name
        name: Only artifacts with this name
        context: Only artifacts attributed to this context id
        mtime-start / mtime-end: Last update time window [start, end)
        order-by: name, ctime or utime
    """
    artifacts = _list(
        MetadataStore(session),
        EntityKind.ARTIFACT,
        type_name=type_name,
        name=name,
        context_id=context,
        mtime_start=mtime_start,
        mtime_end=mtime_end,
        order_by=order_by,
        asc=asc,
        limit=limit,
        offset=offset,
    )
    return ArtifactListResponse(
        artifacts=[_artifact_response(a) for a in artifacts],
        count=len(artifacts),
        limit=limit,
        offset=offset,
    )


@router.get("/executions/", response_model=ExecutionListResponse)
def list_executions(
    type_name: Optional[str] = Query(default=None, alias="type"),
    name: Optional[str] = None,
    context: Optional[int] = None,
    mtime_start: Optional[datetime] = Query(default=None, alias="mtime-start"),
    mtime_end: Optional[datetime] = Query(default=None, alias="mtime-end"),
    order_by: OrderBy = Query(default=OrderBy.CREATE_TIME, alias="order-by"),
    asc: bool = False,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
) -> ExecutionListResponse:
    """List executions. Same filters as /artifacts/."""
    executions = _list(
        MetadataStore(session),
        EntityKind.EXECUTION,
        type_name=type_name,
        name=name,
        context_id=context,
        mtime_start=mtime_start,
        mtime_end=mtime_end,
        order_by=order_by,
        asc=asc,
        limit=limit,
        offset=offset,
    )
    return ExecutionListResponse(
        executions=[_execution_response(e) for e in executions],
        count=len(executions),
        limit=limit,
        offset=offset,
    )


@router.get("/contexts/", response_model=ContextListResponse)
def list_contexts(
    type_name: Optional[str] = Query(default=None, alias="type"),
    name: Optional[str] = None,
    artifact: Optional[int] = None,
    execution: Optional[int] = None,
    mtime_start: Optional[datetime] = Query(default=None, alias="mtime-start"),
    mtime_end: Optional[datetime] = Query(default=None, alias="mtime-end"),
    order_by: OrderBy = Query(default=OrderBy.CREATE_TIME, alias="order-by"),
    asc: bool = False,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    session: Session = Depends(get_session),
) -> ContextListResponse:
    """
    List contexts.

    Args:
        artifact: Only contexts the artifact is attributed to
        execution: Only contexts the execution is associated with
    """
    contexts = _list(
        MetadataStore(session),
        EntityKind.CONTEXT,
        type_name=type_name,
        name=name,
        artifact_id=artifact,
        execution_id=execution,
        mtime_start=mtime_start,
        mtime_end=mtime_end,
        order_by=order_by,
        asc=asc,
        limit=limit,
        offset=offset,
    )
    return ContextListResponse(
        contexts=[_context_response(c) for c in contexts],
        count=len(contexts),
        limit=limit,
        offset=offset,
    )


# ============================================================
# DETAIL
# ============================================================


@router.get("/artifacts/{artifact_id}", response_model=ArtifactResponse)
def get_artifact(
    artifact_id: int,
    session: Session = Depends(get_session),
) -> ArtifactResponse:
    """Get an artifact by id."""
    return _artifact_response(_fetch(MetadataStore(session), EntityKind.ARTIFACT, artifact_id))


@router.get("/executions/{execution_id}", response_model=ExecutionResponse)
def get_execution(
    execution_id: int,
    session: Session = Depends(get_session),
) -> ExecutionResponse:
    """Get an execution by id."""
    return _execution_response(_fetch(MetadataStore(session), EntityKind.EXECUTION, execution_id))


@router.get("/contexts/{context_id}", response_model=ContextResponse)
def get_context(
    context_id: int,
    session: Session = Depends(get_session),
) -> ContextResponse:
    """Get a context by id, with the ids of its member artifacts and executions."""
    store = MetadataStore(session)
    context = _fetch(store, EntityKind.CONTEXT, context_id)
    try:
        artifact_ids, execution_ids = store.get_context_members(context_id)
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Metadata store error: {e}")
    return _context_response(
        context,
        artifact_ids=artifact_ids,
        execution_ids=execution_ids,
    )
