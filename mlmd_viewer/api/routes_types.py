# mlmd_viewer/api/routes_types.py
"""
Type browsing routes.

Artifact, execution and context types with their declared property
schemas. Each type detail links to the listing of its entities.
"""

from typing import Dict, List
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db.engine import get_session
from ..metadata.models import EntityKind
from ..metadata.store import MetadataStore, StoreError

router = APIRouter(tags=["types"])

# Listing route of each kind's entities
_ENTITY_LISTINGS = {
    EntityKind.ARTIFACT: "/artifacts/",
    EntityKind.EXECUTION: "/executions/",
    EntityKind.CONTEXT: "/contexts/",
}


class TypeSummary(BaseModel):
    id: int
    name: str
    properties: List[str]


class TypeDetail(BaseModel):
    """A type with its declared property schema (name -> data type)."""
    id: int
    name: str
    properties: Dict[str, str]
    entities_url: str


def _type_summaries(session: Session, kind: EntityKind) -> List[TypeSummary]:
    store = MetadataStore(session)
    try:
        types = store.list_types(kind)
        schemas = store.get_type_properties([t.id for t in types])
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Metadata store error: {e}")
    return [
        TypeSummary(id=t.id, name=t.name, properties=list(schemas[t.id]))
        for t in types
    ]


def _type_detail(session: Session, kind: EntityKind, type_id: int) -> TypeDetail:
    store = MetadataStore(session)
    try:
        metadata_type = store.get_type(type_id, kind)
        if metadata_type is None:
            raise HTTPException(
                status_code=404,
                detail=f"no such {kind.value} type: {type_id}",
            )
        schema = store.get_type_properties([type_id])[type_id]
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Metadata store error: {e}")
    return TypeDetail(
        id=metadata_type.id,
        name=metadata_type.name,
        properties={name: data_type.name for name, data_type in schema.items()},
        entities_url=f"{_ENTITY_LISTINGS[kind]}?type={quote(metadata_type.name)}",
    )


@router.get("/artifact_types/", response_model=List[TypeSummary])
def list_artifact_types(session: Session = Depends(get_session)) -> List[TypeSummary]:
    """List artifact types with their property names."""
    return _type_summaries(session, EntityKind.ARTIFACT)


@router.get("/artifact_types/{type_id}", response_model=TypeDetail)
def get_artifact_type(type_id: int, session: Session = Depends(get_session)) -> TypeDetail:
    return _type_detail(session, EntityKind.ARTIFACT, type_id)


@router.get("/execution_types/", response_model=List[TypeSummary])
def list_execution_types(session: Session = Depends(get_session)) -> List[TypeSummary]:
    """List execution types with their property names."""
    return _type_summaries(session, EntityKind.EXECUTION)


@router.get("/execution_types/{type_id}", response_model=TypeDetail)
def get_execution_type(type_id: int, session: Session = Depends(get_session)) -> TypeDetail:
    return _type_detail(session, EntityKind.EXECUTION, type_id)


@router.get("/context_types/", response_model=List[TypeSummary])
def list_context_types(session: Session = Depends(get_session)) -> List[TypeSummary]:
    """List context types with their property names."""
    return _type_summaries(session, EntityKind.CONTEXT)


@router.get("/context_types/{type_id}", response_model=TypeDetail)
def get_context_type(type_id: int, session: Session = Depends(get_session)) -> TypeDetail:
    return _type_detail(session, EntityKind.CONTEXT, type_id)
