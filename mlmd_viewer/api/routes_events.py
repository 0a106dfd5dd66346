# mlmd_viewer/api/routes_events.py
"""
Event listing route.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..db.engine import get_session
from ..metadata.models import Event
from ..metadata.store import MetadataStore, StoreError

router = APIRouter(prefix="/events", tags=["events"])


class EventResponse(BaseModel):
    """One event row."""
    id: Optional[int] = None
    artifact_id: int
    execution_id: int
    type: str
    path: List[str]
    time: Optional[datetime] = None


class EventsResponse(BaseModel):
    events: List[EventResponse]
    count: int
    limit: int
    offset: int


def _to_response(event: Event) -> EventResponse:
    return EventResponse(
        id=event.id,
        artifact_id=event.artifact_id,
        execution_id=event.execution_id,
        type=event.type.name,
        path=[str(step) for step in event.path],
        time=event.time,
    )


@router.get("/", response_model=EventsResponse)
def list_events(
    artifact: Optional[int] = None,
    execution: Optional[int] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    asc: bool = False,
    session: Session = Depends(get_session),
) -> EventsResponse:
    """
    List events, newest first unless asc is set.

    Args:
        artifact: Only events for this artifact id
        execution: Only events for this execution id
        limit: Page size
        offset: Events to skip
        asc: Oldest first
    """
    try:
        events = MetadataStore(session).list_events(
            artifact_id=artifact,
            execution_id=execution,
            limit=limit,
            offset=offset,
            asc=asc,
        )
    except StoreError as e:
        raise HTTPException(status_code=500, detail=f"Metadata store error: {e}")

    return EventsResponse(
        events=[_to_response(e) for e in events],
        count=len(events),
        limit=limit,
        offset=offset,
    )
