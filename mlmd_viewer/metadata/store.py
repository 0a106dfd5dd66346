# mlmd_viewer/metadata/store.py
"""
Read-only store over the ML-Metadata relational schema.

Queries are plain SQL against the tables MLMD creates
(Artifact, Execution, Context, Type, TypeProperty, *Property, Event,
EventPath, Attribution, Association). Lookups by id return None when
the row is absent; database failures are raised as StoreError.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.engine import SessionLocal
from ..logging import get_logger
from .models import (
    Artifact,
    Context,
    Entity,
    EntityKind,
    Event,
    EventStep,
    Execution,
    MetadataType,
    OrderBy,
    PropertyType,
    PropertyValue,
    TypeKind,
    datetime_to_millis,
    millis_to_datetime,
    parse_artifact_state,
    parse_event_type,
    parse_execution_state,
    parse_property_type,
)

logger = get_logger(__name__)


class StoreError(Exception):
    """Base exception for metadata store failures."""
    pass


class NotFound(StoreError):
    """Raised when a requested entity does not exist."""

    def __init__(self, kind: EntityKind, entity_id: int):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"no such {kind.value}: {entity_id}")


class InconsistentStoreError(StoreError):
    """Raised when an entity references a type that does not exist."""
    pass


# Per-kind table layout. Values are fixed identifiers, never user input.
_ENTITY_TABLES: Dict[EntityKind, Tuple[str, str, str]] = {
    # kind: (entity table, property table, property foreign key)
    EntityKind.ARTIFACT: ("Artifact", "ArtifactProperty", "artifact_id"),
    EntityKind.EXECUTION: ("Execution", "ExecutionProperty", "execution_id"),
    EntityKind.CONTEXT: ("Context", "ContextProperty", "context_id"),
}

# Selected columns per kind, in the order the row builders read them
_ENTITY_COLUMNS: Dict[EntityKind, str] = {
    EntityKind.ARTIFACT: (
        "e.id, e.type_id, e.uri, e.state, e.name, "
        "e.create_time_since_epoch, e.last_update_time_since_epoch"
    ),
    EntityKind.EXECUTION: (
        "e.id, e.type_id, e.last_known_state, e.name, "
        "e.create_time_since_epoch, e.last_update_time_since_epoch"
    ),
    EntityKind.CONTEXT: (
        "e.id, e.type_id, e.name, "
        "e.create_time_since_epoch, e.last_update_time_since_epoch"
    ),
}

# Column of the Event table holding each kind's id.
_EVENT_COLUMNS: Dict[EntityKind, str] = {
    EntityKind.ARTIFACT: "artifact_id",
    EntityKind.EXECUTION: "execution_id",
}

# Membership filters of entity listings: (kind, filter) -> condition
_MEMBERSHIP_FILTERS: Dict[Tuple[EntityKind, str], str] = {
    (EntityKind.ARTIFACT, "context_id"):
        "e.id IN (SELECT artifact_id FROM Attribution WHERE context_id = :context_id)",
    (EntityKind.EXECUTION, "context_id"):
        "e.id IN (SELECT execution_id FROM Association WHERE context_id = :context_id)",
    (EntityKind.CONTEXT, "artifact_id"):
        "e.id IN (SELECT context_id FROM Attribution WHERE artifact_id = :artifact_id)",
    (EntityKind.CONTEXT, "execution_id"):
        "e.id IN (SELECT context_id FROM Association WHERE execution_id = :execution_id)",
}

_ORDER_COLUMNS: Dict[OrderBy, str] = {
    OrderBy.NAME: "e.name",
    OrderBy.CREATE_TIME: "e.create_time_since_epoch",
    OrderBy.UPDATE_TIME: "e.last_update_time_since_epoch",
}


class MetadataStore:
    """
    Read-only access to an MLMD database.

    Each instance wraps one SQLAlchemy session, scoped to a request.
    """

    def __init__(self, session: Optional[Session] = None):
        """
        Initialize metadata store.

        Args:
            session: Optional SQLAlchemy session (creates new if not provided)
        """
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> Session:
        """Get or create session."""
        if self._session is None:
            self._session = SessionLocal()
        return self._session

    def close(self):
        """Close session if we own it."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def _fetch(self, query: str, params: Mapping[str, Any]) -> List[Any]:
        try:
            return list(self.session.execute(text(query), dict(params)))
        except SQLAlchemyError as e:
            logger.error("store_query_failed", error=str(e))
            raise StoreError(f"metadata store query failed: {e}") from e

    # ============================================================
    # ENTITY LOOKUPS
    # ============================================================

    def get_entity(self, kind: EntityKind, entity_id: int) -> Optional[Entity]:
        """Get an artifact, execution or context by id."""
        table = _ENTITY_TABLES[kind][0]
        rows = self._fetch(
            f"SELECT {_ENTITY_COLUMNS[kind]} FROM {table} e WHERE e.id = :id",
            {"id": entity_id},
        )
        if not rows:
            return None
        return self._entity_from_row(kind, rows[0])

    def get_artifact(self, artifact_id: int) -> Optional[Artifact]:
        return self.get_entity(EntityKind.ARTIFACT, artifact_id)

    def get_execution(self, execution_id: int) -> Optional[Execution]:
        return self.get_entity(EntityKind.EXECUTION, execution_id)

    def get_context(self, context_id: int) -> Optional[Context]:
        return self.get_entity(EntityKind.CONTEXT, context_id)

    def _entity_from_row(
        self,
        kind: EntityKind,
        row: Any,
        type_name: Optional[str] = None,
    ) -> Entity:
        """Build an entity from a row selected with _ENTITY_COLUMNS."""
        properties, custom_properties = self._get_properties(kind, row[0])
        if kind == EntityKind.ARTIFACT:
            return Artifact(
                id=row[0],
                type_id=row[1],
                uri=row[2],
                state=parse_artifact_state(row[3]),
                name=row[4],
                create_time=millis_to_datetime(row[5]),
                update_time=millis_to_datetime(row[6]),
                properties=properties,
                custom_properties=custom_properties,
                type_name=type_name,
            )
        if kind == EntityKind.EXECUTION:
            return Execution(
                id=row[0],
                type_id=row[1],
                state=parse_execution_state(row[2]),
                name=row[3],
                create_time=millis_to_datetime(row[4]),
                update_time=millis_to_datetime(row[5]),
                properties=properties,
                custom_properties=custom_properties,
                type_name=type_name,
            )
        return Context(
            id=row[0],
            type_id=row[1],
            name=row[2],
            create_time=millis_to_datetime(row[3]),
            update_time=millis_to_datetime(row[4]),
            properties=properties,
            custom_properties=custom_properties,
            type_name=type_name,
        )

    def _get_properties(
        self,
        kind: EntityKind,
        entity_id: int,
    ) -> Tuple[Dict[str, PropertyValue], Dict[str, PropertyValue]]:
        """Split an entity's property rows into declared and custom maps."""
        _, property_table, foreign_key = _ENTITY_TABLES[kind]
        rows = self._fetch(
            f"""
            SELECT name, is_custom_property, int_value, double_value, string_value
            FROM {property_table}
            WHERE {foreign_key} = :id
            ORDER BY name
            """,
            {"id": entity_id},
        )
        properties: Dict[str, PropertyValue] = {}
        custom_properties: Dict[str, PropertyValue] = {}
        for name, is_custom, int_value, double_value, string_value in rows:
            if int_value is not None:
                value: PropertyValue = int(int_value)
            elif double_value is not None:
                value = float(double_value)
            elif string_value is not None:
                value = str(string_value)
            else:
                continue  # Byte/proto values are not displayed
            target = custom_properties if is_custom else properties
            target[name] = value
        return properties, custom_properties

    # ============================================================
    # ENTITY LISTINGS
    # ============================================================

    def list_entities(
        self,
        kind: EntityKind,
        type_name: Optional[str] = None,
        name: Optional[str] = None,
        context_id: Optional[int] = None,
        artifact_id: Optional[int] = None,
        execution_id: Optional[int] = None,
        mtime_start: Optional[datetime] = None,
        mtime_end: Optional[datetime] = None,
        order_by: OrderBy = OrderBy.CREATE_TIME,
        asc: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Entity]:
        """
        List entities of one kind, with type names attached.

        Args:
            kind: Entity kind to list
            type_name: Only entities of this type
            name: Only entities with this name
            context_id: Artifacts/executions belonging to this context
            artifact_id: Contexts the artifact belongs to
            execution_id: Contexts the execution belongs to
            mtime_start: Last update at or after this time
            mtime_end: Last update before this time
            order_by: Sort field (ties broken by id)
            asc: Ascending order when True
            limit: Maximum results
            offset: Number of entities to skip

        Returns:
            Matching entities

        Raises:
            ValueError: If a membership filter does not apply to kind
        """
        table = _ENTITY_TABLES[kind][0]
        conditions = []
        params: Dict[str, Any] = {"limit": limit, "offset": offset}

        if type_name is not None:
            conditions.append("t.name = :type_name")
            params["type_name"] = type_name
        if name is not None:
            conditions.append("e.name = :name")
            params["name"] = name
        for key, value in (
            ("context_id", context_id),
            ("artifact_id", artifact_id),
            ("execution_id", execution_id),
        ):
            if value is None:
                continue
            condition = _MEMBERSHIP_FILTERS.get((kind, key))
            if condition is None:
                raise ValueError(f"{key} does not filter {kind.value} listings")
            conditions.append(condition)
            params[key] = value
        if mtime_start is not None:
            conditions.append("e.last_update_time_since_epoch >= :mtime_start")
            params["mtime_start"] = datetime_to_millis(mtime_start)
        if mtime_end is not None:
            conditions.append("e.last_update_time_since_epoch < :mtime_end")
            params["mtime_end"] = datetime_to_millis(mtime_end)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        direction = "ASC" if asc else "DESC"

        rows = self._fetch(
            f"""
            SELECT {_ENTITY_COLUMNS[kind]}, t.name
            FROM {table} e
            JOIN Type t ON t.id = e.type_id
            {where}
            ORDER BY {_ORDER_COLUMNS[order_by]} {direction}, e.id {direction}
            LIMIT :limit OFFSET :offset
            """,
            params,
        )
        return [self._entity_from_row(kind, row, type_name=row[-1]) for row in rows]

    # ============================================================
    # TYPES
    # ============================================================

    def get_type(self, type_id: int, kind: EntityKind) -> Optional[MetadataType]:
        """Get the declared type of an entity of the given kind."""
        type_kind = TypeKind.for_entity(kind)
        rows = self._fetch(
            "SELECT id, name FROM Type WHERE id = :id AND type_kind = :type_kind",
            {"id": type_id, "type_kind": int(type_kind)},
        )
        if not rows:
            return None
        return MetadataType(id=rows[0][0], name=rows[0][1], kind=type_kind)

    def list_types(self, kind: EntityKind) -> List[MetadataType]:
        """List the declared types for one entity kind, ordered by id."""
        type_kind = TypeKind.for_entity(kind)
        rows = self._fetch(
            "SELECT id, name FROM Type WHERE type_kind = :type_kind ORDER BY id",
            {"type_kind": int(type_kind)},
        )
        return [MetadataType(id=row[0], name=row[1], kind=type_kind) for row in rows]

    def get_type_properties(self, type_ids: List[int]) -> Dict[int, Dict[str, PropertyType]]:
        """
        Get the declared property schema of each type.

        Returns:
            type id -> {property name: declared type}, names sorted.
            Types without declared properties map to an empty dict.
        """
        schemas: Dict[int, Dict[str, PropertyType]] = {type_id: {} for type_id in type_ids}
        if not type_ids:
            return schemas
        placeholders = ", ".join(f":t{i}" for i in range(len(type_ids)))
        params = {f"t{i}": type_id for i, type_id in enumerate(type_ids)}
        rows = self._fetch(
            f"""
            SELECT type_id, name, data_type
            FROM TypeProperty
            WHERE type_id IN ({placeholders})
            ORDER BY type_id, name
            """,
            params,
        )
        for type_id, name, data_type in rows:
            schemas[type_id][name] = parse_property_type(data_type)
        return schemas

    # ============================================================
    # EVENTS
    # ============================================================

    def get_events_for(self, kind: EntityKind, entity_id: int) -> List[Event]:
        """
        Get all events where the entity is the artifact or execution side.

        Args:
            kind: ARTIFACT or EXECUTION
            entity_id: Entity id

        Returns:
            Events ordered by event id
        """
        column = _EVENT_COLUMNS[kind]
        rows = self._fetch(
            f"""
            SELECT id, artifact_id, execution_id, type, milliseconds_since_epoch
            FROM Event
            WHERE {column} = :id
            ORDER BY id
            """,
            {"id": entity_id},
        )
        return self._build_events(rows)

    def list_events(
        self,
        artifact_id: Optional[int] = None,
        execution_id: Optional[int] = None,
        limit: int = 100,
        offset: int = 0,
        asc: bool = False,
    ) -> List[Event]:
        """
        List events ordered by creation time.

        Args:
            artifact_id: Only events for this artifact
            execution_id: Only events for this execution
            limit: Maximum results
            offset: Number of events to skip
            asc: Oldest first when True

        Returns:
            Matching events
        """
        conditions = []
        params: Dict[str, Any] = {"limit": limit, "offset": offset}
        if artifact_id is not None:
            conditions.append("artifact_id = :artifact_id")
            params["artifact_id"] = artifact_id
        if execution_id is not None:
            conditions.append("execution_id = :execution_id")
            params["execution_id"] = execution_id
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        direction = "ASC" if asc else "DESC"

        rows = self._fetch(
            f"""
            SELECT id, artifact_id, execution_id, type, milliseconds_since_epoch
            FROM Event
            {where}
            ORDER BY milliseconds_since_epoch {direction}, id {direction}
            LIMIT :limit OFFSET :offset
            """,
            params,
        )
        return self._build_events(rows)

    def _build_events(self, rows: List[Any]) -> List[Event]:
        paths = self._get_event_paths([row[0] for row in rows])
        return [
            Event(
                id=row[0],
                artifact_id=row[1],
                execution_id=row[2],
                type=parse_event_type(row[3]),
                path=tuple(paths.get(row[0], [])),
                time=millis_to_datetime(row[4]),
            )
            for row in rows
        ]

    def _get_event_paths(self, event_ids: List[int]) -> Dict[int, List[EventStep]]:
        """
        Get the path steps of each event.

        EventPath has no position column, so steps are read back in
        insertion order. SQLite exposes that order as rowid; on other
        backends the order of steps within one event is whatever the
        storage engine returns.
        """
        if not event_ids:
            return {}
        placeholders = ", ".join(f":e{i}" for i in range(len(event_ids)))
        params = {f"e{i}": event_id for i, event_id in enumerate(event_ids)}
        order = "event_id, rowid" if self._dialect_name() == "sqlite" else "event_id"
        rows = self._fetch(
            f"""
            SELECT event_id, is_index_step, step_index, step_key
            FROM EventPath
            WHERE event_id IN ({placeholders})
            ORDER BY {order}
            """,
            params,
        )
        paths: Dict[int, List[EventStep]] = {}
        for event_id, is_index_step, step_index, step_key in rows:
            if is_index_step:
                step = EventStep(index=step_index)
            else:
                step = EventStep(key=step_key)
            paths.setdefault(event_id, []).append(step)
        return paths

    def _dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    # ============================================================
    # CONTEXT MEMBERSHIP
    # ============================================================

    def get_context_members(self, context_id: int) -> Tuple[List[int], List[int]]:
        """
        Get ids of artifacts attributed to and executions associated with a context.

        Returns:
            (artifact_ids, execution_ids), each sorted ascending
        """
        artifact_rows = self._fetch(
            "SELECT artifact_id FROM Attribution WHERE context_id = :id ORDER BY artifact_id",
            {"id": context_id},
        )
        execution_rows = self._fetch(
            "SELECT execution_id FROM Association WHERE context_id = :id ORDER BY execution_id",
            {"id": context_id},
        )
        return [r[0] for r in artifact_rows], [r[0] for r in execution_rows]
