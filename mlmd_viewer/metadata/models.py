# mlmd_viewer/metadata/models.py
"""
Metadata models read from an ML-Metadata store.

Core entities:
- MetadataType: Declared type of an artifact, execution or context
- Artifact: Data object consumed or produced by executions
- Execution: One run of a computation step
- Context: Grouping of artifacts and executions
- Event: Typed link between one execution and one artifact

Enum values mirror the integer codes MLMD stores in its tables.
"""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Dict, Optional, Tuple, Union
from dataclasses import dataclass, field


PropertyValue = Union[int, float, str]


class EntityKind(str, Enum):
    """Role tag of a metadata entity."""
    ARTIFACT = "artifact"
    EXECUTION = "execution"
    CONTEXT = "context"


class TypeKind(IntEnum):
    """Value of Type.type_kind in the MLMD schema."""
    EXECUTION_TYPE = 0
    ARTIFACT_TYPE = 1
    CONTEXT_TYPE = 2

    @classmethod
    def for_entity(cls, kind: EntityKind) -> "TypeKind":
        return {
            EntityKind.ARTIFACT: cls.ARTIFACT_TYPE,
            EntityKind.EXECUTION: cls.EXECUTION_TYPE,
            EntityKind.CONTEXT: cls.CONTEXT_TYPE,
        }[kind]


class PropertyType(IntEnum):
    """Value of TypeProperty.data_type: declared type of a property."""
    UNKNOWN = 0
    INT = 1
    DOUBLE = 2
    STRING = 3
    STRUCT = 4
    PROTO = 5
    BOOLEAN = 6


class OrderBy(str, Enum):
    """Sort field of entity listings."""
    NAME = "name"
    CREATE_TIME = "ctime"
    UPDATE_TIME = "utime"


class ArtifactState(IntEnum):
    UNKNOWN = 0
    PENDING = 1
    LIVE = 2
    MARKED_FOR_DELETION = 3
    DELETED = 4


class ExecutionState(IntEnum):
    UNKNOWN = 0
    NEW = 1
    RUNNING = 2
    COMPLETE = 3
    FAILED = 4
    CACHED = 5
    CANCELED = 6


class EventType(IntEnum):
    """Direction of an event, as recorded by MLMD."""
    UNKNOWN = 0
    DECLARED_OUTPUT = 1
    DECLARED_INPUT = 2
    INPUT = 3
    OUTPUT = 4
    INTERNAL_INPUT = 5
    INTERNAL_OUTPUT = 6

    @property
    def is_input(self) -> bool:
        return self in _INPUT_EVENT_TYPES

    @property
    def is_output(self) -> bool:
        return self in _OUTPUT_EVENT_TYPES


_INPUT_EVENT_TYPES = frozenset({
    EventType.INPUT,
    EventType.DECLARED_INPUT,
    EventType.INTERNAL_INPUT,
})
_OUTPUT_EVENT_TYPES = frozenset({
    EventType.OUTPUT,
    EventType.DECLARED_OUTPUT,
    EventType.INTERNAL_OUTPUT,
})


def _safe_enum(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


def parse_event_type(value: Optional[int]) -> EventType:
    """Map a stored event type code, treating unknown codes as UNKNOWN."""
    return _safe_enum(EventType, value or 0, EventType.UNKNOWN)


def parse_property_type(value: Optional[int]) -> PropertyType:
    return _safe_enum(PropertyType, value or 0, PropertyType.UNKNOWN)


def parse_artifact_state(value: Optional[int]) -> ArtifactState:
    return _safe_enum(ArtifactState, value or 0, ArtifactState.UNKNOWN)


def parse_execution_state(value: Optional[int]) -> ExecutionState:
    return _safe_enum(ExecutionState, value or 0, ExecutionState.UNKNOWN)


def millis_to_datetime(value: Optional[int]) -> Optional[datetime]:
    """Convert MLMD milliseconds-since-epoch to an aware UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)


def datetime_to_millis(value: datetime) -> int:
    """Inverse of millis_to_datetime. Naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


@dataclass(frozen=True)
class MetadataType:
    """Declared type of an entity (Type table row)."""
    id: int
    name: str
    kind: TypeKind


@dataclass(frozen=True)
class EventStep:
    """
    One step of an event path.

    Exactly one of index/key is set: an index addresses a list
    position, a key addresses a dict entry of a composite artifact.
    """
    index: Optional[int] = None
    key: Optional[str] = None

    def __str__(self) -> str:
        if self.index is not None:
            return str(self.index)
        return self.key or ""


@dataclass(frozen=True)
class Event:
    """Typed link recording that an execution consumed or produced an artifact."""
    artifact_id: int
    execution_id: int
    type: EventType
    path: Tuple[EventStep, ...] = ()
    time: Optional[datetime] = None
    id: Optional[int] = None

    def path_display(self) -> str:
        """Comma-joined path steps, empty when the event has no path."""
        return ",".join(str(step) for step in self.path)


@dataclass(frozen=True)
class Artifact:
    id: int
    type_id: int
    uri: Optional[str] = None
    name: Optional[str] = None
    state: ArtifactState = ArtifactState.UNKNOWN
    create_time: Optional[datetime] = None
    update_time: Optional[datetime] = None
    properties: Dict[str, PropertyValue] = field(default_factory=dict)
    custom_properties: Dict[str, PropertyValue] = field(default_factory=dict)
    type_name: Optional[str] = None  # Filled in by the entity fetcher

    kind = EntityKind.ARTIFACT


@dataclass(frozen=True)
class Execution:
    id: int
    type_id: int
    name: Optional[str] = None
    state: ExecutionState = ExecutionState.UNKNOWN
    create_time: Optional[datetime] = None
    update_time: Optional[datetime] = None
    properties: Dict[str, PropertyValue] = field(default_factory=dict)
    custom_properties: Dict[str, PropertyValue] = field(default_factory=dict)
    type_name: Optional[str] = None

    kind = EntityKind.EXECUTION


@dataclass(frozen=True)
class Context:
    id: int
    type_id: int
    name: Optional[str] = None
    create_time: Optional[datetime] = None
    update_time: Optional[datetime] = None
    properties: Dict[str, PropertyValue] = field(default_factory=dict)
    custom_properties: Dict[str, PropertyValue] = field(default_factory=dict)
    type_name: Optional[str] = None

    kind = EntityKind.CONTEXT


Entity = Union[Artifact, Execution, Context]
