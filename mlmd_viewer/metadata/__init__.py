# Metadata module - read-only access to an ML-Metadata store
from .models import (
    Artifact,
    Context,
    Entity,
    EntityKind,
    Event,
    EventStep,
    EventType,
    Execution,
    MetadataType,
    OrderBy,
    PropertyType,
)
from .store import MetadataStore, StoreError, NotFound, InconsistentStoreError

__all__ = [
    # Models
    "Artifact",
    "Context",
    "Entity",
    "EntityKind",
    "Event",
    "EventStep",
    "EventType",
    "Execution",
    "MetadataType",
    "OrderBy",
    "PropertyType",
    # Store
    "MetadataStore",
    "StoreError",
    "NotFound",
    "InconsistentStoreError",
]
