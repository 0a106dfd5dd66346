# mlmd_viewer/graph/fetcher.py
"""
Entity fetcher: resolves a role tag and id into a typed entity.

Issues exactly two store lookups (entity, then its type). No caching.
"""

import dataclasses

from ..logging import get_logger
from ..metadata.models import Entity, EntityKind
from ..metadata.store import InconsistentStoreError, NotFound

logger = get_logger(__name__)


def fetch_entity(store, kind: EntityKind, entity_id: int) -> Entity:
    """
    Fetch an entity and attach its declared type name.

    Args:
        store: Metadata store (get_entity/get_type)
        kind: Entity role
        entity_id: Entity id

    Returns:
        Entity with type_name set

    Raises:
        NotFound: If the entity does not exist
        InconsistentStoreError: If the entity's type does not exist
    """
    entity = store.get_entity(kind, entity_id)
    if entity is None:
        raise NotFound(kind, entity_id)

    metadata_type = store.get_type(entity.type_id, kind)
    if metadata_type is None:
        logger.error(
            "entity_type_missing",
            kind=kind.value,
            entity_id=entity_id,
            type_id=entity.type_id,
        )
        raise InconsistentStoreError(
            f"no such {kind.value} type: {entity.type_id} (referenced by {kind.value} {entity_id})"
        )

    return dataclasses.replace(entity, type_name=metadata_type.name)
