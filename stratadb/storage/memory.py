"""
In-memory storage implementation.

This module provides the in-memory entity store backing every layer.
Each put/remove copies the id map, so a snapshot handed to a layer is
never changed afterwards.

Invariants:
    - All data is lost on process exit
    - Snapshots are immutable and safe to share across threads
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

from ..errors import EntityNotFoundError
from ..schema.types import Entity

logger = logging.getLogger(__name__)


class InMemoryStorage:
    """In-memory implementation of Storage.

    Attributes:
        entities: Read-only view of the id -> Entity map

    Example:
        >>> s0 = InMemoryStorage()
        >>> s1 = s0.put(Entity(id=7))
        >>> 7 in s1, 7 in s0
        (True, False)
    """

    __slots__ = ("_entities",)

    def __init__(self, entities: Optional[Mapping[Any, Entity]] = None) -> None:
        """Initialize storage.

        Args:
            entities: Initial id -> Entity map (copied)
        """
        self._entities: Dict[Any, Entity] = dict(entities or {})

    @property
    def entities(self) -> Mapping[Any, Entity]:
        return MappingProxyType(self._entities)

    def get(self, entity_id: Any) -> Entity:
        try:
            return self._entities[entity_id]
        except KeyError:
            raise EntityNotFoundError(entity_id) from None

    def put(self, entity: Entity) -> InMemoryStorage:
        if not entity.has_id:
            raise ValueError("Cannot store an entity without an allocated id")
        entities = dict(self._entities)
        entities[entity.id] = entity
        return InMemoryStorage(entities)

    def remove(self, entity: Entity) -> InMemoryStorage:
        if entity.id not in self._entities:
            logger.debug("Remove of absent entity is a no-op", extra={"entity_id": entity.id})
            return self
        entities = dict(self._entities)
        del entities[entity.id]
        return InMemoryStorage(entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def __iter__(self) -> Iterator[Any]:
        return iter(self._entities)

    def __len__(self) -> int:
        return len(self._entities)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InMemoryStorage):
            return NotImplemented
        return self._entities == other._entities

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"InMemoryStorage({len(self._entities)} entities)"
