"""
Base protocol for entity storage backends.

This module defines the Storage protocol that all backends must implement.
A storage value is one snapshot of the entity set visible at a layer.

Invariants:
    - put() and remove() return new storage values; the receiver is unchanged
    - get() raises EntityNotFoundError for absent ids
    - Backends are substitutable without changing caller behavior

How to change safely:
    - Protocol changes require updating all implementations
    - New backends must keep put/remove non-mutating, since older layers
      keep referencing the snapshot they were built with
"""

from __future__ import annotations

from abc import abstractmethod
from typing import (
    TYPE_CHECKING,
    Any,
    Iterator,
    Mapping,
    Protocol,
    runtime_checkable,
)

if TYPE_CHECKING:
    from ..config import Settings
    from ..schema.types import Entity


@runtime_checkable
class Storage(Protocol):
    """Protocol for entity storage backends.

    Example:
        >>> storage = InMemoryStorage()
        >>> storage = storage.put(Entity(id=0))
        >>> storage.get(0)
        Entity(id=0, ...)
    """

    @abstractmethod
    def get(self, entity_id: Any) -> Entity:
        """Look up an entity by id.

        Raises:
            EntityNotFoundError: If no entity has that id in this snapshot
        """
        ...

    @abstractmethod
    def put(self, entity: Entity) -> Storage:
        """Return a new storage with `entity` inserted or replaced."""
        ...

    @abstractmethod
    def remove(self, entity: Entity) -> Storage:
        """Return a new storage without `entity`'s id.

        Removing an absent id returns an equivalent storage.
        """
        ...

    @property
    @abstractmethod
    def entities(self) -> Mapping[Any, Entity]:
        """Read-only id -> Entity view of this snapshot."""
        ...

    @abstractmethod
    def __contains__(self, entity_id: object) -> bool:
        ...

    @abstractmethod
    def __iter__(self) -> Iterator[Any]:
        """Iterate over stored entity ids."""
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...


def create_storage(settings: "Settings") -> Storage:
    """Factory function to create an empty storage from settings.

    Args:
        settings: StrataDB settings

    Returns:
        Empty storage for the configured backend

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StorageBackend
    from .memory import InMemoryStorage

    if settings.storage_backend == StorageBackend.MEMORY:
        return InMemoryStorage()
    else:
        raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")
