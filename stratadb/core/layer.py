"""
Layers: immutable snapshots of the entity store and its indexes.

A layer is one storage snapshot plus the four datom indexes, tagged with
the logical time it was created. Every write derives a new layer from the
latest one; nothing is ever changed in place, so a layer handed to a
reader stays valid for as long as the reader holds it.

Invariants:
    - Storage and the four indexes always describe the same datoms
    - VAET only ever contains datoms of "ref" attributes
    - A written attribute carries ts == layer time and prev_ts == the ts
      it replaced (-1 when new)
    - Layers are created once and never mutated

How to change safely:
    - Route every storage change through _replace_attribute() or
      remove_entity() so the indexes cannot drift from storage
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import replace as dataclass_replace
from typing import Any, Dict, Iterable, Iterator, Optional

from ..errors import AttributeNotFoundError, CardinalityViolationError
from ..index.index import Index, IndexKind
from ..schema.types import NO_ID_YET, Attribute, Entity
from ..storage.base import Storage
from ..storage.memory import InMemoryStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Layer:
    """One immutable snapshot of the database.

    Attributes:
        storage: Entity storage visible at this layer
        vaet: Reverse-reference index (ref attributes only)
        avet: Attribute/value index
        veat: Value/entity index
        eavt: Entity/attribute index
        time: Logical time at which the layer was created

    Example:
        >>> layer = Layer.empty().add_entity(0, [attr("age", 30, "int")], at_time=1)
        >>> layer.eavt[0]["age"]
        frozenset({30})
    """

    storage: Storage
    vaet: Index
    avet: Index
    veat: Index
    eavt: Index
    time: int = 0

    @classmethod
    def empty(cls, storage: Optional[Storage] = None, time: int = 0) -> Layer:
        """Create a layer with no entities and four empty indexes."""
        return cls(
            storage=storage if storage is not None else InMemoryStorage(),
            vaet=Index(IndexKind.VAET),
            avet=Index(IndexKind.AVET),
            veat=Index(IndexKind.VEAT),
            eavt=Index(IndexKind.EAVT),
            time=time,
        )

    def index(self, kind: IndexKind) -> Index:
        return getattr(self, kind.name.lower())

    def indexes(self) -> Iterator[Index]:
        """Indexes in VAET, AVET, VEAT, EAVT order."""
        for kind in IndexKind:
            yield self.index(kind)

    def entity(self, entity_id: Any) -> Entity:
        """Look up an entity.

        Raises:
            EntityNotFoundError: If the entity is not in this layer
        """
        return self.storage.get(entity_id)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self.storage

    def _replace_attribute(
        self,
        entity: Entity,
        old: Optional[Attribute],
        new: Optional[Attribute],
        at_time: int,
    ) -> Layer:
        indexes: Dict[str, Index] = {}
        for kind in IndexKind:
            idx = self.index(kind)
            if old is not None:
                idx = idx.remove(entity.id, old)
            if new is not None:
                idx = idx.add(entity.id, new)
            indexes[kind.name.lower()] = idx
        return dataclass_replace(self, storage=self.storage.put(entity), time=at_time, **indexes)

    def with_attribute(
        self,
        entity_id: Any,
        attribute: Attribute,
        at_time: int,
        *,
        replace: bool = False,
        new_id: Any = None,
    ) -> Layer:
        """Derive a layer in which `entity_id` carries `attribute`.

        Args:
            entity_id: Target entity, or NO_ID_YET to start a fresh one
            attribute: Attribute to write
            at_time: Logical time of the write
            replace: Replace an existing attribute of the same name instead
                of accumulating into it
            new_id: Id given to the fresh entity when `entity_id` is NO_ID_YET

        Returns:
            New layer stamped with `at_time`

        Raises:
            EntityNotFoundError: If `entity_id` is an id that is not stored
            ValueError: If a placeholder write has no free `new_id`
            CardinalityViolationError: If the name slot is taken and either
                attribute is single-cardinality, without replace
        """
        if entity_id is NO_ID_YET:
            if new_id is None or new_id is NO_ID_YET:
                raise ValueError("A placeholder write needs a new_id for the fresh entity")
            if new_id in self.storage:
                raise ValueError(f"Entity {new_id!r} already exists")
            entity = Entity(id=new_id)
            entity_id = new_id
        else:
            entity = self.storage.get(entity_id)

        existing = entity.get(attribute.name)
        if existing is not None and not replace:
            if not (existing.is_multiple and attribute.is_multiple):
                raise CardinalityViolationError(
                    entity_id,
                    attribute.name,
                    f"cannot add a {attribute.cardinality.value} value to an existing "
                    f"{existing.cardinality.value} attribute without replacing it",
                )
            attribute = attribute.with_value(existing.value | attribute.value)

        if existing is None:
            prev_ts = -1
        elif existing.ts == at_time:
            # same write folded twice
            prev_ts = existing.prev_ts
        else:
            prev_ts = existing.ts
        stamped = attribute.stamped(at_time, prev_ts)
        return self._replace_attribute(entity.with_attr(stamped), existing, stamped, at_time)

    def without_attribute(self, entity_id: Any, name: str, at_time: int) -> Layer:
        """Derive a layer in which the entity no longer has attribute `name`.

        Raises:
            EntityNotFoundError: If the entity does not exist
            AttributeNotFoundError: If the entity has no such attribute
        """
        entity = self.storage.get(entity_id)
        existing = entity.get(name)
        if existing is None:
            raise AttributeNotFoundError(entity_id, name)
        return self._replace_attribute(entity.without_attr(name), existing, None, at_time)

    def add_entity(self, entity_id: Any, attributes: Iterable[Attribute], at_time: int) -> Layer:
        """Derive a layer holding a new entity with `attributes`.

        Raises:
            ValueError: If `entity_id` is already stored
            CardinalityViolationError: If `attributes` repeats a single name
        """
        if entity_id in self.storage:
            raise ValueError(f"Entity {entity_id!r} already exists")
        layer, target = self, NO_ID_YET
        for attribute in attributes:
            layer = layer.with_attribute(target, attribute, at_time, new_id=entity_id)
            target = entity_id
        if target is NO_ID_YET:
            layer = dataclass_replace(self, storage=self.storage.put(Entity(id=entity_id)), time=at_time)
        return layer

    def remove_entity(self, entity_id: Any, at_time: int) -> Layer:
        """Derive a layer without the entity, its datoms, or references to it.

        Reference attributes of other entities that point at `entity_id`
        are cleaned up first: single refs are dropped, multiple refs lose
        the id.

        Raises:
            EntityNotFoundError: If the entity does not exist
        """
        entity = self.storage.get(entity_id)

        layer = dataclass_replace(self, time=at_time)
        back_refs = self.vaet.get(entity_id, {})
        for name, referrers in back_refs.items():
            for referrer in referrers:
                if referrer == entity_id:
                    continue
                ref_attr = layer.storage.get(referrer).attrs[name]
                if ref_attr.is_multiple:
                    layer = layer.with_attribute(
                        referrer,
                        ref_attr.with_value(ref_attr.value - {entity_id}),
                        at_time,
                        replace=True,
                    )
                else:
                    layer = layer.without_attribute(referrer, name, at_time)

        indexes: Dict[str, Index] = {}
        for kind in IndexKind:
            idx = layer.index(kind)
            for attribute in entity.attrs.values():
                idx = idx.remove(entity_id, attribute)
            indexes[kind.name.lower()] = idx

        logger.debug(
            "Entity removed from layer",
            extra={
                "entity_id": entity_id,
                "at_time": at_time,
                "back_refs": sum(len(r) for r in back_refs.values()),
            },
        )
        return dataclass_replace(layer, storage=layer.storage.remove(entity), **indexes)
