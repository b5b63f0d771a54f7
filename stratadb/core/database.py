"""
The Database value: an append-only history of layers.

A Database is an immutable value. Every write computes a new layer from
the latest one and returns a new Database with that layer appended; the
receiver is never touched. Publishing the new value is the job of
Connection, which swaps it in atomically.

Invariants:
    - layers is non-empty; layers[i].time == i
    - curr_time == len(layers) - 1 == number of committed writes
    - top_id is incremented exactly once per created entity
    - A failing write raises before any new value exists

How to change safely:
    - New write operations must go through _commit() so the clock and
      layer sequence advance together
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple, Union

from ..errors import AttributeNotFoundError, CardinalityViolationError, OutOfRangeError
from ..index.index import Index, IndexKind
from ..schema.types import Attribute, Entity
from ..storage.base import Storage
from .layer import Layer

logger = logging.getLogger(__name__)


class UpdateOp(Enum):
    """How update_attribute combines the new value with the stored one."""

    RESET = "reset"  # replace the value
    ADD = "add"  # accumulate (multiple cardinality only)
    REMOVE = "remove"  # retract values (multiple cardinality only)


@dataclass(frozen=True)
class Database:
    """Immutable database value.

    Attributes:
        layers: Layers ordered oldest to newest
        top_id: Next unassigned entity id
        curr_time: Logical clock; time of the latest layer

    Example:
        >>> db = Database.initial()
        >>> db, eid = db.create_entity([attr("age", 30, "int")])
        >>> eid, db.curr_time
        (0, 1)
        >>> db.as_of(0).storage
        InMemoryStorage(0 entities)
    """

    layers: Tuple[Layer, ...]
    top_id: int = 0
    curr_time: int = 0

    def __post_init__(self) -> None:
        if not self.layers:
            raise ValueError("Database requires at least one layer")
        if self.curr_time != len(self.layers) - 1:
            raise ValueError(
                f"curr_time {self.curr_time} does not match {len(self.layers)} layers"
            )

    @classmethod
    def initial(cls, storage: Optional[Storage] = None) -> Database:
        """Empty database: one empty layer at time 0."""
        return cls(layers=(Layer.empty(storage),), top_id=0, curr_time=0)

    @property
    def latest(self) -> Layer:
        return self.layers[-1]

    def _next_time(self, at_time: Optional[int]) -> int:
        expected = self.curr_time + 1
        if at_time is not None and at_time != expected:
            raise OutOfRangeError(
                at_time,
                self.curr_time,
                message=f"Writes must be stamped with time {expected}, got {at_time!r}",
            )
        return expected

    def _commit(self, layer: Layer, top_id: Optional[int] = None) -> Database:
        db = Database(
            layers=self.layers + (layer,),
            top_id=self.top_id if top_id is None else top_id,
            curr_time=self.curr_time + 1,
        )
        logger.debug(
            "Layer committed",
            extra={"curr_time": db.curr_time, "top_id": db.top_id},
        )
        return db

    # Writes

    def create_entity(
        self,
        attributes: Union[Entity, Iterable[Attribute]] = (),
        at_time: Optional[int] = None,
    ) -> Tuple[Database, int]:
        """Create an entity with a freshly allocated id.

        Args:
            attributes: Attributes of the new entity, or an Entity that has
                not been assigned an id yet
            at_time: Optional explicit write time (must be curr_time + 1)

        Returns:
            Tuple of (new database, allocated entity id)

        Raises:
            ValueError: If given an Entity that already has an id
            CardinalityViolationError: If a single attribute name repeats
        """
        if isinstance(attributes, Entity):
            if attributes.has_id:
                raise ValueError(f"Entity already has id {attributes.id!r}")
            attributes = list(attributes.attrs.values())
        at_time = self._next_time(at_time)
        new_id = self.top_id
        layer = self.latest.add_entity(new_id, attributes, at_time)
        return self._commit(layer, top_id=new_id + 1), new_id

    def update_attribute(
        self,
        entity_id: Any,
        name: str,
        value: Any,
        op: Union[UpdateOp, str] = UpdateOp.RESET,
        at_time: Optional[int] = None,
    ) -> Database:
        """Update an existing attribute of an existing entity.

        Args:
            entity_id: Entity to update
            name: Attribute name
            value: New value (or values to add/remove for multiple cardinality)
            op: RESET replaces; ADD and REMOVE apply to multiple cardinality
            at_time: Optional explicit write time (must be curr_time + 1)

        Raises:
            EntityNotFoundError: If the entity does not exist
            AttributeNotFoundError: If the entity has no such attribute
            CardinalityViolationError: If ADD/REMOVE targets a single attribute
        """
        op = UpdateOp(op)
        at_time = self._next_time(at_time)
        latest = self.latest
        existing = latest.entity(entity_id).get(name)
        if existing is None:
            raise AttributeNotFoundError(entity_id, name)

        if op is not UpdateOp.RESET and not existing.is_multiple:
            raise CardinalityViolationError(
                entity_id, name, f"'{op.value}' requires multiple cardinality; use reset"
            )

        if op is UpdateOp.RESET:
            layer = latest.with_attribute(
                entity_id, existing.with_value(value), at_time, replace=True
            )
        elif op is UpdateOp.ADD:
            layer = latest.with_attribute(entity_id, existing.with_value(value), at_time)
        else:
            retracted = existing.with_value(value).value
            layer = latest.with_attribute(
                entity_id, existing.with_value(existing.value - retracted), at_time, replace=True
            )
        return self._commit(layer)

    def add_attribute(
        self, entity_id: Any, attribute: Attribute, at_time: Optional[int] = None
    ) -> Database:
        """Add an attribute to an existing entity.

        Multiple-cardinality attributes accumulate into an existing slot of
        the same name; anything else in an occupied slot is a violation.
        """
        at_time = self._next_time(at_time)
        return self._commit(self.latest.with_attribute(entity_id, attribute, at_time))

    def remove_attribute(self, entity_id: Any, name: str, at_time: Optional[int] = None) -> Database:
        at_time = self._next_time(at_time)
        return self._commit(self.latest.without_attribute(entity_id, name, at_time))

    def remove_entity(self, entity_id: Any, at_time: Optional[int] = None) -> Database:
        """Remove an entity, its datoms, and references to it."""
        at_time = self._next_time(at_time)
        return self._commit(self.latest.remove_entity(entity_id, at_time))

    # Reads

    def as_of(self, time: int) -> Layer:
        """Layer created at logical `time`.

        Raises:
            OutOfRangeError: If time < 0 or time > curr_time
        """
        if isinstance(time, bool) or not isinstance(time, int):
            raise TypeError(f"time must be an int, got {type(time).__name__}")
        if time < 0 or time > self.curr_time:
            raise OutOfRangeError(time, self.curr_time)
        return self.layers[time]

    def _layer_at(self, time: Optional[int]) -> Layer:
        return self.latest if time is None else self.as_of(time)

    def entity_at(self, entity_id: Any, time: Optional[int] = None) -> Entity:
        return self._layer_at(time).entity(entity_id)

    def attr_at(self, entity_id: Any, name: str, time: Optional[int] = None) -> Attribute:
        attribute = self.entity_at(entity_id, time).get(name)
        if attribute is None:
            raise AttributeNotFoundError(entity_id, name)
        return attribute

    def value_of_at(self, entity_id: Any, name: str, time: Optional[int] = None) -> Any:
        return self.attr_at(entity_id, name, time).value

    def index_at(self, kind: IndexKind, time: Optional[int] = None) -> Index:
        return self._layer_at(time).index(kind)

    def evolution_of(self, entity_id: Any, name: str) -> List[Tuple[int, Any]]:
        """History of an attribute as (ts, value) pairs, oldest first.

        Follows the prev_ts chain back from the latest layer, so only the
        current run of writes is reported: a removed and re-added
        attribute starts a fresh chain.
        """
        history: List[Tuple[int, Any]] = []
        attribute = self.attr_at(entity_id, name)
        while True:
            history.append((attribute.ts, attribute.value))
            if attribute.prev_ts < 0 or attribute.prev_ts >= attribute.ts:
                break
            attribute = self.attr_at(entity_id, name, attribute.prev_ts)
        history.reverse()
        return history
