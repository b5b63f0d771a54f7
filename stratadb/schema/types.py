"""
Core type definitions for the StrataDB data model.

This module defines the foundational types of the fact model:
- Attribute: A named, typed, cardinality-tagged value holder
- Entity: An identifier plus a mapping of attribute name to Attribute
- Datom: The (entity-id, attribute-name, value) fact derived from an entity

Invariants:
    - cardinality is one of single/multiple, checked at construction
    - multiple-cardinality values are stored as frozensets
    - Entity.attrs[name].name == name for every key
    - ts/prev_ts are -1 until the attribute is first written to a layer

How to change safely:
    - New value types need no registration; `type` is an open tag
    - Only "ref" carries meaning to the store (VAET membership)
    - Keep Attribute and Entity immutable; layers share them freely

Example:
    >>> from stratadb.schema.types import Entity, attr
    >>> age = attr("age", 30, "int")
    >>> friends = attr("friends", {1, 2}, "ref", cardinality="multiple")
    >>> Entity(attrs={"age": age, "friends": friends})
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from dataclasses import field as dataclass_field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Iterator, Mapping, NamedTuple, Union

from ..errors import InvalidCardinalityError


class EntityIdPlaceholder(Enum):
    """Marker for an entity whose id has not been allocated yet."""

    NO_ID_YET = "db/no-id-yet"

    def __repr__(self) -> str:
        return "NO_ID_YET"


NO_ID_YET = EntityIdPlaceholder.NO_ID_YET

EntityId = Union[int, EntityIdPlaceholder]


class Cardinality(Enum):
    """How many values an attribute may hold under one name."""

    SINGLE = "single"
    MULTIPLE = "multiple"

    @classmethod
    def from_str(cls, value: str) -> Cardinality:
        """Convert string representation to Cardinality.

        Raises:
            InvalidCardinalityError: If value is not a valid cardinality
        """
        for card in cls:
            if card.value == value:
                return card
        raise InvalidCardinalityError(value)


class ValueType(str, Enum):
    """Common attribute type tags.

    The set is open: any string is a valid type tag. Only REF has
    semantics inside the store.
    """

    REF = "ref"
    STRING = "string"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"
    KEYWORD = "keyword"


REF = ValueType.REF.value


class Datom(NamedTuple):
    """A single fact in canonical (entity, attribute, value) order."""

    entity_id: Any
    attribute: str
    value: Any


def _as_value_set(value: Any) -> frozenset:
    if isinstance(value, frozenset):
        return value
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return frozenset((value,))
    return frozenset(value)


@dataclass(frozen=True)
class Attribute:
    """A named, typed value held by an entity.

    Attributes:
        name: Identifier, unique within the owning entity
        value: The value; a frozenset when cardinality is MULTIPLE
        type: Type tag; "ref" means the value is an entity id
        cardinality: SINGLE or MULTIPLE
        ts: Logical time of the most recent write (-1 if never written)
        prev_ts: Logical time of the write before that (-1 if none)

    Invariants:
        - cardinality is a Cardinality member after construction
        - MULTIPLE values are always frozensets
    """

    name: str
    value: Any
    type: str
    cardinality: Cardinality = Cardinality.SINGLE
    ts: int = -1
    prev_ts: int = -1

    def __post_init__(self) -> None:
        """Validate and normalize the attribute."""
        if not isinstance(self.cardinality, Cardinality):
            if not isinstance(self.cardinality, str):
                raise InvalidCardinalityError(self.cardinality)
            object.__setattr__(self, "cardinality", Cardinality.from_str(self.cardinality))
        if not self.name:
            raise ValueError("Attribute name cannot be empty")
        if isinstance(self.type, ValueType):
            object.__setattr__(self, "type", self.type.value)
        try:
            if self.cardinality is Cardinality.MULTIPLE:
                object.__setattr__(self, "value", _as_value_set(self.value))
            else:
                hash(self.value)
        except TypeError as e:
            raise ValueError(
                f"Attribute '{self.name}' values must be hashable, got {type(self.value).__name__}"
            ) from e

    @property
    def is_ref(self) -> bool:
        """Whether the value is (or holds) entity ids."""
        return self.type == REF

    @property
    def is_multiple(self) -> bool:
        return self.cardinality is Cardinality.MULTIPLE

    def values(self) -> tuple[Any, ...]:
        """Values as a tuple: one element for SINGLE, all elements for MULTIPLE."""
        if self.is_multiple:
            return tuple(self.value)
        return (self.value,)

    def with_value(self, value: Any) -> Attribute:
        """Copy with a new value, keeping timestamps."""
        return replace(self, value=value)

    def stamped(self, at_time: int, prev_ts: int) -> Attribute:
        """Copy carrying the timestamps of a write at `at_time`."""
        return replace(self, ts=at_time, prev_ts=prev_ts)

    def datoms(self, entity_id: Any) -> Iterator[Datom]:
        """Yield one datom per value."""
        for value in self.values():
            yield Datom(entity_id, self.name, value)


def attr(
    name: str,
    value: Any,
    type: str | ValueType,
    *,
    cardinality: str | Cardinality = Cardinality.SINGLE,
) -> Attribute:
    """Convenience function to create an Attribute.

    Args:
        name: Attribute name
        value: Attribute value (iterable of values for multiple cardinality)
        type: Type tag ("ref" for entity references)
        cardinality: "single" (default) or "multiple"

    Returns:
        Attribute instance with unset timestamps

    Raises:
        InvalidCardinalityError: If cardinality is not single/multiple

    Example:
        >>> age = attr("age", 30, "int")
        >>> tags = attr("tags", {"a", "b"}, "keyword", cardinality="multiple")
    """
    return Attribute(name=name, value=value, type=type, cardinality=cardinality)


@dataclass(frozen=True)
class Entity:
    """An identifier plus its attributes.

    Attributes:
        id: Allocated integer id, or NO_ID_YET before allocation
        attrs: Read-only mapping of attribute name to Attribute

    Example:
        >>> e = Entity().with_attr(attr("name", "Ada", "string"))
        >>> e.attrs["name"].value
        'Ada'
    """

    id: EntityId = NO_ID_YET
    attrs: Mapping[str, Attribute] = dataclass_field(default_factory=dict)

    def __post_init__(self) -> None:
        """Freeze the attribute map and check name/key agreement."""
        attrs = dict(self.attrs)
        for key, attribute in attrs.items():
            if attribute.name != key:
                raise ValueError(
                    f"Attribute keyed '{key}' is named '{attribute.name}'"
                )
        object.__setattr__(self, "attrs", MappingProxyType(attrs))

    @property
    def has_id(self) -> bool:
        return self.id is not NO_ID_YET

    def get(self, name: str) -> Attribute | None:
        return self.attrs.get(name)

    def with_id(self, entity_id: EntityId) -> Entity:
        return Entity(id=entity_id, attrs=self.attrs)

    def with_attr(self, attribute: Attribute) -> Entity:
        """Return a copy with `attribute` added or replaced."""
        attrs = dict(self.attrs)
        attrs[attribute.name] = attribute
        return Entity(id=self.id, attrs=attrs)

    def without_attr(self, name: str) -> Entity:
        """Return a copy without the named attribute."""
        attrs = {k: v for k, v in self.attrs.items() if k != name}
        return Entity(id=self.id, attrs=attrs)

    def datoms(self) -> Iterator[Datom]:
        for attribute in self.attrs.values():
            yield from attribute.datoms(self.id)
