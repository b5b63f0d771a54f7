"""
Schema module for StrataDB.

This module provides the fact model: attributes, entities and datoms.

Invariants:
    - Attributes and entities are immutable values
    - Cardinality is validated when an Attribute is constructed
    - "ref" is the only type tag with meaning to the store
"""

from .types import (
    NO_ID_YET,
    REF,
    Attribute,
    Cardinality,
    Datom,
    Entity,
    EntityId,
    EntityIdPlaceholder,
    ValueType,
    attr,
)

__all__ = [
    "Attribute",
    "Cardinality",
    "Datom",
    "Entity",
    "EntityId",
    "EntityIdPlaceholder",
    "NO_ID_YET",
    "REF",
    "ValueType",
    "attr",
]
