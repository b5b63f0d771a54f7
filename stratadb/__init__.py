"""
StrataDB - an in-memory, temporally versioned fact store.

This package implements the indexing and versioning core of a small
entity/attribute/value database:
- Entities are bags of named, typed, cardinality-tagged attributes
- Every attribute value is a fact (datom): (entity-id, attribute, value)
- Every write produces a new immutable layer stamped with a logical time
- Four indexes (EAVT, AVET, VEAT, VAET) answer lookups by entity,
  attribute, value and incoming reference

Architecture:
    ┌────────────┐  swap   ┌──────────────────────────────────────────┐
    │ Connection │────────▶│ Database (layers, top_id, curr_time)     │
    └────────────┘         └───────────────────┬──────────────────────┘
                                               │ one per logical time
                                               ▼
                           ┌──────────────────────────────────────────┐
                           │ Layer: Storage + VAET AVET VEAT EAVT      │
                           └──────────────────────────────────────────┘

Invariants:
    - Layers are never mutated; history is kept for the life of the database
    - layers[t] is the state at logical time t
    - VAET only indexes "ref" attributes
    - Writers publish whole new Database values via compare-and-swap

How to change safely:
    - New storage backends implement the Storage protocol
    - New index kinds are new IndexKind members

Version: see _version.py.
"""

from ._version import __version__
from .config import Settings, setup_logging
from .core import Atom, Connection, Database, Layer, UpdateOp
from .errors import (
    AttributeNotFoundError,
    CardinalityViolationError,
    EntityNotFoundError,
    InvalidCardinalityError,
    NotFoundError,
    OutOfRangeError,
    StrataError,
    SwapRetriesExceededError,
)
from .graph import incoming_refs, outgoing_refs, traverse
from .index import Index, IndexKind
from .schema import NO_ID_YET, REF, Attribute, Cardinality, Datom, Entity, ValueType, attr
from .storage import InMemoryStorage, Storage, create_storage

__all__ = [
    "__version__",
    # Config
    "Settings",
    "setup_logging",
    # Model
    "Attribute",
    "Cardinality",
    "Datom",
    "Entity",
    "NO_ID_YET",
    "REF",
    "ValueType",
    "attr",
    # Storage
    "Storage",
    "InMemoryStorage",
    "create_storage",
    # Indexes
    "Index",
    "IndexKind",
    # Core
    "Atom",
    "Connection",
    "Database",
    "Layer",
    "UpdateOp",
    # Graph
    "incoming_refs",
    "outgoing_refs",
    "traverse",
    # Errors
    "StrataError",
    "NotFoundError",
    "EntityNotFoundError",
    "AttributeNotFoundError",
    "CardinalityViolationError",
    "InvalidCardinalityError",
    "OutOfRangeError",
    "SwapRetriesExceededError",
]
