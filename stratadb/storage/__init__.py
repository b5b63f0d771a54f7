"""
Entity storage abstraction for StrataDB.

This module provides a pluggable storage interface supporting:
- In-memory (the only backend)

Invariants:
    - Storage values are immutable snapshots
    - put()/remove() return new values and never touch the receiver

How to change safely:
    - New backends must implement the Storage protocol
    - Register new backends in create_storage()
"""

from .base import Storage, create_storage
from .memory import InMemoryStorage

__all__ = [
    "Storage",
    "create_storage",
    "InMemoryStorage",
]
