"""
Core of StrataDB: layers, the database value and its connection.

Invariants:
    - Layers and Database values are immutable
    - Connection is the only place a new Database is published
"""

from .atom import Atom
from .connection import Connection
from .database import Database, UpdateOp
from .layer import Layer

__all__ = [
    "Atom",
    "Connection",
    "Database",
    "Layer",
    "UpdateOp",
]
