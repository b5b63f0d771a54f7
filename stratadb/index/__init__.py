"""
Index module for StrataDB.

One Index implementation serves all four access paths; the IndexKind
member supplies the permutation and the usage predicate.
"""

from .index import Index, IndexKind

__all__ = [
    "Index",
    "IndexKind",
]
