"""
Datom indexes for StrataDB.

Every layer keeps four indexes over the same datoms. Each index stores
the (entity, attribute, value) components in its own order, as a
three-level tree:

    level1 -> level2 -> frozenset(level3)

Which component lands on which level is fixed by the index kind:

    EAVT  (E, A, V)   every attribute
    AVET  (A, V, E)   every attribute
    VEAT  (V, E, A)   every attribute
    VAET  (V, A, E)   only "ref" attributes (who points at entity V?)

Invariants:
    - to_canonical(from_canonical(d)) == d for every kind
    - VAET holds only datoms whose attribute type is "ref"
    - Index values are immutable; add/remove return new indexes that
      share untouched level-2 maps with the receiver
    - Empty intermediate maps are pruned on removal

How to change safely:
    - A new index kind is a new IndexKind member: a permutation tuple plus
      its branch in is_eligible(). Layer picks it up from IndexKind.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterator, Mapping, Optional, Tuple

from ..schema.types import Attribute, Datom

_EMPTY: FrozenSet[Any] = frozenset()


class IndexKind(Enum):
    """The four index configurations.

    The value of each member is its canonical -> stored permutation:
    position i of the stored triple holds canonical component value[i]
    (0 = entity, 1 = attribute, 2 = value).
    """

    VAET = (2, 1, 0)
    AVET = (1, 2, 0)
    VEAT = (2, 0, 1)
    EAVT = (0, 1, 2)

    @property
    def permutation(self) -> Tuple[int, int, int]:
        return self.value

    @property
    def inverse(self) -> Tuple[int, int, int]:
        """Stored -> canonical permutation, derived from `permutation`."""
        inv = [0, 0, 0]
        for stored_pos, canonical_pos in enumerate(self.value):
            inv[canonical_pos] = stored_pos
        return (inv[0], inv[1], inv[2])

    def from_canonical(self, datom: Tuple[Any, Any, Any]) -> Tuple[Any, Any, Any]:
        """Reorder a canonical (E, A, V) triple into stored order."""
        a, b, c = self.value
        return (datom[a], datom[b], datom[c])

    def to_canonical(self, stored: Tuple[Any, Any, Any]) -> Datom:
        """Reorder a stored triple back into a canonical Datom."""
        a, b, c = self.inverse
        return Datom(stored[a], stored[b], stored[c])

    def is_eligible(self, attribute: Attribute) -> bool:
        """Usage predicate: whether `attribute` belongs in this index."""
        if self is IndexKind.VAET:
            return attribute.is_ref
        return True


class Index:
    """An immutable three-level datom index.

    Attributes:
        kind: The IndexKind providing permutation and usage predicate

    Example:
        >>> avet = Index(IndexKind.AVET).add(0, attr("age", 30, "int"))
        >>> avet["age"][30]
        frozenset({0})
    """

    __slots__ = ("kind", "_tree")

    def __init__(
        self,
        kind: IndexKind,
        tree: Optional[Dict[Any, Dict[Any, FrozenSet[Any]]]] = None,
    ) -> None:
        self.kind = kind
        self._tree: Dict[Any, Dict[Any, FrozenSet[Any]]] = tree if tree is not None else {}

    def from_canonical(self, datom: Tuple[Any, Any, Any]) -> Tuple[Any, Any, Any]:
        return self.kind.from_canonical(datom)

    def to_canonical(self, stored: Tuple[Any, Any, Any]) -> Datom:
        return self.kind.to_canonical(stored)

    def is_eligible(self, attribute: Attribute) -> bool:
        return self.kind.is_eligible(attribute)

    def add(self, entity_id: Any, attribute: Attribute) -> Index:
        """Return an index that also holds the attribute's datoms.

        Ineligible attributes return the receiver unchanged.
        """
        if not self.kind.is_eligible(attribute):
            return self
        return self._apply(entity_id, attribute, adding=True)

    def remove(self, entity_id: Any, attribute: Attribute) -> Index:
        """Return an index without the attribute's datoms."""
        if not self.kind.is_eligible(attribute):
            return self
        return self._apply(entity_id, attribute, adding=False)

    def _apply(self, entity_id: Any, attribute: Attribute, adding: bool) -> Index:
        tree = dict(self._tree)
        # level-1 keys whose level-2 map is already private to `tree`
        owned = set()
        for datom in attribute.datoms(entity_id):
            l1, l2, l3 = self.kind.from_canonical(datom)
            level2 = tree.get(l1)
            if level2 is None:
                if not adding:
                    continue
                level2 = {}
                tree[l1] = level2
                owned.add(l1)
            elif l1 not in owned:
                level2 = dict(level2)
                tree[l1] = level2
                owned.add(l1)

            leaves = level2.get(l2, _EMPTY)
            leaves = leaves | {l3} if adding else leaves - {l3}
            if leaves:
                level2[l2] = leaves
            else:
                level2.pop(l2, None)
                if not level2:
                    del tree[l1]
                    owned.discard(l1)
        return Index(self.kind, tree)

    # Read access

    def __getitem__(self, key: Any) -> Mapping[Any, FrozenSet[Any]]:
        return MappingProxyType(self._tree[key])

    def get(self, key: Any, default: Any = None) -> Any:
        level2 = self._tree.get(key)
        if level2 is None:
            return default
        return MappingProxyType(level2)

    def leaves(self, l1: Any, l2: Any) -> FrozenSet[Any]:
        """Level-3 set under (l1, l2); empty when the path is missing."""
        return self._tree.get(l1, {}).get(l2, _EMPTY)

    def __contains__(self, key: object) -> bool:
        return key in self._tree

    def __iter__(self) -> Iterator[Any]:
        return iter(self._tree)

    def __len__(self) -> int:
        return len(self._tree)

    def datoms(self) -> Iterator[Datom]:
        """Walk all three levels, yielding canonical datoms."""
        for l1, level2 in self._tree.items():
            for l2, leaves in level2.items():
                for l3 in leaves:
                    yield self.kind.to_canonical((l1, l2, l3))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Index):
            return NotImplemented
        return self.kind is other.kind and self._tree == other._tree

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Index({self.kind.name}, {len(self._tree)} keys)"
