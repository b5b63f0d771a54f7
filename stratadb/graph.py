"""
Reference graph helpers.

Attributes of type "ref" turn entities into a directed graph. Outgoing
edges are read straight off an entity's ref attributes; incoming edges
come from the VAET index without scanning storage.
"""

from __future__ import annotations

from collections import deque
from typing import Any, FrozenSet, Iterator, Literal

from .core.layer import Layer
from .schema.types import Entity


def incoming_refs(layer: Layer, entity_id: Any, *attr_names: str) -> FrozenSet[Any]:
    """Ids of entities referencing `entity_id`, optionally via `attr_names` only."""
    by_attr = layer.vaet.get(entity_id, {})
    names = attr_names or tuple(by_attr)
    result: set = set()
    for name in names:
        result |= by_attr.get(name, frozenset())
    return frozenset(result)


def outgoing_refs(layer: Layer, entity_id: Any, *attr_names: str) -> FrozenSet[Any]:
    """Ids referenced by `entity_id`, optionally via `attr_names` only."""
    entity = layer.entity(entity_id)
    result: set = set()
    for attribute in entity.attrs.values():
        if attribute.is_ref and (not attr_names or attribute.name in attr_names):
            result.update(attribute.values())
    return frozenset(result)


def traverse(
    layer: Layer,
    start_id: Any,
    direction: Literal["outgoing", "incoming"] = "outgoing",
    strategy: Literal["bfs", "dfs"] = "bfs",
) -> Iterator[Entity]:
    """Lazily walk the reference graph from `start_id`.

    Each reachable entity is yielded once, starting with the start entity.
    References to ids absent from the layer are skipped.

    Raises:
        EntityNotFoundError: If `start_id` is not in the layer
        ValueError: On an unknown direction or strategy
    """
    if direction == "outgoing":
        neighbours = outgoing_refs
    elif direction == "incoming":
        neighbours = incoming_refs
    else:
        raise ValueError(f"Unknown direction '{direction}'")
    if strategy not in ("bfs", "dfs"):
        raise ValueError(f"Unknown strategy '{strategy}'")

    layer.entity(start_id)
    pending = deque([start_id])
    seen = set()
    while pending:
        current = pending.popleft() if strategy == "bfs" else pending.pop()
        if current in seen or current not in layer:
            continue
        seen.add(current)
        yield layer.entity(current)
        # ascending id order for both strategies; dfs pops from the right
        pending.extend(sorted(neighbours(layer, current) - seen, reverse=strategy == "dfs"))
