"""
Connection: the shared, atomically updated handle on a Database.

Connection owns the only mutable thing in the system, an Atom holding the
current Database value. Every write computes a complete successor Database
from a snapshot and swaps it in; on conflict the write is recomputed from
the fresh snapshot. Readers see either the old or the new value, never a
mixture.

Thread safety:
    Safe to share between threads. Snapshots returned by `db` and
    `as_of()` are immutable and may be read without locking.

Example:
    >>> conn = Connection()
    >>> eid = conn.create_entity([attr("age", 30, "int")])
    >>> conn.update_attribute(eid, "age", 31)
    >>> conn.as_of(1).eavt[eid]["age"]
    frozenset({30})
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional, Tuple, Union

from ..config import Settings
from ..index.index import Index, IndexKind
from ..schema.types import Attribute, Entity
from ..storage.base import create_storage
from .atom import Atom
from .database import Database, UpdateOp
from .layer import Layer

logger = logging.getLogger(__name__)


class Connection:
    """Atomically swappable reference to a Database.

    Attributes:
        settings: Settings in effect for this connection
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        database: Optional[Database] = None,
    ) -> None:
        """Initialize the connection.

        Args:
            settings: Optional settings (loaded from env if not provided)
            database: Optional starting value (a fresh database if not provided)
        """
        self.settings = settings or Settings()
        if database is None:
            database = Database.initial(create_storage(self.settings))
        self._atom: Atom[Database] = Atom(database, max_retries=self.settings.max_swap_retries)

    @property
    def db(self) -> Database:
        """Current database snapshot."""
        return self._atom.deref()

    def _transact(self, op: str, fn: Any, *args: Any, **kwargs: Any) -> Tuple[Database, Database]:
        old, new = self._atom.swap(fn, *args, **kwargs)
        logger.debug(
            "Write committed",
            extra={"op": op, "curr_time": new.curr_time, "top_id": new.top_id},
        )
        return old, new

    # Writes

    def create_entity(self, attributes: Union[Entity, Iterable[Attribute]] = ()) -> int:
        """Create an entity and return its allocated id."""
        # materialize once; the swap function may run several times
        if not isinstance(attributes, Entity):
            attributes = tuple(attributes)
        old, _ = self._transact(
            "create_entity", lambda db: db.create_entity(attributes)[0]
        )
        return old.top_id

    def update_attribute(
        self,
        entity_id: Any,
        name: str,
        value: Any,
        op: Union[UpdateOp, str] = UpdateOp.RESET,
    ) -> None:
        self._transact(
            "update_attribute", Database.update_attribute, entity_id, name, value, op
        )

    def add_attribute(self, entity_id: Any, attribute: Attribute) -> None:
        self._transact("add_attribute", Database.add_attribute, entity_id, attribute)

    def remove_attribute(self, entity_id: Any, name: str) -> None:
        self._transact("remove_attribute", Database.remove_attribute, entity_id, name)

    def remove_entity(self, entity_id: Any) -> None:
        self._transact("remove_entity", Database.remove_entity, entity_id)

    # Reads, against a single snapshot each

    def as_of(self, time: int) -> Layer:
        return self.db.as_of(time)

    def entity_at(self, entity_id: Any, time: Optional[int] = None) -> Entity:
        return self.db.entity_at(entity_id, time)

    def attr_at(self, entity_id: Any, name: str, time: Optional[int] = None) -> Attribute:
        return self.db.attr_at(entity_id, name, time)

    def value_of_at(self, entity_id: Any, name: str, time: Optional[int] = None) -> Any:
        return self.db.value_of_at(entity_id, name, time)

    def index_at(self, kind: IndexKind, time: Optional[int] = None) -> Index:
        return self.db.index_at(kind, time)

    def evolution_of(self, entity_id: Any, name: str) -> List[Tuple[int, Any]]:
        return self.db.evolution_of(entity_id, name)
