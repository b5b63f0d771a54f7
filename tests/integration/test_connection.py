"""
Integration tests for Connection.

Tests cover:
- End-to-end writes and time travel through a shared connection
- Failing writes leaving the published database untouched
- Atomicity of concurrent writers
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from stratadb.config import Settings
from stratadb.core.connection import Connection
from stratadb.core.database import Database, UpdateOp
from stratadb.errors import (
    CardinalityViolationError,
    EntityNotFoundError,
    OutOfRangeError,
)
from stratadb.index import IndexKind
from stratadb.schema.types import attr


class TestConnection:
    """Integration tests for Connection."""

    @pytest.fixture
    def conn(self):
        """Connection with explicit settings."""
        return Connection(Settings(max_swap_retries=None))

    def test_fresh_connection(self, conn):
        """A new connection holds the initial database."""
        db = conn.db
        assert (db.top_id, db.curr_time, len(db.layers)) == (0, 0, 1)

    def test_create_update_and_time_travel(self, conn):
        """Writes advance the clock; old layers keep old values."""
        eid = conn.create_entity([attr("age", 30, "int")])
        assert eid == 0
        assert conn.db.curr_time == 1

        conn.update_attribute(eid, "age", 31)
        assert conn.as_of(1).eavt[eid]["age"] == frozenset({30})
        assert conn.as_of(2).eavt[eid]["age"] == frozenset({31})
        assert conn.as_of(conn.db.curr_time) is conn.db.latest
        assert conn.evolution_of(eid, "age") == [(1, 30), (2, 31)]

    def test_snapshot_is_stable(self, conn):
        """A held snapshot does not change when writes are published."""
        conn.create_entity([attr("age", 30, "int")])
        snapshot = conn.db
        conn.update_attribute(0, "age", 31)
        assert snapshot.curr_time == 1
        assert snapshot.value_of_at(0, "age") == 30
        assert conn.value_of_at(0, "age") == 31

    def test_failed_write_leaves_state(self, conn):
        """Errors propagate and nothing is published."""
        conn.create_entity([attr("age", 30, "int")])
        before = conn.db

        with pytest.raises(CardinalityViolationError):
            conn.update_attribute(0, "age", 31, op=UpdateOp.ADD)
        with pytest.raises(EntityNotFoundError):
            conn.remove_entity(7)

        assert conn.db is before

    def test_reference_lifecycle(self, conn):
        """Refs show up in VAET and vanish with the referenced entity."""
        parent = conn.create_entity([attr("name", "root", "string")])
        child = conn.create_entity([attr("parent", parent, "ref")])
        assert conn.index_at(IndexKind.VAET)[parent]["parent"] == frozenset({child})

        conn.remove_entity(parent)
        latest = conn.db.latest
        assert parent not in latest
        assert "parent" not in conn.entity_at(child).attrs
        for idx in latest.indexes():
            assert all(parent not in (d.entity_id, d.value) for d in idx.datoms())

        # history is immutable
        assert conn.as_of(2).vaet[parent]["parent"] == frozenset({child})

    def test_add_and_remove_attribute(self, conn):
        """Attribute-level writes go through the connection."""
        eid = conn.create_entity()
        conn.add_attribute(eid, attr("tags", {"a"}, "keyword", cardinality="multiple"))
        conn.add_attribute(eid, attr("tags", {"b"}, "keyword", cardinality="multiple"))
        assert conn.value_of_at(eid, "tags") == frozenset({"a", "b"})
        conn.remove_attribute(eid, "tags")
        assert "tags" not in conn.entity_at(eid).attrs

    def test_as_of_out_of_range(self, conn):
        """as_of beyond the clock raises OutOfRangeError."""
        with pytest.raises(OutOfRangeError):
            conn.as_of(1)

    def test_wraps_existing_database(self):
        """A connection can start from an existing database value."""
        db, _ = Database.initial().create_entity([attr("age", 1, "int")])
        conn = Connection(Settings(), database=db)
        assert conn.db is db


class TestConnectionConcurrency:
    """Concurrent writers against one connection."""

    def test_concurrent_creates_get_unique_ids(self):
        """N racing creates produce ids 0..N-1 and N layers."""
        conn = Connection(Settings())
        n = 200

        with ThreadPoolExecutor(max_workers=16) as pool:
            ids = list(
                pool.map(lambda i: conn.create_entity([attr("n", i, "int")]), range(n))
            )

        assert sorted(ids) == list(range(n))
        db = conn.db
        assert db.top_id == n
        assert db.curr_time == n
        assert [layer.time for layer in db.layers] == list(range(n + 1))
        assert sorted(db.latest.storage) == list(range(n))

    def test_concurrent_updates_all_land(self):
        """Racing multiple-cardinality adds are all kept."""
        conn = Connection(Settings())
        eid = conn.create_entity([attr("seen", set(), "int", cardinality="multiple")])

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda i: conn.update_attribute(eid, "seen", {i}, op="add"), range(50)))

        assert conn.value_of_at(eid, "seen") == frozenset(range(50))
        assert conn.db.curr_time == 51
