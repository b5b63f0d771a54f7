"""
Unit tests for the Database value.

Tests cover:
- Entity creation, id allocation and the logical clock
- Attribute updates (reset/add/remove) and cardinality rules
- as_of time travel and range errors
- Temporal accessors and attribute evolution
"""

import pytest

from stratadb.core.database import Database, UpdateOp
from stratadb.errors import (
    AttributeNotFoundError,
    CardinalityViolationError,
    EntityNotFoundError,
    OutOfRangeError,
)
from stratadb.index import IndexKind
from stratadb.schema.types import Entity, attr


@pytest.fixture
def db():
    """Database with entity 0 (age 30) committed at time 1."""
    db, _ = Database.initial().create_entity([attr("age", 30, "int")])
    return db


class TestDatabaseCreate:
    """Tests for create_entity."""

    def test_initial_state(self):
        """A fresh database has one empty layer at time 0."""
        db = Database.initial()
        assert db.top_id == 0
        assert db.curr_time == 0
        assert len(db.layers) == 1
        assert db.latest.time == 0
        assert len(db.latest.storage) == 0

    def test_create_entity_example(self):
        """First entity gets id 0 and lands in EAVT and AVET at time 1."""
        db, eid = Database.initial().create_entity([attr("age", 30, "int")])
        assert eid == 0
        assert db.curr_time == 1
        assert db.top_id == 1
        assert db.latest.eavt[0]["age"] == frozenset({30})
        assert db.latest.avet["age"][30] == frozenset({0})

    def test_ids_are_sequential(self, db):
        """Each creation allocates the next id and advances the clock."""
        db, second = db.create_entity([attr("age", 40, "int")])
        db, third = db.create_entity()
        assert (second, third) == (1, 2)
        assert db.top_id == 3
        assert db.curr_time == 3

    def test_layer_times_match_positions(self, db):
        """layers[i].time == i after any number of writes."""
        db, _ = db.create_entity()
        db = db.update_attribute(0, "age", 31)
        assert [layer.time for layer in db.layers] == list(range(db.curr_time + 1))

    def test_create_from_placeholder_entity(self):
        """An Entity without an id is accepted and gets the next id."""
        entity = Entity().with_attr(attr("name", "Ada", "string"))
        db, eid = Database.initial().create_entity(entity)
        assert db.entity_at(eid).attrs["name"].value == "Ada"

    def test_create_from_entity_with_id_raises(self):
        """Entities that already have an id are rejected."""
        with pytest.raises(ValueError, match="already has id"):
            Database.initial().create_entity(Entity(id=3))

    def test_create_is_non_mutating(self, db):
        """The receiver keeps its state after a write."""
        db.create_entity([attr("age", 1, "int")])
        assert db.top_id == 1
        assert db.curr_time == 1

    def test_duplicate_single_name_raises(self):
        """Two single values under one name is a violation."""
        with pytest.raises(CardinalityViolationError):
            Database.initial().create_entity([attr("age", 1, "int"), attr("age", 2, "int")])

    def test_explicit_at_time(self, db):
        """An explicit at_time must be the next tick."""
        db2, _ = db.create_entity(at_time=2)
        assert db2.curr_time == 2
        with pytest.raises(OutOfRangeError, match="stamped with time 2"):
            db.create_entity(at_time=5)

    def test_layers_required(self):
        """A database value always has at least one layer."""
        with pytest.raises(ValueError):
            Database(layers=())


class TestDatabaseUpdate:
    """Tests for update_attribute, add_attribute and remove_attribute."""

    def test_reset_replaces_value(self, db):
        """Reset replaces the old value everywhere."""
        db = db.update_attribute(0, "age", 31)
        assert db.latest.eavt[0]["age"] == frozenset({31})
        assert 30 not in db.latest.avet["age"]
        assert db.curr_time == 2

    def test_add_on_single_raises(self, db):
        """Adding to a single attribute is a cardinality violation."""
        with pytest.raises(CardinalityViolationError):
            db.update_attribute(0, "age", 31, op=UpdateOp.ADD)

    def test_remove_on_single_raises(self, db):
        """Retracting from a single attribute is a cardinality violation."""
        with pytest.raises(CardinalityViolationError):
            db.update_attribute(0, "age", 30, op="remove")

    def test_add_and_remove_on_multiple(self):
        """Multiple attributes accumulate and retract values."""
        db, eid = Database.initial().create_entity(
            [attr("tags", {"a"}, "keyword", cardinality="multiple")]
        )
        db = db.update_attribute(eid, "tags", {"b", "c"}, op="add")
        assert db.value_of_at(eid, "tags") == frozenset({"a", "b", "c"})
        db = db.update_attribute(eid, "tags", "a", op=UpdateOp.REMOVE)
        assert db.value_of_at(eid, "tags") == frozenset({"b", "c"})
        assert db.latest.avet["tags"].get("a") is None

    def test_reset_on_multiple(self):
        """Reset swaps the whole value set."""
        db, eid = Database.initial().create_entity(
            [attr("tags", {"a", "b"}, "keyword", cardinality="multiple")]
        )
        db = db.update_attribute(eid, "tags", ["z"])
        assert db.latest.eavt[eid]["tags"] == frozenset({"z"})

    def test_update_missing_entity_raises(self, db):
        """Updating an unknown entity is NotFound."""
        with pytest.raises(EntityNotFoundError):
            db.update_attribute(7, "age", 1)

    def test_update_missing_attribute_raises(self, db):
        """Updating an unknown attribute is NotFound."""
        with pytest.raises(AttributeNotFoundError):
            db.update_attribute(0, "height", 180)

    def test_invalid_op_raises(self, db):
        """Unknown update ops are rejected."""
        with pytest.raises(ValueError):
            db.update_attribute(0, "age", 1, op="merge")

    def test_add_attribute(self, db):
        """add_attribute puts a new name on an existing entity."""
        db = db.add_attribute(0, attr("name", "Ada", "string"))
        assert db.latest.avet["name"]["Ada"] == frozenset({0})

    def test_add_attribute_occupied_single_raises(self, db):
        """add_attribute on an occupied single slot is a violation."""
        with pytest.raises(CardinalityViolationError):
            db.add_attribute(0, attr("age", 31, "int"))

    def test_remove_attribute(self, db):
        """remove_attribute drops the datom."""
        db = db.remove_attribute(0, "age")
        assert 0 not in db.latest.eavt
        assert "age" not in db.entity_at(0).attrs

    def test_remove_entity(self, db):
        """Removing an entity clears the latest layer but not history."""
        db = db.remove_entity(0)
        assert 0 not in db.latest
        for idx in db.latest.indexes():
            assert 0 not in idx
        assert db.as_of(1).eavt[0]["age"] == frozenset({30})


class TestDatabaseTime:
    """Tests for as_of and temporal accessors."""

    def test_as_of_current_is_latest(self, db):
        """as_of(curr_time) is the latest layer."""
        assert db.as_of(db.curr_time) is db.latest

    def test_as_of_past(self, db):
        """Past layers hold exactly the entities committed by then."""
        db, _ = db.create_entity([attr("age", 40, "int")])
        assert sorted(db.as_of(0).storage) == []
        assert sorted(db.as_of(1).storage) == [0]
        assert sorted(db.as_of(2).storage) == [0, 1]

    @pytest.mark.parametrize("time", [-1, 2, 100])
    def test_as_of_out_of_range(self, db, time):
        """Times outside [0, curr_time] raise OutOfRangeError."""
        with pytest.raises(OutOfRangeError) as exc_info:
            db.as_of(time)
        assert exc_info.value.code == "OUT_OF_RANGE"

    def test_as_of_requires_int(self, db):
        """Non-integer times are a type error."""
        with pytest.raises(TypeError):
            db.as_of("1")

    def test_value_of_at(self, db):
        """value_of_at reads from the requested layer."""
        db = db.update_attribute(0, "age", 31)
        assert db.value_of_at(0, "age", 1) == 30
        assert db.value_of_at(0, "age") == 31

    def test_attr_at_missing(self, db):
        """attr_at raises for attributes absent at that time."""
        db = db.add_attribute(0, attr("name", "Ada", "string"))
        with pytest.raises(AttributeNotFoundError):
            db.attr_at(0, "name", 1)

    def test_entity_at_before_creation(self, db):
        """entity_at before creation is NotFound."""
        with pytest.raises(EntityNotFoundError):
            db.entity_at(0, 0)

    def test_index_at(self, db):
        """index_at picks the index of the requested layer."""
        db = db.update_attribute(0, "age", 31)
        assert db.index_at(IndexKind.AVET, 1)["age"][30] == frozenset({0})
        assert db.index_at(IndexKind.AVET)["age"][31] == frozenset({0})

    def test_evolution_of(self, db):
        """evolution_of follows the prev_ts chain, oldest first."""
        db, _ = db.create_entity()
        db = db.update_attribute(0, "age", 31)
        db = db.update_attribute(0, "age", 32)
        assert db.evolution_of(0, "age") == [(1, 30), (3, 31), (4, 32)]

    def test_evolution_restarts_after_removal(self, db):
        """A removed and re-added attribute starts a fresh history."""
        db = db.remove_attribute(0, "age")
        db = db.add_attribute(0, attr("age", 50, "int"))
        assert db.evolution_of(0, "age") == [(3, 50)]

    def test_evolution_of_repeated_multiple_name(self):
        """A name repeated in one create is a single write in the history."""
        db, eid = Database.initial().create_entity(
            [
                attr("tags", {"a"}, "keyword", cardinality="multiple"),
                attr("tags", {"b"}, "keyword", cardinality="multiple"),
            ]
        )
        assert db.evolution_of(eid, "tags") == [(1, frozenset({"a", "b"}))]
        db = db.update_attribute(eid, "tags", {"c"}, op=UpdateOp.ADD)
        assert db.evolution_of(eid, "tags") == [
            (1, frozenset({"a", "b"})),
            (2, frozenset({"a", "b", "c"})),
        ]
