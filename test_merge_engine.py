"""
Merge engine tests.

Uses an injected clock so timestamps are deterministic.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.models.canonical import CanonicalStore, ObjectType, StoreMetadata, ValidatedRecord
from merge_engine.engine import MergeEngine, MergeOutcome, merge_fields


T0 = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock that returns whatever time the test sets."""

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(clock):
    return MergeEngine(clock=clock)


@pytest.fixture
def store():
    return CanonicalStore()


def record(object_type, record_id, source="list", **fields):
    return ValidatedRecord(object_type=object_type, id=record_id, fields=fields, source=source)


class TestUpsert:
    """Insert and non-destructive update."""

    def test_insert_sets_both_timestamps(self, engine, store):
        result = engine.upsert(store, record("Lead", "00Q1", name="Ann", email=""))

        stored = store.get(ObjectType.LEAD, "00Q1")
        assert result.outcome == MergeOutcome.INSERTED
        assert stored.created_at == stored.updated_at == T0
        assert stored.fields == {"name": "Ann"}
        assert stored.values() == {"id": "00Q1", "name": "Ann"}

    def test_update_overlays_non_empty_fields(self, engine, store, clock):
        """Empty incoming values never erase stored ones."""
        engine.upsert(store, record("Opportunity", "006A", name="Big Deal", amount=5000.0))
        clock.advance(hours=1)

        result = engine.upsert(store, record("Opportunity", "006A", source="kanban", name="", stage="Closed Won"))

        stored = store.get(ObjectType.OPPORTUNITY, "006A")
        assert result.outcome == MergeOutcome.UPDATED
        assert result.changed_fields == ["stage"]
        assert stored.fields == {"name": "Big Deal", "amount": 5000.0, "stage": "Closed Won"}
        assert stored.created_at == T0
        assert stored.updated_at == T0 + timedelta(hours=1)
        assert stored.last_source.value == "kanban"

    def test_updated_at_never_moves_backwards(self, engine, store, clock):
        engine.upsert(store, record("Account", "001", name="Acme"))
        clock.advance(hours=-2)
        engine.upsert(store, record("Account", "001", industry="Technology"))

        assert store.get("Account", "001").updated_at == T0

    def test_stored_record_is_not_mutated(self, engine, store):
        engine.upsert(store, record("Contact", "003", name="Ann"))
        before = store.get("Contact", "003")

        engine.upsert(store, record("Contact", "003", name="Ann Lee"))

        assert before.fields == {"name": "Ann"}
        assert store.get("Contact", "003").fields == {"name": "Ann Lee"}

    def test_idempotent_reapply(self, engine, store, clock):
        """Applying the same record twice leaves the same fields."""
        engine.upsert(store, record("Lead", "00Q1", name="Ann", company="Acme"))
        first = store.get("Lead", "00Q1").fields
        clock.advance(minutes=5)
        result = engine.upsert(store, record("Lead", "00Q1", name="Ann", company="Acme"))

        assert store.get("Lead", "00Q1").fields == first
        assert result.changed_fields == []

    def test_batch_merges_repeated_ids_in_order(self, engine, store):
        results = engine.upsert_batch(store, [
            record("Lead", "00Q1", name="Ann", company="Acme"),
            record("Lead", "00Q1", company="Acme Corp"),
        ])

        assert [r.outcome for r in results] == [MergeOutcome.INSERTED, MergeOutcome.UPDATED]
        assert store.get("Lead", "00Q1").fields == {"name": "Ann", "company": "Acme Corp"}
        assert store.count("Lead") == 1

    def test_merge_fields(self):
        assert merge_fields({"a": 1, "b": 2}, {"a": None, "b": 3, "c": " "}) == {"a": 1, "b": 3}


class TestMergeSession:
    """Staged writes."""

    def test_uncommitted_session_leaves_store_alone(self, engine, store):
        session = engine.session(store)
        session.upsert(record("Lead", "00Q1", name="Ann"))

        assert session.get("Lead", "00Q1") is not None
        assert store.get("Lead", "00Q1") is None
        assert store.metadata.total_records[ObjectType.LEAD] == 0

    def test_commit_applies_and_refreshes(self, engine, store):
        session = engine.session(store)
        session.upsert(record("Lead", "00Q1", name="Ann"))
        touched = engine.commit(session)

        assert touched == [ObjectType.LEAD]
        assert store.count("Lead") == 1
        assert store.metadata.total_records[ObjectType.LEAD] == 1
        assert store.metadata.last_sync[ObjectType.LEAD] == T0
        assert store.metadata.last_sync[ObjectType.ACCOUNT] is None

    def test_double_commit_raises(self, engine, store):
        session = engine.session(store)
        engine.commit(session)
        with pytest.raises(RuntimeError):
            session.commit()


class TestDeleteAndClear:
    """Deletion and clearing keep metadata consistent."""

    def test_delete_known_id(self, engine, store):
        engine.upsert_batch(store, [record("Lead", "00Q1", name="Ann"), record("Lead", "00Q2", name="Bo")])

        assert engine.delete_by_id(store, "Lead", "00Q1") is True
        assert store.get("Lead", "00Q1") is None
        assert store.metadata.total_records[ObjectType.LEAD] == 1

    def test_delete_unknown_id(self, engine, store):
        assert engine.delete_by_id(store, "Lead", "missing") is False

    def test_reinsert_after_delete_is_fresh(self, engine, store, clock):
        """No tombstone: a deleted id comes back as a new record."""
        engine.upsert(store, record("Lead", "00Q1", name="Ann", company="Acme"))
        engine.delete_by_id(store, "Lead", "00Q1")
        clock.advance(days=1)

        result = engine.upsert(store, record("Lead", "00Q1", name="Ann"))

        stored = store.get("Lead", "00Q1")
        assert result.outcome == MergeOutcome.INSERTED
        assert stored.created_at == T0 + timedelta(days=1)
        assert "company" not in stored.fields

    def test_delete_updates_stage_histogram(self, engine, store):
        engine.upsert_batch(store, [
            record("Opportunity", "006A", name="A", stage="Prospecting"),
            record("Opportunity", "006B", name="B", stage="Closed Won"),
        ])
        assert store.metadata.stage_histogram["closedWon"] == 1

        engine.delete_by_id(store, "Opportunity", "006B")
        assert store.metadata.stage_histogram["closedWon"] == 0
        assert store.metadata.stage_histogram["prospecting"] == 1

    def test_clear_one_type(self, engine, store):
        engine.upsert_batch(store, [record("Lead", "00Q1", name="Ann"), record("Account", "001", name="Acme")])

        assert engine.clear(store, "leads") == 1
        assert store.count("Lead") == 0
        assert store.count("Account") == 1
        assert store.metadata.total_records[ObjectType.LEAD] == 0

    def test_clear_all_resets_metadata(self, engine, store):
        engine.upsert_batch(store, [
            record("Opportunity", "006A", name="A", stage="Negotiation"),
            record("Task", "00T1", subject="Call"),
        ])

        assert engine.clear_all(store) == 2
        assert all(store.count(t) == 0 for t in ObjectType)
        assert store.metadata == StoreMetadata()
