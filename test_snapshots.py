"""
Snapshot persistence tests.

Round-trips a populated store through the JSON blob and checks the
failure paths that surface as StoreUnavailable.
"""

import json
from datetime import datetime, timezone

import pytest

from core.errors import StoreUnavailable
from core.models.canonical import CanonicalStore, ObjectType, ValidatedRecord
from core.storage import load_store_snapshot, save_store_snapshot
from merge_engine.engine import MergeEngine
from pipeline import RecordPipeline


T0 = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    store = CanonicalStore()
    MergeEngine(clock=lambda: T0).upsert_batch(store, [
        ValidatedRecord(object_type="Lead", id="00Q1", fields={"name": "Ann", "email": "ann@acme.com"}),
        ValidatedRecord(
            object_type="Opportunity",
            id="006A",
            fields={"name": "Deal", "amount": 1000.0, "stage": "Closed Won", "isWon": True},
            source="kanban",
        ),
    ])
    return store


class TestSnapshotRoundTrip:
    """Save then load."""

    def test_round_trip(self, store, tmp_path):
        path = tmp_path / "store.json"
        ref = save_store_snapshot(store, path)

        loaded = load_store_snapshot(ref)

        assert loaded.get("Lead", "00Q1").values() == {"id": "00Q1", "name": "Ann", "email": "ann@acme.com"}
        opp = loaded.get(ObjectType.OPPORTUNITY, "006A")
        assert opp.fields["amount"] == 1000.0
        assert opp.created_at == T0
        assert opp.last_source.value == "kanban"
        assert loaded.metadata.total_records[ObjectType.LEAD] == 1
        assert loaded.metadata.stage_histogram["closedWon"] == 1
        assert loaded.metadata.last_sync[ObjectType.LEAD] == T0
        assert loaded.metadata.last_sync[ObjectType.TASK] is None

    def test_blob_layout(self, store, tmp_path):
        path = tmp_path / "store.json"
        ref = save_store_snapshot(store, path)
        data = json.loads(path.read_text())

        assert set(data) == {"leads", "contacts", "accounts", "opportunities", "tasks", "metadata"}
        assert data["metadata"]["totalRecords"]["opportunities"] == 1
        assert data["metadata"]["lastSync"]["leads"] == "2024-06-01T09:00:00Z"
        assert data["leads"][0]["createdAt"] == "2024-06-01T09:00:00Z"
        assert ref.size_bytes == len(path.read_bytes())
        assert not list(tmp_path.glob("*.tmp"))

    def test_load_by_path_string(self, store, tmp_path):
        path = tmp_path / "nested" / "store.json"
        save_store_snapshot(store, path)
        assert load_store_snapshot(str(path)).count("Opportunity") == 1


class TestSnapshotFailures:
    """Every failure surfaces as StoreUnavailable."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(StoreUnavailable):
            load_store_snapshot(tmp_path / "absent.json")

    def test_missing_ok_returns_empty_store(self, tmp_path):
        store = load_store_snapshot(tmp_path / "absent.json", missing_ok=True)
        assert isinstance(store, CanonicalStore)
        assert all(store.count(t) == 0 for t in ObjectType)

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json")
        with pytest.raises(StoreUnavailable) as excinfo:
            load_store_snapshot(path)
        assert excinfo.value.details["path"] == str(path)

    def test_record_without_created_at(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps({"leads": [{"id": "00Q1", "name": "Ann"}]}))
        with pytest.raises(StoreUnavailable):
            load_store_snapshot(path)

    def test_hash_mismatch(self, store, tmp_path):
        path = tmp_path / "store.json"
        ref = save_store_snapshot(store, path)
        path.write_text(path.read_text().replace("Ann", "Bob"))

        with pytest.raises(StoreUnavailable):
            load_store_snapshot(ref)
        assert load_store_snapshot(ref, validate_hash=False).get("Lead", "00Q1").fields["name"] == "Bob"


class TestSnapshotMetadata:
    """Derived metadata is recounted on load."""

    def test_stale_totals_and_stages_recomputed(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text(json.dumps({
            "accounts": [{"id": "001A", "name": "Acme", "createdAt": "2024-06-01T09:00:00Z"}],
            "opportunities": [{
                "id": "006A", "name": "Deal", "stage": "Negotiation/Review",
                "createdAt": "2024-06-01T09:00:00Z",
            }],
            "metadata": {
                "lastSync": {"accounts": "2024-06-01T09:00:00Z"},
                "totalRecords": {"accounts": 7, "leads": 3},
                "opportunityStages": {"closedWon": 4},
            },
        }))

        loaded = load_store_snapshot(path)

        assert loaded.metadata.total_records[ObjectType.ACCOUNT] == loaded.count("Account") == 1
        assert loaded.metadata.total_records[ObjectType.LEAD] == 0
        assert loaded.metadata.stage_histogram["closedWon"] == 0
        assert loaded.metadata.stage_histogram["negotiation"] == 1
        assert loaded.metadata.last_sync[ObjectType.ACCOUNT] == T0

    def test_metadata_named_custom_field_survives(self, tmp_path):
        """A raw "updatedAt" column is kept through ingest, save and load."""
        store = CanonicalStore()
        RecordPipeline(clock=lambda: T0).process_batch(store, [
            {"objectType": "Lead", "recordId": "00Q1", "fields": {"name": "Ann", "updatedAt": "last week"}},
        ])

        path = tmp_path / "store.json"
        loaded = load_store_snapshot(save_store_snapshot(store, path))

        lead = loaded.get("Lead", "00Q1")
        assert lead.fields["custom_updatedAt"] == "last week"
        assert lead.updated_at == T0
