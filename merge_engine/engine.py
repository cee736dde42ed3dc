"""Merge engine - non-destructive upserts into the canonical store.

Overwrite policy:
    - New id: insert with createdAt = updatedAt = now.
    - Known id: every incoming field with a non-empty value replaces the
      stored value; empty or absent incoming fields leave the stored value
      alone. updatedAt advances, createdAt never changes.

Writes go through a MergeSession that stages a copy of each touched type's
record set. Nothing reaches the store until commit(), so a failure part way
through a batch leaves every stored record untouched.

The engine has no internal locking: the host must serialize writers per
object type.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.models.canonical import (
    CanonicalRecord,
    CanonicalStore,
    ObjectType,
    StoreMetadata,
    ValidatedRecord,
    utc_now,
)
from core.observability.logging import get_logger
from merge_engine.aggregator import MetadataAggregator
from normalizer.coercers import is_empty

logger = get_logger(__name__)


class MergeOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"


@dataclass
class MergeResult:
    """What one upsert did."""
    object_type: ObjectType
    record_id: str
    outcome: MergeOutcome
    changed_fields: List[str] = field(default_factory=list)


def merge_fields(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay incoming non-empty values on existing ones.

    Examples:
        >>> merge_fields({"name": "A", "email": "a@x.com"}, {"name": "", "email": "b@x.com"})
        {'name': 'A', 'email': 'b@x.com'}
    """
    merged = dict(existing)
    for key, value in incoming.items():
        if not is_empty(value):
            merged[key] = value
    return merged


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class MergeSession:
    """Staged writes against one store, applied atomically by commit()."""

    def __init__(self, store: CanonicalStore, now: datetime):
        self.store = store
        self.now = now
        self._staged: Dict[ObjectType, Dict[str, CanonicalRecord]] = {}
        self._committed = False

    def _records(self, object_type: ObjectType) -> Dict[str, CanonicalRecord]:
        if object_type not in self._staged:
            self._staged[object_type] = dict(self.store.records_for(object_type))
        return self._staged[object_type]

    @property
    def touched_types(self) -> List[ObjectType]:
        return [t for t in ObjectType if t in self._staged]

    def get(self, object_type: Any, record_id: str) -> Optional[CanonicalRecord]:
        """Read through the staged state (earlier writes in this session are visible)."""
        object_type = ObjectType.parse(object_type)
        if object_type in self._staged:
            return self._staged[object_type].get(record_id)
        return self.store.get(object_type, record_id)

    def upsert(self, incoming: ValidatedRecord) -> MergeResult:
        """Insert or merge one validated record into the staged state."""
        records = self._records(incoming.object_type)
        fields = {k: v for k, v in incoming.fields.items() if k != "id"}
        existing = records.get(incoming.id)

        if existing is None:
            records[incoming.id] = CanonicalRecord(
                id=incoming.id,
                object_type=incoming.object_type,
                fields={k: v for k, v in fields.items() if not is_empty(v)},
                created_at=self.now,
                updated_at=self.now,
                last_source=incoming.source,
            )
            return MergeResult(incoming.object_type, incoming.id, MergeOutcome.INSERTED, sorted(fields))

        merged = merge_fields(existing.fields, fields)
        changed = sorted(k for k, v in merged.items() if k not in existing.fields or existing.fields[k] != v)

        # A new record object replaces the old one; the stored instance is never mutated
        records[incoming.id] = existing.model_copy(update={
            "fields": merged,
            "updated_at": max(self.now, _aware(existing.updated_at)),
            "last_source": incoming.source,
        })
        return MergeResult(incoming.object_type, incoming.id, MergeOutcome.UPDATED, changed)

    def commit(self) -> List[ObjectType]:
        """Swap staged record sets into the store. Returns the touched types."""
        if self._committed:
            raise RuntimeError("MergeSession already committed")
        for object_type, records in self._staged.items():
            self.store.records[object_type] = records
        self._committed = True
        return self.touched_types


class MergeEngine:
    """Upserts validated records and keeps store metadata in step.

    Args:
        clock: Returns the current time; injected so tests control timestamps
        aggregator: Recomputes metadata after each committed mutation
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        aggregator: Optional[MetadataAggregator] = None,
    ):
        self._clock = clock
        self.aggregator = aggregator or MetadataAggregator()

    def now(self) -> datetime:
        return _aware(self._clock())

    def session(self, store: CanonicalStore) -> MergeSession:
        """Open a staged session; every write in it shares one batch time."""
        return MergeSession(store, self.now())

    def commit(self, session: MergeSession) -> List[ObjectType]:
        """Commit a session and refresh metadata for every type it touched."""
        touched = session.commit()
        for object_type in touched:
            self.aggregator.refresh(session.store, object_type, session.now)
        return touched

    def upsert(self, store: CanonicalStore, record: ValidatedRecord) -> MergeResult:
        return self.upsert_batch(store, [record])[0]

    def upsert_batch(self, store: CanonicalStore, records: Iterable[ValidatedRecord]) -> List[MergeResult]:
        """Apply records in input order, then commit them together.

        Later records in the batch merge over earlier ones with the same id.
        """
        session = self.session(store)
        results = [session.upsert(record) for record in records]
        self.commit(session)
        return results

    def delete_by_id(self, store: CanonicalStore, object_type: Any, record_id: str) -> bool:
        """Permanently remove a record. Returns False if the id was unknown.

        No tombstone is kept: re-inserting the id later creates a fresh record.
        """
        object_type = ObjectType.parse(object_type)
        records = store.records_for(object_type)
        if record_id not in records:
            return False

        del records[record_id]
        self.aggregator.refresh(store, object_type, self.now())
        logger.info(
            f"Deleted {object_type.value} {record_id}",
            extra_fields={"object_type": object_type.value, "record_id": record_id},
        )
        return True

    def clear(self, store: CanonicalStore, object_type: Any) -> int:
        """Empty one type's record set. Returns the number of records removed."""
        object_type = ObjectType.parse(object_type)
        removed = store.count(object_type)
        store.records[object_type] = {}
        self.aggregator.refresh(store, object_type, self.now())
        logger.info(
            f"Cleared {removed} {object_type.value} records",
            extra_fields={"object_type": object_type.value, "removed": removed},
        )
        return removed

    def clear_all(self, store: CanonicalStore) -> int:
        """Empty every type and reset metadata to its initial state."""
        removed = sum(store.count(t) for t in ObjectType)
        store.records = {t: {} for t in ObjectType}
        store.metadata = StoreMetadata()
        logger.info(f"Cleared all records ({removed})", extra_fields={"removed": removed})
        return removed
