"""Core canonical data models - object-type-neutral record structures.

These models represent scraped CRM records at the three points of the
pipeline:

- RawRecord: transient key/value payload produced by the scraping layer
- ValidatedRecord: mapped, coerced and accepted record ready for merge
- CanonicalRecord: the durable, keyed representation held in the store

CanonicalStore owns one keyed record set per object type plus the derived
metadata (counts, sync timestamps, opportunity stage histogram).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Object Types and Source Contexts
# =============================================================================

class ObjectType(str, Enum):
    """The five supported CRM object types."""
    LEAD = "Lead"
    CONTACT = "Contact"
    ACCOUNT = "Account"
    OPPORTUNITY = "Opportunity"
    TASK = "Task"

    @property
    def collection(self) -> str:
        """Plural collection key used in snapshots ("leads", "opportunities", ...)."""
        return _COLLECTION_NAMES[self]

    @classmethod
    def parse(cls, value: Any) -> "ObjectType":
        """Parse an object-type tag in any casing, singular or plural.

        Raises:
            ValueError: If the tag does not name a supported object type
        """
        if isinstance(value, ObjectType):
            return value
        tag = str(value or "").strip().lower()
        for object_type in cls:
            if tag in (object_type.value.lower(), object_type.collection):
                return object_type
        raise ValueError(f"Unknown object type: {value!r}")


_COLLECTION_NAMES = {
    ObjectType.LEAD: "leads",
    ObjectType.CONTACT: "contacts",
    ObjectType.ACCOUNT: "accounts",
    ObjectType.OPPORTUNITY: "opportunities",
    ObjectType.TASK: "tasks",
}


class SourceContext(str, Enum):
    """Which extraction context produced a raw record."""
    LIST = "list"
    DETAIL = "detail"
    KANBAN = "kanban"
    UNKNOWN = "unknown"


def _parse_object_type(value):
    if value is None:
        return value
    return ObjectType.parse(value)


def _parse_source(value):
    """Unknown or missing source tags degrade to UNKNOWN."""
    if isinstance(value, SourceContext):
        return value
    try:
        return SourceContext(str(value or "").strip().lower())
    except ValueError:
        return SourceContext.UNKNOWN


ObjectTypeValue = Annotated[ObjectType, BeforeValidator(_parse_object_type)]
SourceValue = Annotated[SourceContext, BeforeValidator(_parse_source)]

# Fixed opportunity pipeline buckets, in display order
STAGE_BUCKETS = (
    "prospecting",
    "qualification",
    "proposal",
    "negotiation",
    "closedWon",
    "closedLost",
)


def utc_now() -> datetime:
    """Default clock for record timestamps."""
    return datetime.now(timezone.utc)


# =============================================================================
# Base Model
# =============================================================================

class CanonicalBase(BaseModel):
    """Base model for all canonical data structures."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Pipeline Records
# =============================================================================

class RawRecord(CanonicalBase):
    """One scraped record, exactly as the extraction layer produced it.

    Attributes:
        object_type: Which object type the record was scraped as
        fields: Raw key/value pairs (keys in arbitrary casing/separators)
        source: Extraction context (list/detail/kanban/unknown)
        record_id: Optional externally supplied id; overrides an "id" key
    """
    object_type: ObjectTypeValue = Field(..., alias="objectType")
    fields: Dict[str, Any] = Field(default_factory=dict)
    source: SourceValue = Field(default=SourceContext.UNKNOWN)
    record_id: Optional[str] = Field(default=None, alias="recordId")


class ValidatedRecord(CanonicalBase):
    """A mapped, coerced record that passed validation and can be merged."""
    object_type: ObjectTypeValue = Field(..., alias="objectType")
    id: str = Field(..., description="Record id, unique within its object type")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Canonical fields, excluding id")
    source: SourceValue = Field(default=SourceContext.UNKNOWN)


# Keys to_plain() adds beside the record fields
PLAIN_METADATA_KEYS = frozenset({"objectType", "createdAt", "updatedAt", "lastSource"})


class CanonicalRecord(CanonicalBase):
    """The durable representation of a record in the store.

    `fields` never contains `id`; `values()` returns the flat canonical map.
    """
    id: str = Field(..., description="Immutable record id")
    object_type: ObjectTypeValue = Field(..., alias="objectType")
    fields: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")
    last_source: SourceValue = Field(default=SourceContext.UNKNOWN, alias="lastSource")

    def values(self) -> Dict[str, Any]:
        """Flat canonical field map including the id."""
        return {"id": self.id, **self.fields}

    def to_plain(self) -> Dict[str, Any]:
        """Plain, JSON-friendly dict used for export and snapshots."""
        plain = self.values()
        plain["objectType"] = self.object_type.value
        plain["createdAt"] = iso_utc(self.created_at)
        plain["updatedAt"] = iso_utc(self.updated_at)
        plain["lastSource"] = self.last_source.value
        return plain

    @classmethod
    def from_plain(cls, data: Dict[str, Any], object_type: ObjectType) -> "CanonicalRecord":
        """Inverse of `to_plain`."""
        data = dict(data)
        record_id = data.pop("id")
        data.pop("objectType", None)
        created_at = data.pop("createdAt")
        updated_at = data.pop("updatedAt", created_at)
        last_source = data.pop("lastSource", None)
        return cls(
            id=str(record_id),
            object_type=object_type,
            fields=data,
            created_at=created_at,
            updated_at=updated_at,
            last_source=last_source,
        )


def iso_utc(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# =============================================================================
# Store
# =============================================================================

def _empty_by_type(default):
    return {object_type: default for object_type in ObjectType}


class StoreMetadata(CanonicalBase):
    """Derived aggregate metadata, recomputed after every mutation."""
    last_sync: Dict[ObjectType, Optional[datetime]] = Field(
        default_factory=lambda: _empty_by_type(None), alias="lastSync"
    )
    total_records: Dict[ObjectType, int] = Field(
        default_factory=lambda: _empty_by_type(0), alias="totalRecords"
    )
    stage_histogram: Dict[str, int] = Field(
        default_factory=lambda: {bucket: 0 for bucket in STAGE_BUCKETS},
        alias="opportunityStages",
    )


class CanonicalStore(CanonicalBase):
    """Keyed record sets per object type plus metadata.

    The store is an explicitly owned, passed-in instance. Writers for one
    object type must be serialized by the host.
    """
    records: Dict[ObjectType, Dict[str, CanonicalRecord]] = Field(
        default_factory=lambda: {object_type: {} for object_type in ObjectType}
    )
    metadata: StoreMetadata = Field(default_factory=StoreMetadata)

    def records_for(self, object_type: ObjectType) -> Dict[str, CanonicalRecord]:
        """Live keyed record set for a type (created on first access)."""
        object_type = ObjectType.parse(object_type)
        return self.records.setdefault(object_type, {})

    def get(self, object_type: ObjectType, record_id: str) -> Optional[CanonicalRecord]:
        return self.records_for(object_type).get(record_id)

    def count(self, object_type: ObjectType) -> int:
        return len(self.records_for(object_type))

    def to_snapshot(self) -> Dict[str, Any]:
        """Serialize in the persisted blob layout.

        Layout: one array per collection ("leads", "contacts", ...) plus
        metadata.lastSync / metadata.totalRecords / metadata.opportunityStages.
        """
        snapshot: Dict[str, Any] = {}
        for object_type in ObjectType:
            records = self.records_for(object_type).values()
            snapshot[object_type.collection] = [r.to_plain() for r in records]
        snapshot["metadata"] = {
            "lastSync": {
                t.collection: iso_utc(self.metadata.last_sync.get(t)) for t in ObjectType
            },
            "totalRecords": {
                t.collection: self.metadata.total_records.get(t, 0) for t in ObjectType
            },
            "opportunityStages": {
                bucket: self.metadata.stage_histogram.get(bucket, 0) for bucket in STAGE_BUCKETS
            },
        }
        return snapshot

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "CanonicalStore":
        """Rebuild a store from the persisted blob layout.

        Only lastSync is taken from the blob's metadata. Totals and the
        stage histogram are recounted from the loaded records.
        """
        from merge_engine.aggregator import compute_stage_histogram

        store = cls()
        for object_type in ObjectType:
            keyed = store.records_for(object_type)
            for plain in data.get(object_type.collection) or []:
                record = CanonicalRecord.from_plain(plain, object_type)
                keyed[record.id] = record

        last_sync = (data.get("metadata") or {}).get("lastSync") or {}
        store.metadata = StoreMetadata(
            last_sync={t: last_sync.get(t.collection) for t in ObjectType},
            total_records={t: store.count(t) for t in ObjectType},
            stage_histogram=compute_stage_histogram(store.records_for(ObjectType.OPPORTUNITY).values()),
        )
        return store


def snapshot_records(records: List[CanonicalRecord]) -> List[Dict[str, Any]]:
    """Plain dicts for a list of records."""
    return [record.to_plain() for record in records]
