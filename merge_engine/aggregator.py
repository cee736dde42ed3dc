"""Derived store metadata and on-demand summaries.

MetadataAggregator keeps StoreMetadata consistent with the live record
sets: after every mutation of a type it recounts the type, stamps its sync
time and, for opportunities, rebuilds the stage histogram from scratch.

The summary functions at the bottom compute reporting views over a record
list without touching the store.
"""

import re
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Optional

from core.models.canonical import STAGE_BUCKETS, CanonicalRecord, CanonicalStore, ObjectType, iso_utc
from normalizer.coercers import is_empty, parse_currency, parse_datetime


_STAGE_SEPARATORS = re.compile(r"[\s_\-/]+")

# Canonicalized stage string → histogram bucket. Stages outside the fixed
# buckets (e.g. "Needs Analysis") are deliberately absent.
STAGE_BUCKET_MAP = {
    "prospecting": "prospecting",
    "qualification": "qualification",
    "proposal": "proposal",
    "proposal price quote": "proposal",
    "negotiation": "negotiation",
    "negotiation review": "negotiation",
    "closed won": "closedWon",
    "closedwon": "closedWon",
    "closed lost": "closedLost",
    "closedlost": "closedLost",
}


def canonical_stage_bucket(stage: Any) -> Optional[str]:
    """Histogram bucket for a raw stage string, or None if it maps to none.

    Examples:
        >>> canonical_stage_bucket("Closed_Won")
        'closedWon'
        >>> canonical_stage_bucket("Proposal/Price Quote")
        'proposal'
        >>> canonical_stage_bucket("Needs Analysis") is None
        True
    """
    if is_empty(stage):
        return None
    key = _STAGE_SEPARATORS.sub(" ", str(stage).strip().lower()).strip()
    return STAGE_BUCKET_MAP.get(key)


def compute_stage_histogram(records: Iterable[CanonicalRecord]) -> Dict[str, int]:
    """Full recount of opportunities per stage bucket."""
    histogram = {bucket: 0 for bucket in STAGE_BUCKETS}
    for record in records:
        bucket = canonical_stage_bucket(record.fields.get("stage"))
        if bucket is not None:
            histogram[bucket] += 1
    return histogram


class MetadataAggregator:
    """Recomputes derived metadata for one object type at a time."""

    def refresh(self, store: CanonicalStore, object_type: Any, synced_at: datetime) -> None:
        object_type = ObjectType.parse(object_type)
        records = store.records_for(object_type)

        store.metadata.total_records[object_type] = len(records)
        store.metadata.last_sync[object_type] = synced_at
        if object_type == ObjectType.OPPORTUNITY:
            store.metadata.stage_histogram = compute_stage_histogram(records.values())

    def refresh_all(self, store: CanonicalStore, synced_at: datetime) -> None:
        for object_type in ObjectType:
            self.refresh(store, object_type, synced_at)


# =============================================================================
# Summaries
# =============================================================================

def store_stats(store: CanonicalStore) -> Dict[str, Any]:
    """Total and per-type record counts plus last sync times."""
    counts = {t.value: store.count(t) for t in ObjectType}
    return {
        "totalRecords": sum(counts.values()),
        "objectCounts": counts,
        "lastSync": {t.value: iso_utc(store.metadata.last_sync.get(t)) for t in ObjectType},
    }


def _amount(record: CanonicalRecord) -> float:
    value = record.fields.get("amount")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return parse_currency(value) or 0.0


def opportunity_pipeline_summary(records: Iterable[CanonicalRecord]) -> Dict[str, Any]:
    """Pipeline value overall and per stage.

    Returns:
        {"totalValue", "totalCount", "averageValue",
         "stageBreakdown": {stage: {"count", "value", "averageValue"}}}
    """
    records = list(records)
    total_value = 0.0
    breakdown: Dict[str, Dict[str, float]] = {}

    for record in records:
        amount = _amount(record)
        total_value += amount

        stage = record.fields.get("stage") or "Unknown"
        entry = breakdown.setdefault(stage, {"count": 0, "value": 0.0, "averageValue": 0.0})
        entry["count"] += 1
        entry["value"] += amount

    for entry in breakdown.values():
        entry["averageValue"] = entry["value"] / entry["count"]

    return {
        "totalValue": total_value,
        "totalCount": len(records),
        "averageValue": total_value / len(records) if records else 0.0,
        "stageBreakdown": breakdown,
    }


def task_summary(records: Iterable[CanonicalRecord], today: Optional[date] = None) -> Dict[str, Any]:
    """Task counts by status, priority and type plus due-date buckets.

    Due dates are compared by calendar day (UTC) against `today`. Tasks
    without a parseable due date are not placed in any due bucket.
    """
    records = list(records)
    today = today or datetime.now(timezone.utc).date()

    by_status: Dict[str, int] = defaultdict(int)
    by_priority: Dict[str, int] = defaultdict(int)
    by_type: Dict[str, int] = defaultdict(int)
    completed = overdue = due_today = upcoming = 0

    for record in records:
        fields = record.fields
        by_status[fields.get("status") or "Unknown"] += 1
        by_priority[fields.get("priority") or "Normal"] += 1
        by_type[fields.get("type") or "Task"] += 1

        if fields.get("isClosed") is True:
            completed += 1

        due = parse_datetime(fields.get("dueDate"))
        if due is None:
            continue
        due_day = due.astimezone(timezone.utc).date()
        if due_day < today:
            overdue += 1
        elif due_day == today:
            due_today += 1
        else:
            upcoming += 1

    return {
        "totalCount": len(records),
        "completedCount": completed,
        "overdueCount": overdue,
        "todayCount": due_today,
        "upcomingCount": upcoming,
        "byStatus": dict(by_status),
        "byPriority": dict(by_priority),
        "byType": dict(by_type),
    }
