"""
Metadata aggregation and summary tests.
"""

from datetime import date, datetime, timezone

import pytest

from core.models.canonical import STAGE_BUCKETS, CanonicalRecord, CanonicalStore, ObjectType
from merge_engine.aggregator import (
    MetadataAggregator,
    canonical_stage_bucket,
    compute_stage_histogram,
    opportunity_pipeline_summary,
    store_stats,
    task_summary,
)


MOMENT = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make(object_type, record_id, **fields):
    return CanonicalRecord(
        id=record_id, object_type=object_type, fields=fields, created_at=MOMENT, updated_at=MOMENT,
    )


def opportunity(record_id, **fields):
    return make(ObjectType.OPPORTUNITY, record_id, **fields)


def task(record_id, **fields):
    return make(ObjectType.TASK, record_id, subject="Follow up", **fields)


class TestStageBuckets:
    """Stage string → histogram bucket."""

    @pytest.mark.parametrize("stage,bucket", [
        ("Prospecting", "prospecting"),
        ("QUALIFICATION", "qualification"),
        ("Proposal/Price Quote", "proposal"),
        ("Negotiation/Review", "negotiation"),
        ("Closed Won", "closedWon"),
        ("closed_won", "closedWon"),
        ("ClosedWon", "closedWon"),
        ("closed-lost", "closedLost"),
    ])
    def test_bucket(self, stage, bucket):
        assert canonical_stage_bucket(stage) == bucket

    @pytest.mark.parametrize("stage", ["Needs Analysis", "Value Proposition", "", None])
    def test_no_bucket(self, stage):
        assert canonical_stage_bucket(stage) is None

    def test_histogram_counts_only_mapped_stages(self):
        records = [
            opportunity("1", stage="Prospecting"),
            opportunity("2", stage="Closed Won"),
            opportunity("3", stage="closed won"),
            opportunity("4", stage="Needs Analysis"),
            opportunity("5"),
        ]
        histogram = compute_stage_histogram(records)

        assert list(histogram) == list(STAGE_BUCKETS)
        assert histogram["prospecting"] == 1
        assert histogram["closedWon"] == 2
        assert sum(histogram.values()) == 3


class TestMetadataAggregator:
    """Metadata refresh."""

    def test_refresh_recounts_and_stamps(self):
        store = CanonicalStore()
        store.records_for(ObjectType.OPPORTUNITY).update({
            "1": opportunity("1", stage="Negotiation"),
            "2": opportunity("2", stage="Closed Lost"),
        })

        MetadataAggregator().refresh(store, "Opportunity", MOMENT)

        assert store.metadata.total_records[ObjectType.OPPORTUNITY] == 2
        assert store.metadata.last_sync[ObjectType.OPPORTUNITY] == MOMENT
        assert store.metadata.stage_histogram["negotiation"] == 1
        assert store.metadata.stage_histogram["closedLost"] == 1

    def test_refresh_all(self):
        store = CanonicalStore()
        store.records_for(ObjectType.LEAD)["00Q1"] = make(ObjectType.LEAD, "00Q1", name="Ann")

        MetadataAggregator().refresh_all(store, MOMENT)

        assert store.metadata.total_records[ObjectType.LEAD] == 1
        assert all(store.metadata.last_sync[t] == MOMENT for t in ObjectType)

    def test_store_stats(self):
        store = CanonicalStore()
        store.records_for(ObjectType.LEAD)["00Q1"] = make(ObjectType.LEAD, "00Q1", name="Ann")
        store.records_for(ObjectType.TASK)["00T1"] = task("00T1")
        MetadataAggregator().refresh(store, ObjectType.LEAD, MOMENT)

        stats = store_stats(store)

        assert stats["totalRecords"] == 2
        assert stats["objectCounts"]["Lead"] == 1
        assert stats["objectCounts"]["Account"] == 0
        assert stats["lastSync"]["Lead"] == "2024-06-01T12:00:00Z"
        assert stats["lastSync"]["Task"] is None


class TestOpportunityPipelineSummary:
    """Pipeline value rollups."""

    def test_totals_and_breakdown(self):
        summary = opportunity_pipeline_summary([
            opportunity("1", stage="Prospecting", amount=1000.0),
            opportunity("2", stage="Prospecting", amount=3000.0),
            opportunity("3", stage="Closed Won", amount="$2,000"),
            opportunity("4"),
        ])

        assert summary["totalValue"] == 6000.0
        assert summary["totalCount"] == 4
        assert summary["averageValue"] == 1500.0
        assert summary["stageBreakdown"]["Prospecting"] == {"count": 2, "value": 4000.0, "averageValue": 2000.0}
        assert summary["stageBreakdown"]["Closed Won"]["value"] == 2000.0
        assert summary["stageBreakdown"]["Unknown"]["count"] == 1

    def test_empty(self):
        assert opportunity_pipeline_summary([]) == {
            "totalValue": 0.0,
            "totalCount": 0,
            "averageValue": 0.0,
            "stageBreakdown": {},
        }


class TestTaskSummary:
    """Task rollups and due buckets."""

    def test_due_buckets_by_calendar_day(self):
        today = date(2024, 6, 1)
        summary = task_summary([
            task("1", dueDate="2024-05-30T00:00:00.000Z"),
            task("2", dueDate="2024-06-01T23:30:00.000Z"),
            task("3", dueDate="2024-06-02T00:00:00.000Z"),
            task("4", dueDate="someday"),
            task("5"),
        ], today=today)

        assert summary["overdueCount"] == 1
        assert summary["todayCount"] == 1
        assert summary["upcomingCount"] == 1
        assert summary["totalCount"] == 5

    def test_defaults_for_missing_picklists(self):
        summary = task_summary([
            task("1", status="Completed", priority="High", type="Call", isClosed=True),
            task("2"),
        ], today=date(2024, 6, 1))

        assert summary["completedCount"] == 1
        assert summary["byStatus"] == {"Completed": 1, "Unknown": 1}
        assert summary["byPriority"] == {"High": 1, "Normal": 1}
        assert summary["byType"] == {"Call": 1, "Task": 1}
