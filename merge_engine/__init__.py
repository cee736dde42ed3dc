"""Merge engine and metadata aggregation for the canonical store."""

from merge_engine.aggregator import (
    MetadataAggregator,
    canonical_stage_bucket,
    compute_stage_histogram,
    opportunity_pipeline_summary,
    store_stats,
    task_summary,
)
from merge_engine.engine import MergeEngine, MergeOutcome, MergeResult, MergeSession, merge_fields

__all__ = [
    "MetadataAggregator",
    "canonical_stage_bucket",
    "compute_stage_histogram",
    "opportunity_pipeline_summary",
    "store_stats",
    "task_summary",
    "MergeEngine",
    "MergeOutcome",
    "MergeResult",
    "MergeSession",
    "merge_fields",
]
