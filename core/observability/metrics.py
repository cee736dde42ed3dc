"""
Metrics Collection for the Record Pipeline

Collects and exposes metrics for:
- Batch lifecycle (processed, failed)
- Record outcomes (accepted, rejected, inserted, updated, deleted)
- Rejections by reason code
- Processing times per stage (average, p95)

Metrics are held in memory; hosts that need durability read get_summary()
and ship it wherever they keep operational data.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Optional, Any


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class BatchMetrics:
    """Metrics for batch execution."""
    processed: int = 0
    failed: int = 0


@dataclass
class RecordMetrics:
    """Metrics for individual record outcomes."""
    accepted: int = 0
    rejected: int = 0
    inserted: int = 0
    updated: int = 0
    deleted: int = 0

    # By object type
    by_type: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"accepted": 0, "rejected": 0, "inserted": 0, "updated": 0})
    )

    # Rejections by reason code
    by_reason: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: str = None) -> float:
        """Get average processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str = None) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class PipelineMetrics:
    """
    Thread-safe metrics collector for the record pipeline.

    Usage:
        metrics = PipelineMetrics.instance()
        metrics.record_batch_processed(accepted=10, rejected=2)
        metrics.record_processing_time("merge", 3.5)
    """

    _instance: Optional["PipelineMetrics"] = None
    _instance_lock = Lock()

    def __init__(self):
        self.batches = BatchMetrics()
        self.records = RecordMetrics()
        self.timings = TimingMetrics()
        self.duplicate_scans = 0
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "PipelineMetrics":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Batch / Record Metrics
    # =========================================================================

    def record_batch_processed(self, accepted: int = 0, rejected: int = 0):
        """Record a successfully processed batch."""
        with self._lock:
            self.batches.processed += 1
            self.records.accepted += accepted
            self.records.rejected += rejected

    def record_batch_failed(self, error: str = None):
        """Record a batch aborted by a fatal error."""
        with self._lock:
            self.batches.failed += 1

    def record_outcome(self, object_type: str, outcome: str, count: int = 1):
        """Record per-type outcomes: accepted, rejected, inserted, updated."""
        with self._lock:
            self.records.by_type[object_type][outcome] += count
            if outcome == "inserted":
                self.records.inserted += count
            elif outcome == "updated":
                self.records.updated += count

    def record_rejection_reason(self, reason_code: str):
        """Count one fatal validation reason."""
        with self._lock:
            self.records.by_reason[reason_code] += 1

    def record_deleted(self, count: int = 1):
        with self._lock:
            self.records.deleted += count

    def record_duplicate_scan(self):
        with self._lock:
            self.duplicate_scans += 1

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        """Record processing time for a pipeline stage."""
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Get timing statistics."""
        with self._lock:
            samples = self.timings.by_stage.get(stage, []) if stage else self.timings.samples
            return {
                "count": len(samples),
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a complete metrics summary as plain dicts."""
        with self._lock:
            return {
                "batches": {
                    "processed": self.batches.processed,
                    "failed": self.batches.failed,
                },
                "records": {
                    "accepted": self.records.accepted,
                    "rejected": self.records.rejected,
                    "inserted": self.records.inserted,
                    "updated": self.records.updated,
                    "deleted": self.records.deleted,
                    "by_type": {k: dict(v) for k, v in self.records.by_type.items()},
                    "by_reason": dict(self.records.by_reason),
                },
                "duplicate_scans": self.duplicate_scans,
                "timing": {
                    "average_ms": self.timings.get_average(),
                    "p95_ms": self.timings.get_p95(),
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage
                    },
                },
            }

    def reset(self):
        """Clear all counters and samples."""
        with self._lock:
            self.batches = BatchMetrics()
            self.records = RecordMetrics()
            self.timings = TimingMetrics()
            self.duplicate_scans = 0


# =============================================================================
# Convenience Functions
# =============================================================================

def get_metrics() -> PipelineMetrics:
    """Get the metrics collector instance."""
    return PipelineMetrics.instance()


def record_batch_processed(accepted: int = 0, rejected: int = 0):
    get_metrics().record_batch_processed(accepted, rejected)


def record_batch_failed(error: str = None):
    get_metrics().record_batch_failed(error)


def record_processing_time(stage: str, duration_ms: float):
    get_metrics().record_processing_time(stage, duration_ms)
