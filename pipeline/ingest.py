"""Batch ingestion: raw records → canonical store.

Runs the full per-record flow for one extraction event:

    RawRecord → FieldMapper (rename, derive) → per-type normalize (coerce,
    standardize) → Validator (accept/reject) → MergeEngine (staged upsert)

and then commits every accepted record at once, refreshing metadata for
the touched types. Rejected records never reach the store; they come back
in the BatchReport with their reason codes.
"""

import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from core.config import DEFAULT_SETTINGS, PipelineSettings
from core.errors import StoreUnavailable
from core.models.canonical import CanonicalStore, ObjectType, RawRecord, ValidatedRecord, utc_now
from core.observability.logging import (
    get_logger,
    log_batch_complete,
    log_batch_error,
    log_batch_start,
    with_correlation,
)
from core.observability.metrics import get_metrics
from duplicate_finder import SimilarityConfig, SimilarityMatcher, SimilarityScan
from merge_engine.engine import MergeEngine, MergeOutcome
from normalizer.field_mapper import FieldMapper, MappingResult
from normalizer.object_types import get_config
from normalizer.rules import ValidationIssue
from normalizer.validator import Validator

logger = get_logger(__name__)

RawInput = Union[RawRecord, Mapping[str, Any]]


# =============================================================================
# Report
# =============================================================================

@dataclass
class RecordError:
    """A rejected raw record and why it was rejected.

    Attributes:
        index: Position of the raw record in the batch
        object_type: Object type the record was scraped as
        record_id: Mapped id, if one could be found
        reasons: Fatal reason codes in rule order
        issues: Every issue (fatal and non-fatal) as plain dicts
        raw: The raw key/value pairs as received
    """
    index: int
    object_type: str
    record_id: Optional[str]
    reasons: List[str]
    issues: List[Dict[str, Any]]
    raw: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "objectType": self.object_type,
            "recordId": self.record_id,
            "reasons": self.reasons,
            "issues": self.issues,
            "raw": self.raw,
        }


@dataclass
class RecordWarning:
    """Non-fatal issues on an accepted record."""
    index: int
    object_type: str
    record_id: str
    issues: List[ValidationIssue]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "objectType": self.object_type,
            "recordId": self.record_id,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass
class BatchReport:
    """Structured outcome of one batch.

    Callers can proceed with partial success: accepted records are merged
    even when others in the batch were rejected.
    """
    batch_id: str
    valid_records: List[ValidatedRecord] = field(default_factory=list)
    invalid_count: int = 0
    errors: List[RecordError] = field(default_factory=list)
    warnings: List[RecordWarning] = field(default_factory=list)
    inserted: int = 0
    updated: int = 0
    duration_ms: float = 0.0

    @property
    def valid_count(self) -> int:
        return len(self.valid_records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batchId": self.batch_id,
            "validRecords": [
                {"objectType": r.object_type.value, "id": r.id, **r.fields} for r in self.valid_records
            ],
            "invalidCount": self.invalid_count,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "inserted": self.inserted,
            "updated": self.updated,
            "durationMs": round(self.duration_ms, 2),
        }


# =============================================================================
# Pipeline
# =============================================================================

class RecordPipeline:
    """Normalization → validation → merge → aggregation for raw batches.

    Example:
        pipeline = RecordPipeline(PipelineSettings.from_env())
        store = CanonicalStore()
        report = pipeline.process_batch(store, raws)
        print(report.valid_count, report.invalid_count)
    """

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        mapper: Optional[FieldMapper] = None,
        validator: Optional[Validator] = None,
        engine: Optional[MergeEngine] = None,
        clock: Callable = utc_now,
    ):
        """Initialize the pipeline.

        Args:
            settings: Pipeline settings (alias file, similarity threshold)
            mapper: Field mapper; built from the dispatch table if omitted
            validator: Validator instance
            engine: Merge engine; built with `clock` if omitted
            clock: Time source for record timestamps and sync times
        """
        self.settings = settings or DEFAULT_SETTINGS
        self.mapper = mapper or FieldMapper()
        if mapper is None and self.settings.alias_file:
            loaded = self.mapper.load_aliases_from_json(self.settings.alias_file)
            logger.info(f"Loaded {loaded} extra field aliases from {self.settings.alias_file}")
        self.validator = validator or Validator()
        self.engine = engine or MergeEngine(clock=clock)

    def normalize_record(self, raw: RawRecord) -> MappingResult:
        """Map, derive and coerce one raw record. Never raises for bad values."""
        mapping = self.mapper.map(raw)
        config = get_config(raw.object_type)
        if mapping.unmapped_keys:
            logger.debug(
                f"Passing through {len(mapping.unmapped_keys)} unmapped keys",
                extra_fields={"unmapped_keys": mapping.unmapped_keys},
            )
        return replace(mapping, fields=config.normalize(mapping.fields))

    def process_batch(
        self,
        store: Optional[CanonicalStore],
        raws: Iterable[RawInput],
        batch_id: Optional[str] = None,
    ) -> BatchReport:
        """Process one extraction event's raw records.

        Records are applied in input order into a staged copy of the store
        and committed together at the end.

        Args:
            store: Target store
            raws: RawRecord instances or dicts in RawRecord shape
            batch_id: Correlation id; generated if omitted

        Returns:
            BatchReport

        Raises:
            StoreUnavailable: If no store was supplied; nothing is written
            ValueError: If a raw record names an unknown object type
        """
        batch_id = batch_id or uuid.uuid4().hex[:12]
        raws = list(raws)
        metrics = get_metrics()

        with with_correlation(batch_id=batch_id, stage="ingest"):
            if store is None:
                error = StoreUnavailable("No store available for batch", {"batch_id": batch_id})
                metrics.record_batch_failed(str(error))
                log_batch_error(batch_id, str(error))
                raise error

            log_batch_start(batch_id, len(raws))
            start = time.time()
            report = BatchReport(batch_id=batch_id)

            try:
                session = self.engine.session(store)
                for index, item in enumerate(raws):
                    raw = item if isinstance(item, RawRecord) else RawRecord.model_validate(item)
                    self._process_one(session, report, index, raw)
                touched = self.engine.commit(session)
            except Exception as e:
                metrics.record_batch_failed(str(e))
                log_batch_error(batch_id, str(e))
                raise

            report.duration_ms = (time.time() - start) * 1000
            metrics.record_batch_processed(accepted=report.valid_count, rejected=report.invalid_count)
            metrics.record_processing_time("ingest", report.duration_ms)

            log_batch_complete(
                batch_id,
                duration_ms=round(report.duration_ms, 2),
                accepted=report.valid_count,
                rejected=report.invalid_count,
                inserted=report.inserted,
                updated=report.updated,
                types=[t.value for t in touched],
            )
        return report

    def _process_one(self, session, report: BatchReport, index: int, raw: RawRecord) -> None:
        object_type = raw.object_type
        metrics = get_metrics()
        mapping = self.normalize_record(raw)
        fields = mapping.fields
        record_id = fields.get("id")

        with with_correlation(object_type=object_type.value, record_id=record_id, source_context=raw.source.value):
            existing = session.get(object_type, record_id) if record_id else None
            result = self.validator.validate(object_type, fields, existing.fields if existing else None)

            if not result.accepted:
                reasons = [code.value for code in result.reasons]
                report.errors.append(RecordError(
                    index=index,
                    object_type=object_type.value,
                    record_id=record_id,
                    reasons=reasons,
                    issues=[issue.to_dict() for issue in result.issues],
                    raw=dict(raw.fields),
                ))
                report.invalid_count += 1
                metrics.record_outcome(object_type.value, "rejected")
                for code in reasons:
                    metrics.record_rejection_reason(code)
                logger.info(f"Rejected record #{index}: {', '.join(reasons)}", extra_fields={"reasons": reasons})
                return

            if result.warnings:
                report.warnings.append(RecordWarning(index, object_type.value, record_id, result.warnings))
                logger.debug(
                    f"Accepted record #{index} with {len(result.warnings)} warnings",
                    extra_fields={"warnings": [w.code.value for w in result.warnings]},
                )

            validated = ValidatedRecord(
                object_type=object_type,
                id=record_id,
                fields={k: v for k, v in fields.items() if k != "id"},
                source=raw.source,
            )
            merge = session.upsert(validated)
            report.valid_records.append(validated)
            metrics.record_outcome(object_type.value, "accepted")
            metrics.record_outcome(object_type.value, merge.outcome.value)
            if merge.outcome == MergeOutcome.INSERTED:
                report.inserted += 1
            else:
                report.updated += 1

    # =========================================================================
    # Store Operations
    # =========================================================================

    def delete_record(self, store: Optional[CanonicalStore], object_type: Any, record_id: str) -> bool:
        """Delete one record by id; metadata is refreshed."""
        _require_store(store)
        deleted = self.engine.delete_by_id(store, object_type, record_id)
        if deleted:
            get_metrics().record_deleted()
        return deleted

    def clear(self, store: Optional[CanonicalStore], object_type: Any) -> int:
        _require_store(store)
        removed = self.engine.clear(store, object_type)
        get_metrics().record_deleted(removed)
        return removed

    def clear_all(self, store: Optional[CanonicalStore]) -> int:
        _require_store(store)
        removed = self.engine.clear_all(store)
        get_metrics().record_deleted(removed)
        return removed

    def find_duplicates(
        self,
        store: CanonicalStore,
        object_type: Any,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> SimilarityScan:
        """Run the similarity pass over one type's stored records.

        Records are scanned in id order so results do not depend on
        insertion order.
        """
        _require_store(store)
        object_type = ObjectType.parse(object_type)
        matcher = SimilarityMatcher(SimilarityConfig(threshold=self.settings.similarity_threshold))
        records = sorted(store.records_for(object_type).values(), key=lambda r: r.id)
        with with_correlation(object_type=object_type.value, stage="similarity"):
            return matcher.find_candidates(object_type, records, should_cancel=should_cancel)


def _require_store(store: Optional[CanonicalStore]) -> None:
    if store is None:
        raise StoreUnavailable("No store available")
