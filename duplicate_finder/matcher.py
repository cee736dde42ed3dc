"""Duplicate candidate detection.

An O(n^2) pass over one object type's records that scores every pair and
reports the pairs whose weighted field similarity meets the threshold.
The pass only reads records; resolving a candidate (merging, discarding a
provisional id) is the caller's decision.

Intended for periodic or manual runs, not the per-batch merge path. Long
scans can be stopped through a cancellation callback checked between outer
iterations.
"""

import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from core.models.canonical import CanonicalRecord, ObjectType
from core.observability.logging import get_logger
from core.observability.metrics import get_metrics
from duplicate_finder.models import (
    DuplicateCandidate,
    SimilarityConfig,
    SimilarityScan,
    is_provisional_id,
)
from duplicate_finder.normalize import normalize_value, string_similarity

logger = get_logger(__name__)

RecordLike = Union[CanonicalRecord, Mapping[str, Any]]


def _values(record: RecordLike) -> Mapping[str, Any]:
    if isinstance(record, CanonicalRecord):
        return record.values()
    return record


def _record_id(record: RecordLike, position: int) -> str:
    """The record's id, or its position in the scan when it has none."""
    record_id = _values(record).get("id")
    if record_id is None or str(record_id).strip() == "":
        return str(position)
    return str(record_id)


class SimilarityMatcher:
    """Scores record pairs for probable duplication.

    Example:
        matcher = SimilarityMatcher(SimilarityConfig(threshold=0.85))
        scan = matcher.find_candidates(ObjectType.LEAD, store.records_for(ObjectType.LEAD).values())
        for candidate in scan.candidates:
            print(candidate.record_id_a, candidate.record_id_b, candidate.score)
    """

    def __init__(self, config: Optional[SimilarityConfig] = None):
        self.config = config or SimilarityConfig()

    def field_scores(self, a: RecordLike, b: RecordLike) -> Dict[str, float]:
        """Similarity per configured field present (non-empty) on both sides."""
        values_a, values_b = _values(a), _values(b)
        scores = {}
        for field_name in self.config.field_weights:
            left = normalize_value(values_a.get(field_name))
            right = normalize_value(values_b.get(field_name))
            if left and right:
                scores[field_name] = string_similarity(left, right)
        return scores

    def score(self, a: RecordLike, b: RecordLike) -> float:
        """Weighted mean of field similarities; 0.0 when no field is shared.

        Symmetric: score(a, b) == score(b, a).
        """
        return self._weighted_mean(self.field_scores(a, b))

    def _weighted_mean(self, scores: Dict[str, float]) -> float:
        if not scores:
            return 0.0
        weights = self.config.field_weights
        total_weight = sum(weights[name] for name in scores)
        return min(1.0, sum(weights[name] * s for name, s in scores.items()) / total_weight)

    def find_candidates(
        self,
        object_type: Any,
        records: Sequence[RecordLike],
        threshold: Optional[float] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> SimilarityScan:
        """Score every pair of records and collect the candidates.

        Args:
            object_type: Type of the records being compared
            records: Records of that type (CanonicalRecord or plain dicts; a dict
                without an "id" is identified by its position)
            threshold: Overrides the configured threshold
            should_cancel: Checked before each outer iteration; True stops the scan

        Returns:
            SimilarityScan with candidates sorted by score (highest first)
        """
        object_type = ObjectType.parse(object_type)
        records = list(records)
        threshold = self.config.threshold if threshold is None else threshold
        start = time.time()

        scan = SimilarityScan(object_type=object_type, threshold=threshold, records_scanned=len(records))
        candidates: List[DuplicateCandidate] = []

        for i in range(len(records)):
            if should_cancel is not None and should_cancel():
                scan.cancelled = True
                logger.info(
                    f"Similarity scan cancelled after {i} of {len(records)} records",
                    extra_fields={"object_type": object_type.value, "pairs_compared": scan.pairs_compared},
                )
                break

            id_a = _record_id(records[i], i)
            for j in range(i + 1, len(records)):
                id_b = _record_id(records[j], j)
                if id_a == id_b:
                    continue
                scan.pairs_compared += 1

                field_scores = self.field_scores(records[i], records[j])
                pair_score = self._weighted_mean(field_scores)
                if pair_score >= threshold:
                    candidates.append(DuplicateCandidate(
                        object_type=object_type,
                        record_id_a=id_a,
                        record_id_b=id_b,
                        score=pair_score,
                        field_scores=field_scores,
                        involves_provisional_id=is_provisional_id(id_a) or is_provisional_id(id_b),
                    ))

        candidates.sort(key=lambda c: (-c.score, c.record_id_a, c.record_id_b))
        scan.candidates = candidates

        duration_ms = (time.time() - start) * 1000
        metrics = get_metrics()
        metrics.record_duplicate_scan()
        metrics.record_processing_time("similarity", duration_ms)
        logger.info(
            f"Similarity scan found {len(candidates)} candidates",
            extra_fields={
                "object_type": object_type.value,
                "records": len(records),
                "pairs_compared": scan.pairs_compared,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return scan

    def group_similar(
        self,
        records: Sequence[RecordLike],
        threshold: Optional[float] = None,
    ) -> List[List[RecordLike]]:
        """Greedy clusters of similar records.

        Each unassigned record seeds a group that collects every later
        unassigned record scoring at or above the threshold against the
        seed. A record joins at most one group. Only groups with two or
        more members are returned.
        """
        records = list(records)
        threshold = self.config.threshold if threshold is None else threshold
        assigned = set()
        groups: List[List[RecordLike]] = []

        for i, seed in enumerate(records):
            if i in assigned:
                continue
            assigned.add(i)
            group = [seed]
            for j in range(i + 1, len(records)):
                if j in assigned:
                    continue
                if self.score(seed, records[j]) >= threshold:
                    group.append(records[j])
                    assigned.add(j)
            if len(group) > 1:
                groups.append(group)

        return groups


def candidate_pairs(scan: SimilarityScan) -> List[Tuple[str, str]]:
    """(id_a, id_b) for every candidate in a scan."""
    return [(c.record_id_a, c.record_id_b) for c in scan.candidates]
