"""
Duplicate finder tests.

Covers string similarity, pair scoring, candidate scans (including
cancellation and provisional ids) and greedy grouping.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from core.models.canonical import CanonicalRecord, ObjectType
from core.observability.metrics import get_metrics
from duplicate_finder import SimilarityConfig, SimilarityMatcher
from duplicate_finder.matcher import candidate_pairs
from duplicate_finder.models import is_provisional_id
from duplicate_finder.normalize import levenshtein_distance, string_similarity


@pytest.fixture
def matcher():
    return SimilarityMatcher(SimilarityConfig(threshold=0.8))


def canonical(record_id, **fields):
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return CanonicalRecord(
        id=record_id, object_type=ObjectType.LEAD, fields=fields, created_at=moment, updated_at=moment,
    )


class TestStringSimilarity:
    """Edit-distance similarity."""

    @pytest.mark.parametrize("a,b,distance", [
        ("kitten", "sitting", 3),
        ("", "abc", 3),
        ("same", "same", 0),
        ("flaw", "lawn", 2),
    ])
    def test_levenshtein(self, a, b, distance):
        assert levenshtein_distance(a, b) == distance
        assert levenshtein_distance(b, a) == distance

    def test_similarity_values(self):
        assert string_similarity("john smith", "jon smith") == pytest.approx(0.9)
        assert string_similarity("abc", "abc") == 1.0
        assert string_similarity("", "") == 1.0
        assert string_similarity("abc", "xyz") == 0.0


class TestScoring:
    """Pair scores."""

    def test_john_and_jon_smith_flagged(self, matcher):
        """Same email and a one-letter name typo is a candidate."""
        records = [
            {"name": "John Smith", "email": "js@x.com"},
            {"name": "Jon Smith", "email": "js@x.com"},
        ]
        scan = matcher.find_candidates("Lead", records)

        assert len(scan.candidates) == 1
        candidate = scan.candidates[0]
        assert candidate.field_scores["email"] == 1.0
        assert candidate.field_scores["name"] == pytest.approx(0.9)
        assert candidate.score == pytest.approx(0.95)
        assert candidate_pairs(scan) == [("0", "1")]

    def test_score_is_symmetric(self, matcher):
        a = {"id": "1", "name": "Acme Corporation", "phone": "+14155550100"}
        b = {"id": "2", "name": "ACME Corp", "phone": "+14155550199"}
        assert matcher.score(a, b) == matcher.score(b, a)

    def test_case_and_whitespace_ignored(self, matcher):
        assert matcher.score({"email": " JS@X.com "}, {"email": "js@x.com"}) == 1.0

    def test_no_shared_fields_scores_zero(self, matcher):
        assert matcher.score({"name": "Ann"}, {"email": "ann@x.com"}) == 0.0
        assert matcher.score({"name": ""}, {"name": "Ann"}) == 0.0

    def test_weights_shift_the_score(self):
        """A heavier email weight pulls the mean toward the email score."""
        a = {"name": "abcd", "email": "same@x.com"}
        b = {"name": "wxyz", "email": "same@x.com"}
        even = SimilarityMatcher(SimilarityConfig(field_weights={"name": 1.0, "email": 1.0}))
        heavy = SimilarityMatcher(SimilarityConfig(field_weights={"name": 1.0, "email": 3.0}))

        assert even.score(a, b) == pytest.approx(0.5)
        assert heavy.score(a, b) == pytest.approx(0.75)

    @pytest.mark.parametrize("weights", [{}, {"name": 0.0}, {"name": -1.0}])
    def test_invalid_weights_rejected(self, weights):
        with pytest.raises(ValidationError):
            SimilarityConfig(field_weights=weights)

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            SimilarityConfig(threshold=1.5)


class TestFindCandidates:
    """Full scans."""

    def test_canonical_records_and_ordering(self, matcher):
        """Candidates come highest score first, ties by id."""
        records = [
            canonical("00Q1", name="Ann Lee", email="ann@acme.com"),
            canonical("00Q2", name="Ann Lee", email="ann@acme.com"),
            canonical("00Q3", name="Anne Lee", email="ann@acme.com"),
            canonical("00Q4", name="Bob Stone", email="bob@other.com"),
        ]
        scan = matcher.find_candidates(ObjectType.LEAD, records)

        assert scan.records_scanned == 4
        assert scan.pairs_compared == 6
        assert candidate_pairs(scan)[0] == ("00Q1", "00Q2")
        assert scan.candidates[0].score == 1.0
        assert ("00Q1", "00Q4") not in candidate_pairs(scan)
        assert not scan.cancelled

    def test_threshold_override(self, matcher):
        records = [{"id": "a", "name": "abcd"}, {"id": "b", "name": "abxy"}]
        assert matcher.find_candidates("Lead", records).candidates == []
        assert len(matcher.find_candidates("Lead", records, threshold=0.5).candidates) == 1

    def test_same_id_pairs_skipped(self, matcher):
        records = [{"id": "x", "name": "Ann"}, {"id": "x", "name": "Ann"}]
        scan = matcher.find_candidates("Lead", records)
        assert scan.pairs_compared == 0
        assert scan.candidates == []

    def test_provisional_ids_flagged(self, matcher):
        records = [
            {"id": "00Q1", "name": "Ann Lee"},
            {"id": "temp_9f2c1a", "name": "Ann Lee"},
        ]
        candidate = matcher.find_candidates("Lead", records).candidates[0]
        assert candidate.involves_provisional_id
        assert is_provisional_id("temp_opp_123")
        assert not is_provisional_id("006A")

    def test_cancellation_stops_the_scan(self, matcher):
        """The callback is checked before each outer iteration."""
        records = [{"id": str(i), "name": "Same Name"} for i in range(5)]
        calls = []

        def should_cancel():
            calls.append(1)
            return len(calls) > 1

        scan = matcher.find_candidates("Lead", records, should_cancel=should_cancel)

        assert scan.cancelled
        assert scan.pairs_compared == 4
        assert [c.record_id_a for c in scan.candidates] == ["0"] * 4

    def test_scan_is_counted(self, matcher):
        metrics = get_metrics()
        before = metrics.duplicate_scans
        matcher.find_candidates("Lead", [])
        assert metrics.duplicate_scans == before + 1


class TestGroupSimilar:
    """Greedy clustering."""

    def test_groups_of_two_or_more(self, matcher):
        records = [
            {"id": "1", "name": "Ann Lee"},
            {"id": "2", "name": "Bob Stone"},
            {"id": "3", "name": "Ann Lee"},
            {"id": "4", "name": "Carl Wu"},
        ]
        groups = matcher.group_similar(records)
        assert [[r["id"] for r in g] for g in groups] == [["1", "3"]]

    def test_record_joins_one_group(self, matcher):
        records = [{"id": str(i), "email": "same@x.com"} for i in range(3)]
        groups = matcher.group_similar(records)
        assert len(groups) == 1
        assert len(groups[0]) == 3
