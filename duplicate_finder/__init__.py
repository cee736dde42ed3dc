"""Advisory duplicate detection over stored records."""

from duplicate_finder.matcher import SimilarityMatcher, candidate_pairs
from duplicate_finder.models import (
    DuplicateCandidate,
    SimilarityConfig,
    SimilarityScan,
    is_provisional_id,
)
from duplicate_finder.normalize import levenshtein_distance, string_similarity

__all__ = [
    "SimilarityMatcher",
    "candidate_pairs",
    "DuplicateCandidate",
    "SimilarityConfig",
    "SimilarityScan",
    "is_provisional_id",
    "levenshtein_distance",
    "string_similarity",
]
