"""Duplicate Finder Data Models.

This module defines the Pydantic models for duplicate detection:
- SimilarityConfig: Field weights and candidate threshold
- DuplicateCandidate: A scored pair of records that probably describe one entity
- SimilarityScan: The result of one pass over a record set
"""

from typing import Dict, List

from pydantic import BaseModel, Field, field_validator

from core.models.canonical import ObjectTypeValue


# Prefix of content-hash ids assigned when a row exposes no stable id
PROVISIONAL_ID_PREFIX = "temp_"


def is_provisional_id(record_id: str) -> bool:
    """True for content-hash temporary ids ("temp_…", "temp_opp_…")."""
    return str(record_id).startswith(PROVISIONAL_ID_PREFIX)


class SimilarityConfig(BaseModel):
    """Configuration for the similarity pass.

    Controls which fields are compared, how much each counts and the
    minimum pair score for a candidate.
    """
    threshold: float = Field(default=0.8, ge=0.0, le=1.0, description="Min score to be a candidate")
    field_weights: Dict[str, float] = Field(
        default_factory=lambda: {
            "name": 1.0,
            "email": 1.0,
            "phone": 1.0,
            "company": 1.0,
            "accountName": 1.0,
        },
        description="Compared fields and their weights in the pair score",
    )

    @field_validator("field_weights")
    @classmethod
    def _positive_weights(cls, weights: Dict[str, float]) -> Dict[str, float]:
        if not weights:
            raise ValueError("At least one field must be compared")
        for name, weight in weights.items():
            if weight <= 0:
                raise ValueError(f"Weight for {name} must be positive, got {weight}")
        return weights


class DuplicateCandidate(BaseModel):
    """A pair of records whose weighted similarity met the threshold.

    Candidates are advisory: nothing is merged until the caller confirms.

    Attributes:
        object_type: Type both records belong to
        record_id_a: Id of the record that came first in scan order
        record_id_b: Id of the other record
        score: Weighted mean similarity (0.0 - 1.0)
        field_scores: Per-field similarity for fields present on both sides
        involves_provisional_id: Either id is a content-hash temporary id
    """
    object_type: ObjectTypeValue
    record_id_a: str
    record_id_b: str
    score: float = Field(..., ge=0.0, le=1.0)
    field_scores: Dict[str, float] = Field(default_factory=dict)
    involves_provisional_id: bool = False


class SimilarityScan(BaseModel):
    """Result of one similarity pass.

    If `cancelled` is True the scan stopped early and `candidates` holds
    only the pairs found before the stop.
    """
    object_type: ObjectTypeValue
    threshold: float
    records_scanned: int = 0
    pairs_compared: int = 0
    candidates: List[DuplicateCandidate] = Field(default_factory=list)
    cancelled: bool = False
