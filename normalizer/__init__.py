"""Record normalization: alias mapping, type coercion and validation.

Usage:
    from normalizer import FieldMapper, Validator

    mapped = FieldMapper().map(raw)
    result = Validator().validate(raw.object_type, fields)
"""

from normalizer.field_mapper import FieldMapper, MappingResult, normalize_key
from normalizer.object_types import OBJECT_TYPE_CONFIGS, ObjectTypeConfig, get_config
from normalizer.rules import ReasonCode, ValidationIssue
from normalizer.validator import ValidationResult, Validator

__all__ = [
    "FieldMapper",
    "MappingResult",
    "normalize_key",
    "OBJECT_TYPE_CONFIGS",
    "ObjectTypeConfig",
    "get_config",
    "ReasonCode",
    "ValidationIssue",
    "ValidationResult",
    "Validator",
]
