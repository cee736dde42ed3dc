"""Per-object-type record validation."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from normalizer.object_types import get_config
from normalizer.rules import ReasonCode, ValidationIssue, check_required, effective_values


@dataclass
class ValidationResult:
    """Outcome of validating one mapped, coerced record.

    Attributes:
        accepted: False if any fatal issue was found
        issues: Every issue in rule order (required fields first)
    """
    accepted: bool
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def reasons(self) -> List[ReasonCode]:
        """Distinct codes of fatal issues, in first-seen order."""
        seen: List[ReasonCode] = []
        for issue in self.issues:
            if issue.fatal and issue.code not in seen:
                seen.append(issue.code)
        return seen

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [issue for issue in self.issues if not issue.fatal]

    @property
    def codes(self) -> List[str]:
        return [issue.code.value for issue in self.issues]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "reasons": [code.value for code in self.reasons],
            "issues": [issue.to_dict() for issue in self.issues],
        }


class Validator:
    """Applies the required-field and semantic rules of each object type.

    Validation never mutates the record and never raises for bad data; an
    unknown object-type tag is a programming error and raises ValueError.
    """

    def validate(
        self,
        object_type: Any,
        fields: Mapping[str, Any],
        existing: Optional[Mapping[str, Any]] = None,
    ) -> ValidationResult:
        """Validate a record.

        Args:
            object_type: Object-type tag
            fields: Mapped, coerced canonical fields (including "id")
            existing: Stored field values for the same id, if any. Presence
                rules accept values the stored record already has, so a
                partial update of a known record is not rejected.

        Returns:
            ValidationResult
        """
        config = get_config(object_type)
        values = effective_values(fields, existing)

        issues = check_required(values, config.required_fields)
        issues += config.validate(fields, values)

        return ValidationResult(
            accepted=not any(issue.fatal for issue in issues),
            issues=issues,
        )
