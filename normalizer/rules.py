"""Validation rules.

Each rule inspects a mapped, coerced field map and returns a list of
ValidationIssue values. Rules never raise and never mutate the record.

Presence rules (required fields, name-or-contact) are evaluated against the
record's effective values: the stored record's fields overlaid with the
incoming non-empty values. Semantic rules only look at incoming values.
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import HttpUrl, TypeAdapter, ValidationError

from normalizer.coercers import is_empty, is_parseable_date


class ReasonCode(str, Enum):
    """Structured validation reason codes."""
    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    INVALID_EMAIL = "InvalidEmail"
    INVALID_PHONE = "InvalidPhone"
    INVALID_URL = "InvalidUrl"
    INVALID_NUMERIC_RANGE = "InvalidNumericRange"
    INVALID_DATE = "InvalidDate"


@dataclass(frozen=True)
class ValidationIssue:
    """One rule failure.

    Fatal issues reject the record; non-fatal ones are reported as warnings.
    """
    code: ReasonCode
    field: Optional[str]
    message: str
    fatal: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "field": self.field,
            "message": self.message,
            "fatal": self.fatal,
        }


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15

_url_adapter = TypeAdapter(HttpUrl)


def effective_values(fields: Mapping[str, Any], existing: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Stored values overlaid with the incoming non-empty values."""
    merged = dict(existing or {})
    for key, value in fields.items():
        if not is_empty(value):
            merged[key] = value
    return merged


# =============================================================================
# Presence Rules
# =============================================================================

def check_required(values: Mapping[str, Any], required: Iterable[str]) -> List[ValidationIssue]:
    """Every required field must carry a non-empty value."""
    issues = []
    for field_name in required:
        if is_empty(values.get(field_name)):
            issues.append(ValidationIssue(
                code=ReasonCode.MISSING_REQUIRED_FIELD,
                field=field_name,
                message=f"Missing required field: {field_name}",
            ))
    return issues


def check_name_or_contact(values: Mapping[str, Any]) -> List[ValidationIssue]:
    """Leads and contacts need a name (first/last/full) or a way to reach them."""
    has_name = any(not is_empty(values.get(f)) for f in ("firstName", "lastName", "name"))
    has_contact = any(not is_empty(values.get(f)) for f in ("email", "phone"))
    if has_name or has_contact:
        return []
    return [ValidationIssue(
        code=ReasonCode.MISSING_REQUIRED_FIELD,
        field="name",
        message="Record needs firstName, lastName or name, or an email or phone",
    )]


# =============================================================================
# Semantic Rules
# =============================================================================

def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value.strip()))


def is_valid_phone(value: Any) -> bool:
    digits = re.sub(r"\D", "", str(value))
    return PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS


def is_valid_url(value: Any) -> bool:
    """True if the value parses as an http(s) URL with a host."""
    if not isinstance(value, str):
        return False
    try:
        _url_adapter.validate_python(value.strip())
    except ValidationError:
        return False
    return True


def check_email(fields: Mapping[str, Any], field_name: str = "email", fatal: bool = False) -> List[ValidationIssue]:
    value = fields.get(field_name)
    if is_empty(value) or is_valid_email(value):
        return []
    return [ValidationIssue(ReasonCode.INVALID_EMAIL, field_name, f"Invalid email: {value}", fatal)]


def check_phones(fields: Mapping[str, Any], field_names: Iterable[str], fatal: bool = False) -> List[ValidationIssue]:
    issues = []
    for field_name in field_names:
        value = fields.get(field_name)
        if not is_empty(value) and not is_valid_phone(value):
            issues.append(ValidationIssue(
                ReasonCode.INVALID_PHONE, field_name, f"Invalid phone number for {field_name}: {value}", fatal,
            ))
    return issues


def check_url(fields: Mapping[str, Any], field_name: str = "website") -> List[ValidationIssue]:
    value = fields.get(field_name)
    if is_empty(value) or is_valid_url(value):
        return []
    return [ValidationIssue(ReasonCode.INVALID_URL, field_name, f"Invalid URL: {value}")]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def check_range(
    fields: Mapping[str, Any],
    field_name: str,
    minimum: Optional[float] = None,
    maximum: Optional[float] = None,
    integer: bool = False,
) -> List[ValidationIssue]:
    """A present numeric field must be a number within [minimum, maximum]."""
    value = fields.get(field_name)
    if is_empty(value):
        return []

    ok = _is_number(value)
    if ok and integer:
        ok = isinstance(value, int) or float(value).is_integer()
    if ok and minimum is not None and value < minimum:
        ok = False
    if ok and maximum is not None and value > maximum:
        ok = False
    if ok:
        return []

    bounds = f"[{minimum if minimum is not None else '-inf'}, {maximum if maximum is not None else 'inf'}]"
    return [ValidationIssue(
        ReasonCode.INVALID_NUMERIC_RANGE, field_name, f"{field_name}={value!r} outside {bounds}",
    )]


def check_dates(fields: Mapping[str, Any], field_names: Iterable[str], fatal: bool = True) -> List[ValidationIssue]:
    issues = []
    for field_name in field_names:
        value = fields.get(field_name)
        if not is_empty(value) and not is_parseable_date(value):
            issues.append(ValidationIssue(
                ReasonCode.INVALID_DATE, field_name, f"Unparseable date for {field_name}: {value}", fatal,
            ))
    return issues


# =============================================================================
# Per-Type Rule Sets
# =============================================================================

def validate_person(fields: Mapping[str, Any], values: Mapping[str, Any]) -> List[ValidationIssue]:
    """Lead and Contact."""
    issues = check_name_or_contact(values)
    issues += check_email(fields)
    issues += check_phones(fields, ("phone", "mobilePhone", "homePhone"))
    return issues


def validate_account(fields: Mapping[str, Any], values: Mapping[str, Any]) -> List[ValidationIssue]:
    issues = check_url(fields, "website")
    issues += check_range(fields, "numberOfEmployees", minimum=0, integer=True)
    return issues


def validate_opportunity(fields: Mapping[str, Any], values: Mapping[str, Any]) -> List[ValidationIssue]:
    issues = check_range(fields, "amount", minimum=0)
    issues += check_range(fields, "probability", minimum=0, maximum=100)
    issues += check_dates(fields, ("closeDate",))
    return issues


def validate_task(fields: Mapping[str, Any], values: Mapping[str, Any]) -> List[ValidationIssue]:
    return check_dates(fields, ("activityDate", "dueDate", "reminderDateTime"), fatal=False)
