"""Type Coercers.

Pure value converters applied to mapped fields. Every coercer is total:
it never raises, and on failure returns either the original value or None
so that no scraped information is silently lost.

Examples:
    parse_currency("$1,250.00")   → 1250.0
    parse_date("01/15/2024")      → "2024-01-15T00:00:00.000Z"
    parse_percentage("75%")       → 75.0
    clean_phone("(415) 555-0100") → "+14155550100"
    clean_email(" Ann@Acme.COM ") → "ann@acme.com"
    parse_integer("1,200 people") → 1200
"""

import math
import re
from datetime import date, datetime, timezone
from typing import Any, Optional


_CURRENCY_STRIP = re.compile(r"[^0-9.\-]")
_PERCENT_STRIP = re.compile(r"[^0-9.]")
_PHONE_STRIP = re.compile(r"[^0-9+]")
_NON_DIGITS = re.compile(r"[^0-9]")

# Layouts seen in list, detail and kanban views, tried in order
DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y, %I:%M %p",
    "%m/%d/%Y %H:%M",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%Y/%m/%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%b %d, %Y %I:%M %p",
    "%d %b %Y",
    "%d %B %Y",
)


def is_empty(value: Any) -> bool:
    """None, whitespace-only strings and empty containers carry no information."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _to_float(text: str) -> Optional[float]:
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _finite(value: Any) -> Optional[float]:
    """NaN, infinities and ints too large for a float carry no usable number."""
    try:
        value = float(value)
    except OverflowError:
        return None
    return value if math.isfinite(value) else None


def parse_currency(value: Any) -> Optional[float]:
    """Parse a currency amount.

    Strips everything except digits, "." and "-" and parses the rest as a
    float.

    Returns:
        The amount, or None if nothing parseable remains

    Examples:
        >>> parse_currency("$1,000")
        1000.0
        >>> parse_currency("USD -12.5")
        -12.5
        >>> parse_currency("n/a") is None
        True
    """
    if isinstance(value, bool) or is_empty(value):
        return None
    if isinstance(value, (int, float)):
        return _finite(value)
    return _to_float(_CURRENCY_STRIP.sub("", str(value)))


def to_iso(moment: datetime) -> str:
    """Render a datetime as a UTC ISO-8601 string with millisecond precision."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a value to an absolute (UTC) timestamp, or None.

    Accepts datetime/date objects, epoch milliseconds, ISO-8601 strings
    (with or without "Z"/offset) and the layouts in DATE_FORMATS. Naive
    values are taken as UTC.
    """
    if isinstance(value, bool) or is_empty(value):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    text = str(value).strip()
    iso_text = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.fromisoformat(iso_text)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def parse_date(value: Any) -> Any:
    """Parse a date/time to its ISO-8601 form.

    Never returns None for a non-empty input: an unparseable value is
    returned unchanged so the scraped text is preserved.

    Examples:
        >>> parse_date("2024-03-01")
        '2024-03-01T00:00:00.000Z'
        >>> parse_date("next Tuesday")
        'next Tuesday'
    """
    parsed = parse_datetime(value)
    if parsed is None:
        return value
    return to_iso(parsed)


def is_parseable_date(value: Any) -> bool:
    """True if the value parses to an absolute timestamp."""
    return parse_datetime(value) is not None


def parse_percentage(value: Any) -> Optional[float]:
    """Parse a percentage.

    Strips everything except digits and "."; no clamping, so out-of-range
    values reach the validator unchanged.

    Examples:
        >>> parse_percentage("75%")
        75.0
        >>> parse_percentage("150 %")
        150.0
    """
    if isinstance(value, bool) or is_empty(value):
        return None
    if isinstance(value, (int, float)):
        return _finite(value)
    return _to_float(_PERCENT_STRIP.sub("", str(value)))


def clean_phone(value: Any) -> Any:
    """Clean a phone number to digits and "+".

    A bare 10-digit number gets the US "+1" prefix. If cleaning removes
    everything, the original value is returned.

    Examples:
        >>> clean_phone("(415) 555-0100")
        '+14155550100'
        >>> clean_phone("+44 20 7946 0958")
        '+442079460958'
    """
    if is_empty(value):
        return value
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    cleaned = _PHONE_STRIP.sub("", str(value))
    if not cleaned:
        return value
    if not cleaned.startswith("+") and len(cleaned) == 10 and cleaned.isdigit():
        return f"+1{cleaned}"
    return cleaned


def clean_email(value: Any) -> Any:
    """Lower-case and trim an email address. Validity is judged later."""
    if value is None:
        return value
    return str(value).strip().lower()


def parse_integer(value: Any) -> Optional[int]:
    """Parse an integer by stripping every non-digit character.

    Examples:
        >>> parse_integer("1,200")
        1200
        >>> parse_integer("unknown") is None
        True
    """
    if isinstance(value, bool) or is_empty(value):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    digits = _NON_DIGITS.sub("", str(value))
    return int(digits) if digits else None


def parse_boolean(value: Any) -> Optional[bool]:
    """Parse checkbox-style values ("true", "yes", "1", "checked")."""
    if isinstance(value, bool):
        return value
    if is_empty(value):
        return None
    text = str(value).strip().lower()
    if text in ("true", "yes", "y", "1", "checked", "on"):
        return True
    if text in ("false", "no", "n", "0", "unchecked", "off"):
        return False
    return None


def clean_website(value: Any) -> Any:
    """Trim a website and prepend "https://" when it has no scheme."""
    if is_empty(value):
        return value
    url = str(value).strip()
    if not url.lower().startswith(("http://", "https://")):
        url = "https://" + url
    return url
