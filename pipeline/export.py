"""Record export for display and download.

export_records() produces a stable-ordered list of plain dicts for one
object type; to_csv() and to_json() serialize such a list.

CSV rules:
    - Header = union of keys across records, in first-seen order
    - Values containing a comma, quote or newline are quoted, with embedded
      quotes doubled
    - None → empty cell, booleans → true/false, nested values → JSON
"""

import csv
import io
import json
from pathlib import Path
from typing import Any, Dict, List, Sequence

from core.models.canonical import CanonicalStore, ObjectType, snapshot_records

EXPORT_FORMATS = ("csv", "json")


def export_records(store: CanonicalStore, object_type: Any) -> List[Dict[str, Any]]:
    """Plain records of one type, ordered by (createdAt, id)."""
    object_type = ObjectType.parse(object_type)
    records = sorted(store.records_for(object_type).values(), key=lambda r: (r.created_at, r.id))
    return snapshot_records(records)


def csv_header(records: Sequence[Dict[str, Any]]) -> List[str]:
    header: List[str] = []
    seen = set()
    for record in records:
        for key in record:
            if key not in seen:
                seen.add(key)
                header.append(key)
    return header


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def to_csv(records: Sequence[Dict[str, Any]]) -> str:
    """Serialize plain records as CSV text (no trailing newline)."""
    if not records:
        return ""
    header = csv_header(records)

    rows = [header] + [[_cell(record.get(key)) for key in header] for record in records]

    # A "\r\n" terminator makes the writer quote cells holding either "\r"
    # or "\n"; rows are then joined with "\n".
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    lines = []
    for row in rows:
        buffer.seek(0)
        buffer.truncate()
        writer.writerow(row)
        lines.append(buffer.getvalue()[:-2])
    return "\n".join(lines)


def to_json(records: Sequence[Dict[str, Any]]) -> str:
    """Direct structural dump of the records."""
    return json.dumps(list(records), indent=2, default=str)


def serialize(records: Sequence[Dict[str, Any]], fmt: str) -> str:
    """Serialize in "csv" or "json".

    Raises:
        ValueError: For any other format
    """
    fmt = fmt.lower()
    if fmt == "csv":
        return to_csv(records)
    if fmt == "json":
        return to_json(records)
    raise ValueError(f"Unsupported export format: {fmt} (expected one of {', '.join(EXPORT_FORMATS)})")


def write_export(records: Sequence[Dict[str, Any]], fmt: str, path: Path) -> Path:
    """Serialize records and write them to `path`."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(serialize(records, fmt) + "\n", encoding="utf-8")
    return path
