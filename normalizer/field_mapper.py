"""Field alias mapping.

Renames raw scraped keys to the canonical field names of their object type.
Raw keys arrive in whatever form the page layout produced ("Lead Source",
"lead_source", "LeadSource"), so every key is normalized before lookup:

    "Lead Source"       → "lead_source"  → leadSource
    "Billing-Street"    → "billing_street" → billingStreet
    "Custom Score (%)"  → "custom_score"  → (unmapped, kept as "Custom Score (%)")

Unmapped keys pass through verbatim so custom fields survive. The few that
would collide with record metadata ("createdAt", "updatedAt", "objectType",
"lastSource") are prefixed with "custom_".
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.models.canonical import PLAIN_METADATA_KEYS, ObjectType, RawRecord
from normalizer.coercers import is_empty
from normalizer.object_types import OBJECT_TYPE_CONFIGS, get_config


_SEPARATOR_RUN = re.compile(r"[\s\-./]+")
_INVALID_CHARS = re.compile(r"[^a-z0-9_]")
_UNDERSCORE_RUN = re.compile(r"_+")

# Prefix for pass-through keys that would shadow record metadata on export
RESERVED_KEY_PREFIX = "custom_"


def normalize_key(key: Any) -> str:
    """Normalize a raw field key for alias lookup.

    Lower-cases and trims, turns whitespace/"-"/"."/"/" runs into "_",
    drops any other character outside [a-z0-9_], collapses repeated "_"
    and strips leading/trailing "_".

    Examples:
        >>> normalize_key("  Lead Source ")
        'lead_source'
        >>> normalize_key("Mailing Zip/Postal Code")
        'mailing_zip_postal_code'
        >>> normalize_key("accountName")
        'accountname'
    """
    text = _SEPARATOR_RUN.sub("_", str(key).strip().lower())
    text = _INVALID_CHARS.sub("", text)
    return _UNDERSCORE_RUN.sub("_", text).strip("_")


@dataclass
class MappingResult:
    """Result of mapping one raw record.

    Attributes:
        object_type: Type the record was mapped as
        fields: Canonical field map, "id" first then keys in sorted order
        unmapped_keys: Raw keys that matched no alias (passed through)
        renamed: Raw key → output key for every mapped key that won its slot
            and every pass-through key that had to be prefixed
    """
    object_type: ObjectType
    fields: Dict[str, Any]
    unmapped_keys: List[str] = field(default_factory=list)
    renamed: Dict[str, str] = field(default_factory=dict)

    @property
    def record_id(self) -> Optional[str]:
        return self.fields.get("id")


class FieldMapper:
    """Per-object-type alias table.

    Seeded from the object-type dispatch table; callers can add aliases at
    runtime or load them from JSON. Mapping is deterministic and independent
    of raw key order.
    """

    def __init__(self, extra_aliases: Optional[Dict[Any, Dict[str, str]]] = None):
        """Initialize the mapper.

        Args:
            extra_aliases: Optional {object type: {raw alias: canonical key}}
        """
        self._aliases: Dict[ObjectType, Dict[str, str]] = {t: {} for t in ObjectType}
        self._canonical_spellings: Dict[ObjectType, Dict[str, str]] = {t: {} for t in ObjectType}

        for object_type, config in OBJECT_TYPE_CONFIGS.items():
            for alias, canonical in config.field_mappings.items():
                self.add_alias(object_type, alias, canonical)

        for object_type, aliases in (extra_aliases or {}).items():
            for alias, canonical in aliases.items():
                self.add_alias(object_type, alias, canonical)

    def add_alias(self, object_type: Any, alias: str, canonical: str) -> None:
        """Register `alias` (any spelling) as a name for `canonical`."""
        object_type = ObjectType.parse(object_type)
        self._aliases[object_type][normalize_key(alias)] = canonical
        self._canonical_spellings[object_type].setdefault(normalize_key(canonical), canonical)

    def resolve_key(self, object_type: Any, raw_key: str) -> Optional[str]:
        """Canonical name for a raw key, or None if it is unmapped.

        Explicit aliases take precedence over a canonical name's own
        normalized spelling.
        """
        object_type = ObjectType.parse(object_type)
        key = normalize_key(raw_key)
        if not key:
            return None
        if key in self._aliases[object_type]:
            return self._aliases[object_type][key]
        return self._canonical_spellings[object_type].get(key)

    def map(self, raw: RawRecord) -> MappingResult:
        """Map a raw record to canonical field names.

        When several raw keys resolve to the same canonical key, the raw
        key already spelled canonically wins if it carries a value;
        otherwise the lexicographically smallest raw key carrying a
        non-empty value wins.

        `raw.record_id`, when set, supplies the id and overrides any id key.
        Composite fields are derived after renaming.
        """
        object_type = raw.object_type
        config = get_config(object_type)

        candidates: Dict[str, List[str]] = {}
        unmapped: List[str] = []
        for raw_key in raw.fields:
            canonical = self.resolve_key(object_type, raw_key)
            if canonical is None:
                unmapped.append(raw_key)
            else:
                candidates.setdefault(canonical, []).append(raw_key)

        fields: Dict[str, Any] = {}
        renamed: Dict[str, str] = {}
        for canonical, raw_keys in candidates.items():
            winner = self._pick_winner(canonical, raw_keys, raw.fields)
            fields[canonical] = raw.fields[winner]
            renamed[winner] = canonical

        reserved = [k for k in unmapped if k in PLAIN_METADATA_KEYS]
        for raw_key in unmapped:
            if raw_key not in PLAIN_METADATA_KEYS:
                fields.setdefault(raw_key, raw.fields[raw_key])
        for raw_key in reserved:
            renamed[raw_key] = RESERVED_KEY_PREFIX + raw_key
            fields.setdefault(RESERVED_KEY_PREFIX + raw_key, raw.fields[raw_key])

        if raw.record_id is not None:
            fields["id"] = raw.record_id
        record_id = _clean_id(fields.pop("id", None))
        if record_id is not None:
            fields["id"] = record_id

        fields = config.derive(fields)

        return MappingResult(
            object_type=object_type,
            fields=_ordered(fields),
            unmapped_keys=sorted(unmapped),
            renamed=renamed,
        )

    @staticmethod
    def _pick_winner(canonical: str, raw_keys: List[str], values: Dict[str, Any]) -> str:
        filled = sorted(k for k in raw_keys if not is_empty(values[k]))
        if canonical in filled:
            return canonical
        if filled:
            return filled[0]
        return canonical if canonical in raw_keys else min(raw_keys)

    def load_aliases_from_json(self, path: Path) -> int:
        """Load extra aliases from a JSON file.

        Expected format:
        {
            "aliases": {
                "Lead": {"Lead Owner Alias": "ownerName"},
                "Opportunity": {"Deal Size": "amount"}
            }
        }

        Returns:
            Number of aliases loaded

        Raises:
            ValueError: If a section names an unknown object type
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        count = 0
        for type_tag, aliases in data.get("aliases", {}).items():
            for alias, canonical in aliases.items():
                self.add_alias(type_tag, alias, canonical)
                count += 1
        return count

    def get_aliases(self, object_type: Any) -> Dict[str, str]:
        """Normalized alias → canonical key for one type."""
        return dict(self._aliases[ObjectType.parse(object_type)])

    def get_stats(self) -> Dict[str, int]:
        """Get count of aliases by object type."""
        return {t.value: len(aliases) for t, aliases in self._aliases.items()}


def _clean_id(value: Any) -> Optional[str]:
    """Ids become stripped strings; empty ids count as missing."""
    if is_empty(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _ordered(fields: Dict[str, Any]) -> Dict[str, Any]:
    ordered = {"id": fields["id"]} if "id" in fields else {}
    for key in sorted(k for k in fields if k != "id"):
        ordered[key] = fields[key]
    return ordered
