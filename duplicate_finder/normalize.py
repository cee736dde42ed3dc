"""String Similarity Utilities.

Edit-distance based similarity used to compare field values of two
records. Values are compared case-insensitively after trimming:

    "John Smith" vs "Jon Smith"  → distance 1, similarity 0.9
    "js@x.com"   vs "JS@x.com "  → similarity 1.0
"""

from typing import Any


def normalize_value(value: Any) -> str:
    """Lower-cased, trimmed string form of a field value ("" for None)."""
    if value is None:
        return ""
    return str(value).strip().lower()


def levenshtein_distance(s1: str, s2: str) -> int:
    """Minimum number of single-character edits turning s1 into s2.

    Two-row dynamic programming; O(len(s1) * len(s2)) time.

    Examples:
        >>> levenshtein_distance("kitten", "sitting")
        3
        >>> levenshtein_distance("", "abc")
        3
    """
    if s1 == s2:
        return 0
    if len(s1) < len(s2):
        s1, s2 = s2, s1
    if not s2:
        return len(s1)

    previous = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1, start=1):
        current = [i]
        for j, c2 in enumerate(s2, start=1):
            substitution = previous[j - 1] + (c1 != c2)
            insertion = current[j - 1] + 1
            deletion = previous[j] + 1
            current.append(min(substitution, insertion, deletion))
        previous = current
    return previous[-1]


def string_similarity(s1: str, s2: str) -> float:
    """Normalized edit similarity: (maxLen - distance) / maxLen.

    Symmetric; 1.0 for identical strings (including two empty strings).

    Examples:
        >>> string_similarity("john smith", "jon smith")
        0.9
    """
    longer = max(len(s1), len(s2))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(s1, s2)) / longer
