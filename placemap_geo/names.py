"""
Place name normalization for fuzzy "same place" checks.

"스타벅스 강남점" and "스타벅스" should match; spacing, punctuation and branch
suffixes are written inconsistently across map providers.
"""

from __future__ import annotations

import re

# Anything that is not an ASCII word character or a Hangul syllable
_STRIP_RE = re.compile(r"[^0-9a-z_가-힣]")


def normalize_name(name: str) -> str:
    """Lowercase, then drop whitespace and everything outside [0-9a-z_] and 가-힣."""
    return _STRIP_RE.sub("", name.lower())


def is_similar(a: str, b: str) -> bool:
    """
    True if the normalized names are equal or one contains the other.
    A heuristic gate in front of a human confirmation, not a final answer.
    """
    norm_a = normalize_name(a)
    norm_b = normalize_name(b)
    if norm_a == norm_b:
        return True
    # A name made only of punctuation would otherwise be "contained" in every name
    if not norm_a or not norm_b:
        return False
    return norm_a in norm_b or norm_b in norm_a
