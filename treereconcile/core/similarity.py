"""
File name similarity.

Classic Levenshtein distance (insertions, deletions, substitutions; no
transpositions), computed by the Levenshtein package.
"""

from __future__ import annotations

import Levenshtein


def edit_distance(a: str, b: str) -> int:
    """Minimum number of single-character edits turning `a` into `b`."""
    return Levenshtein.distance(a, b)


def within_distance(a: str, b: str, limit: int) -> bool:
    """
    True if `edit_distance(a, b) <= limit`.

    The cutoff lets the library stop early once the limit is exceeded.
    """
    if limit < 0:
        return False
    if abs(len(a) - len(b)) > limit:
        return False
    return Levenshtein.distance(a, b, score_cutoff=limit) <= limit
