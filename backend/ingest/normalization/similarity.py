"""Edit-distance similarity between free-text game names."""
from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def normalize(name: str) -> str:
    return name.strip().lower()


def name_similarity(a: str, b: str) -> float:
    """
    Normalized Levenshtein similarity of two names, case-insensitive.

    1.0 means identical after trimming and lower-casing, 0.0 means nothing
    in common. Two empty strings are identical.
    """
    s1, s2 = normalize(a), normalize(b)
    if s1 == s2:
        return 1.0
    return Levenshtein.normalized_similarity(s1, s2)
