"""
Similarity scoring — normalized Levenshtein distance used to tolerate
small drift between a hunk's expected lines and the file on disk.
"""

from __future__ import annotations


def edit_distance(s1: str, s2: str) -> int:
    """Return the Levenshtein distance between two strings."""
    if len(s1) < len(s2):
        return edit_distance(s2, s1)

    if len(s2) == 0:
        return len(s1)

    previous_row = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def similarity(expected: str, actual: str) -> float:
    """Score two strings in ``[0, 1]``; identical strings score ``1.0``.

    Two empty strings are a match.
    """
    longest = max(len(expected), len(actual))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(expected, actual) / longest
