"""
Scoring Logic for Entity Resolution (v1).

Responsibilities:
- Classify a candidate as skip / merge / create from its vector
  similarity and the number of corroborating fields.
- Pick the governing decision from a ranked candidate list.

Non-Responsibilities:
- No database access.
- No candidate selection.

Invariant:
Given identical inputs, this module must always return the same action.
"""

from typing import List

from cydex.models import DedupeMatch

SKIP_SIMILARITY = 0.95
SKIP_MIN_FIELDS = 3
MERGE_SIMILARITY = 0.85
MERGE_MIN_FIELDS = 2


def classify_match(similarity: float, matched_field_count: int) -> str:
    if similarity > SKIP_SIMILARITY and matched_field_count >= SKIP_MIN_FIELDS:
        return "skip"
    if similarity > MERGE_SIMILARITY and matched_field_count >= MERGE_MIN_FIELDS:
        return "merge"
    return "create"


def rank_matches(matches: List[DedupeMatch]) -> List[DedupeMatch]:
    """Sort by similarity, best first. Ties keep their incoming order."""
    return sorted(matches, key=lambda m: m.similarity, reverse=True)
