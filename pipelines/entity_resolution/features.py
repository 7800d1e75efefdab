"""
Feature Extraction for Entity Resolution.

Responsibilities:
- Compare individual fields of an incoming entity and a candidate.
- Fuzzy text comparison (containment after stop-word removal, normalized
  Levenshtein similarity for short values).

Non-Responsibilities:
- No weighting logic.
- No threshold logic on vector scores.
- No persistence.

Invariant:
Missing data must never be treated as a match. Comparisons are symmetric.
"""

import re
from typing import Any, Dict, List, Mapping

import jellyfish

from cydex.normalize import normalize_field

MATCH_FIELDS = ("office_name", "agency", "address", "city", "state", "phone", "website")

STOP_WORDS = ("the", "and", "of", "for", "in", "on", "at", "to", "a", "an")
LEVENSHTEIN_MAX_LENGTH = 50
LEVENSHTEIN_MIN_SIMILARITY = 0.8

_STOP_WORD_RE = re.compile(r"\b(?:" + "|".join(STOP_WORDS) + r")\b")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_SPACES_RE = re.compile(r"\s+")


def strip_noise(text: str) -> str:
    """Lowercase, drop stop words and punctuation, collapse whitespace."""
    text = _STOP_WORD_RE.sub("", text.lower())
    text = _PUNCTUATION_RE.sub("", text)
    return _SPACES_RE.sub(" ", text).strip()


def levenshtein_similarity(a: str, b: str) -> float:
    """1 - distance / max(len). Two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - jellyfish.levenshtein_distance(a, b) / longest


def is_similar_text(text1: str, text2: str) -> bool:
    """
    True if one value contains the other once noise is stripped, or if
    both are short and their normalized Levenshtein similarity exceeds 0.8.
    """
    if not text1 or not text2:
        return False

    norm1 = strip_noise(text1)
    norm2 = strip_noise(text2)
    if not norm1 or not norm2:
        return False

    if norm1 in norm2 or norm2 in norm1:
        return True

    if len(norm1) < LEVENSHTEIN_MAX_LENGTH and len(norm2) < LEVENSHTEIN_MAX_LENGTH:
        return levenshtein_similarity(norm1, norm2) > LEVENSHTEIN_MIN_SIMILARITY

    return False


def fields_match(value1: Any, value2: Any) -> bool:
    norm1 = normalize_field(value1)
    norm2 = normalize_field(value2)
    if norm1 is None or norm2 is None:
        return False
    return norm1 == norm2 or is_similar_text(norm1, norm2)


def matching_fields(entity: Mapping[str, Any], candidate: Mapping[str, Any]) -> List[str]:
    """Names of MATCH_FIELDS on which the two records agree."""
    return [f for f in MATCH_FIELDS if fields_match(entity.get(f), candidate.get(f))]


def embedding_text(entity: Dict[str, Any]) -> str:
    """Single text blob used to embed an entity; absent fields are skipped."""
    parts = [
        entity.get("office_name"),
        entity.get("agency"),
        entity.get("address"),
        entity.get("city"),
        entity.get("state"),
        entity.get("website"),
    ]
    return " ".join(str(p) for p in parts if p)
