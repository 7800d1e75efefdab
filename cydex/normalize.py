import re
from typing import Optional
from urllib.parse import urlparse

ENTITY_ID_NAME_LENGTH = 20

_NON_ALNUM_SPACE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_field(value) -> Optional[str]:
    """Lowercase and trim a field for comparison. Non-strings and blanks give None."""
    if not isinstance(value, str):
        return None
    value = value.strip().lower()
    return value or None


def derive_entity_id(agency: str, office_name: str) -> str:
    """
    Deterministic entity id from agency and office name.

    The office name is lowercased, stripped of punctuation, hyphenated and
    cut to ENTITY_ID_NAME_LENGTH characters. Two offices of the same agency
    sharing that prefix get the same id.
    """
    clean = _NON_ALNUM_SPACE.sub("", office_name.strip().lower())
    clean = _WHITESPACE.sub("-", clean.strip())
    clean = clean[:ENTITY_ID_NAME_LENGTH]
    return f"{agency.strip().lower()}-{clean}"


def domain_of(url: str) -> str:
    return urlparse(url).hostname or ""
