"""
Transient records passed between pipeline stages.

Only Entity, Source and Change rows are persisted (see database.py);
everything here lives for the duration of one scrape.
"""

from dataclasses import dataclass, field, fields, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

ROLE_TYPES = ("regional", "field", "resident", "sector", "lab")
EXTRACTION_METHODS = ("model", "pattern")
DEDUPE_ACTIONS = ("create", "merge", "skip")
CHANGE_TYPES = ("scraped", "merged", "updated")

# Aliases accepted from model output for coordinate fields
_FIELD_ALIASES = {"lat": "latitude", "lng": "longitude", "lon": "longitude"}
_FLOAT_FIELDS = {"latitude", "longitude"}
_LIST_FIELDS = {"sectors", "functions"}


@dataclass
class PartialEntity:
    """Office description as extracted; every field may still be missing."""

    id: Optional[str] = None
    agency: Optional[str] = None
    office_name: Optional[str] = None
    role_type: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    county_fips: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    sectors: Optional[List[str]] = None
    functions: Optional[List[str]] = None
    priority: Optional[int] = None
    last_verified: Optional[datetime] = None
    source_url: Optional[str] = None
    icon: Optional[str] = None
    icon_set: Optional[str] = None
    icon_src: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PartialEntity":
        """Build from loosely-typed data, dropping unknown keys and bad values."""
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, raw in data.items():
            name = _FIELD_ALIASES.get(key, key)
            if name not in known or raw is None:
                continue
            if name in _FLOAT_FIELDS:
                try:
                    values[name] = float(raw)
                except (TypeError, ValueError):
                    continue
            elif name in _LIST_FIELDS:
                if isinstance(raw, (list, tuple)):
                    values[name] = [str(v).strip() for v in raw if v is not None and str(v).strip()]
            elif name == "priority":
                try:
                    values[name] = int(raw)
                except (TypeError, ValueError):
                    continue
            elif name == "last_verified":
                if isinstance(raw, datetime):
                    values[name] = raw
            elif isinstance(raw, (str, int, float)):
                text = str(raw).strip()
                if text:
                    values[name] = text
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScrapedContent:
    """
    One successful fetch. Immutable once archived.

    `content` is the decoded text handed to extraction; `raw` holds the
    response bytes that are hashed and archived.
    """

    source_id: str
    url: str
    content: str
    content_type: str
    status_code: int
    hash: str
    timestamp: datetime
    raw: bytes = b""


@dataclass
class ExtractionResult:
    entities: List[PartialEntity]
    confidence: float
    method: str  # model | pattern
    raw_content: Optional[str] = None
    errors: List[str] = field(default_factory=list)


@dataclass
class DedupeMatch:
    entity_id: str
    similarity: float
    match_fields: List[str]
    action: str  # create | merge | skip


@dataclass
class ResolutionDecision:
    """Final verdict for one partial entity."""

    action: str
    matched_id: Optional[str] = None
    similarity: Optional[float] = None
    match_fields: List[str] = field(default_factory=list)
    embedding: Optional[List[float]] = None
