from typing import Any, Dict, List
from urllib.parse import urlparse

from .clock import utcnow
from .database import Entity
from .errors import EntityValidationError
from .models import PartialEntity
from .taxonomy import DEFAULT_PRIORITY

PARSE_TYPES = ("html", "json", "pdf", "csv")
PARSE_TYPE_ALIASES = {"structured-text": "html", "text": "html"}
TERRITORIES = ("national", "regional", "state")

REQUIRED_ENTITY_FIELDS = ["id", "agency", "office_name", "role_type"]
REQUIRED_SOURCE_FIELDS = ["id", "agency", "url"]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _valid_url(v: str) -> bool:
    p = urlparse(v)
    return bool(p.scheme in ("http", "https") and p.netloc)


def missing_required_fields(partial: PartialEntity) -> List[str]:
    return [f for f in REQUIRED_ENTITY_FIELDS if not _is_non_empty_str(getattr(partial, f))]


def finalize_entity(partial: PartialEntity) -> Entity:
    """
    Convert a partial entity into a persistable Entity row.

    Applies defaults (empty sectors/functions, priority 5) and enforces
    required fields.

    Raises:
        EntityValidationError: If required fields are missing
    """
    missing = missing_required_fields(partial)
    if missing:
        raise EntityValidationError(f"Missing required fields: {', '.join(missing)}")

    now = utcnow()
    return Entity(
        id=partial.id,
        agency=partial.agency,
        office_name=partial.office_name,
        role_type=partial.role_type,
        address=partial.address,
        city=partial.city,
        state=partial.state,
        zip=partial.zip,
        latitude=partial.latitude,
        longitude=partial.longitude,
        county_fips=partial.county_fips,
        phone=partial.phone,
        email=partial.email,
        website=partial.website,
        sectors=list(partial.sectors or []),
        functions=list(partial.functions or []),
        priority=partial.priority if partial.priority is not None else DEFAULT_PRIORITY,
        last_verified=partial.last_verified or now,
        source_url=partial.source_url,
        icon=partial.icon,
        icon_set=partial.icon_set,
        icon_src=partial.icon_src,
        notes=partial.notes,
        created_at=now,
        updated_at=now,
    )


def entity_record(entity) -> Dict[str, Any]:
    """Plain dict view of a PartialEntity, an Entity row or a dict."""
    if isinstance(entity, dict):
        return entity
    if isinstance(entity, PartialEntity):
        return entity.to_dict()
    return {c.name: getattr(entity, c.name) for c in entity.__table__.columns}


def validate_source(data: Dict[str, Any]) -> List[str]:
    """Validate a source configuration dict (as loaded from a seed file)."""
    errors: List[str] = []

    for f in REQUIRED_SOURCE_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    if _is_non_empty_str(data.get("url")) and not _valid_url(data["url"]):
        errors.append("Field 'url' must be a valid absolute URL (scheme + host)")

    parse_type = data.get("parse_type", "html")
    if PARSE_TYPE_ALIASES.get(parse_type, parse_type) not in PARSE_TYPES:
        errors.append(f"Field 'parse_type' must be one of {', '.join(PARSE_TYPES)}")

    if data.get("territory", "national") not in TERRITORIES:
        errors.append(f"Field 'territory' must be one of {', '.join(TERRITORIES)}")

    rps = data.get("rate_limit_rps", 1.0)
    if isinstance(rps, bool) or not isinstance(rps, (int, float)) or rps <= 0:
        errors.append("Field 'rate_limit_rps' must be a positive number")

    return errors


def normalize_parse_type(parse_type: str) -> str:
    return PARSE_TYPE_ALIASES.get(parse_type, parse_type)
