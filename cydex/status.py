"""
Status report for sources and stored entities.

Summarises what the scraper has seen: how many sources are enabled,
their last fetch outcome, and how fresh the entity corpus is.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy import func

from .clock import utcnow
from .database import Entity, Source

RECENTLY_VERIFIED_DAYS = 7


def collect_status(session, now=None, days: int = RECENTLY_VERIFIED_DAYS) -> Dict[str, Any]:
    """
    Args:
        session: SQLAlchemy session
        now: Reference time (default: current UTC time)
        days: Window for counting recently verified entities

    Returns:
        {"sources": {...}, "entities": {...}, "timestamp": iso}
    """
    now = now or utcnow()
    cutoff = now - timedelta(days=days)

    sources = session.query(Source).order_by(Source.id).all()
    source_rows = [
        {
            "id": s.id,
            "agency": s.agency,
            "url": s.url,
            "enabled": bool(s.enabled),
            "last_status": s.last_status,
            "last_fetch": _iso(s.last_fetch),
        }
        for s in sources
    ]

    total_entities = session.query(func.count(Entity.id)).scalar() or 0
    recently_verified = (
        session.query(func.count(Entity.id)).filter(Entity.last_verified > cutoff).scalar() or 0
    )
    agencies = session.query(func.count(func.distinct(Entity.agency))).scalar() or 0

    return {
        "sources": {
            "total": len(source_rows),
            "enabled": sum(1 for s in source_rows if s["enabled"]),
            "data": source_rows,
        },
        "entities": {
            "total_entities": total_entities,
            "recently_verified": recently_verified,
            "agencies": agencies,
        },
        "timestamp": now.isoformat(),
    }


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None
