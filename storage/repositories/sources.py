"""
Sources Repository.

Responsibilities:
- Lookup, insert and bookkeeping updates for the sources table.
- One commit per write.

Non-Responsibilities:
- No fetching.
- No rate-limit decisions.

Invariant:
Sources are never deleted by the scraper.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from cydex.clock import utcnow
from cydex.database import Source
from cydex.schema import normalize_parse_type

SOURCE_FIELDS = ("agency", "url", "parse_type", "selector", "territory", "rate_limit_rps", "enabled")


class SourceRepository:
    def __init__(self, session):
        self.session = session

    def get(self, source_id: str) -> Optional[Source]:
        return self.session.get(Source, source_id)

    def get_enabled(self, source_id: str) -> Optional[Source]:
        source = self.get(source_id)
        if source is None or not source.enabled:
            return None
        return source

    def list_enabled(self) -> List[Source]:
        return self.session.query(Source).filter_by(enabled=True).order_by(Source.id).all()

    def list_all(self) -> List[Source]:
        return self.session.query(Source).order_by(Source.id).all()

    def upsert(self, data: Dict[str, Any]) -> str:
        """
        Insert a source or update its configuration fields.

        Returns:
            "new" or "updated"
        """
        values = {k: data[k] for k in SOURCE_FIELDS if k in data}
        if "parse_type" in values:
            values["parse_type"] = normalize_parse_type(values["parse_type"])

        existing = self.get(data["id"])
        if existing is None:
            self.session.add(Source(id=data["id"], **values))
            status = "new"
        else:
            for key, value in values.items():
                setattr(existing, key, value)
            existing.updated_at = utcnow()
            status = "updated"
        self.session.commit()
        return status

    def record_fetch(
        self,
        source_id: str,
        status_code: int,
        content_hash: str,
        fetched_at: datetime,
    ) -> None:
        """Write last-seen status for a source after a scrape attempt."""
        source = self.get(source_id)
        if source is None:
            return
        source.last_status = status_code
        source.last_hash = content_hash
        source.last_fetch = fetched_at
        source.updated_at = utcnow()
        self.session.commit()
