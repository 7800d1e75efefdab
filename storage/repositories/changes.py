"""
Changes Repository.

Responsibilities:
- Append audit records to the changes table.

Invariant:
Change records are never updated or deleted.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from cydex.clock import utcnow
from cydex.database import Change
from cydex.models import CHANGE_TYPES


class ChangeRepository:
    def __init__(self, session):
        self.session = session

    def append(
        self,
        entity_id: str,
        change_type: str,
        source_url: Optional[str] = None,
        diff: Optional[Dict[str, Any]] = None,
        ts: Optional[datetime] = None,
    ) -> Change:
        if change_type not in CHANGE_TYPES:
            raise ValueError(f"Unknown change type: {change_type}")
        change = Change(
            id=str(uuid.uuid4()),
            entity_id=entity_id,
            change_type=change_type,
            diff=diff,
            source_url=source_url,
            ts=ts or utcnow(),
        )
        self.session.add(change)
        self.session.commit()
        return change

    def for_entity(self, entity_id: str) -> List[Change]:
        return (
            self.session.query(Change)
            .filter_by(entity_id=entity_id)
            .order_by(Change.ts)
            .all()
        )
