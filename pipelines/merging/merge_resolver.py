"""
Merge Resolution.

Responsibilities:
- Fold a new observation of an office into its stored record.
- Append a `merged` audit record naming the contributing source.

Non-Responsibilities:
- No duplicate detection.
- No index writes.

Invariant:
Existing non-empty values are never overwritten; a re-scrape can only
fill gaps. Verification timestamps are always refreshed.
"""

from typing import Any, Dict, List, Optional

from cydex.clock import utcnow
from cydex.logger import get_logger, StructuredLogger
from cydex.models import PartialEntity

IMPROVABLE_FIELDS = ("address", "phone", "email", "website", "latitude", "longitude")


def fill_gaps(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Values from incoming for improvable fields that are empty in existing."""
    adopted = {}
    for field in IMPROVABLE_FIELDS:
        if not existing.get(field) and incoming.get(field):
            adopted[field] = incoming[field]
    return adopted


class MergeResolver:
    def __init__(self, entities, changes, logger: Optional[StructuredLogger] = None):
        """
        Args:
            entities: EntityRepository
            changes: ChangeRepository
        """
        self.entities = entities
        self.changes = changes
        self.logger = logger or get_logger()

    def merge(self, new_entity: PartialEntity, existing_id: str) -> Optional[List[str]]:
        """
        Merge new_entity into the stored entity existing_id.

        Returns:
            Names of fields adopted from new_entity, or None when the
            stored entity does not exist (the merge is a no-op).
        """
        existing = self.entities.get(existing_id)
        if existing is None:
            self.logger.error(
                "Existing entity not found for merge",
                existing_id=existing_id,
                entity_id=new_entity.id,
            )
            return None

        current = {f: getattr(existing, f) for f in IMPROVABLE_FIELDS}
        adopted = fill_gaps(current, new_entity.to_dict())

        now = utcnow()
        self.entities.update_fields(existing_id, {**adopted, "last_verified": now, "updated_at": now})

        diff: Dict[str, Any] = {"merged_from": new_entity.source_url}
        if adopted:
            diff["fields"] = {f: {"old": current[f], "new": v} for f, v in adopted.items()}
        self.changes.append(
            entity_id=existing_id,
            change_type="merged",
            source_url=new_entity.source_url,
            diff=diff,
            ts=now,
        )

        self.logger.info(
            "Merged entity",
            existing_id=existing_id,
            entity_id=new_entity.id,
            adopted=sorted(adopted),
        )
        return sorted(adopted)
