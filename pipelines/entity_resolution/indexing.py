"""
Vector Index Writes.

Responsibilities:
- Build index metadata for a stored entity.
- Add, refresh and remove entity vectors.

Non-Responsibilities:
- No resolution decisions.

Invariant:
Index write failures are logged and reported as False; the relational
store stays authoritative.
"""

from typing import Any, Dict, Optional, Sequence

from cydex.clock import utcnow
from cydex.logger import get_logger, StructuredLogger
from cydex.schema import entity_record


def index_metadata(entity) -> Dict[str, Any]:
    record = entity_record(entity)
    return {
        "agency": record.get("agency") or "",
        "office_name": record.get("office_name") or "",
        "role_type": record.get("role_type") or "",
        "city": record.get("city") or "",
        "state": record.get("state") or "",
        "address": record.get("address") or "",
        "website": record.get("website") or "",
        "phone": record.get("phone") or "",
        "created_at": utcnow().isoformat(),
    }


class IndexWriter:
    def __init__(self, vector_index, embedder, logger: Optional[StructuredLogger] = None):
        self.vector_index = vector_index
        self.embedder = embedder
        self.logger = logger or get_logger()

    def add(self, entity, vector: Optional[Sequence[float]] = None) -> bool:
        """Upsert an entity's vector; embeds it when no vector is given."""
        if vector is None:
            vector = self.embedder.embed_entity(entity_record(entity))
        try:
            self.vector_index.upsert([{
                "id": entity.id,
                "values": list(vector),
                "metadata": index_metadata(entity),
            }])
        except Exception as e:
            self.logger.error("Failed to add entity to index", entity_id=entity.id, error=str(e))
            return False
        self.logger.debug("Added entity to index", entity_id=entity.id)
        return True

    def refresh(self, entity) -> bool:
        """
        Replace an entity's vector and metadata with its current state.
        Keeps the existing entry when no real embedding is available.
        """
        vector = self.embedder.embed_entity(entity_record(entity))
        if not any(vector):
            self.logger.warning("No embedding for index refresh, keeping entry", entity_id=entity.id)
            return False
        if not self.remove(entity.id):
            return False
        return self.add(entity, vector=vector)

    def remove(self, entity_id: str) -> bool:
        try:
            self.vector_index.delete_by_ids([entity_id])
        except Exception as e:
            self.logger.error("Failed to remove entity from index", entity_id=entity_id, error=str(e))
            return False
        return True
