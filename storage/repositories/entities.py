"""
Entities Repository.

Responsibilities:
- Point lookup and upsert for the entities table.
- One commit per write.

Non-Responsibilities:
- No duplicate detection.
- No merge policy.

Invariant:
Upsert is keyed on the deterministic entity id; writing the same id
twice leaves a single row.
"""

from typing import Any, Dict, List, Optional

from cydex.database import Entity


class EntityRepository:
    def __init__(self, session):
        self.session = session

    def get(self, entity_id: str) -> Optional[Entity]:
        return self.session.get(Entity, entity_id)

    def list_all(self) -> List[Entity]:
        return self.session.query(Entity).order_by(Entity.id).all()

    def upsert(self, entity: Entity) -> Entity:
        """Insert or replace an entity row."""
        existing = self.get(entity.id)
        if existing is not None:
            # Replace keeps the original creation time
            entity.created_at = existing.created_at
        stored = self.session.merge(entity)
        self.session.commit()
        return stored

    def update_fields(self, entity_id: str, values: Dict[str, Any]) -> Optional[Entity]:
        entity = self.get(entity_id)
        if entity is None:
            return None
        for key, value in values.items():
            setattr(entity, key, value)
        self.session.commit()
        return entity

    def count(self) -> int:
        return self.session.query(Entity).count()
