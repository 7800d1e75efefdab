"""
Entity Embedding.

Responsibilities:
- Turn an entity's salient text fields into a fixed-length vector.
- Fall back to an all-zero vector when the embedding service fails.

Non-Responsibilities:
- No index access.
- No scoring.

Invariant:
The returned vector always has exactly `dimension` components.
"""

from typing import Any, Dict, List, Optional

from cydex.logger import get_logger, StructuredLogger

from .features import embedding_text

DEFAULT_DIMENSION = 768


class Embedder:
    def __init__(self, model_client, dimension: int = DEFAULT_DIMENSION, logger: Optional[StructuredLogger] = None):
        self.model_client = model_client
        self.dimension = dimension
        self.logger = logger or get_logger()

    def zero_vector(self) -> List[float]:
        return [0.0] * self.dimension

    def embed_entity(self, entity: Dict[str, Any]) -> List[float]:
        """
        Embed an entity dict. A zero vector scores 0.0 against every
        indexed entity, so failures bias resolution toward `create`.
        """
        text = embedding_text(entity)
        try:
            vector = self.model_client.embed(text)
        except Exception as e:
            self.logger.error("Failed to generate embedding", entity_id=entity.get("id"), error=str(e))
            return self.zero_vector()

        if len(vector) != self.dimension:
            self.logger.error(
                "Embedding has unexpected dimension",
                entity_id=entity.get("id"),
                expected=self.dimension,
                actual=len(vector),
            )
            return self.zero_vector()
        return list(vector)
