"""
Entity Resolution Orchestrator.

Responsibilities:
- Embed the incoming entity.
- Coordinate candidate selection and field corroboration.
- Apply decision thresholds and return an explainable decision.

Non-Responsibilities:
- No database access.
- No index writes.
- No merging.

Invariant:
Only the best-scoring candidate governs the decision; with no candidate
above the threshold the decision is `create`.
"""

from typing import List, Optional, Sequence

from cydex.logger import get_logger, StructuredLogger
from cydex.models import DedupeMatch, PartialEntity, ResolutionDecision
from cydex.schema import entity_record

from .candidate_selector import DEFAULT_THRESHOLD, select_candidates
from .features import matching_fields
from .scoring import classify_match, rank_matches


class SimilarityResolver:
    def __init__(
        self,
        embedder,
        vector_index,
        threshold: float = DEFAULT_THRESHOLD,
        logger: Optional[StructuredLogger] = None,
    ):
        self.embedder = embedder
        self.vector_index = vector_index
        self.threshold = threshold
        self.logger = logger or get_logger()

    def find_candidates(
        self,
        entity: PartialEntity,
        threshold: Optional[float] = None,
        vector: Optional[Sequence[float]] = None,
    ) -> List[DedupeMatch]:
        """
        Candidate matches for an entity, best first.

        Args:
            entity: Incoming partial entity
            threshold: Minimum vector similarity (default: resolver threshold)
            vector: Precomputed embedding; computed when omitted
        """
        threshold = self.threshold if threshold is None else threshold
        record = entity_record(entity)
        if vector is None:
            vector = self.embedder.embed_entity(record)

        candidates = []
        for match in select_candidates(self.vector_index, vector, threshold, logger=self.logger):
            fields = matching_fields(record, match.get("metadata") or {})
            candidates.append(DedupeMatch(
                entity_id=match["id"],
                similarity=match["score"],
                match_fields=fields,
                action=classify_match(match["score"], len(fields)),
            ))
        return rank_matches(candidates)

    def classify(self, entity: PartialEntity, candidates: List[DedupeMatch]) -> ResolutionDecision:
        if not candidates:
            return ResolutionDecision(action="create")

        best = rank_matches(candidates)[0]
        if best.action == "create":
            return ResolutionDecision(
                action="create", similarity=best.similarity, match_fields=list(best.match_fields)
            )

        self.logger.info(
            f"Resolved entity as {best.action}",
            entity_id=entity.id,
            office_name=entity.office_name,
            matched_id=best.entity_id,
            similarity=round(best.similarity, 4),
            match_fields=best.match_fields,
        )
        return ResolutionDecision(
            action=best.action,
            matched_id=best.entity_id,
            similarity=best.similarity,
            match_fields=list(best.match_fields),
        )

    def resolve(self, entity: PartialEntity, threshold: Optional[float] = None) -> ResolutionDecision:
        """Embed, find candidates and classify. The embedding is returned for reuse."""
        vector = self.embedder.embed_entity(entity_record(entity))
        decision = self.classify(entity, self.find_candidates(entity, threshold, vector=vector))
        decision.embedding = vector
        return decision
