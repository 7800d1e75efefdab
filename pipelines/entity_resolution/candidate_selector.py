"""
Candidate Selection Logic.

Responsibilities:
- Query the vector index for the nearest neighbours of an entity vector.
- Drop neighbours whose similarity is below the threshold.

Non-Responsibilities:
- No field comparison.
- No action classification.
- No index writes.

Invariant:
An index failure yields an empty candidate list, never an exception.
"""

from typing import Any, Dict, List, Optional, Sequence

from cydex.logger import get_logger, StructuredLogger

DEFAULT_THRESHOLD = 0.85
TOP_K = 10


def select_candidates(
    vector_index,
    vector: Sequence[float],
    threshold: float = DEFAULT_THRESHOLD,
    top_k: int = TOP_K,
    logger: Optional[StructuredLogger] = None,
) -> List[Dict[str, Any]]:
    """
    Returns:
        Index matches ({id, score, metadata}) scoring at or above threshold,
        best first.
    """
    logger = logger or get_logger()
    try:
        matches = vector_index.query(vector, top_k=top_k, return_values=True, return_metadata=True)
    except Exception as e:
        logger.error("Vector index query failed", error=str(e))
        return []

    kept = [m for m in matches if m.get("score", 0.0) >= threshold]
    kept.sort(key=lambda m: m["score"], reverse=True)
    return kept
