"""
Full Index Backfill.

Responsibilities:
- Re-embed every stored entity and replace the vector index content.
- Replay in entity id order.

Non-Responsibilities:
- No crawling.
- No resolution or merging.

Invariant:
A full rebuild must be idempotent: running it twice leaves the same
index content.
"""

from typing import Dict, Optional

from cydex.logger import get_logger, StructuredLogger
from pipelines.entity_resolution.indexing import IndexWriter


def rebuild_index(entities, vector_index, embedder, logger: Optional[StructuredLogger] = None) -> Dict[str, int]:
    """
    Args:
        entities: EntityRepository
        vector_index: Index to rebuild (cleared first)
        embedder: Embedder used for every stored entity

    Returns:
        {"total": n, "indexed": n_ok, "failed": n_failed}
    """
    logger = logger or get_logger()
    writer = IndexWriter(vector_index, embedder, logger=logger)

    rows = entities.list_all()
    vector_index.clear()

    indexed = 0
    for entity in rows:
        if writer.add(entity):
            indexed += 1

    summary = {"total": len(rows), "indexed": indexed, "failed": len(rows) - indexed}
    logger.info("Index rebuild complete", **summary)
    return summary
