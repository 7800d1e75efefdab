"""
Nearest-neighbour vector index.

Cosine similarity over an in-memory table of numpy vectors, optionally
persisted to a JSON file after every write so separate CLI runs share
one index.
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 if either vector is all zeros or lengths differ."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape:
        return 0.0
    na = np.linalg.norm(a)
    nb = np.linalg.norm(b)
    if na == 0 or nb == 0:
        return 0.0
    return float(np.dot(a, b) / (na * nb))


class InMemoryVectorIndex:
    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._records: Dict[str, Dict[str, Any]] = {}
        if self.path and self.path.exists():
            self._load()

    def _load(self) -> None:
        with self.path.open("r", encoding="utf-8") as f:
            content = f.read().strip()
        if not content:
            return
        for record in json.loads(content):
            self._records[record["id"]] = {
                "id": record["id"],
                "values": np.asarray(record["values"], dtype=float),
                "metadata": record.get("metadata") or {},
            }

    def _save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        rows = [
            {"id": r["id"], "values": r["values"].tolist(), "metadata": r["metadata"]}
            for r in self._records.values()
        ]
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(rows, f)

    def upsert(self, records: List[Dict[str, Any]]) -> int:
        """Insert or replace records of shape {id, values, metadata}."""
        with self._lock:
            for record in records:
                self._records[record["id"]] = {
                    "id": record["id"],
                    "values": np.asarray(record["values"], dtype=float),
                    "metadata": dict(record.get("metadata") or {}),
                }
            self._save()
        return len(records)

    def query(
        self,
        vector: Sequence[float],
        top_k: int = 10,
        return_values: bool = False,
        return_metadata: bool = False,
    ) -> List[Dict[str, Any]]:
        """Return up to top_k matches as {id, score[, values][, metadata]}, best first."""
        query_vector = np.asarray(vector, dtype=float)
        with self._lock:
            scored = [
                (cosine_similarity(query_vector, r["values"]), r) for r in self._records.values()
            ]
        scored.sort(key=lambda pair: pair[0], reverse=True)

        matches = []
        for score, record in scored[:top_k]:
            match = {"id": record["id"], "score": score}
            if return_values:
                match["values"] = record["values"].tolist()
            if return_metadata:
                match["metadata"] = dict(record["metadata"])
            matches.append(match)
        return matches

    def delete_by_ids(self, ids: List[str]) -> int:
        with self._lock:
            removed = 0
            for entity_id in ids:
                if self._records.pop(entity_id, None) is not None:
                    removed += 1
            self._save()
        return removed

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._save()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._records
