"""
FAISS Vector Index

In-process cosine-similarity index implementing ``VectorIndexClient``. Used
for local development and tests in place of the hosted index.

Key Properties
--------------
- One ``IndexIDMap2`` per namespace, created lazily on first upsert
- String document ids mapped to int64 FAISS ids
- Upsert replaces by id (remove + add)
- Concurrency-safe (thread locking)
"""

from __future__ import annotations

from threading import RLock
from typing import Any, Dict, List, Mapping, Optional, Sequence

import faiss
import numpy as np

from ..core.errors import IndexUnavailableError
from ..models import VectorMatch, VectorRecord
from .base import VectorIndexClient, matches_filter


class _Namespace:
    def __init__(self, dim: int) -> None:
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(dim))
        self.dim = dim
        self.int_ids: Dict[str, int] = {}
        self.doc_ids: Dict[int, str] = {}
        self.attributes: Dict[int, Dict[str, Any]] = {}


class FaissVectorIndex(VectorIndexClient):
    """
    Thread-safe in-memory FAISS index.

    All namespaces must share one dimensionality per namespace; the first
    upsert fixes it.
    """

    def __init__(self) -> None:
        self._namespaces: Dict[str, _Namespace] = {}
        self._next_id: int = 0
        self._lock = RLock()

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _as_matrix(vectors: Sequence[Sequence[float]]) -> np.ndarray:
        matrix = np.asarray(vectors, dtype="float32")
        faiss.normalize_L2(matrix)
        return matrix

    def _validate(self, records: Sequence[VectorRecord]) -> int:
        dim = len(records[0].vector)
        for i, record in enumerate(records):
            if len(record.vector) != dim:
                raise IndexUnavailableError(
                    f"Inconsistent embedding dimensionality at index {i}."
                )
        return dim

    def _remove(self, ns: _Namespace, doc_ids: Sequence[str]) -> None:
        int_ids = [ns.int_ids.pop(doc_id) for doc_id in doc_ids if doc_id in ns.int_ids]
        if not int_ids:
            return
        ns.index.remove_ids(np.asarray(int_ids, dtype="int64"))
        for int_id in int_ids:
            ns.doc_ids.pop(int_id, None)
            ns.attributes.pop(int_id, None)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def upsert(self, records: Sequence[VectorRecord], namespace: str) -> None:
        if not records:
            return

        # Later records win when the same id appears twice in one call.
        latest: Dict[str, VectorRecord] = {r.id: r for r in records}
        records = list(latest.values())
        dim = self._validate(records)

        with self._lock:
            ns = self._namespaces.get(namespace)
            if ns is None:
                ns = _Namespace(dim)
                self._namespaces[namespace] = ns
            elif ns.dim != dim:
                raise IndexUnavailableError(
                    f"Namespace {namespace!r} holds {ns.dim}-dimensional vectors, got {dim}."
                )

            self._remove(ns, [r.id for r in records])

            ids = np.arange(self._next_id, self._next_id + len(records), dtype="int64")
            self._next_id += len(records)

            try:
                ns.index.add_with_ids(self._as_matrix([r.vector for r in records]), ids)
            except Exception as exc:
                raise IndexUnavailableError(
                    f"Failed to add vectors to FAISS: {type(exc).__name__}"
                ) from exc

            for int_id, record in zip(ids, records):
                int_id = int(int_id)
                ns.int_ids[record.id] = int_id
                ns.doc_ids[int_id] = record.id
                ns.attributes[int_id] = dict(record.attributes)

    async def query(
        self,
        vector: Sequence[float],
        k: int,
        filter: Optional[Mapping[str, Any]],
        namespace: str,
    ) -> List[VectorMatch]:
        if k < 1:
            return []

        with self._lock:
            ns = self._namespaces.get(namespace)
            if ns is None or ns.index.ntotal == 0:
                return []
            if len(vector) != ns.dim:
                raise IndexUnavailableError(
                    f"Query vector has {len(vector)} dimensions, expected {ns.dim}."
                )

            # Filtering happens after the search, so scan everything when filtered.
            search_k = ns.index.ntotal if filter else min(k, ns.index.ntotal)
            scores, idxs = ns.index.search(self._as_matrix([vector]), search_k)

            results: List[VectorMatch] = []
            for score, idx in zip(scores[0], idxs[0]):
                idx = int(idx)
                if idx == -1 or idx not in ns.doc_ids:
                    continue
                attributes = ns.attributes.get(idx, {})
                if not matches_filter(attributes, filter):
                    continue
                results.append(
                    VectorMatch(id=ns.doc_ids[idx], score=float(score), attributes=attributes)
                )
                if len(results) >= k:
                    break

            return results

    async def delete(self, ids: Sequence[str], namespace: str) -> None:
        with self._lock:
            ns = self._namespaces.get(namespace)
            if ns is None:
                return
            self._remove(ns, ids)

    def count(self, namespace: str) -> int:
        with self._lock:
            ns = self._namespaces.get(namespace)
            return int(ns.index.ntotal) if ns else 0
