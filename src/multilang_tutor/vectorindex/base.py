"""
Vector Index Contract

Every vector index backend implements ``VectorIndexClient``. Filters use the
Pinecone metadata-filter subset so the same filter works against the remote
service and the local FAISS index:

    {"language": "english"}
    {"type": {"$in": ["grammar", "vocabulary"]}}
    {"source": {"$ne": "user_uploaded"}}

All top-level clauses are AND-ed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..models import VectorMatch, VectorRecord


class VectorIndexClient(ABC):
    """
    Approximate nearest-neighbour store keyed by document id.

    Implementations raise ``IndexUnavailableError`` on transport or
    authentication failure.
    """

    @abstractmethod
    async def upsert(self, records: Sequence[VectorRecord], namespace: str) -> None:
        """Insert or replace vectors by id."""

    @abstractmethod
    async def query(
        self,
        vector: Sequence[float],
        k: int,
        filter: Optional[Mapping[str, Any]],
        namespace: str,
    ) -> List[VectorMatch]:
        """Return at most ``k`` matches sorted by descending score."""

    @abstractmethod
    async def delete(self, ids: Sequence[str], namespace: str) -> None:
        """Remove vectors by id. Unknown ids are ignored."""


def _match_clause(value: Any, condition: Any) -> bool:
    if not isinstance(condition, Mapping):
        return value == condition

    for op, operand in condition.items():
        if op == "$eq":
            ok = value == operand
        elif op == "$ne":
            ok = value != operand
        elif op == "$in":
            ok = value in operand
        elif op == "$nin":
            ok = value not in operand
        else:
            raise ValueError(f"Unsupported filter operator: {op}")
        if not ok:
            return False
    return True


def matches_filter(attributes: Mapping[str, Any], filter: Optional[Mapping[str, Any]]) -> bool:
    """Evaluate a metadata filter against a record's attributes."""
    if not filter:
        return True
    return all(
        _match_clause(attributes.get(field), condition)
        for field, condition in filter.items()
    )


def batched(items: Sequence[Any], size: int) -> List[List[Any]]:
    """Split ``items`` into consecutive chunks of at most ``size``."""
    if size < 1:
        raise ValueError("batch size must be positive")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def attributes_dict(raw: Any) -> Dict[str, Any]:
    return dict(raw) if isinstance(raw, Mapping) else {}
