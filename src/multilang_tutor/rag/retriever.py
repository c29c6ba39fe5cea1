"""
Retriever

Query -> embedding -> vector index -> metadata store -> ranked passages.

Retrieval is best-effort context for answering: embedding, index and
metadata failures degrade to fewer or zero passages and are never raised to
the caller. Only an empty query is rejected.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..core.errors import (
    EmbeddingError,
    IndexUnavailableError,
    InvalidQueryError,
    MetadataError,
)
from ..db.metadata_store import MetadataStore
from ..embeddings.embedder import BaseEmbedder
from ..models import (
    DEFAULT_LANGUAGE,
    DEFAULT_TYPE,
    UNKNOWN_SOURCE,
    ContextPassage,
    VectorMatch,
)
from ..vectorindex.base import VectorIndexClient

logger = logging.getLogger("tutor.retriever")


def _field(item: Mapping[str, Any], match: VectorMatch, name: str, default: str) -> str:
    return item.get(name) or match.attributes.get(name) or default


def build_passage(match: VectorMatch, item: Optional[Mapping[str, Any]]) -> ContextPassage:
    """
    Join a match with its metadata item.

    Missing metadata yields empty content and falls back to the index
    attributes, then to hard defaults.
    """
    item = item or {}
    return ContextPassage(
        id=match.id,
        score=match.score,
        content=item.get("content") or "",
        language=_field(item, match, "language", DEFAULT_LANGUAGE),
        type=_field(item, match, "type", DEFAULT_TYPE),
        source=_field(item, match, "source", UNKNOWN_SOURCE),
    )


class Retriever:
    def __init__(
        self,
        embedder: BaseEmbedder,
        index: VectorIndexClient,
        metadata: MetadataStore,
        default_namespace: str = "default",
    ) -> None:
        self.embedder = embedder
        self.index = index
        self.metadata = metadata
        self.default_namespace = default_namespace

    async def retrieve(
        self,
        query: str,
        language: Optional[str] = None,
        k: int = 5,
        filter: Optional[Mapping[str, Any]] = None,
        namespace: Optional[str] = None,
    ) -> List[ContextPassage]:
        """
        Return up to ``k`` passages in index similarity order.

        Raises
        ------
        InvalidQueryError
            If ``query`` is empty or blank.
        """
        if not query or not query.strip():
            raise InvalidQueryError("Query is required")

        if k < 1:
            return []

        namespace = namespace or self.default_namespace

        try:
            vector = await self.embedder.embed(query)
        except EmbeddingError as exc:
            logger.warning("Query embedding failed, continuing without context: %s", exc)
            return []

        try:
            matches = await self.index.query(vector, k, filter or {}, namespace)
        except IndexUnavailableError as exc:
            logger.warning("Vector index unavailable, continuing without context: %s", exc)
            return []
        except Exception:
            logger.exception("Vector index query failed, continuing without context")
            return []

        matches = matches[:k]
        if not matches:
            return []

        items: Dict[str, Mapping[str, Any]] = {}
        try:
            for item in await self.metadata.batch_get([m.id for m in matches]):
                items[item["id"]] = item
        except MetadataError as exc:
            logger.warning("Metadata lookup failed, using index attributes only: %s", exc)
            items = {}
        except Exception:
            logger.exception("Unexpected metadata lookup failure, using index attributes only")
            items = {}

        missing = [m.id for m in matches if m.id not in items]
        if missing:
            logger.warning(
                "No metadata for %d of %d matches (possible partial ingest): %s",
                len(missing),
                len(matches),
                ", ".join(missing),
            )

        passages = [build_passage(m, items.get(m.id)) for m in matches]
        logger.info(
            "Retrieved %d passages for %s query (namespace=%s)",
            len(passages),
            language or DEFAULT_LANGUAGE,
            namespace,
        )
        return passages
