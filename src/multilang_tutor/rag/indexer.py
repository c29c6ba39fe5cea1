"""
Indexer

Write path for learning material: embed documents, upsert their vectors,
then write their metadata.

Write order
-----------
Vectors are always written before metadata, and deleted before metadata.
A crash or failure between the two stages leaves either a vector with no
metadata (the retriever still returns it, with empty content) or, on
delete, metadata with no vector. Both are reported as ``PartialWriteError``
and repaired by re-running ``ingest`` (or ``reindex``) for the same ids,
which is idempotent.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from ..core.errors import (
    DocumentNotFoundError,
    InvalidInputError,
    MetadataError,
    PartialWriteError,
)
from ..db.metadata_store import KIND_DOCUMENT, MetadataStore
from ..embeddings.embedder import BaseEmbedder
from ..models import (
    DEFAULT_LANGUAGE,
    DEFAULT_SOURCE,
    DEFAULT_TYPE,
    Document,
    IngestResult,
    VectorRecord,
    generate_id,
    utc_now_iso,
)
from ..vectorindex.base import VectorIndexClient

logger = logging.getLogger("tutor.indexer")

# Keys the indexer writes itself; anything else in a stored item came from Document.extra.
_STORED_FIELDS = frozenset(
    {"id", "content", "language", "type", "source", "timestamp", "embedder_version", "namespace"}
)


class Indexer:
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

    async def ingest(
        self,
        documents: Sequence[Document],
        namespace: Optional[str] = None,
    ) -> IngestResult:
        """
        Index a batch of documents.

        Documents without an ``id`` are assigned one. Embedding failures
        abort the whole batch before anything is written.

        Raises
        ------
        InvalidInputError
            If ``documents`` is empty.
        EmbeddingError
            If any document cannot be embedded.
        IndexUnavailableError
            If the vector upsert fails (nothing was written).
        PartialWriteError
            If vectors were written but the metadata write failed.
        """
        if not documents:
            raise InvalidInputError("Documents array is required")

        namespace = namespace or self.default_namespace
        timestamp = utc_now_iso()

        vectors: List[VectorRecord] = []
        items: List[dict] = []

        for doc in documents:
            doc_id = doc.id or generate_id("doc")
            embedding = await self.embedder.embed(doc.content)

            vectors.append(VectorRecord(id=doc_id, vector=embedding, attributes=doc.attributes()))
            items.append(
                {
                    **doc.extra,
                    "id": doc_id,
                    "content": doc.content,
                    "language": doc.language,
                    "type": doc.type,
                    "source": doc.source,
                    "timestamp": doc.timestamp or timestamp,
                    "embedder_version": self.embedder.version,
                    "namespace": namespace,
                }
            )

        ids = [v.id for v in vectors]

        await self.index.upsert(vectors, namespace)

        try:
            await self.metadata.batch_put(items, KIND_DOCUMENT)
        except MetadataError as exc:
            logger.error(
                "Inconsistent ingest: %d vectors written to %s without metadata: %s",
                len(ids),
                namespace,
                ", ".join(ids),
            )
            raise PartialWriteError(
                "Vectors were indexed but metadata could not be stored; re-run ingest for these ids.",
                doc_ids=ids,
                stage="vectors",
            ) from exc

        logger.info("Ingested %d documents into namespace %s", len(ids), namespace)
        return IngestResult(count=len(documents), ids=ids)

    async def delete(self, doc_id: str, namespace: Optional[str] = None) -> None:
        """
        Remove a document from both stores.

        Raises
        ------
        DocumentNotFoundError
            If no metadata exists for ``doc_id``. Any vector stored under
            that id is still removed first.
        IndexUnavailableError
            If the vector delete fails (nothing was removed).
        PartialWriteError
            If the vector was removed but the metadata delete failed.
        """
        item = await self.metadata.get(doc_id)
        if item is None:
            # A vector may still exist from a partial ingest; purge it anyway.
            orphan_namespace = namespace or self.default_namespace
            await self.index.delete([doc_id], orphan_namespace)
            logger.warning("No metadata for %s; removed any orphan vector from %s", doc_id, orphan_namespace)
            raise DocumentNotFoundError(f"Material not found: {doc_id}")

        namespace = namespace or item.get("namespace") or self.default_namespace

        await self.index.delete([doc_id], namespace)

        try:
            await self.metadata.delete(doc_id)
        except MetadataError as exc:
            logger.error(
                "Inconsistent delete: vector %s removed from %s but metadata remains",
                doc_id,
                namespace,
            )
            raise PartialWriteError(
                "Vector was deleted but metadata could not be removed; retry the delete.",
                doc_ids=[doc_id],
                stage="vectors",
            ) from exc

        logger.info("Deleted document %s from namespace %s", doc_id, namespace)

    async def reindex(
        self,
        ids: Sequence[str],
        namespace: Optional[str] = None,
    ) -> IngestResult:
        """
        Re-embed and re-upsert stored documents by id.

        Reconciliation path for vectors lost or written under an older
        embedder version. Ids without metadata are skipped and logged.
        """
        if not ids:
            raise InvalidInputError("At least one id is required")

        items = await self.metadata.batch_get(ids)
        found = {item["id"]: item for item in items if item.get("content")}

        skipped = [i for i in ids if i not in found]
        if skipped:
            logger.warning("Reindex skipped %d ids without stored content: %s", len(skipped), ", ".join(skipped))

        if not found:
            return IngestResult(count=0, ids=[])

        # Each document goes back to the namespace it was ingested into.
        groups: Dict[str, List[Document]] = {}
        for item in found.values():
            target = namespace or item.get("namespace") or self.default_namespace
            groups.setdefault(target, []).append(
                Document(
                    id=item["id"],
                    content=item["content"],
                    language=item.get("language") or DEFAULT_LANGUAGE,
                    type=item.get("type") or DEFAULT_TYPE,
                    source=item.get("source") or DEFAULT_SOURCE,
                    timestamp=item.get("timestamp"),
                    extra={k: v for k, v in item.items() if k not in _STORED_FIELDS},
                )
            )

        reindexed: List[str] = []
        for target, documents in groups.items():
            result = await self.ingest(documents, target)
            reindexed.extend(result.ids)

        return IngestResult(count=len(reindexed), ids=reindexed)
