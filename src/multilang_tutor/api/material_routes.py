"""
Material Routes

This module exposes endpoints for:
- Synchronous ingestion of documents into the vector index
- Uploading learning material (indexed in the background)
- Listing stored material
- Deleting material from both stores
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status

from .dependencies import get_indexer, get_ingest_queue, get_metadata_store
from .models import (
    IngestRequest,
    IngestResponse,
    MaterialListResponse,
    MaterialUploadRequest,
    OperationResult,
)
from ..db import KIND_DOCUMENT, MetadataStore
from ..embeddings.queue import IngestJob, IngestQueue
from ..models import Document, generate_id
from ..rag.indexer import Indexer

router = APIRouter(tags=["materials"])

PREVIEW_CHARS = 300


def content_preview(content: str) -> str:
    if len(content) <= PREVIEW_CHARS:
        return content
    return content[:PREVIEW_CHARS] + "..."


@router.post(
    "/ingest",
    response_model=IngestResponse,
    summary="Index documents synchronously",
)
async def ingest(
    req: IngestRequest,
    indexer: Annotated[Indexer, Depends(get_indexer)],
) -> IngestResponse:
    """
    Embed and store documents, waiting for completion.

    Failures propagate to the caller, including partial writes.
    """
    result = await indexer.ingest(req.documents, req.namespace)
    return IngestResponse(count=result.count, ids=result.ids)


@router.post(
    "/materials",
    response_model=OperationResult,
    summary="Upload learning material",
    status_code=status.HTTP_202_ACCEPTED,
)
async def upload_material(
    req: MaterialUploadRequest,
    queue: Annotated[IngestQueue, Depends(get_ingest_queue)],
) -> OperationResult:
    """
    Accept material and queue it for indexing.

    The response does not wait for indexing; an indexing failure is only
    logged by the background worker.
    """
    material_id = generate_id("material")
    document = Document(
        id=material_id,
        content=req.content,
        language=req.language,
        type=req.type,
        source="learning_material",
        extra={
            "file_name": req.file_name,
            "description": req.description,
            "teacher_id": req.teacher_id or "system",
            "content_preview": content_preview(req.content),
        },
    )

    qsize = await queue.enqueue(IngestJob(documents=[document], request_id=material_id))

    return OperationResult(
        status="queued",
        material_id=material_id,
        details={"file_name": req.file_name, "queue_size": qsize},
    )


@router.get(
    "/materials",
    response_model=MaterialListResponse,
    summary="List stored learning material",
)
async def list_materials(
    store: Annotated[MetadataStore, Depends(get_metadata_store)],
    language: Optional[str] = None,
    type: Optional[str] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    next_token: Optional[str] = None,
) -> MaterialListResponse:
    filters = {}
    if language:
        filters["language"] = language
    if type:
        filters["type"] = type

    page = await store.scan(filters, kind=KIND_DOCUMENT, limit=limit, start_after=next_token)

    return MaterialListResponse(
        materials=page.items,
        count=len(page.items),
        next_token=page.next_token,
    )


@router.delete(
    "/materials/{material_id}",
    response_model=OperationResult,
    summary="Delete learning material",
)
async def delete_material(
    material_id: str,
    indexer: Annotated[Indexer, Depends(get_indexer)],
) -> OperationResult:
    await indexer.delete(material_id)
    return OperationResult(status="deleted", material_id=material_id)
