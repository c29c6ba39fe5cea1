import asyncio
from unittest.mock import AsyncMock

import pytest

from multilang_tutor.core.errors import PartialWriteError
from multilang_tutor.embeddings.queue import IngestJob, IngestQueue, process_ingest_worker_task
from multilang_tutor.models import Document, IngestResult
from multilang_tutor.rag.indexer import Indexer


def _job(request_id, content="hello"):
    return IngestJob(documents=[Document(content=content)], request_id=request_id)


@pytest.mark.asyncio
async def test_enqueue_reports_queue_size():
    queue = IngestQueue()

    assert await queue.enqueue(_job("r1")) == 1
    assert await queue.enqueue(_job("r2")) == 2
    assert queue.qsize() == 2


@pytest.mark.asyncio
async def test_worker_processes_jobs_in_order():
    queue = IngestQueue()
    indexer = AsyncMock(spec=Indexer)
    indexer.ingest.return_value = IngestResult(count=1, ids=["doc_1"])

    await queue.enqueue(_job("r1", "first"))
    await queue.enqueue(_job("r2", "second"))

    worker = asyncio.create_task(process_ingest_worker_task(queue, indexer))
    await asyncio.wait_for(queue.join(), timeout=5)
    worker.cancel()
    await worker

    contents = [c.args[0][0].content for c in indexer.ingest.await_args_list]
    assert contents == ["first", "second"]


@pytest.mark.asyncio
async def test_worker_survives_failed_job(caplog):
    queue = IngestQueue()
    indexer = AsyncMock(spec=Indexer)
    indexer.ingest.side_effect = [
        PartialWriteError("metadata down", doc_ids=["doc_1"], stage="vectors"),
        RuntimeError("unexpected"),
        IngestResult(count=1, ids=["doc_3"]),
    ]

    for request_id in ("r1", "r2", "r3"):
        await queue.enqueue(_job(request_id))

    worker = asyncio.create_task(process_ingest_worker_task(queue, indexer))
    await asyncio.wait_for(queue.join(), timeout=5)
    worker.cancel()
    await worker

    assert indexer.ingest.await_count == 3
    assert worker.done()
    assert "Ingest job r1 failed" in caplog.text
