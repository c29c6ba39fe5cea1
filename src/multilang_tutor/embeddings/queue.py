"""
Async queue for fire-and-forget ingestion.

The upload path enqueues an ``IngestJob`` and returns immediately. A
long-lived worker task owned by the application consumes jobs and runs the
indexer; failures are logged and never reach the flow that triggered them.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..core.errors import TutorError
from ..models import Document
from ..rag.indexer import Indexer

logger = logging.getLogger("tutor.ingest_queue")


@dataclass
class IngestJob:
    """Represents a request to index documents."""
    documents: List[Document]
    namespace: Optional[str] = None

    # Metadata for tracing
    request_id: str = "unknown"


class IngestQueue:
    """Queue for holding ingest jobs."""
    def __init__(self) -> None:
        self._queue: asyncio.Queue[IngestJob] = asyncio.Queue()

    async def enqueue(self, job: IngestJob) -> int:
        """Add a job to the queue. Returns current queue size."""
        await self._queue.put(job)
        qsize = self._queue.qsize()
        logger.info("Job enqueued: %s (%d documents, queue size: %d)", job.request_id, len(job.documents), qsize)
        return qsize

    async def get_next_job(self) -> IngestJob:
        return await self._queue.get()

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        await self._queue.join()

    def qsize(self) -> int:
        return self._queue.qsize()


async def process_ingest_worker_task(queue: IngestQueue, indexer: Indexer) -> None:
    """
    Background worker that consumes jobs from the queue and runs the indexer.
    """
    logger.info("Ingest worker started.")

    while True:
        try:
            job = await queue.get_next_job()
        except asyncio.CancelledError:
            logger.info("Ingest worker cancelled.")
            break

        try:
            logger.info("Processing ingest job: %s", job.request_id)
            result = await indexer.ingest(job.documents, job.namespace)
            logger.info("Finished ingest job: %s (%d documents)", job.request_id, result.count)
        except asyncio.CancelledError:
            logger.info("Ingest worker cancelled during job %s.", job.request_id)
            break
        except TutorError as exc:
            logger.error("Ingest job %s failed: %s", job.request_id, exc.message)
        except Exception:
            # Don't break the loop on unexpected errors
            logger.exception("Unexpected error in ingest worker")
        finally:
            queue.task_done()
