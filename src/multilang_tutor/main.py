"""
Tutor Service Application Entry Point

This module defines the FastAPI application instance, registers all routers,
configures global exception handling, and owns the background ingest worker.

Design Goals
------------
- Deterministic startup
- Explicit dependency initialization order
- Centralized router registration
- Global exception safety net
- Test-friendly via create_app()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator

from fastapi import FastAPI

from .config import get_settings
from .core.errors import TutorError, tutor_error_handler, unhandled_exception_handler
from .db import create_tables
from .embeddings.queue import process_ingest_worker_task
from .api import (
    feedback_routes,
    health_routes,
    material_routes,
    query_routes,
)
from .api.dependencies import get_engine, get_indexer, get_ingest_queue


logger = logging.getLogger("tutor.app")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------

@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Create tables, start the ingest worker, and tear both down on shutdown.

    The worker lives as long as the application, so queued ingestion is
    never cancelled by the request that queued it.
    """
    settings = get_settings()
    logger.info("Starting multilang-tutor")

    engine = get_engine()
    if settings.metadata_create_tables:
        await create_tables(engine)

    worker = asyncio.create_task(
        process_ingest_worker_task(get_ingest_queue(), get_indexer()),
        name="ingest-worker",
    )

    try:
        yield
    finally:
        logger.info("Shutting down multilang-tutor")
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker
        await engine.dispose()


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    configure_logging(get_settings().log_level)

    app = FastAPI(
        title="multilang-tutor",
        version="1.0.0",
        lifespan=lifespan,
    )

    # --------------------------------------------------------------
    # Global Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(TutorError, tutor_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(query_routes.router)
    app.include_router(material_routes.router)
    app.include_router(feedback_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn/Gunicorn)
# ---------------------------------------------------------------------

app = create_app()
