"""
Error Taxonomy and Global Error Handling

This module defines the closed set of exceptions raised by the tutoring
pipeline and the FastAPI handlers that translate them into HTTP responses.

Design Goals
------------
- Every failure the pipeline can surface has exactly one typed exception
- Never leak internal exception details to clients
- Always return deterministic, machine-readable error responses
- Log full stack traces internally for debugging
"""

from __future__ import annotations

import logging
from typing import Dict, Any, Optional, Sequence

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger("tutor.errors")


# ---------------------------------------------------------------------
# Exception Hierarchy
# ---------------------------------------------------------------------

class TutorError(Exception):
    """Base class for every error raised by the tutoring pipeline."""

    code = "tutor_error"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(TutorError):
    """A required field is missing or empty."""

    code = "invalid_input"
    http_status = status.HTTP_400_BAD_REQUEST


class InvalidQueryError(InvalidInputError):
    """The student's query is missing or blank."""

    code = "invalid_query"


class DocumentNotFoundError(InvalidInputError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class EmbeddingError(TutorError):
    """Raised when embedding generation fails."""

    code = "embedding_error"


class IndexUnavailableError(TutorError):
    """The vector index could not be reached or rejected the request."""

    code = "index_unavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class SecretUnavailableError(IndexUnavailableError):
    """The vector index credential could not be resolved."""

    code = "secret_unavailable"


class MetadataError(TutorError):
    """The metadata store failed a read or write."""

    code = "metadata_error"


class PartialWriteError(TutorError):
    """
    One store was written and the other was not.

    ``stage`` names the store that completed ("vectors" or "metadata").
    Re-running ingest for ``doc_ids`` repairs the inconsistency.
    """

    code = "partial_write"

    def __init__(
        self,
        message: str,
        doc_ids: Sequence[str],
        stage: str,
    ) -> None:
        super().__init__(message)
        self.doc_ids = list(doc_ids)
        self.stage = stage


class ModelError(TutorError):
    """Base class for language-model invocation failures."""

    code = "model_error"
    http_status = status.HTTP_502_BAD_GATEWAY


class ResponseParseError(ModelError):
    code = "response_parse_error"


class ModelTimeoutError(ModelError):
    code = "model_timeout"
    http_status = status.HTTP_504_GATEWAY_TIMEOUT


class ModelValidationError(ModelError):
    code = "model_validation_error"


class ModelNotReadyError(ModelError):
    code = "model_not_ready"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class ModelInvocationError(ModelError):
    code = "model_invocation_error"


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

def _error_payload(code: str, detail: str, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": code, "detail": detail}
    if extra:
        payload.update(extra)
    return payload


async def tutor_error_handler(
    request: Request,
    exc: TutorError,
) -> JSONResponse:
    """
    Translate a typed pipeline error into an HTTP response.

    Client errors echo their message. Server-side errors return the fixed,
    human-readable message chosen by the raising component; the underlying
    cause is only logged.
    """
    if exc.http_status >= 500:
        logger.error(
            "Pipeline error during request %s %s: %s",
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
    else:
        logger.info(
            "Rejected request %s %s: %s",
            request.method,
            request.url.path,
            exc.message,
        )

    extra = None
    if isinstance(exc, PartialWriteError):
        extra = {"doc_ids": exc.doc_ids, "stage": exc.stage}

    return JSONResponse(
        status_code=exc.http_status,
        content=_error_payload(exc.code, exc.message, extra),
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Logs the full stack trace and returns a generic 500 with no internal
    details.
    """
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_payload("internal_server_error", "Internal server error"),
    )
