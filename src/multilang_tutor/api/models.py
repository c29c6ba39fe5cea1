"""
API Models

Request/response payloads for the HTTP layer. Field names follow the
snake_case wire format used by existing clients.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import Document, ModelParams


# ---------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------

class QueryRequest(BaseModel):
    # Blank queries are rejected by the pipeline, not the schema, so they map
    # onto the same 400 error as every other invalid input.
    query: str = ""
    language: Optional[str] = None
    explanation_language: Optional[str] = None
    student_id: Optional[str] = None
    session_id: Optional[str] = None
    model_params: Optional[ModelParams] = None

    model_config = ConfigDict(extra="ignore", protected_namespaces=())


class QueryResponse(BaseModel):
    response: str
    language: str
    explanation_language: str
    session_id: Optional[str] = None


# ---------------------------------------------------------------------
# Ingestion and materials
# ---------------------------------------------------------------------

class IngestRequest(BaseModel):
    documents: List[Document] = Field(default_factory=list)
    namespace: Optional[str] = None


class IngestResponse(BaseModel):
    message: str = "Documents processed successfully"
    count: int
    ids: List[str]


class MaterialUploadRequest(BaseModel):
    content: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1)
    language: str = "english"
    type: str = "general"
    description: str = ""
    teacher_id: Optional[str] = None


class OperationResult(BaseModel):
    status: Literal["queued", "deleted", "ok"]
    material_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")


class MaterialListResponse(BaseModel):
    materials: List[Dict[str, Any]]
    count: int
    next_token: Optional[str] = None


# ---------------------------------------------------------------------
# Feedback and configuration
# ---------------------------------------------------------------------

class FeedbackRequest(BaseModel):
    feedback: str = ""
    response_id: str = ""
    student_id: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class ModelConfigResponse(BaseModel):
    model_id: str
    temperature: float
    top_p: float
    max_tokens: int

    model_config = ConfigDict(protected_namespaces=())
