"""
Domain Models

Canonical data shapes passed between pipeline components.

- Document: ingested learning material (vector index + metadata store)
- VectorRecord / VectorMatch: the vector index's write and read units
- ContextPassage: a match enriched with its stored metadata
- InteractionLogEntry: write-once record of an answered query
- ModelParams / TutorQuery / TutorAnswer: pipeline entry-point contracts
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_LANGUAGE = "english"
DEFAULT_TYPE = "general"
DEFAULT_SOURCE = "user_uploaded"
UNKNOWN_SOURCE = "unknown"


def generate_id(prefix: str, suffix_length: int = 13) -> str:
    """
    Return ``<prefix>_<epoch-ms>_<random>``.

    Unique with overwhelming probability; not ordered beyond the millisecond.
    """
    millis = int(time.time() * 1000)
    return f"{prefix}_{millis}_{uuid.uuid4().hex[:suffix_length]}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------
# Documents and vectors
# ---------------------------------------------------------------------

class Document(BaseModel):
    """
    A unit of learning material.

    ``id`` is the join key between the vector index and the metadata store.
    It may be omitted on input; the indexer assigns one. ``extra`` holds
    descriptive fields (file name, uploader, ...) that are stored with the
    metadata but never mirrored into the vector index.
    """

    id: Optional[str] = Field(default=None, min_length=1)
    content: str = Field(..., min_length=1)
    language: str = DEFAULT_LANGUAGE
    type: str = DEFAULT_TYPE
    source: str = DEFAULT_SOURCE
    timestamp: Optional[str] = None
    extra: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value

    def attributes(self) -> Dict[str, str]:
        """Filterable attributes mirrored into the vector index."""
        return {"language": self.language, "type": self.type, "source": self.source}


class VectorRecord(BaseModel):
    id: str = Field(..., min_length=1)
    vector: List[float] = Field(..., min_length=1)
    attributes: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid", frozen=True)


class VectorMatch(BaseModel):
    """A similarity hit. ``score`` is index-specific; higher is more similar."""

    id: str
    score: float
    attributes: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class ContextPassage(BaseModel):
    id: str
    score: float
    content: str = ""
    language: str = DEFAULT_LANGUAGE
    type: str = DEFAULT_TYPE
    source: str = UNKNOWN_SOURCE

    model_config = ConfigDict(frozen=True)


class IngestResult(BaseModel):
    count: int = Field(..., ge=0)
    ids: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------
# Logged records
# ---------------------------------------------------------------------

class InteractionLogEntry(BaseModel):
    id: str
    caller_id: str
    query: str
    response: str
    language: str
    explanation_language: str
    session_id: str
    timestamp: str

    model_config = ConfigDict(frozen=True)


class FeedbackEntry(BaseModel):
    id: str
    feedback: str
    response_id: str
    caller_id: str = "anonymous"
    rating: Optional[int] = None
    timestamp: str

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------
# Pipeline contracts
# ---------------------------------------------------------------------

class ModelParams(BaseModel):
    """Caller-supplied overrides; ``None`` means "use the configured default"."""

    model_id: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_tokens: Optional[int] = Field(default=None, ge=1)

    model_config = ConfigDict(extra="forbid", protected_namespaces=())


class TutorQuery(BaseModel):
    query: str
    language: Optional[str] = None
    explanation_language: Optional[str] = None
    session_id: Optional[str] = None
    caller_id: Optional[str] = None
    model_params: ModelParams = Field(default_factory=ModelParams)

    model_config = ConfigDict(protected_namespaces=())


class TutorAnswer(BaseModel):
    response: str
    language: str
    explanation_language: str
    session_id: Optional[str] = None
