"""
SQLAlchemy Models

The metadata store is a single key-addressed document table. Every record
has an opaque string ``id`` (shared with the vector index for documents), a
``kind`` discriminator and a JSON payload holding the record body.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class MetadataRecord(Base):
    __tablename__ = "metadata_record"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_metadata_record_kind_id", "kind", "id"),
    )
