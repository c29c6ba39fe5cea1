"""
Database Package

Async SQLAlchemy session management and the metadata store.
"""

from .session import create_engine, create_sessionmaker, create_tables
from .models import Base, MetadataRecord
from .metadata_store import (
    KIND_DOCUMENT,
    KIND_FEEDBACK,
    KIND_INTERACTION,
    MetadataStore,
    ScanPage,
)

__all__ = [
    "create_engine",
    "create_sessionmaker",
    "create_tables",
    "Base",
    "MetadataRecord",
    "MetadataStore",
    "ScanPage",
    "KIND_DOCUMENT",
    "KIND_FEEDBACK",
    "KIND_INTERACTION",
]
