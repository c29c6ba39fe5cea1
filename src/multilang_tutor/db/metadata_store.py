"""
Metadata Store

Key-addressed document store over the ``metadata_record`` table.

Batched reads and writes are split internally to respect the configured
per-round-trip ceilings; callers always see a single logical call and a
single merged result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.errors import MetadataError
from ..vectorindex.base import batched, matches_filter
from .models import MetadataRecord

logger = logging.getLogger("tutor.metadata")

KIND_DOCUMENT = "document"
KIND_INTERACTION = "interaction"
KIND_FEEDBACK = "feedback"


@dataclass
class ScanPage:
    items: List[Dict[str, Any]] = field(default_factory=list)
    next_token: Optional[str] = None


def _to_item(record: MetadataRecord) -> Dict[str, Any]:
    item = dict(record.payload)
    item["id"] = record.id
    return item


class MetadataStore:
    """
    SQLAlchemy-backed metadata store.

    Each public method opens its own session, so one instance is safe to
    share across concurrent requests.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        read_batch_size: int = 100,
        write_batch_size: int = 25,
    ) -> None:
        self._session_factory = session_factory
        self.read_batch_size = read_batch_size
        self.write_batch_size = write_batch_size

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        try:
            async with self._session_factory() as session:
                record = await session.get(MetadataRecord, item_id)
                return _to_item(record) if record else None
        except SQLAlchemyError as exc:
            logger.error("Metadata get failed for %s: %s", item_id, exc)
            raise MetadataError("Could not read metadata.") from exc

    async def batch_get(self, ids: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Fetch many records by id.

        Missing ids are omitted. Result order is unspecified.
        """
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return []

        items: List[Dict[str, Any]] = []
        try:
            async with self._session_factory() as session:
                for chunk in batched(unique_ids, self.read_batch_size):
                    result = await session.execute(
                        select(MetadataRecord).where(MetadataRecord.id.in_(chunk))
                    )
                    items.extend(_to_item(r) for r in result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Metadata batch_get failed for %d ids: %s", len(unique_ids), exc)
            raise MetadataError("Could not read metadata.") from exc

        return items

    async def scan(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        kind: Optional[str] = None,
        limit: int = 50,
        start_after: Optional[str] = None,
    ) -> ScanPage:
        """
        Page through records in id order, keeping those matching ``filters``.

        ``next_token`` is the last id examined; pass it back as
        ``start_after`` to continue. It is ``None`` once the table is
        exhausted.
        """
        if limit < 1:
            raise ValueError("limit must be positive")

        page = ScanPage()
        cursor = start_after
        page_size = max(limit, self.read_batch_size)

        try:
            async with self._session_factory() as session:
                while True:
                    stmt = select(MetadataRecord).order_by(MetadataRecord.id).limit(page_size)
                    if kind is not None:
                        stmt = stmt.where(MetadataRecord.kind == kind)
                    if cursor is not None:
                        stmt = stmt.where(MetadataRecord.id > cursor)

                    rows = (await session.execute(stmt)).scalars().all()

                    for row in rows:
                        cursor = row.id
                        item = _to_item(row)
                        if matches_filter(item, filters):
                            page.items.append(item)
                            if len(page.items) >= limit:
                                page.next_token = cursor
                                return page

                    if len(rows) < page_size:
                        return page
        except SQLAlchemyError as exc:
            logger.error("Metadata scan failed: %s", exc)
            raise MetadataError("Could not scan metadata.") from exc

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def put(self, item: Mapping[str, Any], kind: str) -> None:
        await self.batch_put([item], kind)

    async def batch_put(self, items: Sequence[Mapping[str, Any]], kind: str) -> None:
        """
        Insert or replace records. Every item must carry an ``id``.

        Each chunk of ``write_batch_size`` items is committed in its own
        transaction; a failure leaves earlier chunks written.
        """
        if not items:
            return

        for item in items:
            if not item.get("id"):
                raise MetadataError("Metadata items require an 'id'.")

        try:
            async with self._session_factory() as session:
                for chunk in batched(items, self.write_batch_size):
                    for item in chunk:
                        payload = {k: v for k, v in item.items() if k != "id"}
                        await session.merge(
                            MetadataRecord(id=item["id"], kind=kind, payload=payload)
                        )
                    await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Metadata batch_put failed for %d items: %s", len(items), exc)
            raise MetadataError("Could not write metadata.") from exc

    async def delete(self, item_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(MetadataRecord).where(MetadataRecord.id == item_id)
                )
                await session.commit()
                return bool(result.rowcount)
        except SQLAlchemyError as exc:
            logger.error("Metadata delete failed for %s: %s", item_id, exc)
            raise MetadataError("Could not delete metadata.") from exc
