"""
Pinecone Vector Index Client

REST client for a Pinecone index. The API key is resolved from the secret
provider on every call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx

from ..config import Settings
from ..core.errors import IndexUnavailableError
from ..credentials import SecretProvider
from ..models import VectorMatch, VectorRecord
from .base import VectorIndexClient, attributes_dict, batched

logger = logging.getLogger("tutor.vectorindex.pinecone")


class PineconeIndexClient(VectorIndexClient):
    def __init__(
        self,
        base_url: str,
        secrets: SecretProvider,
        upsert_batch_size: int = 100,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._secrets = secrets
        self.upsert_batch_size = upsert_batch_size
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, secrets: SecretProvider) -> "PineconeIndexClient":
        return cls(
            base_url=settings.pinecone_base_url,
            secrets=secrets,
            upsert_batch_size=settings.vector_upsert_batch_size,
            timeout=settings.pinecone_timeout,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post_many(self, path: str, payloads: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        api_key = await self._secrets.get_secret()
        headers = {"Api-Key": api_key, "Content-Type": "application/json"}
        url = f"{self.base_url}{path}"

        results: List[Dict[str, Any]] = []
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for payload in payloads:
                try:
                    response = await client.post(url, json=payload, headers=headers)
                    response.raise_for_status()
                    results.append(response.json() if response.content else {})
                except httpx.HTTPError as exc:
                    logger.error(
                        "Pinecone request failed (%s): path=%s, error=%s",
                        type(exc).__name__,
                        path,
                        str(exc),
                    )
                    raise IndexUnavailableError(
                        f"Vector index request failed: {type(exc).__name__}"
                    ) from exc
                except ValueError as exc:
                    raise IndexUnavailableError("Vector index returned invalid JSON.") from exc
        return results

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def upsert(self, records: Sequence[VectorRecord], namespace: str) -> None:
        if not records:
            return

        payloads = [
            {
                "vectors": [
                    {"id": r.id, "values": list(r.vector), "metadata": dict(r.attributes)}
                    for r in batch
                ],
                "namespace": namespace,
            }
            for batch in batched(records, self.upsert_batch_size)
        ]
        await self._post_many("/vectors/upsert", payloads)
        logger.info("Upserted %d vectors into namespace %s", len(records), namespace)

    async def query(
        self,
        vector: Sequence[float],
        k: int,
        filter: Optional[Mapping[str, Any]],
        namespace: str,
    ) -> List[VectorMatch]:
        payload: Dict[str, Any] = {
            "vector": list(vector),
            "topK": k,
            "includeMetadata": True,
            "namespace": namespace,
        }
        if filter:
            payload["filter"] = dict(filter)

        (data,) = await self._post_many("/query", [payload])

        raw_matches = data.get("matches") or []
        if not isinstance(raw_matches, list):
            raise IndexUnavailableError("Vector index returned a malformed match list.")

        matches: List[VectorMatch] = []
        for raw in raw_matches:
            if not isinstance(raw, dict) or "id" not in raw:
                continue
            try:
                match = VectorMatch(
                    id=str(raw["id"]),
                    score=float(raw.get("score", 0.0)),
                    attributes=attributes_dict(raw.get("metadata")),
                )
            except (TypeError, ValueError):
                logger.warning("Skipping malformed match from vector index: %r", raw)
                continue
            matches.append(match)

        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:k]

    async def delete(self, ids: Sequence[str], namespace: str) -> None:
        if not ids:
            return

        payloads = [
            {"ids": batch, "namespace": namespace}
            for batch in batched(list(ids), self.upsert_batch_size)
        ]
        await self._post_many("/vectors/delete", payloads)
