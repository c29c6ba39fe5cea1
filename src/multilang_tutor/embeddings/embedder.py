"""
Embedding Clients

This module turns free text into fixed-length, unit-normalized vectors.

Two implementations share one contract:

- ``HashEmbedder``: deterministic reference generator. The vector is derived
  from a code-point-sum seed expanded through ``frac(sin(x) * 10000)``. It
  carries no semantic meaning and exists so retrieval is reproducible in
  development and tests.
- ``OpenAIEmbedder``: calls an OpenAI-compatible embeddings endpoint.

Both reject empty text and text longer than the configured maximum with
``EmbeddingError``, and both return plain ``List[float]`` with Euclidean
norm 1.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import httpx
import numpy as np

from ..config import Settings
from ..core.errors import EmbeddingError

logger = logging.getLogger("tutor.embedder")


def normalize(vector: np.ndarray) -> List[float]:
    """Scale ``vector`` to unit length. A zero vector is an error."""
    norm = float(np.linalg.norm(vector))
    if norm == 0.0 or not np.isfinite(norm):
        raise EmbeddingError("Cannot normalize a zero or non-finite vector.")
    return (vector / norm).astype(float).tolist()


class BaseEmbedder(ABC):
    """
    Contract shared by all embedders.

    ``version`` identifies the vector space; changing it means every stored
    vector must be re-ingested.
    """

    version: str = "unversioned"

    def __init__(self, dimensions: int, max_chars: int) -> None:
        self.dimensions = dimensions
        self.max_chars = max_chars

    def _validate(self, text: str) -> None:
        if not text or not text.strip():
            raise EmbeddingError("Cannot embed empty text.")
        if len(text) > self.max_chars:
            raise EmbeddingError(
                f"Text length {len(text)} exceeds the embedding limit of {self.max_chars} characters."
            )

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Return the unit-normalized embedding of ``text``."""

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed each text in order."""
        return [await self.embed(text) for text in texts]


class HashEmbedder(BaseEmbedder):
    """Deterministic, dependency-free stand-in for an embedding model."""

    version = "hash-v1"

    async def embed(self, text: str) -> List[float]:
        self._validate(text)

        seed = sum(ord(ch) for ch in text)
        positions = seed + np.arange(self.dimensions, dtype=np.float64)
        x = np.sin(positions) * 10000.0
        values = (x - np.floor(x)) * 2.0 - 1.0

        return normalize(values)


class OpenAIEmbedder(BaseEmbedder):
    """
    Asynchronous embedding client for an OpenAI-compatible API.

    Stateless and safe to reuse across requests. Performs no caching.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        dimensions: int,
        max_chars: int,
        base_url: str = "https://api.openai.com/v1/embeddings",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Parameters
        ----------
        api_key : str
            Bearer token for the embeddings endpoint.

        model : str
            Embedding model name; also used as the embedder version.

        dimensions : int
            Expected vector length. Responses of any other length are rejected.

        base_url : str
            Full URL of the embeddings endpoint.

        transport : Optional[httpx.AsyncBaseTransport]
            Override for the HTTP transport (used by tests).
        """
        super().__init__(dimensions=dimensions, max_chars=max_chars)
        self.api_key = api_key
        self.model = model
        self.version = model
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIEmbedder":
        return cls(
            api_key=settings.openai_api_key.get_secret_value(),
            model=settings.embedding_model,
            dimensions=settings.embedding_dimensions,
            max_chars=settings.embedding_max_chars,
            base_url=settings.openai_embeddings_url,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> List[float]:
        """
        Generate the embedding for a single text.

        Raises
        ------
        EmbeddingError
            If the text is invalid, the request fails, or the response is
            malformed.
        """
        self._validate(text)

        headers = {"Authorization": f"Bearer {self.api_key}"}
        payload = {
            "model": self.model,
            "input": [text],
            "dimensions": self.dimensions,
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(self.base_url, json=payload, headers=headers)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.error(
                    "Embedding request failed (%s): model=%s, error=%s",
                    type(exc).__name__,
                    self.model,
                    str(exc),
                )
                raise EmbeddingError(
                    f"Embedding generation failed: {type(exc).__name__}"
                ) from exc

        embedding = self._extract_embedding(response.json())

        if len(embedding) != self.dimensions:
            raise EmbeddingError(
                f"Embedding has {len(embedding)} dimensions, expected {self.dimensions}."
            )

        return normalize(np.asarray(embedding, dtype=np.float64))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_embedding(data: dict) -> List[float]:
        """
        Parse and validate the embedding output format.

        OpenAI returns:
            { "data": [ {"embedding": [...]}, ... ] }
        """
        if not isinstance(data, dict) or "data" not in data:
            raise EmbeddingError("Embedding response missing 'data' field.")

        records = data["data"]
        if not isinstance(records, list) or not records:
            raise EmbeddingError("'data' field must be a non-empty list.")

        record = records[0]
        if not isinstance(record, dict) or "embedding" not in record:
            raise EmbeddingError(f"Malformed embedding record: {record!r}")

        emb = record["embedding"]
        if not isinstance(emb, list) or not all(isinstance(x, (float, int)) for x in emb):
            raise EmbeddingError("Invalid embedding vector: must be float list.")

        return [float(x) for x in emb]
