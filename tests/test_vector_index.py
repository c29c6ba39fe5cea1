import json

import httpx
import pytest
from pydantic import SecretStr

from multilang_tutor.core.errors import IndexUnavailableError, SecretUnavailableError
from multilang_tutor.credentials import StaticSecretProvider
from multilang_tutor.models import VectorRecord
from multilang_tutor.vectorindex.base import matches_filter
from multilang_tutor.vectorindex.pinecone import PineconeIndexClient


def _record(doc_id, vector, **attributes):
    return VectorRecord(id=doc_id, vector=vector, attributes=attributes)


# ---------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------

def test_filter_operators():
    attrs = {"language": "english", "type": "grammar"}

    assert matches_filter(attrs, None)
    assert matches_filter(attrs, {"language": "english"})
    assert not matches_filter(attrs, {"language": "japanese"})
    assert matches_filter(attrs, {"type": {"$in": ["grammar", "vocabulary"]}})
    assert matches_filter(attrs, {"type": {"$ne": "vocabulary"}, "language": {"$eq": "english"}})
    assert not matches_filter(attrs, {"type": {"$nin": ["grammar"]}})


def test_unknown_filter_operator_rejected():
    with pytest.raises(ValueError):
        matches_filter({"a": 1}, {"a": {"$gt": 0}})


# ---------------------------------------------------------------------
# FAISS index
# ---------------------------------------------------------------------

class TestFaissVectorIndex:
    @pytest.mark.asyncio
    async def test_query_sorted_by_descending_score_and_bounded_by_k(self, faiss_index):
        await faiss_index.upsert(
            [
                _record("a", [1.0, 0.0, 0.0]),
                _record("b", [0.8, 0.6, 0.0]),
                _record("c", [0.0, 1.0, 0.0]),
                _record("d", [-1.0, 0.0, 0.0]),
            ],
            "default",
        )

        matches = await faiss_index.query([1.0, 0.0, 0.0], 3, None, "default")

        assert [m.id for m in matches] == ["a", "b", "c"]
        scores = [m.score for m in matches]
        assert scores == sorted(scores, reverse=True)
        assert matches[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_upsert_replaces_by_id(self, faiss_index):
        await faiss_index.upsert([_record("a", [1.0, 0.0], type="old")], "default")
        await faiss_index.upsert([_record("a", [0.0, 1.0], type="new")], "default")

        matches = await faiss_index.query([0.0, 1.0], 5, None, "default")

        assert faiss_index.count("default") == 1
        assert [m.id for m in matches] == ["a"]
        assert matches[0].score == pytest.approx(1.0)
        assert matches[0].attributes == {"type": "new"}

    @pytest.mark.asyncio
    async def test_namespaces_are_isolated(self, faiss_index):
        await faiss_index.upsert([_record("a", [1.0, 0.0])], "english")
        await faiss_index.upsert([_record("b", [1.0, 0.0])], "japanese")

        assert [m.id for m in await faiss_index.query([1.0, 0.0], 5, None, "english")] == ["a"]
        assert await faiss_index.query([1.0, 0.0], 5, None, "missing") == []

    @pytest.mark.asyncio
    async def test_filter_applied_before_truncation(self, faiss_index):
        await faiss_index.upsert(
            [
                _record("close", [1.0, 0.0], language="japanese"),
                _record("far", [0.0, 1.0], language="english"),
            ],
            "default",
        )

        matches = await faiss_index.query([1.0, 0.0], 1, {"language": "english"}, "default")

        assert [m.id for m in matches] == ["far"]

    @pytest.mark.asyncio
    async def test_delete(self, faiss_index):
        await faiss_index.upsert([_record("a", [1.0, 0.0]), _record("b", [0.0, 1.0])], "default")

        await faiss_index.delete(["a", "unknown"], "default")

        assert [m.id for m in await faiss_index.query([1.0, 0.0], 5, None, "default")] == ["b"]

    @pytest.mark.asyncio
    async def test_dimension_mismatch_rejected(self, faiss_index):
        await faiss_index.upsert([_record("a", [1.0, 0.0])], "default")

        with pytest.raises(IndexUnavailableError):
            await faiss_index.query([1.0, 0.0, 0.0], 1, None, "default")


# ---------------------------------------------------------------------
# Pinecone client
# ---------------------------------------------------------------------

class TestPineconeIndexClient:
    def _client(self, handler, key="pc-key", batch_size=100):
        return PineconeIndexClient(
            base_url="https://idx-test.svc.test.pinecone.io/",
            secrets=StaticSecretProvider(SecretStr(key)),
            upsert_batch_size=batch_size,
            transport=httpx.MockTransport(handler),
        )

    @pytest.mark.asyncio
    async def test_query_request_and_parsing(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers["Api-Key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "matches": [
                    {"id": "b", "score": 0.5, "metadata": {"language": "english"}},
                    {"id": "a", "score": 0.9},
                ]
            })

        matches = await self._client(handler).query([0.1, 0.2], 2, {"type": "grammar"}, "default")

        assert seen["url"] == "https://idx-test.svc.test.pinecone.io/query"
        assert seen["key"] == "pc-key"
        assert seen["body"] == {
            "vector": [0.1, 0.2],
            "topK": 2,
            "includeMetadata": True,
            "namespace": "default",
            "filter": {"type": "grammar"},
        }
        assert [m.id for m in matches] == ["a", "b"]
        assert matches[1].attributes == {"language": "english"}

    @pytest.mark.asyncio
    async def test_upsert_is_split_into_batches(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"upsertedCount": len(bodies[-1]["vectors"])})

        records = [_record(f"d{i}", [1.0, 0.0], language="english") for i in range(5)]
        await self._client(handler, batch_size=2).upsert(records, "ns")

        assert [len(b["vectors"]) for b in bodies] == [2, 2, 1]
        assert all(b["namespace"] == "ns" for b in bodies)
        assert bodies[0]["vectors"][0] == {
            "id": "d0",
            "values": [1.0, 0.0],
            "metadata": {"language": "english"},
        }

    @pytest.mark.asyncio
    async def test_transport_failure_raises_index_unavailable(self):
        client = self._client(lambda request: httpx.Response(401, json={"message": "bad key"}))

        with pytest.raises(IndexUnavailableError):
            await client.query([0.1], 1, None, "default")

    @pytest.mark.asyncio
    async def test_missing_secret_raises_secret_unavailable(self):
        client = self._client(lambda request: httpx.Response(200, json={}), key="")

        with pytest.raises(SecretUnavailableError):
            await client.query([0.1], 1, None, "default")
