"""
Indexer Tests

Unit tests use mocked stores to pin the write order; the round-trip tests
run the hash embedder against the in-process FAISS index and SQLite.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from multilang_tutor.core.errors import (
    DocumentNotFoundError,
    IndexUnavailableError,
    InvalidInputError,
    MetadataError,
    PartialWriteError,
)
from multilang_tutor.db import MetadataStore
from multilang_tutor.models import Document
from multilang_tutor.rag.indexer import Indexer
from multilang_tutor.rag.retriever import Retriever
from multilang_tutor.vectorindex.base import VectorIndexClient


@pytest.fixture
def mock_index():
    return AsyncMock(spec=VectorIndexClient)


@pytest.fixture
def mock_metadata():
    return AsyncMock(spec=MetadataStore)


@pytest.fixture
def mock_indexer(embedder, mock_index, mock_metadata):
    return Indexer(embedder, mock_index, mock_metadata)


# ---------------------------------------------------------------------
# Ingest
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_ingest_rejects_empty_batch(mock_indexer):
    with pytest.raises(InvalidInputError):
        await mock_indexer.ingest([])


@pytest.mark.asyncio
async def test_ingest_assigns_unique_ids(mock_indexer):
    docs = [Document(content="same text") for _ in range(20)]

    result = await mock_indexer.ingest(docs)

    assert result.count == 20
    assert len(set(result.ids)) == 20
    assert all(i.startswith("doc_") for i in result.ids)


@pytest.mark.asyncio
async def test_ingest_keeps_supplied_ids(mock_indexer, mock_metadata):
    result = await mock_indexer.ingest([Document(id="material_1", content="hello", type="grammar")])

    assert result.ids == ["material_1"]
    item = mock_metadata.batch_put.await_args.args[0][0]
    assert item["id"] == "material_1"
    assert item["type"] == "grammar"
    assert item["embedder_version"] == "hash-v1"
    assert item["namespace"] == "default"
    assert item["timestamp"]


@pytest.mark.asyncio
async def test_vectors_written_before_metadata(embedder, mock_index, mock_metadata):
    manager = MagicMock()
    manager.attach_mock(mock_index.upsert, "upsert")
    manager.attach_mock(mock_metadata.batch_put, "batch_put")

    await Indexer(embedder, mock_index, mock_metadata).ingest([Document(content="hello")], "ns")

    assert [c[0] for c in manager.mock_calls] == ["upsert", "batch_put"]
    records, namespace = mock_index.upsert.await_args.args
    assert namespace == "ns"
    assert records[0].attributes == {"language": "english", "type": "general", "source": "user_uploaded"}


@pytest.mark.asyncio
async def test_index_failure_writes_no_metadata(mock_indexer, mock_index, mock_metadata):
    mock_index.upsert.side_effect = IndexUnavailableError("down")

    with pytest.raises(IndexUnavailableError):
        await mock_indexer.ingest([Document(content="hello")])

    mock_metadata.batch_put.assert_not_called()


@pytest.mark.asyncio
async def test_metadata_failure_reports_partial_write(mock_indexer, mock_metadata):
    mock_metadata.batch_put.side_effect = MetadataError("down")

    with pytest.raises(PartialWriteError) as excinfo:
        await mock_indexer.ingest([Document(id="a", content="x"), Document(id="b", content="y")])

    assert excinfo.value.doc_ids == ["a", "b"]
    assert excinfo.value.stage == "vectors"


# ---------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_unknown_document_still_purges_vector(mock_indexer, mock_metadata, mock_index):
    mock_metadata.get.return_value = None

    with pytest.raises(DocumentNotFoundError):
        await mock_indexer.delete("missing")

    mock_index.delete.assert_awaited_once_with(["missing"], "default")
    mock_metadata.delete.assert_not_called()


@pytest.mark.asyncio
async def test_delete_uses_stored_namespace(mock_indexer, mock_metadata, mock_index):
    mock_metadata.get.return_value = {"id": "a", "content": "x", "namespace": "japanese"}

    await mock_indexer.delete("a")

    mock_index.delete.assert_awaited_once_with(["a"], "japanese")
    mock_metadata.delete.assert_awaited_once_with("a")


@pytest.mark.asyncio
async def test_delete_metadata_failure_reports_partial_write(mock_indexer, mock_metadata):
    mock_metadata.get.return_value = {"id": "a", "content": "x"}
    mock_metadata.delete.side_effect = MetadataError("down")

    with pytest.raises(PartialWriteError):
        await mock_indexer.delete("a")


# ---------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_ingest_then_retrieve_round_trip(embedder, faiss_index, metadata_store):
    indexer = Indexer(embedder, faiss_index, metadata_store)
    result = await indexer.ingest(
        [
            Document(content="The definite article 'the' refers to a specific noun.", type="grammar"),
            Document(content="Apples are red or green.", type="vocabulary"),
        ]
    )

    passages = await Retriever(embedder, faiss_index, metadata_store).retrieve(
        "The definite article 'the' refers to a specific noun.", "english", k=1
    )

    assert result.count == 2
    assert passages[0].id == result.ids[0]
    assert passages[0].type == "grammar"
    assert passages[0].source == "user_uploaded"
    assert passages[0].score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_reingest_is_idempotent(embedder, faiss_index, metadata_store):
    indexer = Indexer(embedder, faiss_index, metadata_store)
    doc = Document(id="doc_fixed", content="hello")

    await indexer.ingest([doc])
    await indexer.ingest([doc])

    assert faiss_index.count("default") == 1
    assert (await metadata_store.get("doc_fixed"))["content"] == "hello"


@pytest.mark.asyncio
async def test_delete_removes_from_both_stores(embedder, faiss_index, metadata_store):
    indexer = Indexer(embedder, faiss_index, metadata_store)
    await indexer.ingest([Document(id="a", content="alpha"), Document(id="b", content="beta")])

    await indexer.delete("a")

    assert faiss_index.count("default") == 1
    assert await metadata_store.get("a") is None


@pytest.mark.asyncio
async def test_reindex_restores_lost_vectors(embedder, faiss_index, metadata_store):
    indexer = Indexer(embedder, faiss_index, metadata_store)
    await indexer.ingest([Document(id="a", content="alpha")], "english")
    await faiss_index.delete(["a"], "english")

    result = await indexer.reindex(["a", "missing"])

    assert result.ids == ["a"]
    assert faiss_index.count("english") == 1


@pytest.mark.asyncio
async def test_reindex_requires_ids(mock_indexer):
    with pytest.raises(InvalidInputError):
        await mock_indexer.reindex([])


@pytest.mark.asyncio
async def test_extra_fields_stored_and_kept_on_reindex(embedder, faiss_index, metadata_store):
    indexer = Indexer(embedder, faiss_index, metadata_store)
    await indexer.ingest([Document(id="a", content="alpha", extra={"file_name": "a.txt", "language": "ignored"})])

    await indexer.reindex(["a"])

    item = await metadata_store.get("a")
    assert item["file_name"] == "a.txt"
    assert item["language"] == "english"
    assert "file_name" not in (await faiss_index.query(await embedder.embed("alpha"), 1, None, "default"))[0].attributes


@pytest.mark.asyncio
async def test_orphan_vector_from_partial_ingest_can_be_deleted(embedder, faiss_index):
    broken_store = AsyncMock(spec=MetadataStore)
    broken_store.batch_put.side_effect = MetadataError("down")
    broken_store.get.return_value = None
    indexer = Indexer(embedder, faiss_index, broken_store)

    with pytest.raises(PartialWriteError):
        await indexer.ingest([Document(id="orphan", content="alpha")])
    assert faiss_index.count("default") == 1

    with pytest.raises(DocumentNotFoundError):
        await indexer.delete("orphan")

    assert faiss_index.count("default") == 0
