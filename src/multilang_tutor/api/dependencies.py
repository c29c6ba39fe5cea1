from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ..config import get_settings
from ..credentials import SecretProvider, build_secret_provider
from ..db import MetadataStore, create_engine, create_sessionmaker
from ..embeddings.embedder import BaseEmbedder, HashEmbedder, OpenAIEmbedder
from ..embeddings.queue import IngestQueue
from ..llm.bedrock import ModelInvoker
from ..rag.indexer import Indexer
from ..rag.pipeline import InteractionLogger, QueryPipeline
from ..rag.prompts import PromptAssembler
from ..rag.retriever import Retriever
from ..vectorindex.base import VectorIndexClient
from ..vectorindex.faiss_index import FaissVectorIndex
from ..vectorindex.pinecone import PineconeIndexClient


@lru_cache
def get_engine() -> AsyncEngine:
    return create_engine(get_settings().database_url)


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return create_sessionmaker(get_engine())


@lru_cache
def get_metadata_store() -> MetadataStore:
    settings = get_settings()
    return MetadataStore(
        get_session_factory(),
        read_batch_size=settings.metadata_read_batch_size,
        write_batch_size=settings.metadata_write_batch_size,
    )


@lru_cache
def get_embedder() -> BaseEmbedder:
    settings = get_settings()
    if settings.embedding_provider == "openai":
        return OpenAIEmbedder.from_settings(settings)
    return HashEmbedder(
        dimensions=settings.embedding_dimensions,
        max_chars=settings.embedding_max_chars,
    )


@lru_cache
def get_secret_provider() -> SecretProvider:
    return build_secret_provider(get_settings())


@lru_cache
def get_vector_index() -> VectorIndexClient:
    settings = get_settings()
    if settings.vector_index_backend == "pinecone":
        return PineconeIndexClient.from_settings(settings, get_secret_provider())
    return FaissVectorIndex()


@lru_cache
def get_model_invoker() -> ModelInvoker:
    return ModelInvoker.from_settings(get_settings())


@lru_cache
def get_retriever() -> Retriever:
    return Retriever(
        get_embedder(),
        get_vector_index(),
        get_metadata_store(),
        default_namespace=get_settings().vector_namespace,
    )


@lru_cache
def get_indexer() -> Indexer:
    return Indexer(
        get_embedder(),
        get_vector_index(),
        get_metadata_store(),
        default_namespace=get_settings().vector_namespace,
    )


@lru_cache
def get_query_pipeline() -> QueryPipeline:
    settings = get_settings()
    return QueryPipeline(
        retriever=get_retriever(),
        assembler=PromptAssembler(background_language=settings.student_background_language),
        invoker=get_model_invoker(),
        interaction_logger=InteractionLogger(get_metadata_store()),
        top_k=settings.retrieval_top_k,
    )


@lru_cache
def get_ingest_queue() -> IngestQueue:
    return IngestQueue()
