import pytest
import pytest_asyncio

from multilang_tutor.db import MetadataStore, create_engine, create_sessionmaker, create_tables
from multilang_tutor.embeddings.embedder import HashEmbedder
from multilang_tutor.vectorindex.faiss_index import FaissVectorIndex

TEST_DIMENSIONS = 64


@pytest.fixture
def embedder():
    return HashEmbedder(dimensions=TEST_DIMENSIONS, max_chars=2000)


@pytest.fixture
def faiss_index():
    return FaissVectorIndex()


@pytest_asyncio.fixture
async def db_engine():
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def metadata_store(db_engine):
    return MetadataStore(create_sessionmaker(db_engine))
