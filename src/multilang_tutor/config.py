from functools import lru_cache
from typing import Literal, Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    log_level: str = "INFO"

    # Embeddings
    embedding_provider: Literal["hash", "openai"] = "hash"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_max_chars: int = 8000
    openai_api_key: SecretStr = SecretStr("")
    openai_embeddings_url: str = "https://api.openai.com/v1/embeddings"

    # Vector index
    vector_index_backend: Literal["faiss", "pinecone"] = "faiss"
    pinecone_index_name: str = "multi-lang-teacher"
    pinecone_environment: str = "us-west1-gcp"
    pinecone_index_host: Optional[str] = None
    pinecone_api_key: SecretStr = SecretStr("")
    pinecone_api_key_secret_id: Optional[str] = None  # Secrets Manager ARN/name
    pinecone_timeout: float = 30.0
    vector_namespace: str = "default"
    vector_upsert_batch_size: int = 100

    # Metadata store
    database_url: str = "sqlite+aiosqlite:///./data/metadata.db"
    metadata_create_tables: bool = True
    metadata_read_batch_size: int = 100
    metadata_write_batch_size: int = 25

    # Bedrock
    aws_region: str = "us-east-1"
    bedrock_model_id: str = "anthropic.claude-3-sonnet-20240229-v1:0"
    bedrock_temperature: float = 0.7
    bedrock_top_p: float = 0.9
    bedrock_max_tokens: int = 2000
    bedrock_read_timeout: int = 120

    # Pipeline
    retrieval_top_k: int = 5
    student_background_language: str = "Simple Chinese (简体中文)"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    @property
    def pinecone_base_url(self) -> str:
        if self.pinecone_index_host:
            return self.pinecone_index_host.rstrip("/")
        env = self.pinecone_environment
        return f"https://{self.pinecone_index_name}-{env}.svc.{env}.pinecone.io"


@lru_cache
def get_settings() -> Settings:
    return Settings()
