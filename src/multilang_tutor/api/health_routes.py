from fastapi import APIRouter

from ..config import get_settings

router = APIRouter(tags=["health"])

@router.get("/health")
def health():
    settings = get_settings()
    return {
        "status": "ok",
        "vector_index": settings.vector_index_backend,
        "embedder": settings.embedding_provider,
    }
