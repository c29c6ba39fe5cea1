"""
Query Routes

Entry point for tutoring questions. Parses the payload, runs the query
pipeline, and serializes the answer. Typed pipeline errors are translated to
status codes by the global handlers registered in ``main.create_app``.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from .dependencies import get_query_pipeline
from .models import QueryRequest, QueryResponse
from ..models import ModelParams, TutorQuery
from ..rag.pipeline import QueryPipeline

router = APIRouter(tags=["query"])


@router.post(
    "/query",
    response_model=QueryResponse,
    summary="Ask the language tutor a question",
    status_code=status.HTTP_200_OK,
)
async def query(
    req: QueryRequest,
    pipeline: Annotated[QueryPipeline, Depends(get_query_pipeline)],
) -> QueryResponse:
    answer = await pipeline.answer(
        TutorQuery(
            query=req.query,
            language=req.language,
            explanation_language=req.explanation_language,
            session_id=req.session_id,
            caller_id=req.student_id,
            model_params=req.model_params or ModelParams(),
        )
    )

    return QueryResponse(**answer.model_dump())
