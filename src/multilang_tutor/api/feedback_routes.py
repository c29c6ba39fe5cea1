from typing import Annotated

from fastapi import APIRouter, Depends

from .dependencies import get_metadata_store, get_model_invoker
from .models import FeedbackRequest, ModelConfigResponse
from ..db import MetadataStore
from ..llm.bedrock import ModelInvoker
from ..rag.feedback import record_feedback

router = APIRouter(tags=["feedback"])


@router.post("/feedback", summary="Rate a tutoring response")
async def feedback(
    req: FeedbackRequest,
    store: Annotated[MetadataStore, Depends(get_metadata_store)],
):
    entry = await record_feedback(
        store,
        feedback=req.feedback,
        response_id=req.response_id,
        caller_id=req.student_id,
        rating=req.rating,
    )
    return {"message": "Feedback received, thank you!", "id": entry.id}


@router.get(
    "/configure",
    response_model=ModelConfigResponse,
    summary="Current language-model defaults",
)
async def configure(
    invoker: Annotated[ModelInvoker, Depends(get_model_invoker)],
) -> ModelConfigResponse:
    # Defaults come from the environment; changing them requires a redeploy.
    defaults = invoker.defaults
    return ModelConfigResponse(
        model_id=defaults.model_id,
        temperature=defaults.temperature,
        top_p=defaults.top_p,
        max_tokens=defaults.max_tokens,
    )
