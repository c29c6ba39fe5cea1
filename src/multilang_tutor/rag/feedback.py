"""Student feedback on tutoring responses."""

from __future__ import annotations

from typing import Optional

from ..core.errors import InvalidInputError
from ..db.metadata_store import KIND_FEEDBACK, MetadataStore
from ..models import FeedbackEntry, utc_now_iso


async def record_feedback(
    store: MetadataStore,
    feedback: str,
    response_id: str,
    caller_id: Optional[str] = None,
    rating: Optional[int] = None,
) -> FeedbackEntry:
    """Store feedback keyed by the response it refers to; a resubmission replaces it."""
    if not feedback or not response_id:
        raise InvalidInputError("Feedback and response_id are required")

    entry = FeedbackEntry(
        id=f"feedback_{response_id}",
        feedback=feedback,
        response_id=response_id,
        caller_id=caller_id or "anonymous",
        rating=rating,
        timestamp=utc_now_iso(),
    )
    await store.put(entry.model_dump(), KIND_FEEDBACK)
    return entry
