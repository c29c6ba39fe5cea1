"""
Query Pipeline

Top-level orchestration for answering a student's question:

1. Validate the query.
2. Retrieve context passages (best effort).
3. Assemble the prompt.
4. Invoke the language model (failures are fatal to the call).
5. Log the interaction when a caller id is supplied (best effort).
6. Return the structured answer.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.errors import InvalidQueryError
from ..db.metadata_store import KIND_INTERACTION, MetadataStore
from ..llm.bedrock import ModelInvoker
from ..models import (
    DEFAULT_LANGUAGE,
    InteractionLogEntry,
    TutorAnswer,
    TutorQuery,
    generate_id,
    utc_now_iso,
)
from .prompts import PromptAssembler
from .retriever import Retriever

logger = logging.getLogger("tutor.pipeline")


class InteractionLogger:
    """Append-only writer for answered queries."""

    def __init__(self, metadata: MetadataStore) -> None:
        self.metadata = metadata

    async def log(
        self,
        caller_id: str,
        query: str,
        response: str,
        language: str,
        explanation_language: str,
        session_id: Optional[str],
    ) -> Optional[InteractionLogEntry]:
        """Write one entry. Failures are logged and swallowed; returns None then."""
        entry_id = generate_id("interaction", suffix_length=8)
        entry = InteractionLogEntry(
            id=entry_id,
            caller_id=caller_id,
            query=query,
            response=response,
            language=language,
            explanation_language=explanation_language,
            session_id=session_id or entry_id,
            timestamp=utc_now_iso(),
        )
        try:
            await self.metadata.put(entry.model_dump(), KIND_INTERACTION)
        except Exception:
            logger.exception("Error logging interaction for caller %s", caller_id)
            return None
        return entry


class QueryPipeline:
    def __init__(
        self,
        retriever: Retriever,
        assembler: PromptAssembler,
        invoker: ModelInvoker,
        interaction_logger: Optional[InteractionLogger] = None,
        top_k: int = 5,
    ) -> None:
        self.retriever = retriever
        self.assembler = assembler
        self.invoker = invoker
        self.interaction_logger = interaction_logger
        self.top_k = top_k

    async def answer(self, request: TutorQuery) -> TutorAnswer:
        """
        Answer one query.

        Raises
        ------
        InvalidQueryError
            If the query is empty.
        ModelError
            Any language-model failure; there is no answer without one.
        """
        if not request.query or not request.query.strip():
            raise InvalidQueryError("Query is required")

        language = request.language or DEFAULT_LANGUAGE
        explanation_language = request.explanation_language or language

        passages = await self.retriever.retrieve(request.query, language, k=self.top_k, filter={})

        prompt = self.assembler.assemble(
            request.query,
            language,
            explanation_language,
            request.session_id,
            passages,
        )

        response = await self.invoker.invoke(
            prompt,
            request.model_params,
            session_present=bool(request.session_id),
        )

        if request.caller_id and self.interaction_logger is not None:
            await self.interaction_logger.log(
                caller_id=request.caller_id,
                query=request.query,
                response=response,
                language=language,
                explanation_language=explanation_language,
                session_id=request.session_id,
            )

        return TutorAnswer(
            response=response,
            language=language,
            explanation_language=explanation_language,
            session_id=request.session_id,
        )
