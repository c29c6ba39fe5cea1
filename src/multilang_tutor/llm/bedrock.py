"""
Bedrock Model Invoker

Sends an assembled prompt to an Anthropic model on AWS Bedrock and returns
the first text segment of the reply.

Upstream failures are classified into a closed set of typed errors, each
carrying a fixed human-readable message. Wire-level details are logged and
never propagated. There is no retry here; retry policy belongs to the
caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from ..config import Settings
from ..core.errors import (
    ModelError,
    ModelInvocationError,
    ModelNotReadyError,
    ModelTimeoutError,
    ModelValidationError,
    ResponseParseError,
)
from ..models import ModelParams
from ..rag.prompts import SESSION_SYSTEM_PROMPT

logger = logging.getLogger("tutor.llm")

ANTHROPIC_VERSION = "bedrock-2023-05-31"

TIMEOUT_MESSAGE = "The language model took too long to respond. Please try a shorter query."
VALIDATION_MESSAGE = "Invalid request to the language model. Please check your query and try again."
NOT_READY_MESSAGE = "The language model is currently not available. Please try again later."
GENERIC_MESSAGE = "Error invoking language model."
PARSE_MESSAGE = "The language model returned a response in an unexpected format."

_ERROR_CODES = {
    "ModelTimeoutException": (ModelTimeoutError, TIMEOUT_MESSAGE),
    "ValidationException": (ModelValidationError, VALIDATION_MESSAGE),
    "ModelNotReadyException": (ModelNotReadyError, NOT_READY_MESSAGE),
}


@dataclass(frozen=True)
class ModelDefaults:
    model_id: str
    temperature: float
    top_p: float
    max_tokens: int

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelDefaults":
        return cls(
            model_id=settings.bedrock_model_id,
            temperature=settings.bedrock_temperature,
            top_p=settings.bedrock_top_p,
            max_tokens=settings.bedrock_max_tokens,
        )

    def resolve(self, params: Optional[ModelParams]) -> "ModelDefaults":
        """Caller-supplied values win; ``None`` falls back to the default."""
        params = params or ModelParams()
        return ModelDefaults(
            model_id=params.model_id if params.model_id is not None else self.model_id,
            temperature=params.temperature if params.temperature is not None else self.temperature,
            top_p=params.top_p if params.top_p is not None else self.top_p,
            max_tokens=params.max_tokens if params.max_tokens is not None else self.max_tokens,
        )


def classify_error(exc: Exception) -> ModelError:
    """Map an upstream exception onto the model error taxonomy."""
    if isinstance(exc, (ReadTimeoutError, ConnectTimeoutError)):
        return ModelTimeoutError(TIMEOUT_MESSAGE)

    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code", "")
        error_cls, message = _ERROR_CODES.get(code, (ModelInvocationError, GENERIC_MESSAGE))
        return error_cls(message)

    return ModelInvocationError(GENERIC_MESSAGE)


def extract_text(body: Any) -> str:
    """
    Return the first text segment of an Anthropic messages response.

    Expected shape:
        {"content": [{"type": "text", "text": "..."}, ...], ...}
    """
    if not isinstance(body, dict):
        raise ResponseParseError(PARSE_MESSAGE)

    content = body.get("content")
    if not isinstance(content, list):
        raise ResponseParseError(PARSE_MESSAGE)

    for segment in content:
        if not isinstance(segment, dict):
            continue
        if segment.get("type", "text") == "text" and isinstance(segment.get("text"), str):
            return segment["text"]

    raise ResponseParseError(PARSE_MESSAGE)


class ModelInvoker:
    """
    Bedrock runtime client wrapper.

    ``client`` may be any object with a boto3-compatible ``invoke_model``;
    tests pass a mock.
    """

    def __init__(self, defaults: ModelDefaults, client: Any) -> None:
        self.defaults = defaults
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelInvoker":
        client = boto3.client(
            "bedrock-runtime",
            region_name=settings.aws_region,
            config=Config(read_timeout=settings.bedrock_read_timeout, retries={"max_attempts": 0}),
        )
        return cls(ModelDefaults.from_settings(settings), client)

    def build_request(
        self,
        prompt: str,
        params: ModelDefaults,
        session_present: bool,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "top_p": params.top_p,
            "messages": [{"role": "user", "content": prompt}],
        }
        if session_present:
            body["system"] = SESSION_SYSTEM_PROMPT
        return body

    async def invoke(
        self,
        prompt: str,
        params: Optional[ModelParams] = None,
        session_present: bool = False,
    ) -> str:
        """
        Invoke the model and return the answer text.

        Raises
        ------
        ResponseParseError
            If the reply lacks a text content segment.
        ModelTimeoutError, ModelValidationError, ModelNotReadyError, ModelInvocationError
            For classified upstream failures.
        """
        resolved = self.defaults.resolve(params)
        body = self.build_request(prompt, resolved, session_present)

        logger.info(
            "Invoking model %s (prompt %d chars, session=%s)",
            resolved.model_id,
            len(prompt),
            session_present,
        )

        try:
            response = await asyncio.to_thread(
                self._client.invoke_model,
                modelId=resolved.model_id,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(body),
            )
        except (ClientError, BotoCoreError) as exc:
            error = classify_error(exc)
            logger.error(
                "Model invocation failed (%s -> %s): %s",
                type(exc).__name__,
                type(error).__name__,
                exc,
            )
            raise error from exc

        try:
            raw = response["body"].read()
            payload = json.loads(raw)
        except (KeyError, TypeError, AttributeError, ValueError) as exc:
            logger.error("Unreadable model response body: %s", type(exc).__name__)
            raise ResponseParseError(PARSE_MESSAGE) from exc

        return extract_text(payload)
