"""
Secret Providers

Resolve the vector-index credential at call time. Nothing is cached between
calls, so a rotated secret takes effect on the next request.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import SecretStr

from .config import Settings
from .core.errors import SecretUnavailableError

logger = logging.getLogger("tutor.secrets")

PINECONE_SECRET_KEY = "pineconeApiKey"


class SecretProvider(ABC):
    @abstractmethod
    async def get_secret(self) -> str:
        """Return the credential or raise ``SecretUnavailableError``."""


class StaticSecretProvider(SecretProvider):
    """Credential supplied directly through configuration."""

    def __init__(self, secret: SecretStr) -> None:
        self._secret = secret

    async def get_secret(self) -> str:
        value = self._secret.get_secret_value()
        if not value:
            raise SecretUnavailableError("Vector index API key is not configured.")
        return value


class SecretsManagerProvider(SecretProvider):
    """
    Credential stored in AWS Secrets Manager as a JSON document.

    The secret string is expected to look like ``{"pineconeApiKey": "..."}``.
    """

    def __init__(
        self,
        secret_id: str,
        region: str,
        key: str = PINECONE_SECRET_KEY,
        client: Optional[Any] = None,
    ) -> None:
        self._secret_id = secret_id
        self._key = key
        self._client = client or boto3.client("secretsmanager", region_name=region)

    async def get_secret(self) -> str:
        try:
            data = await asyncio.to_thread(
                self._client.get_secret_value, SecretId=self._secret_id
            )
            secret = json.loads(data["SecretString"])
            return secret[self._key]
        except (ClientError, BotoCoreError, KeyError, TypeError, ValueError) as exc:
            logger.error(
                "Could not retrieve secret %s (%s)", self._secret_id, type(exc).__name__
            )
            raise SecretUnavailableError("Could not retrieve vector index API key.") from exc


def build_secret_provider(settings: Settings) -> SecretProvider:
    if settings.pinecone_api_key_secret_id:
        return SecretsManagerProvider(
            secret_id=settings.pinecone_api_key_secret_id,
            region=settings.aws_region,
        )
    return StaticSecretProvider(settings.pinecone_api_key)
